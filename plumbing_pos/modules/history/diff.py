from __future__ import annotations

from typing import Any, Mapping

_MISSING = object()


def _kind(value: Any) -> str:
    # int and float compare as one "number" kind; bool stays separate
    if value is _MISSING:
        return "missing"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _equal(a: Any, b: Any) -> bool:
    if _kind(a) != _kind(b):
        return False
    if isinstance(a, Mapping):
        if set(a) != set(b):
            return False
        return all(_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)):
        return len(a) == len(b) and all(_equal(x, y) for x, y in zip(a, b))
    return a == b


def compute_field_diff(
    old_data: Mapping[str, Any] | None,
    new_data: Mapping[str, Any] | None,
) -> frozenset[str]:
    """
    Names of the top-level fields whose values differ between two snapshots.

    A field missing on one side counts as changed. Values of different kinds
    are always changed; objects and arrays are compared structurally.
    Returns an empty set unless both snapshots are present.
    """
    if old_data is None or new_data is None:
        return frozenset()
    keys = set(old_data) | set(new_data)
    return frozenset(
        k for k in keys if not _equal(old_data.get(k, _MISSING), new_data.get(k, _MISSING))
    )
