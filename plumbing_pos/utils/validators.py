# plumbing_pos/utils/validators.py
import math

from ..errors import ValidationError


def non_empty(text: str) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text and str(text).strip())


def normalize_text(s: str | None) -> str | None:
    if s is None:
        return None
    s = str(s).strip()
    return s or None


def ensure_non_empty(value: str | None, field_label: str) -> str:
    if not non_empty(value):
        raise ValidationError(f"{field_label} cannot be empty.")
    return str(value).strip()


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to float.

    Returns:
        (ok: bool, value: float|None)
    """
    if isinstance(x, bool):
        return False, None
    try:
        val = float(x)
    except (TypeError, ValueError):
        return False, None
    if not math.isfinite(val):
        return False, None
    return True, val


def parse_float(x, field_label: str = "Value") -> float:
    """Strict parse to float; raises ValidationError with a clear message on failure."""
    ok, val = try_parse_float(x)
    if not ok:
        raise ValidationError(f"{field_label}: could not parse '{x}' as a number.")
    return val  # type: ignore[return-value]


def parse_non_negative(x, field_label: str) -> float:
    val = parse_float(x, field_label)
    if val < 0:
        raise ValidationError(f"{field_label} cannot be negative.")
    return val


def parse_positive_int(x, field_label: str) -> int:
    """
    Whole number strictly greater than zero. Floats with a fractional part
    and booleans are rejected rather than truncated.
    """
    ok, val = try_parse_float(x)
    if not ok or val != int(val):
        raise ValidationError(f"{field_label} must be a whole number.")
    if val <= 0:
        raise ValidationError(f"{field_label} must be greater than zero.")
    return int(val)


def parse_non_negative_int(x, field_label: str) -> int:
    ok, val = try_parse_float(x)
    if not ok or val != int(val):
        raise ValidationError(f"{field_label} must be a whole number.")
    if val < 0:
        raise ValidationError(f"{field_label} cannot be negative.")
    return int(val)

