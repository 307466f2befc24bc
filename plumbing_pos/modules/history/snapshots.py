"""
Typed audit snapshots.

Each linked_action_table has its own snapshot record. Snapshots are stored
as JSON text in user_history.old_data / new_data and decoded back into the
matching record; tables without a registered record decode to a plain dict.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, is_dataclass
import json
from typing import Any, ClassVar, Mapping, Union

from ...constants import (
    TABLE_ACCOUNTS,
    TABLE_CATEGORIES,
    TABLE_CUSTOMERS,
    TABLE_PRODUCTS,
    TABLE_SALE_ITEMS,
    TABLE_SALES,
    TABLE_USER_HISTORY,
)
from ...errors import StorageError, ValidationError


class _SnapshotBase:
    table: ClassVar[str]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AccountSnapshot(_SnapshotBase):
    table: ClassVar[str] = TABLE_ACCOUNTS
    id: int | None = None
    username: str | None = None
    role: str | None = None


@dataclass
class CustomerSnapshot(_SnapshotBase):
    table: ClassVar[str] = TABLE_CUSTOMERS
    id: int | None = None
    name: str | None = None
    contact_info: str | None = None
    address: str | None = None


@dataclass
class CategorySnapshot(_SnapshotBase):
    table: ClassVar[str] = TABLE_CATEGORIES
    id: int | None = None
    name: str | None = None
    description: str | None = None
    image_path: str | None = None


@dataclass
class ProductSnapshot(_SnapshotBase):
    table: ClassVar[str] = TABLE_PRODUCTS
    id: int | None = None
    category_id: int | None = None
    name: str | None = None
    size: str | None = None
    color: str | None = None
    price_per_unit_bought: float | None = None
    price_per_unit_sold: float | None = None
    quantity_bought: int | None = None
    quantity_sold: int | None = None
    weight: float | None = None
    weight_unit: str | None = None
    total_price_bought: float | None = None
    image_path: str | None = None


@dataclass
class SaleItemSnapshot(_SnapshotBase):
    table: ClassVar[str] = TABLE_SALE_ITEMS
    id: int | None = None
    sale_id: int | None = None
    product_id: int | None = None
    quantity: int | None = None
    price_per_unit: float | None = None
    discount_per_unit: float | None = None
    total_price: float | None = None


@dataclass
class SaleSnapshot(_SnapshotBase):
    table: ClassVar[str] = TABLE_SALES
    id: int | None = None
    customer_id: int | None = None
    total_price: float | None = None
    items: list[SaleItemSnapshot] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SaleSnapshot":
        items = [
            SaleItemSnapshot.from_dict(it) for it in (data.get("items") or []) if isinstance(it, Mapping)
        ]
        return cls(
            id=data.get("id"),
            customer_id=data.get("customer_id"),
            total_price=data.get("total_price"),
            items=items,
        )


@dataclass
class HistorySnapshot(_SnapshotBase):
    """A deleted audit record, kept in the audit record of its own deletion."""
    table: ClassVar[str] = TABLE_USER_HISTORY
    id: int | None = None
    action: str | None = None
    linked_action_id: int | None = None
    linked_action_table: str | None = None
    old_data: str | None = None
    new_data: str | None = None
    account_id: int | None = None
    created_at: str | None = None


Snapshot = Union[
    AccountSnapshot,
    CustomerSnapshot,
    CategorySnapshot,
    ProductSnapshot,
    SaleItemSnapshot,
    SaleSnapshot,
    HistorySnapshot,
]

SNAPSHOT_TYPES: dict[str, type] = {
    cls.table: cls
    for cls in (
        AccountSnapshot,
        CustomerSnapshot,
        CategorySnapshot,
        ProductSnapshot,
        SaleItemSnapshot,
        SaleSnapshot,
        HistorySnapshot,
    )
}


def snapshot_of(table: str, obj: Any) -> Snapshot | dict:
    """Build the snapshot registered for `table` from a record or mapping."""
    data = asdict(obj) if is_dataclass(obj) and not isinstance(obj, type) else dict(obj)
    cls = SNAPSHOT_TYPES.get(table)
    return cls.from_dict(data) if cls else data


def to_plain(snapshot: Snapshot | Mapping[str, Any] | None) -> dict[str, Any] | None:
    if snapshot is None:
        return None
    if isinstance(snapshot, _SnapshotBase):
        return snapshot.to_dict()
    return dict(snapshot)


def encode_snapshot(snapshot: Snapshot | Mapping[str, Any] | str | None) -> str | None:
    """Serialize a snapshot to JSON text. Strings must already hold a JSON object."""
    if snapshot is None:
        return None
    if isinstance(snapshot, str):
        try:
            payload = json.loads(snapshot)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Snapshot is not valid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise ValidationError("Snapshot JSON must be an object.")
        return snapshot
    return json.dumps(to_plain(snapshot), ensure_ascii=False, default=str)


def decode_snapshot(table: str, text: str | None) -> Snapshot | dict | None:
    """
    Parse stored JSON back into the snapshot registered for `table`.
    Non-object payloads are wrapped as {"value": ...}.
    """
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise StorageError(f"Stored snapshot for {table} is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        return {"value": payload}
    cls = SNAPSHOT_TYPES.get(table)
    return cls.from_dict(payload) if cls else payload
