# plumbing_pos/modules/sales/engine.py
"""
Sale transaction engine.

Turns a cart (customer + line items) into sales / sales_items rows while
keeping products.quantity_sold and sales.total_price in step, and writes the
matching user_history record. Every public operation is one atomic unit:
validation failures and storage errors leave the database untouched.

Stock is always re-read inside the unit (which holds the write lock), and
ProductsRepo.adjust_quantity_sold() re-checks availability in the UPDATE
itself, so no caller can oversell a product.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import asdict, dataclass, field
import logging
from typing import Any, Iterable, Mapping, Union

from ...constants import (
    ACTION_ADD_SALE_ITEM,
    ACTION_CREATE_SALE,
    ACTION_DELETE_SALE,
    ACTION_DELETE_SALE_ITEM,
    ACTION_UPDATE_SALE,
    ACTION_UPDATE_SALE_ITEM,
    TABLE_SALE_ITEMS,
    TABLE_SALES,
)
from ...database import DatabaseContext
from ...database.repositories.customers_repo import CustomersRepo
from ...database.repositories.products_repo import ProductsRepo
from ...database.repositories.sales_repo import SaleItem, SalesRepo, SaleWithItems
from ...errors import InsufficientStockError, ValidationError
from ...utils.validators import parse_non_negative, parse_positive_int
from ..history.audit import AuditLogger
from ..history.snapshots import SaleItemSnapshot, SaleSnapshot

_log = logging.getLogger(__name__)


@dataclass
class LineItem:
    product_id: int
    quantity: int
    unit_price: float
    discount_per_unit: float = 0.0

    @property
    def total_price(self) -> float:
        return line_total(self.quantity, self.unit_price, self.discount_per_unit)


LineInput = Union[LineItem, Mapping[str, Any]]


@dataclass
class SaleResult:
    sale_id: int
    total_price: float
    items: list[SaleItem] = field(default_factory=list)


def line_total(quantity: int, unit_price: float, discount_per_unit: float = 0.0) -> float:
    """quantity × (unit_price − discount_per_unit)"""
    return quantity * (unit_price - discount_per_unit)


def coerce_line(raw: LineInput, position: int = 1) -> LineItem:
    """
    Validate one cart line. Accepts a LineItem or a mapping using either
    `unit_price` or `price_per_unit`. Raises ValidationError naming the line.
    """
    label = f"Line {position}"
    if isinstance(raw, LineItem):
        data: Mapping[str, Any] = asdict(raw)
    elif isinstance(raw, Mapping):
        data = raw
    else:
        raise ValidationError(f"{label}: expected a line item, got {type(raw).__name__}.")

    if data.get("product_id") is None:
        raise ValidationError(f"{label}: product is required.")
    price = data.get("unit_price", data.get("price_per_unit"))
    if price is None:
        raise ValidationError(f"{label}: unit price is required.")

    product_id = parse_positive_int(data["product_id"], f"{label}: product id")
    quantity = parse_positive_int(data.get("quantity"), f"{label}: quantity")
    unit_price = parse_non_negative(price, f"{label}: unit price")
    discount = parse_non_negative(data.get("discount_per_unit") or 0, f"{label}: discount per unit")
    if discount > unit_price:
        raise ValidationError(
            f"{label}: discount per unit ({discount}) cannot exceed the unit price ({unit_price})."
        )
    return LineItem(product_id, quantity, unit_price, discount)


def validate_lines(line_items: Iterable[LineInput] | None) -> list[LineItem]:
    lines = list(line_items or [])
    if not lines:
        raise ValidationError("A sale needs at least one line item.")
    return [coerce_line(raw, i) for i, raw in enumerate(lines, start=1)]


def quantities_by_product(lines: Iterable[LineItem | SaleItem]) -> "OrderedDict[int, int]":
    """Summed quantity per product, in order of first appearance."""
    totals: "OrderedDict[int, int]" = OrderedDict()
    for ln in lines:
        totals[ln.product_id] = totals.get(ln.product_id, 0) + int(ln.quantity)
    return totals


def _sale_snapshot(sale_id: int, customer_id: int, total: float, items: Iterable[SaleItem]) -> SaleSnapshot:
    return SaleSnapshot(
        id=sale_id,
        customer_id=customer_id,
        total_price=total,
        items=[_item_snapshot(it) for it in items],
    )


def _item_snapshot(item: SaleItem) -> SaleItemSnapshot:
    return SaleItemSnapshot.from_dict(asdict(item))


class SaleTransactionEngine:
    def __init__(self, db: DatabaseContext, audit: AuditLogger | None = None):
        self.db = db
        self.sales = SalesRepo(db)
        self.products = ProductsRepo(db)
        self.customers = CustomersRepo(db)
        self.audit = audit or AuditLogger(db)

    # ------------------------------------------------------------------
    # helpers (run inside an atomic unit)
    # ------------------------------------------------------------------
    def _check_stock(self, requested: Mapping[int, int], returned: Mapping[int, int] | None = None) -> None:
        """
        Every product must exist and have `requested` units available once the
        `returned` quantities (the lines being replaced) are handed back.
        """
        returned = returned or {}
        for product_id, qty in requested.items():
            product = self.products.require(product_id)
            available = product.available + returned.get(product_id, 0)
            _log.debug("Stock check product=%s requested=%s available=%s", product_id, qty, available)
            if qty > available:
                _log.warning(
                    "Rejected sale line: product %s (%s) requested %s, available %s",
                    product_id, product.name, qty, available,
                )
                raise InsufficientStockError(product_id, product.name, qty, available)

    def _insert_lines(self, sale_id: int, lines: Iterable[LineItem]) -> list[SaleItem]:
        items: list[SaleItem] = []
        for ln in lines:
            total = ln.total_price
            item_id = self.sales.insert_item(
                sale_id, ln.product_id, ln.quantity, ln.unit_price, ln.discount_per_unit, total
            )
            items.append(
                SaleItem(
                    id=item_id,
                    sale_id=sale_id,
                    product_id=ln.product_id,
                    quantity=ln.quantity,
                    price_per_unit=ln.unit_price,
                    discount_per_unit=ln.discount_per_unit,
                    total_price=total,
                )
            )
        return items

    def _apply_stock(self, quantities: Mapping[int, int], sign: int) -> None:
        for product_id, qty in quantities.items():
            self.products.adjust_quantity_sold(product_id, sign * qty)

    # ------------------------------------------------------------------
    # sales
    # ------------------------------------------------------------------
    def create_sale(self, customer_id: int, line_items: Iterable[LineInput], actor_id: int) -> SaleResult:
        """
        Persist a new sale with its items, decrement stock and audit it.

        Raises ValidationError, NotFoundError (customer/product) or
        InsufficientStockError; nothing is written in that case.
        """
        lines = validate_lines(line_items)
        requested = quantities_by_product(lines)
        total = sum(ln.total_price for ln in lines)

        with self.db.atomic():
            self.customers.require(customer_id)
            self._check_stock(requested)

            sale_id = self.sales.insert_sale(customer_id, total)
            items = self._insert_lines(sale_id, lines)
            self._apply_stock(requested, +1)

            self.audit.record(
                action=ACTION_CREATE_SALE,
                linked_action_table=TABLE_SALES,
                linked_action_id=sale_id,
                old_data=None,
                new_data=_sale_snapshot(sale_id, customer_id, total, items),
                account_id=actor_id,
            )

        _log.info("Sale %s created for customer %s: %d line(s), total %.2f", sale_id, customer_id, len(items), total)
        return SaleResult(sale_id=sale_id, total_price=total, items=items)

    def update_sale_and_items(
        self,
        sale_id: int,
        customer_id: int,
        line_items: Iterable[LineInput],
        actor_id: int,
    ) -> SaleResult:
        """
        Replace all items of an existing sale.

        The old lines are virtually returned to stock before the new ones are
        validated, so re-saving an unchanged cart never trips the stock check.
        """
        lines = validate_lines(line_items)
        requested = quantities_by_product(lines)
        total = sum(ln.total_price for ln in lines)

        with self.db.atomic():
            old_sale = self.sales.require(sale_id)
            self.customers.require(customer_id)
            old_items = self.sales.list_items(sale_id)
            returned = quantities_by_product(old_items)
            self._check_stock(requested, returned)

            self.sales.delete_items_for_sale(sale_id)
            self._apply_stock(returned, -1)
            items = self._insert_lines(sale_id, lines)
            self._apply_stock(requested, +1)
            self.sales.update_header(sale_id, customer_id, total)

            self.audit.record(
                action=ACTION_UPDATE_SALE,
                linked_action_table=TABLE_SALES,
                linked_action_id=sale_id,
                old_data=_sale_snapshot(sale_id, old_sale.customer_id, old_sale.total_price, old_items),
                new_data=_sale_snapshot(sale_id, customer_id, total, items),
                account_id=actor_id,
            )

        _log.info("Sale %s updated: %d line(s), total %.2f", sale_id, len(items), total)
        return SaleResult(sale_id=sale_id, total_price=total, items=items)

    def delete_sale(self, sale_id: int, actor_id: int) -> None:
        """Delete a sale with all its items and hand their quantities back to stock."""
        with self.db.atomic():
            sale = self.sales.require(sale_id)
            old_items = self.sales.delete_items_for_sale(sale_id)
            self._apply_stock(quantities_by_product(old_items), -1)
            self.sales.delete_sale(sale_id)

            self.audit.record(
                action=ACTION_DELETE_SALE,
                linked_action_table=TABLE_SALES,
                linked_action_id=sale_id,
                old_data=_sale_snapshot(sale_id, sale.customer_id, sale.total_price, old_items),
                new_data=None,
                account_id=actor_id,
            )
        _log.info("Sale %s deleted (%d item(s) returned to stock)", sale_id, len(old_items))

    def get_sale_with_items(self, sale_id: int) -> SaleWithItems:
        return self.sales.get_with_items(sale_id)

    # ------------------------------------------------------------------
    # single items
    # ------------------------------------------------------------------
    def add_sale_item(self, sale_id: int, line: LineInput, actor_id: int) -> SaleItem:
        """Append one line to an existing sale."""
        ln = coerce_line(line)
        with self.db.atomic():
            self.sales.require(sale_id)
            self._check_stock({ln.product_id: ln.quantity})
            [item] = self._insert_lines(sale_id, [ln])
            self.products.adjust_quantity_sold(ln.product_id, ln.quantity)
            self.sales.recompute_total(sale_id)

            self.audit.record(
                action=ACTION_ADD_SALE_ITEM,
                linked_action_table=TABLE_SALE_ITEMS,
                linked_action_id=item.id,
                old_data=None,
                new_data=_item_snapshot(item),
                account_id=actor_id,
            )
        _log.info("Item %s added to sale %s", item.id, sale_id)
        return item

    def update_sale_item(self, item_id: int, line: LineInput, actor_id: int) -> SaleItem:
        """
        Rewrite one line in place. The product may change; stock moves by the
        net difference and the parent sale total is recomputed.
        """
        ln = coerce_line(line)
        with self.db.atomic():
            old = self.sales.require_item(item_id)
            self._check_stock({ln.product_id: ln.quantity}, {old.product_id: old.quantity})

            total = ln.total_price
            self.sales.update_item(
                item_id, ln.product_id, ln.quantity, ln.unit_price, ln.discount_per_unit, total
            )
            self.products.adjust_quantity_sold(old.product_id, -old.quantity)
            self.products.adjust_quantity_sold(ln.product_id, ln.quantity)
            self.sales.recompute_total(old.sale_id)

            item = SaleItem(
                id=item_id,
                sale_id=old.sale_id,
                product_id=ln.product_id,
                quantity=ln.quantity,
                price_per_unit=ln.unit_price,
                discount_per_unit=ln.discount_per_unit,
                total_price=total,
            )
            self.audit.record(
                action=ACTION_UPDATE_SALE_ITEM,
                linked_action_table=TABLE_SALE_ITEMS,
                linked_action_id=item_id,
                old_data=_item_snapshot(old),
                new_data=_item_snapshot(item),
                account_id=actor_id,
            )
        _log.info("Sale item %s updated", item_id)
        return item

    def delete_sale_item(self, item_id: int, actor_id: int) -> float:
        """Remove one line, return its quantity to stock; returns the sale's new total."""
        with self.db.atomic():
            item = self.sales.delete_item(item_id)
            self.products.adjust_quantity_sold(item.product_id, -item.quantity)
            new_total = self.sales.recompute_total(item.sale_id)

            self.audit.record(
                action=ACTION_DELETE_SALE_ITEM,
                linked_action_table=TABLE_SALE_ITEMS,
                linked_action_id=item_id,
                old_data=_item_snapshot(item),
                new_data=None,
                account_id=actor_id,
            )
        _log.info("Sale item %s deleted from sale %s; new total %.2f", item_id, item.sale_id, new_total)
        return new_total
