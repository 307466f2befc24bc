# plumbing_pos/database/repositories/products_repo.py
from __future__ import annotations

from dataclasses import dataclass
import logging

from ...errors import InsufficientStockError, NotFoundError, ValidationError
from ...utils.validators import (
    ensure_non_empty,
    normalize_text,
    parse_non_negative,
    parse_non_negative_int,
)
from .. import DatabaseContext
from .sales_repo import recompute_sale_totals, sale_ids_for_products

_log = logging.getLogger(__name__)


@dataclass
class Product:
    id: int | None
    category_id: int
    name: str
    size: str | None
    color: str | None
    price_per_unit_bought: float
    price_per_unit_sold: float
    quantity_bought: int
    quantity_sold: int
    weight: float | None
    weight_unit: str | None
    total_price_bought: float
    image_path: str | None
    created_at: str | None = None
    category_name: str | None = None

    @property
    def available(self) -> int:
        return int(self.quantity_bought) - int(self.quantity_sold)


_SELECT = """
    SELECT p.id, p.category_id, p.name, p.size, p.color,
           CAST(p.price_per_unit_bought AS REAL) AS price_per_unit_bought,
           CAST(p.price_per_unit_sold AS REAL)   AS price_per_unit_sold,
           p.quantity_bought, p.quantity_sold,
           p.weight, p.weight_unit,
           CAST(p.total_price_bought AS REAL)    AS total_price_bought,
           p.image_path, p.created_at,
           c.name AS category_name
      FROM products p
      LEFT JOIN product_categories c ON c.id = p.category_id
"""


@dataclass
class ProductInput:
    """Editable product fields. quantity_sold is deliberately absent."""
    category_id: int
    name: str
    price_per_unit_bought: float
    price_per_unit_sold: float
    quantity_bought: int
    size: str | None = None
    color: str | None = None
    weight: float | None = None
    weight_unit: str | None = None
    total_price_bought: float | None = None
    image_path: str | None = None

    def cleaned(self) -> "ProductInput":
        bought = parse_non_negative(self.price_per_unit_bought, "Purchase price per unit")
        qty = parse_non_negative_int(self.quantity_bought, "Quantity bought")
        total = (
            bought * qty
            if self.total_price_bought is None
            else parse_non_negative(self.total_price_bought, "Total purchase price")
        )
        return ProductInput(
            category_id=int(self.category_id),
            name=ensure_non_empty(self.name, "Name"),
            price_per_unit_bought=bought,
            price_per_unit_sold=parse_non_negative(self.price_per_unit_sold, "Sale price per unit"),
            quantity_bought=qty,
            size=normalize_text(self.size),
            color=normalize_text(self.color),
            weight=None if self.weight in (None, "") else parse_non_negative(self.weight, "Weight"),
            weight_unit=normalize_text(self.weight_unit),
            total_price_bought=total,
            image_path=normalize_text(self.image_path),
        )


class ProductsRepo:
    def __init__(self, db: DatabaseContext):
        self.db = db

    # ---------------------------- Products ----------------------------

    def list_products(self, category_id: int | None = None) -> list[Product]:
        if category_id is None:
            rows = self.db.fetch_all(_SELECT + " ORDER BY p.id DESC")
        else:
            rows = self.db.fetch_all(
                _SELECT + " WHERE p.category_id = ? ORDER BY p.id DESC", (category_id,)
            )
        return [Product(**r) for r in rows]

    def get(self, product_id: int) -> Product | None:
        r = self.db.fetch_one(_SELECT + " WHERE p.id = ?", (product_id,))
        return Product(**r) if r else None

    def require(self, product_id: int) -> Product:
        p = self.get(product_id)
        if p is None:
            raise NotFoundError(f"Product {product_id} not found.")
        return p

    def _ensure_category(self, category_id: int) -> None:
        if self.db.fetch_one("SELECT 1 FROM product_categories WHERE id = ?", (category_id,)) is None:
            raise NotFoundError(f"Product category {category_id} not found.")

    def create(self, data: ProductInput) -> int:
        d = data.cleaned()
        with self.db.atomic() as conn:
            self._ensure_category(d.category_id)
            cur = conn.execute(
                """
                INSERT INTO products (
                    category_id, name, size, color,
                    price_per_unit_bought, price_per_unit_sold,
                    quantity_bought, quantity_sold,
                    weight, weight_unit, total_price_bought, image_path
                ) VALUES (?, ?, ?, ?, ?, ?, ?, 0, ?, ?, ?, ?)
                """,
                (
                    d.category_id, d.name, d.size, d.color,
                    d.price_per_unit_bought, d.price_per_unit_sold,
                    d.quantity_bought,
                    d.weight, d.weight_unit, d.total_price_bought, d.image_path,
                ),
            )
            return int(cur.lastrowid)

    def update(self, product_id: int, data: ProductInput) -> None:
        """
        Generic product edit. Never writes quantity_sold, and refuses to drop
        quantity_bought below what has already been sold.
        """
        d = data.cleaned()
        with self.db.atomic() as conn:
            current = self.require(product_id)
            self._ensure_category(d.category_id)
            if d.quantity_bought < current.quantity_sold:
                raise ValidationError(
                    f"Quantity bought ({d.quantity_bought}) cannot be lower than the "
                    f"quantity already sold ({current.quantity_sold}) for '{current.name}'."
                )
            conn.execute(
                """
                UPDATE products
                   SET category_id = ?, name = ?, size = ?, color = ?,
                       price_per_unit_bought = ?, price_per_unit_sold = ?,
                       quantity_bought = ?,
                       weight = ?, weight_unit = ?, total_price_bought = ?, image_path = ?
                 WHERE id = ?
                """,
                (
                    d.category_id, d.name, d.size, d.color,
                    d.price_per_unit_bought, d.price_per_unit_sold,
                    d.quantity_bought,
                    d.weight, d.weight_unit, d.total_price_bought, d.image_path,
                    product_id,
                ),
            )

    def delete(self, product_id: int) -> None:
        """
        Delete a product. Its sale items cascade, so the totals of the sales
        that referenced it are recomputed in the same unit.
        """
        with self.db.atomic() as conn:
            affected = sale_ids_for_products(conn, "p.id = ?", (product_id,))
            cur = conn.execute("DELETE FROM products WHERE id = ?", (product_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Product {product_id} not found.")
            recompute_sale_totals(conn, affected)

    # ---------------------------- Stock ----------------------------

    def available(self, product_id: int) -> int:
        return self.require(product_id).available

    def adjust_quantity_sold(self, product_id: int, delta: int) -> None:
        """
        Add `delta` (negative on reversal) to quantity_sold.

        The UPDATE itself re-checks 0 <= quantity_sold + delta <= quantity_bought,
        so a stale read upstream can never oversell. Call inside atomic().
        """
        if delta == 0:
            return
        cur = self.db.execute(
            """
            UPDATE products
               SET quantity_sold = quantity_sold + ?
             WHERE id = ?
               AND quantity_sold + ? >= 0
               AND quantity_sold + ? <= quantity_bought
            """,
            (delta, product_id, delta, delta),
        )
        if cur.rowcount == 1:
            return
        product = self.require(product_id)
        if delta > 0:
            _log.warning(
                "Stock guard rejected product %s: requested %s, available %s",
                product_id, delta, product.available,
            )
            raise InsufficientStockError(product.id, product.name, delta, product.available)
        raise ValidationError(
            f"Cannot return {-delta} unit(s) of '{product.name}': only {product.quantity_sold} sold."
        )
