from __future__ import annotations

from dataclasses import dataclass, field
import sqlite3
from typing import Iterable

from ...errors import NotFoundError
from .. import DatabaseContext


@dataclass
class Sale:
    id: int | None
    customer_id: int
    total_price: float
    created_at: str | None = None
    customer_name: str | None = None


@dataclass
class SaleItem:
    id: int | None
    sale_id: int
    product_id: int
    quantity: int
    price_per_unit: float
    discount_per_unit: float
    total_price: float
    product_name: str | None = None


@dataclass
class SaleWithItems:
    """Read-through aggregate: one sale header plus its line items."""
    sale: Sale
    items: list[SaleItem] = field(default_factory=list)

    @property
    def id(self) -> int | None:
        return self.sale.id

    @property
    def total_price(self) -> float:
        return self.sale.total_price


_SALE_SELECT = """
    SELECT s.id, s.customer_id, CAST(s.total_price AS REAL) AS total_price,
           s.created_at, c.name AS customer_name
      FROM sales s
      LEFT JOIN customers c ON c.id = s.customer_id
"""

_ITEM_SELECT = """
    SELECT si.id, si.sale_id, si.product_id, si.quantity,
           CAST(si.price_per_unit AS REAL)    AS price_per_unit,
           CAST(si.discount_per_unit AS REAL) AS discount_per_unit,
           CAST(si.total_price AS REAL)       AS total_price,
           p.name AS product_name
      FROM sales_items si
      LEFT JOIN products p ON p.id = si.product_id
"""


def recompute_sale_totals(conn: sqlite3.Connection, sale_ids: Iterable[int]) -> None:
    """Set sales.total_price to the sum of its items (0 when it has none)."""
    for sid in set(sale_ids):
        conn.execute(
            """
            UPDATE sales
               SET total_price = (
                   SELECT COALESCE(SUM(total_price), 0) FROM sales_items WHERE sale_id = ?
               )
             WHERE id = ?
            """,
            (sid, sid),
        )


def sale_ids_for_products(conn: sqlite3.Connection, where_sql: str, params: tuple) -> list[int]:
    """Sales that reference any product matching `where_sql` (a predicate over products p)."""
    rows = conn.execute(
        f"""
        SELECT DISTINCT si.sale_id
          FROM sales_items si
          JOIN products p ON p.id = si.product_id
         WHERE {where_sql}
        """,
        params,
    ).fetchall()
    return [int(r["sale_id"]) for r in rows]


class SalesRepo:
    """
    Sales + sale items.

    These are the single-statement building blocks. They do not validate
    stock or keep products.quantity_sold in step; the sale transaction engine
    composes them inside one atomic unit together with ProductsRepo.
    """

    def __init__(self, db: DatabaseContext):
        self.db = db

    # ---------------------------------------------------------------------
    # READ
    # ---------------------------------------------------------------------
    def list_sales(self) -> list[Sale]:
        rows = self.db.fetch_all(_SALE_SELECT + " ORDER BY s.created_at DESC, s.id DESC")
        return [Sale(**r) for r in rows]

    def list_sales_by_customer(self, customer_id: int) -> list[Sale]:
        rows = self.db.fetch_all(
            _SALE_SELECT + " WHERE s.customer_id = ? ORDER BY s.created_at DESC, s.id DESC",
            (customer_id,),
        )
        return [Sale(**r) for r in rows]

    def get(self, sale_id: int) -> Sale | None:
        r = self.db.fetch_one(_SALE_SELECT + " WHERE s.id = ?", (sale_id,))
        return Sale(**r) if r else None

    def require(self, sale_id: int) -> Sale:
        sale = self.get(sale_id)
        if sale is None:
            raise NotFoundError(f"Sale {sale_id} not found.")
        return sale

    def list_items(self, sale_id: int) -> list[SaleItem]:
        rows = self.db.fetch_all(_ITEM_SELECT + " WHERE si.sale_id = ? ORDER BY si.id", (sale_id,))
        return [SaleItem(**r) for r in rows]

    def list_all_items(self) -> list[SaleItem]:
        rows = self.db.fetch_all(_ITEM_SELECT + " ORDER BY si.sale_id DESC, si.id")
        return [SaleItem(**r) for r in rows]

    def get_item(self, item_id: int) -> SaleItem | None:
        r = self.db.fetch_one(_ITEM_SELECT + " WHERE si.id = ?", (item_id,))
        return SaleItem(**r) if r else None

    def require_item(self, item_id: int) -> SaleItem:
        item = self.get_item(item_id)
        if item is None:
            raise NotFoundError(f"Sale item {item_id} not found.")
        return item

    def get_with_items(self, sale_id: int) -> SaleWithItems:
        with self.db.atomic():
            sale = self.require(sale_id)
            return SaleWithItems(sale=sale, items=self.list_items(sale_id))

    # ---------------------------------------------------------------------
    # WRITE (call inside DatabaseContext.atomic())
    # ---------------------------------------------------------------------
    def insert_sale(self, customer_id: int, total_price: float) -> int:
        cur = self.db.execute(
            "INSERT INTO sales (customer_id, total_price) VALUES (?, ?)",
            (customer_id, total_price),
        )
        return int(cur.lastrowid)

    def update_header(self, sale_id: int, customer_id: int, total_price: float) -> None:
        cur = self.db.execute(
            "UPDATE sales SET customer_id = ?, total_price = ? WHERE id = ?",
            (customer_id, total_price, sale_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"Sale {sale_id} not found.")

    def insert_item(
        self,
        sale_id: int,
        product_id: int,
        quantity: int,
        price_per_unit: float,
        discount_per_unit: float,
        total_price: float,
    ) -> int:
        cur = self.db.execute(
            """
            INSERT INTO sales_items (
                sale_id, product_id, quantity, price_per_unit, discount_per_unit, total_price
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (sale_id, product_id, quantity, price_per_unit, discount_per_unit, total_price),
        )
        return int(cur.lastrowid)

    def update_item(
        self,
        item_id: int,
        product_id: int,
        quantity: int,
        price_per_unit: float,
        discount_per_unit: float,
        total_price: float,
    ) -> None:
        cur = self.db.execute(
            """
            UPDATE sales_items
               SET product_id = ?, quantity = ?, price_per_unit = ?,
                   discount_per_unit = ?, total_price = ?
             WHERE id = ?
            """,
            (product_id, quantity, price_per_unit, discount_per_unit, total_price, item_id),
        )
        if cur.rowcount == 0:
            raise NotFoundError(f"Sale item {item_id} not found.")

    def delete_item(self, item_id: int) -> SaleItem:
        """Delete one item and return the row as it was (for reversal bookkeeping)."""
        item = self.require_item(item_id)
        self.db.execute("DELETE FROM sales_items WHERE id = ?", (item_id,))
        return item

    def delete_items_for_sale(self, sale_id: int) -> list[SaleItem]:
        """Delete every item of a sale and return them as they were."""
        items = self.list_items(sale_id)
        self.db.execute("DELETE FROM sales_items WHERE sale_id = ?", (sale_id,))
        return items

    def delete_sale(self, sale_id: int) -> None:
        cur = self.db.execute("DELETE FROM sales WHERE id = ?", (sale_id,))
        if cur.rowcount == 0:
            raise NotFoundError(f"Sale {sale_id} not found.")

    def recompute_total(self, sale_id: int) -> float:
        recompute_sale_totals(self.db.conn, [sale_id])
        r = self.db.fetch_one("SELECT CAST(total_price AS REAL) AS t FROM sales WHERE id = ?", (sale_id,))
        if r is None:
            raise NotFoundError(f"Sale {sale_id} not found.")
        return float(r["t"])
