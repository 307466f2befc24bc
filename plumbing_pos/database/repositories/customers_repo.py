from __future__ import annotations

from dataclasses import dataclass

from ...errors import NotFoundError
from ...utils.validators import ensure_non_empty, normalize_text
from .. import DatabaseContext


@dataclass
class Customer:
    id: int | None
    name: str
    contact_info: str | None
    address: str | None
    created_at: str | None = None


_COLUMNS = "id, name, contact_info, address, created_at"


class CustomersRepo:
    def __init__(self, db: DatabaseContext):
        self.db = db

    # ---- Queries ----------------------------------------------------------

    def list_customers(self) -> list[Customer]:
        rows = self.db.fetch_all(f"SELECT {_COLUMNS} FROM customers ORDER BY id DESC")
        return [Customer(**r) for r in rows]

    def search(self, term: str) -> list[Customer]:
        """
        Search over id/name/contact/address with LIKE.
        """
        pattern = f"%{(term or '').strip()}%"
        rows = self.db.fetch_all(
            f"SELECT {_COLUMNS} "
            "FROM customers "
            "WHERE CAST(id AS TEXT) LIKE ? OR name LIKE ? "
            "   OR contact_info LIKE ? OR address LIKE ? "
            "ORDER BY id DESC",
            (pattern, pattern, pattern, pattern),
        )
        return [Customer(**r) for r in rows]

    def get(self, customer_id: int) -> Customer | None:
        r = self.db.fetch_one(f"SELECT {_COLUMNS} FROM customers WHERE id = ?", (customer_id,))
        return Customer(**r) if r else None

    def require(self, customer_id: int) -> Customer:
        c = self.get(customer_id)
        if c is None:
            raise NotFoundError(f"Customer {customer_id} not found.")
        return c

    # ---- Mutations --------------------------------------------------------

    def create(self, name: str, contact_info: str | None = None, address: str | None = None) -> int:
        name_n = ensure_non_empty(name, "Name")
        with self.db.atomic() as conn:
            cur = conn.execute(
                "INSERT INTO customers (name, contact_info, address) VALUES (?, ?, ?)",
                (name_n, normalize_text(contact_info), normalize_text(address)),
            )
            return int(cur.lastrowid)

    def update(self, customer_id: int, name: str, contact_info: str | None, address: str | None) -> None:
        name_n = ensure_non_empty(name, "Name")
        with self.db.atomic() as conn:
            cur = conn.execute(
                "UPDATE customers SET name = ?, contact_info = ?, address = ? WHERE id = ?",
                (name_n, normalize_text(contact_info), normalize_text(address), customer_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Customer {customer_id} not found.")

    def delete(self, customer_id: int) -> None:
        """
        Delete a customer; their sales and sale items cascade. The cascade does
        not touch products, so the sold quantities are handed back first.
        """
        with self.db.atomic() as conn:
            conn.execute(
                """
                UPDATE products
                   SET quantity_sold = quantity_sold - (
                       SELECT COALESCE(SUM(si.quantity), 0)
                         FROM sales_items si
                         JOIN sales s ON s.id = si.sale_id
                        WHERE s.customer_id = ? AND si.product_id = products.id
                   )
                 WHERE id IN (
                       SELECT si.product_id
                         FROM sales_items si
                         JOIN sales s ON s.id = si.sale_id
                        WHERE s.customer_id = ?
                 )
                """,
                (customer_id, customer_id),
            )
            cur = conn.execute("DELETE FROM customers WHERE id = ?", (customer_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Customer {customer_id} not found.")
