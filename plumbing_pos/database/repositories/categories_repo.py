from __future__ import annotations

from dataclasses import dataclass

from ...errors import NotFoundError
from ...utils.validators import ensure_non_empty, normalize_text
from .. import DatabaseContext
from .sales_repo import recompute_sale_totals, sale_ids_for_products


@dataclass
class ProductCategory:
    id: int | None
    name: str
    description: str | None
    image_path: str | None
    created_at: str | None = None


_COLUMNS = "id, name, description, image_path, created_at"


class CategoriesRepo:
    def __init__(self, db: DatabaseContext):
        self.db = db

    def list_categories(self) -> list[ProductCategory]:
        rows = self.db.fetch_all(f"SELECT {_COLUMNS} FROM product_categories ORDER BY id DESC")
        return [ProductCategory(**r) for r in rows]

    def get(self, category_id: int) -> ProductCategory | None:
        r = self.db.fetch_one(
            f"SELECT {_COLUMNS} FROM product_categories WHERE id = ?", (category_id,)
        )
        return ProductCategory(**r) if r else None

    def require(self, category_id: int) -> ProductCategory:
        c = self.get(category_id)
        if c is None:
            raise NotFoundError(f"Product category {category_id} not found.")
        return c

    def create(self, name: str, description: str | None = None, image_path: str | None = None) -> int:
        name_n = ensure_non_empty(name, "Name")
        with self.db.atomic() as conn:
            cur = conn.execute(
                "INSERT INTO product_categories (name, description, image_path) VALUES (?, ?, ?)",
                (name_n, normalize_text(description), normalize_text(image_path)),
            )
            return int(cur.lastrowid)

    def update(self, category_id: int, name: str, description: str | None, image_path: str | None) -> None:
        name_n = ensure_non_empty(name, "Name")
        with self.db.atomic() as conn:
            cur = conn.execute(
                "UPDATE product_categories SET name = ?, description = ?, image_path = ? WHERE id = ?",
                (name_n, normalize_text(description), normalize_text(image_path), category_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Product category {category_id} not found.")

    def delete(self, category_id: int) -> None:
        """
        Delete a category. Products cascade, and with them their sale items;
        the affected sales get their totals recomputed.
        """
        with self.db.atomic() as conn:
            affected = sale_ids_for_products(conn, "p.category_id = ?", (category_id,))
            cur = conn.execute("DELETE FROM product_categories WHERE id = ?", (category_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Product category {category_id} not found.")
            recompute_sale_totals(conn, affected)
