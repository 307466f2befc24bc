from __future__ import annotations

from ...constants import TABLE_CATEGORIES, TABLE_PRODUCTS
from ...database import DatabaseContext
from ...database.repositories.categories_repo import CategoriesRepo, ProductCategory
from ...database.repositories.products_repo import Product, ProductInput, ProductsRepo
from ..history.audit import AuditLogger
from ..history.snapshots import snapshot_of


class CategoriesService:
    def __init__(self, db: DatabaseContext, audit: AuditLogger | None = None):
        self.db = db
        self.repo = CategoriesRepo(db)
        self.audit = audit or AuditLogger(db)

    def list_categories(self) -> list[ProductCategory]:
        return self.repo.list_categories()

    def get(self, category_id: int) -> ProductCategory:
        return self.repo.require(category_id)

    def create(self, name: str, description: str | None, image_path: str | None, actor_id: int) -> int:
        with self.db.atomic():
            category_id = self.repo.create(name, description, image_path)
            self.audit.record(
                action="added a new product category",
                linked_action_table=TABLE_CATEGORIES,
                linked_action_id=category_id,
                new_data=snapshot_of(TABLE_CATEGORIES, self.repo.require(category_id)),
                account_id=actor_id,
            )
        return category_id

    def update(self, category_id: int, name: str, description: str | None, image_path: str | None, actor_id: int) -> None:
        with self.db.atomic():
            old = self.repo.require(category_id)
            self.repo.update(category_id, name, description, image_path)
            self.audit.record(
                action="updated product category",
                linked_action_table=TABLE_CATEGORIES,
                linked_action_id=category_id,
                old_data=snapshot_of(TABLE_CATEGORIES, old),
                new_data=snapshot_of(TABLE_CATEGORIES, self.repo.require(category_id)),
                account_id=actor_id,
            )

    def delete(self, category_id: int, actor_id: int) -> None:
        with self.db.atomic():
            old = self.repo.require(category_id)
            self.repo.delete(category_id)
            self.audit.record(
                action="deleted a product category",
                linked_action_table=TABLE_CATEGORIES,
                linked_action_id=category_id,
                old_data=snapshot_of(TABLE_CATEGORIES, old),
                account_id=actor_id,
            )


class ProductsService:
    """
    Product catalogue edits. quantity_sold is not editable here; only the
    sale transaction engine moves it.
    """

    def __init__(self, db: DatabaseContext, audit: AuditLogger | None = None):
        self.db = db
        self.repo = ProductsRepo(db)
        self.audit = audit or AuditLogger(db)

    def list_products(self, category_id: int | None = None) -> list[Product]:
        return self.repo.list_products(category_id)

    def get(self, product_id: int) -> Product:
        return self.repo.require(product_id)

    def create(self, data: ProductInput, actor_id: int) -> int:
        with self.db.atomic():
            product_id = self.repo.create(data)
            self.audit.record(
                action="added a new product",
                linked_action_table=TABLE_PRODUCTS,
                linked_action_id=product_id,
                new_data=snapshot_of(TABLE_PRODUCTS, self.repo.require(product_id)),
                account_id=actor_id,
            )
        return product_id

    def update(self, product_id: int, data: ProductInput, actor_id: int) -> None:
        with self.db.atomic():
            old = self.repo.require(product_id)
            self.repo.update(product_id, data)
            self.audit.record(
                action="updated product",
                linked_action_table=TABLE_PRODUCTS,
                linked_action_id=product_id,
                old_data=snapshot_of(TABLE_PRODUCTS, old),
                new_data=snapshot_of(TABLE_PRODUCTS, self.repo.require(product_id)),
                account_id=actor_id,
            )

    def delete(self, product_id: int, actor_id: int) -> None:
        with self.db.atomic():
            old = self.repo.require(product_id)
            self.repo.delete(product_id)
            self.audit.record(
                action="deleted a product",
                linked_action_table=TABLE_PRODUCTS,
                linked_action_id=product_id,
                old_data=snapshot_of(TABLE_PRODUCTS, old),
                account_id=actor_id,
            )
