# plumbing_pos/backend.py
"""
Request/response boundary for the presentation layer.

One method per user operation. Every call checks the session first, then
delegates to the engine or a service with the logged-in account as actor.
"""
from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
from typing import Callable, Iterable

from .constants import ROLE_ADMIN
from .database import DatabaseContext
from .database.repositories import (
    Account,
    Customer,
    Product,
    ProductCategory,
    ProductInput,
    Sale,
    SaleItem,
    SaleWithItems,
)
from .modules.accounts.service import AccountsService
from .modules.customer.service import CustomersService
from .modules.history.audit import AuditLogger, HistoryPage, HistoryRecord
from .modules.product.service import CategoriesService, ProductsService
from .modules.sales.engine import LineInput, SaleResult, SaleTransactionEngine
from .utils.helpers import utc_now
from .utils.session import SessionStore, SessionUser

_log = logging.getLogger(__name__)


class Backend:
    def __init__(
        self,
        db: DatabaseContext,
        *,
        auth_file: Path | str | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.audit = AuditLogger(db, clock=clock)
        self.session = SessionStore(db, auth_file, audit=self.audit)
        self.engine = SaleTransactionEngine(db, self.audit)
        self.accounts = AccountsService(db, self.audit)
        self.customers = CustomersService(db, self.audit)
        self.categories = CategoriesService(db, self.audit)
        self.products = ProductsService(db, self.audit)

    # ---------------------------- auth ----------------------------

    def login(self, username: str, password: str, role: str) -> SessionUser:
        return self.session.login(username, password, role)

    def logout(self) -> bool:
        return self.session.logout()

    def auth_status(self) -> bool:
        return self.session.is_authenticated()

    def user_role(self) -> str | None:
        return self.session.current_role()

    # --------------------------- sales ----------------------------

    def create_sale(self, customer_id: int, items: Iterable[LineInput]) -> SaleResult:
        user = self.session.require_user()
        return self.engine.create_sale(customer_id, items, user.id)

    def update_sale_and_items(self, sale_id: int, customer_id: int, items: Iterable[LineInput]) -> SaleResult:
        user = self.session.require_user()
        return self.engine.update_sale_and_items(sale_id, customer_id, items, user.id)

    def delete_sale(self, sale_id: int) -> None:
        user = self.session.require_user()
        self.engine.delete_sale(sale_id, user.id)

    def add_sale_item(self, sale_id: int, item: LineInput) -> SaleItem:
        user = self.session.require_user()
        return self.engine.add_sale_item(sale_id, item, user.id)

    def update_sale_item(self, item_id: int, item: LineInput) -> SaleItem:
        user = self.session.require_user()
        return self.engine.update_sale_item(item_id, item, user.id)

    def delete_sale_item(self, item_id: int) -> float:
        user = self.session.require_user()
        return self.engine.delete_sale_item(item_id, user.id)

    def get_sale_with_items(self, sale_id: int) -> SaleWithItems:
        self.session.require_user()
        return self.engine.get_sale_with_items(sale_id)

    def get_sales(self) -> list[Sale]:
        self.session.require_user()
        return self.engine.sales.list_sales()

    def get_sales_by_customer(self, customer_id: int) -> list[Sale]:
        self.session.require_user()
        return self.engine.sales.list_sales_by_customer(customer_id)

    def get_sale_items(self, sale_id: int | None = None) -> list[SaleItem]:
        self.session.require_user()
        if sale_id is None:
            return self.engine.sales.list_all_items()
        return self.engine.sales.list_items(sale_id)

    def get_sale_item(self, item_id: int) -> SaleItem:
        self.session.require_user()
        return self.engine.sales.require_item(item_id)

    # -------------------------- history ---------------------------

    def get_user_history(self, page: int = 1, page_size: int = 10) -> HistoryPage:
        return self.audit.list_history(self.session.require_user(), page, page_size)

    def get_user_history_by_id(self, history_id: int) -> HistoryRecord:
        return self.audit.get_record(history_id, self.session.require_user())

    def delete_user_history(self, history_id: int) -> int:
        return self.audit.delete_record(history_id, self.session.require_user())

    def bulk_delete_user_history(self, timeframe: str) -> int:
        return self.audit.bulk_delete(timeframe, self.session.require_user())

    # -------------------------- accounts --------------------------

    def get_accounts(self) -> list[Account]:
        self.session.require_user(ROLE_ADMIN)
        return self.accounts.list_accounts()

    def add_account(self, username: str, password: str, role: str) -> int:
        user = self.session.require_user(ROLE_ADMIN)
        return self.accounts.create(username, password, role, user.id)

    def update_account(self, account_id: int, username: str, role: str, password: str | None = None) -> None:
        user = self.session.require_user(ROLE_ADMIN)
        self.accounts.update(account_id, username, role, user.id, password)

    def delete_account(self, account_id: int) -> None:
        user = self.session.require_user(ROLE_ADMIN)
        self.accounts.delete(account_id, user.id)

    # -------------------------- customers -------------------------

    def get_customers(self) -> list[Customer]:
        self.session.require_user()
        return self.customers.list_customers()

    def add_customer(self, name: str, contact_info: str | None = None, address: str | None = None) -> int:
        user = self.session.require_user()
        return self.customers.create(name, contact_info, address, user.id)

    def update_customer(self, customer_id: int, name: str, contact_info: str | None, address: str | None) -> None:
        user = self.session.require_user()
        self.customers.update(customer_id, name, contact_info, address, user.id)

    def delete_customer(self, customer_id: int) -> None:
        user = self.session.require_user()
        self.customers.delete(customer_id, user.id)

    # -------------------------- catalogue -------------------------

    def get_product_categories(self) -> list[ProductCategory]:
        self.session.require_user()
        return self.categories.list_categories()

    def add_product_category(self, name: str, description: str | None = None, image_path: str | None = None) -> int:
        user = self.session.require_user()
        return self.categories.create(name, description, image_path, user.id)

    def update_product_category(self, category_id: int, name: str, description: str | None, image_path: str | None) -> None:
        user = self.session.require_user()
        self.categories.update(category_id, name, description, image_path, user.id)

    def delete_product_category(self, category_id: int) -> None:
        user = self.session.require_user()
        self.categories.delete(category_id, user.id)

    def get_products(self, category_id: int | None = None) -> list[Product]:
        self.session.require_user()
        return self.products.list_products(category_id)

    def get_product_by_id(self, product_id: int) -> Product:
        self.session.require_user()
        return self.products.get(product_id)

    def add_product(self, data: ProductInput) -> int:
        user = self.session.require_user()
        return self.products.create(data, user.id)

    def update_product(self, product_id: int, data: ProductInput) -> None:
        user = self.session.require_user()
        self.products.update(product_id, data, user.id)

    def delete_product(self, product_id: int) -> None:
        user = self.session.require_user()
        self.products.delete(product_id, user.id)
