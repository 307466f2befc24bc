# plumbing_pos/database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from plumbing_pos.database.repositories import (
        AccountsRepo, Account,
        CustomersRepo, Customer,
        CategoriesRepo, ProductCategory,
        ProductsRepo, Product, ProductInput,
        SalesRepo, Sale, SaleItem, SaleWithItems,
        UserHistoryRepo, UserHistoryRow,
    )

Every repo takes the DatabaseContext in its constructor.
"""

# ---------------- Accounts -----------------
from .accounts_repo import AccountsRepo, Account

# ---------------- Customers ----------------
from .customers_repo import CustomersRepo, Customer

# --------------- Categories ----------------
from .categories_repo import CategoriesRepo, ProductCategory

# ---------------- Products -----------------
from .products_repo import ProductsRepo, Product, ProductInput

# ------------------ Sales ------------------
from .sales_repo import SalesRepo, Sale, SaleItem, SaleWithItems

# -------------- User history ---------------
from .user_history_repo import UserHistoryRepo, UserHistoryRow

__all__ = [
    "AccountsRepo",
    "Account",
    "CustomersRepo",
    "Customer",
    "CategoriesRepo",
    "ProductCategory",
    "ProductsRepo",
    "Product",
    "ProductInput",
    "SalesRepo",
    "Sale",
    "SaleItem",
    "SaleWithItems",
    "UserHistoryRepo",
    "UserHistoryRow",
]
