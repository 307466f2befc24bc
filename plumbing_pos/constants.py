# plumbing_pos/constants.py
APP_NAME = "Plumbing POS"

DATA_DIR = ".plumbing_pos"
DB_FILE_NAME = "inventory_db.sqlite"
AUTH_FILE_NAME = "auth.json"
LOG_DIR_NAME = "logs"


# ---- accounts ----
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_SECRETARY = "secretary"
ROLE_SALESPERSON = "salesperson"
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_SECRETARY, ROLE_SALESPERSON)

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin123"

# ---- user history ----
RETENTION_FLOOR_DAYS = 7

# timeframe key -> age in days
PURGE_WINDOWS = {
    "7days": 7,
    "2weeks": 14,
    "3weeks": 21,
    "1month": 30,
    "2months": 60,
    "3months": 90,
}

# SQLite CURRENT_TIMESTAMP format (UTC)
DB_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# ---- audit actions ----
ACTION_CREATE_SALE = "create_sale"
ACTION_UPDATE_SALE = "update_sale"
ACTION_DELETE_SALE = "delete_sale"
ACTION_ADD_SALE_ITEM = "add_sale_item"
ACTION_UPDATE_SALE_ITEM = "update_sale_item"
ACTION_DELETE_SALE_ITEM = "delete_sale_item"
ACTION_DELETE_HISTORY = "deleted a user history record"
ACTION_LOGGED_IN = "logged in"
ACTION_LOGGED_OUT = "logged out"

TABLE_ACCOUNTS = "accounts"
TABLE_CUSTOMERS = "customers"
TABLE_CATEGORIES = "product_categories"
TABLE_PRODUCTS = "products"
TABLE_SALES = "sales"
TABLE_SALE_ITEMS = "sales_items"
TABLE_USER_HISTORY = "user_history"
