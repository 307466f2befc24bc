import sqlite3

SQL = r"""
PRAGMA foreign_keys = ON;

/* ======================== CORE TABLES ======================== */

/* -------- accounts -------- */
CREATE TABLE IF NOT EXISTS accounts (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    username      VARCHAR(50) UNIQUE NOT NULL,
    password_hash VARCHAR(255) NOT NULL,
    role          TEXT NOT NULL
                  CHECK (role IN ('admin','manager','secretary','salesperson')),
    created_at    TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

/* -------- parties -------- */
CREATE TABLE IF NOT EXISTS customers (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    name         VARCHAR(100) NOT NULL,
    contact_info VARCHAR(100),
    address      VARCHAR(255),
    created_at   TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

/* -------- catalogue -------- */
CREATE TABLE IF NOT EXISTS product_categories (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        VARCHAR(100) NOT NULL,
    description TEXT,
    image_path  VARCHAR(255),
    created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS products (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    category_id           INT NOT NULL,
    name                  VARCHAR(100) NOT NULL,
    size                  VARCHAR(50),
    color                 VARCHAR(50),
    price_per_unit_bought REAL NOT NULL CHECK (price_per_unit_bought >= 0),
    price_per_unit_sold   REAL NOT NULL CHECK (price_per_unit_sold >= 0),
    quantity_bought       INT NOT NULL CHECK (quantity_bought >= 0),
    quantity_sold         INT NOT NULL DEFAULT 0
                          CHECK (quantity_sold >= 0 AND quantity_sold <= quantity_bought),
    weight                REAL,
    weight_unit           VARCHAR(10),
    total_price_bought    REAL NOT NULL,
    image_path            VARCHAR(255),
    created_at            TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (category_id) REFERENCES product_categories(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_products_category ON products(category_id);

/* -------- sales -------- */
CREATE TABLE IF NOT EXISTS sales (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    customer_id INT NOT NULL,
    total_price REAL NOT NULL DEFAULT 0 CHECK (total_price >= 0),
    created_at  TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (customer_id) REFERENCES customers(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_sales_customer ON sales(customer_id);

CREATE TABLE IF NOT EXISTS sales_items (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    sale_id           INT NOT NULL,
    product_id        INT NOT NULL,
    quantity          INT NOT NULL CHECK (quantity > 0),
    price_per_unit    REAL NOT NULL CHECK (price_per_unit >= 0),
    discount_per_unit REAL NOT NULL DEFAULT 0
                      CHECK (discount_per_unit >= 0 AND discount_per_unit <= price_per_unit),
    total_price       REAL NOT NULL,
    FOREIGN KEY (sale_id)    REFERENCES sales(id)    ON DELETE CASCADE,
    FOREIGN KEY (product_id) REFERENCES products(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_sales_items_sale    ON sales_items(sale_id);
CREATE INDEX IF NOT EXISTS idx_sales_items_product ON sales_items(product_id);

/* -------- audit trail -------- */
CREATE TABLE IF NOT EXISTS user_history (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    action              VARCHAR(200) NOT NULL,
    linked_action_id    INT,
    linked_action_table VARCHAR(50) NOT NULL,
    old_data            TEXT,
    new_data            TEXT,
    account_id          INT NOT NULL,
    created_at          TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (account_id) REFERENCES accounts(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_user_history_account ON user_history(account_id);
CREATE INDEX IF NOT EXISTS idx_user_history_created ON user_history(created_at);

/* ======================== GUARDS ======================== */

/* history rows are append-only: only deletion is allowed */
DROP TRIGGER IF EXISTS trg_user_history_immutable;
CREATE TRIGGER trg_user_history_immutable
BEFORE UPDATE ON user_history
FOR EACH ROW
WHEN NEW.action              IS NOT OLD.action
  OR NEW.linked_action_id    IS NOT OLD.linked_action_id
  OR NEW.linked_action_table IS NOT OLD.linked_action_table
  OR NEW.old_data            IS NOT OLD.old_data
  OR NEW.new_data            IS NOT OLD.new_data
  OR NEW.account_id          IS NOT OLD.account_id
  OR NEW.created_at          IS NOT OLD.created_at
BEGIN
  SELECT RAISE(ABORT, 'user_history records are immutable');
END;
"""


def apply_schema(conn: sqlite3.Connection) -> None:
    """Apply the (idempotent) schema on an open connection."""
    conn.executescript(SQL)

