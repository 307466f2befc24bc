# tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - every test gets its own SQLite file under tmp_path (schema + admin seed)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON (DatabaseContext)
# - handy ids for a category, two products and a customer
# - a settable clock, and a way to record history rows in the past
# ---------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from plumbing_pos.database import DatabaseContext
from plumbing_pos.database.repositories import AccountsRepo
from plumbing_pos.modules.history import AuditLogger
from plumbing_pos.utils.helpers import to_db_timestamp
from plumbing_pos.utils.session import SessionUser


class FixedClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def ago(self, **delta) -> str:
        return to_db_timestamp(self.now - timedelta(**delta))


@pytest.fixture()
def db(tmp_path):
    ctx = DatabaseContext(tmp_path / "inventory_db.sqlite").open()
    try:
        yield ctx
    finally:
        ctx.close()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture()
def admin(db) -> SessionUser:
    acc = AccountsRepo(db).get_by_username("admin")
    return SessionUser(id=acc.id, username=acc.username, role=acc.role)


@pytest.fixture()
def salesperson(db) -> SessionUser:
    repo = AccountsRepo(db)
    account_id = repo.create("sam", "sam-pass", "salesperson")
    return SessionUser(id=account_id, username="sam", role="salesperson")


@pytest.fixture()
def ids(db) -> dict:
    """
    Category 'Pipes' with:
      - Copper pipe:  bought 10, sold 2 (8 available), sells at 100
      - PVC elbow:    bought 50, sold 0, sells at 50
      - Ball valve:   bought 20, sold 0, sells at 30
    and one customer.
    """
    c = db.conn
    c.execute("INSERT INTO product_categories (name) VALUES ('Pipes')")
    cat = c.execute("SELECT id FROM product_categories WHERE name='Pipes'").fetchone()["id"]

    def product(name, bought, sold, price):
        cur = c.execute(
            """
            INSERT INTO products (category_id, name, price_per_unit_bought, price_per_unit_sold,
                                  quantity_bought, quantity_sold, total_price_bought)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (cat, name, price / 2, price, bought, sold, price / 2 * bought),
        )
        return cur.lastrowid

    copper = product("Copper pipe", 10, 2, 100.0)
    elbow = product("PVC elbow", 50, 0, 50.0)
    valve = product("Ball valve", 20, 0, 30.0)
    cust = c.execute(
        "INSERT INTO customers (name, contact_info) VALUES ('Acme Builders', '555-0100')"
    ).lastrowid
    return {"category": cat, "copper": copper, "elbow": elbow, "valve": valve, "customer": cust}


@pytest.fixture()
def table_snapshot(db):
    """Full contents of the given tables, for before/after comparisons."""
    def _snapshot(*tables: str) -> dict:
        tables = tables or ("sales", "sales_items", "products", "user_history")
        return {t: [tuple(r) for r in db.conn.execute(f"SELECT * FROM {t} ORDER BY id")] for t in tables}
    return _snapshot


@pytest.fixture()
def quantity_sold(db):
    def _sold(product_id: int) -> int:
        return db.conn.execute(
            "SELECT quantity_sold FROM products WHERE id=?", (product_id,)
        ).fetchone()[0]
    return _sold


@pytest.fixture()
def record_aged(db, clock):
    """
    Write a history row as if it had been recorded `days` ago, by running a
    logger whose clock is set back.
    """
    def _record(account_id: int, days: float, action: str = "create_sale", table: str = "sales") -> int:
        past = FixedClock(clock.now - timedelta(days=days))
        return AuditLogger(db, clock=past).record(
            action, table, 1, None, {"id": 1, "total_price": 10}, account_id
        )
    return _record
