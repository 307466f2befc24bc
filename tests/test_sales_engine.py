# tests/test_sales_engine.py
"""
Sale transaction engine.

Covers create / update / delete of whole sales and of single items, the
stock bookkeeping on products.quantity_sold, the total_price invariants
and the all-or-nothing behaviour when a step fails.
"""
from __future__ import annotations

import json
import threading

import pytest

from plumbing_pos.errors import (
    InsufficientStockError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from plumbing_pos.modules.history import AuditLogger
from plumbing_pos.modules.sales import LineItem, SaleTransactionEngine
from plumbing_pos.modules.sales.engine import coerce_line, line_total, quantities_by_product


@pytest.fixture()
def engine(db, clock):
    return SaleTransactionEngine(db, AuditLogger(db, clock=clock))


def _assert_totals_consistent(db):
    """sale.total_price == Σ items, item.total == qty × (price − discount)."""
    for item in db.fetch_all("SELECT * FROM sales_items"):
        expected = item["quantity"] * (item["price_per_unit"] - item["discount_per_unit"])
        assert item["total_price"] == pytest.approx(expected)
    for sale in db.fetch_all("SELECT * FROM sales"):
        s = db.fetch_one(
            "SELECT COALESCE(SUM(total_price), 0) AS t FROM sales_items WHERE sale_id = ?",
            (sale["id"],),
        )
        assert sale["total_price"] == pytest.approx(s["t"])


# ---------------------------------------------------------------------
# pure helpers
# ---------------------------------------------------------------------

def test_line_total_applies_discount():
    assert line_total(3, 100.0, 10.0) == pytest.approx(270.0)


def test_coerce_line_accepts_mapping_aliases():
    ln = coerce_line({"product_id": "4", "quantity": "2", "price_per_unit": "12.5"})
    assert ln == LineItem(product_id=4, quantity=2, unit_price=12.5, discount_per_unit=0.0)


@pytest.mark.parametrize(
    "raw",
    [
        {"product_id": 1, "quantity": 0, "unit_price": 10},
        {"product_id": 1, "quantity": -2, "unit_price": 10},
        {"product_id": 1, "quantity": 1, "unit_price": -1},
        {"product_id": 1, "quantity": 1, "unit_price": 10, "discount_per_unit": 11},
        {"quantity": 1, "unit_price": 10},
        {"product_id": 1, "quantity": 1},
    ],
)
def test_coerce_line_rejects_bad_lines(raw):
    with pytest.raises(ValidationError):
        coerce_line(raw)


def test_quantities_by_product_sums_duplicates():
    lines = [LineItem(2, 1, 5.0), LineItem(1, 3, 5.0), LineItem(2, 4, 5.0)]
    assert list(quantities_by_product(lines).items()) == [(2, 5), (1, 3)]


# ---------------------------------------------------------------------
# create
# ---------------------------------------------------------------------

def test_create_sale_decrements_stock_and_sets_total(db, engine, ids, admin, quantity_sold):
    """bought 10 / sold 2, sell 3 @ 100 → sold 5, total 300."""
    result = engine.create_sale(
        ids["customer"],
        [{"product_id": ids["copper"], "quantity": 3, "unit_price": 100, "discount_per_unit": 0}],
        admin.id,
    )
    assert result.total_price == pytest.approx(300.0)
    assert quantity_sold(ids["copper"]) == 5

    sale = db.fetch_one("SELECT * FROM sales WHERE id = ?", (result.sale_id,))
    assert sale["total_price"] == pytest.approx(300.0)
    assert sale["customer_id"] == ids["customer"]
    assert len(result.items) == 1
    _assert_totals_consistent(db)


def test_create_sale_writes_audit_record(db, engine, ids, admin, clock):
    result = engine.create_sale(
        ids["customer"], [LineItem(ids["elbow"], 2, 50.0)], admin.id
    )
    row = db.fetch_one("SELECT * FROM user_history ORDER BY id DESC LIMIT 1")
    assert row["action"] == "create_sale"
    assert row["linked_action_table"] == "sales"
    assert row["linked_action_id"] == result.sale_id
    assert row["account_id"] == admin.id
    assert row["old_data"] is None
    assert row["created_at"] == clock.ago(days=0)
    new = json.loads(row["new_data"])
    assert new["total_price"] == pytest.approx(100.0)
    assert [it["product_id"] for it in new["items"]] == [ids["elbow"]]


def test_create_sale_insufficient_stock_changes_nothing(db, engine, ids, admin, quantity_sold, table_snapshot):
    """qty 9 with only 8 available fails; sold stays at 2."""
    before = table_snapshot()
    with pytest.raises(InsufficientStockError) as exc:
        engine.create_sale(
            ids["customer"], [LineItem(ids["copper"], 9, 100.0)], admin.id
        )
    assert exc.value.available == 8
    assert exc.value.requested == 9
    assert quantity_sold(ids["copper"]) == 2
    assert table_snapshot() == before


def test_create_sale_duplicate_lines_checked_together(db, engine, ids, admin, table_snapshot):
    """Two lines of the same product are summed before the stock check."""
    before = table_snapshot()
    with pytest.raises(InsufficientStockError):
        engine.create_sale(
            ids["customer"],
            [LineItem(ids["copper"], 5, 100.0), LineItem(ids["copper"], 4, 100.0)],
            admin.id,
        )
    assert table_snapshot() == before


@pytest.mark.parametrize(
    "customer_key, lines, error",
    [
        ("customer", [], ValidationError),
        ("customer", [{"product_id": 999, "quantity": 1, "unit_price": 1}], NotFoundError),
        (None, [{"product_id": "copper", "quantity": 1, "unit_price": 1}], NotFoundError),
        ("customer", [{"product_id": "copper", "quantity": 1, "unit_price": 1, "discount_per_unit": 2}], ValidationError),
    ],
)
def test_create_sale_validation_failures_are_atomic(db, engine, ids, admin, customer_key, lines, error, table_snapshot):
    """Any rejected cart leaves sales, items, products and history untouched."""
    customer_id = ids[customer_key] if customer_key else 424242
    resolved = [
        {**ln, "product_id": ids.get(ln["product_id"], ln["product_id"])} for ln in lines
    ]
    before = table_snapshot()
    with pytest.raises(error):
        engine.create_sale(customer_id, resolved, admin.id)
    assert table_snapshot() == before


def test_create_sale_rolls_back_when_audit_fails(db, engine, ids, table_snapshot):
    """An unknown acting account fails the history insert; the sale is undone."""
    before = table_snapshot()
    with pytest.raises(StorageError):
        engine.create_sale(ids["customer"], [LineItem(ids["copper"], 1, 100.0)], 9999)
    assert table_snapshot() == before


def test_no_oversell_across_sequential_sales(db, engine, ids, admin, quantity_sold):
    """Against bought=20 / sold=0 the committed quantities never exceed 20."""
    committed = 0
    for qty in [6, 7, 5, 4, 3, 1, 1]:
        try:
            engine.create_sale(ids["customer"], [LineItem(ids["valve"], qty, 30.0)], admin.id)
            committed += qty
        except InsufficientStockError:
            assert quantity_sold(ids["valve"]) == committed
    assert committed <= 20
    assert quantity_sold(ids["valve"]) == committed == 20


def test_no_oversell_under_concurrent_callers(db, engine, ids, admin, quantity_sold):
    """Eight threads each try to sell 3 of 20 units; at most six succeed."""
    outcomes: list[str] = []
    guard = threading.Lock()

    def sell():
        try:
            engine.create_sale(ids["customer"], [LineItem(ids["valve"], 3, 30.0)], admin.id)
            result = "ok"
        except InsufficientStockError:
            result = "rejected"
        with guard:
            outcomes.append(result)

    threads = [threading.Thread(target=sell) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 6
    assert outcomes.count("rejected") == 2
    assert quantity_sold(ids["valve"]) == 18


# ---------------------------------------------------------------------
# update
# ---------------------------------------------------------------------

def test_update_with_identical_items_has_no_drift(db, engine, ids, admin, quantity_sold):
    lines = [LineItem(ids["copper"], 8, 100.0, 5.0), LineItem(ids["elbow"], 2, 50.0)]
    created = engine.create_sale(ids["customer"], lines, admin.id)
    sold_before = (quantity_sold(ids["copper"]), quantity_sold(ids["elbow"]))

    # all 8 available copper units are already in this sale
    updated = engine.update_sale_and_items(created.sale_id, ids["customer"], lines, admin.id)

    assert updated.total_price == pytest.approx(created.total_price)
    assert (quantity_sold(ids["copper"]), quantity_sold(ids["elbow"])) == sold_before
    _assert_totals_consistent(db)


def test_update_moves_stock_by_the_difference(db, engine, ids, admin, quantity_sold):
    created = engine.create_sale(ids["customer"], [LineItem(ids["copper"], 3, 100.0)], admin.id)
    engine.update_sale_and_items(
        created.sale_id,
        ids["customer"],
        [LineItem(ids["copper"], 1, 100.0), LineItem(ids["valve"], 4, 30.0)],
        admin.id,
    )
    assert quantity_sold(ids["copper"]) == 3
    assert quantity_sold(ids["valve"]) == 4
    sale = engine.get_sale_with_items(created.sale_id)
    assert sale.total_price == pytest.approx(220.0)
    assert sorted(it.product_id for it in sale.items) == sorted([ids["copper"], ids["valve"]])


def test_update_records_old_and_new_snapshots(db, engine, ids, admin):
    created = engine.create_sale(ids["customer"], [LineItem(ids["elbow"], 1, 50.0)], admin.id)
    engine.update_sale_and_items(
        created.sale_id, ids["customer"], [LineItem(ids["elbow"], 3, 50.0)], admin.id
    )
    row = db.fetch_one("SELECT * FROM user_history WHERE action = 'update_sale'")
    old, new = json.loads(row["old_data"]), json.loads(row["new_data"])
    assert old["total_price"] == pytest.approx(50.0)
    assert new["total_price"] == pytest.approx(150.0)


def test_update_failure_leaves_sale_intact(db, engine, ids, admin, table_snapshot):
    created = engine.create_sale(ids["customer"], [LineItem(ids["copper"], 3, 100.0)], admin.id)
    before = table_snapshot()
    with pytest.raises(InsufficientStockError):
        engine.update_sale_and_items(
            created.sale_id, ids["customer"], [LineItem(ids["copper"], 9, 100.0)], admin.id
        )
    assert table_snapshot() == before


def test_update_missing_sale_raises(engine, ids, admin):
    with pytest.raises(NotFoundError):
        engine.update_sale_and_items(
            777, ids["customer"], [LineItem(ids["copper"], 1, 100.0)], admin.id
        )


# ---------------------------------------------------------------------
# delete / single items
# ---------------------------------------------------------------------

def test_delete_sale_returns_stock(db, engine, ids, admin, quantity_sold):
    created = engine.create_sale(
        ids["customer"],
        [LineItem(ids["copper"], 3, 100.0), LineItem(ids["elbow"], 5, 50.0)],
        admin.id,
    )
    engine.delete_sale(created.sale_id, admin.id)

    assert quantity_sold(ids["copper"]) == 2
    assert quantity_sold(ids["elbow"]) == 0
    assert db.fetch_one("SELECT * FROM sales WHERE id = ?", (created.sale_id,)) is None
    assert db.fetch_all("SELECT * FROM sales_items") == []
    row = db.fetch_one("SELECT * FROM user_history WHERE action = 'delete_sale'")
    assert row["new_data"] is None
    assert len(json.loads(row["old_data"])["items"]) == 2


def test_delete_item_recomputes_total_and_restores_stock(db, engine, ids, admin, quantity_sold):
    """qty 2 @ 50 + qty 1 @ 30 = 130; removing the elbows leaves 30."""
    created = engine.create_sale(
        ids["customer"],
        [LineItem(ids["elbow"], 2, 50.0), LineItem(ids["valve"], 1, 30.0)],
        admin.id,
    )
    assert created.total_price == pytest.approx(130.0)
    elbow_item = next(it for it in created.items if it.product_id == ids["elbow"])

    new_total = engine.delete_sale_item(elbow_item.id, admin.id)

    assert new_total == pytest.approx(30.0)
    assert engine.get_sale_with_items(created.sale_id).total_price == pytest.approx(30.0)
    assert quantity_sold(ids["elbow"]) == 0
    assert quantity_sold(ids["valve"]) == 1
    _assert_totals_consistent(db)


def test_add_and_update_single_item(db, engine, ids, admin, quantity_sold):
    created = engine.create_sale(ids["customer"], [LineItem(ids["valve"], 1, 30.0)], admin.id)

    item = engine.add_sale_item(
        created.sale_id, {"product_id": ids["copper"], "quantity": 2, "unit_price": 100}, admin.id
    )
    assert quantity_sold(ids["copper"]) == 4
    assert engine.get_sale_with_items(created.sale_id).total_price == pytest.approx(230.0)

    engine.update_sale_item(item.id, LineItem(ids["elbow"], 1, 50.0, 10.0), admin.id)
    assert quantity_sold(ids["copper"]) == 2
    assert quantity_sold(ids["elbow"]) == 1
    assert engine.get_sale_with_items(created.sale_id).total_price == pytest.approx(70.0)
    _assert_totals_consistent(db)


def test_update_item_over_stock_is_rejected(db, engine, ids, admin, table_snapshot):
    created = engine.create_sale(ids["customer"], [LineItem(ids["copper"], 3, 100.0)], admin.id)
    before = table_snapshot()
    with pytest.raises(InsufficientStockError):
        # 3 already held by this line + 5 free = 8 max
        engine.update_sale_item(created.items[0].id, LineItem(ids["copper"], 9, 100.0), admin.id)
    assert table_snapshot() == before


def test_delete_missing_item_raises(engine, admin):
    with pytest.raises(NotFoundError):
        engine.delete_sale_item(31337, admin.id)
