# tests/test_repositories.py
"""
Entity repositories and the audited catalogue/account services.
"""
from __future__ import annotations

import json

import pytest

from plumbing_pos.database.repositories import (
    AccountsRepo,
    CategoriesRepo,
    CustomersRepo,
    ProductInput,
    ProductsRepo,
)
from plumbing_pos.errors import (
    AuthorizationError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from plumbing_pos.modules.accounts.service import AccountsService
from plumbing_pos.modules.customer.service import CustomersService
from plumbing_pos.modules.history import AuditLogger
from plumbing_pos.modules.product.service import CategoriesService, ProductsService
from plumbing_pos.modules.sales import LineItem, SaleTransactionEngine
from plumbing_pos.utils.auth import verify_password


@pytest.fixture()
def audit(db, clock):
    return AuditLogger(db, clock=clock)


def _last_history(db):
    return db.fetch_one("SELECT * FROM user_history ORDER BY id DESC LIMIT 1")


# ------------------------------- accounts -------------------------------

def test_account_create_hashes_password(db):
    repo = AccountsRepo(db)
    account_id = repo.create("  mona  ", "s3cret", "Manager")
    acc = repo.require(account_id)
    assert (acc.username, acc.role) == ("mona", "manager")
    stored = repo.get_password_hash(account_id)
    assert stored != "s3cret"
    assert verify_password("s3cret", stored)


@pytest.mark.parametrize(
    "username, password, role",
    [("", "pw", "admin"), ("x", "", "admin"), ("x", "pw", "owner"), ("admin", "pw", "manager")],
)
def test_account_create_rejects_bad_input(db, username, password, role):
    with pytest.raises(ValidationError):
        AccountsRepo(db).create(username, password, role)


def test_account_update_keeps_password_unless_given(db):
    repo = AccountsRepo(db)
    account_id = repo.create("sec", "first", "secretary")
    repo.update(account_id, "sec2", "salesperson")
    assert verify_password("first", repo.get_password_hash(account_id))
    repo.update(account_id, "sec2", "salesperson", password="second")
    assert verify_password("second", repo.get_password_hash(account_id))
    assert repo.require(account_id).role == "salesperson"


def test_accounts_service_requires_admin(db, audit, admin, salesperson):
    svc = AccountsService(db, audit)
    with pytest.raises(AuthorizationError):
        svc.create("eve", "pw", "manager", salesperson.id)

    new_id = svc.create("eve", "pw", "manager", admin.id)
    row = _last_history(db)
    assert row["action"] == "added a new account"
    assert "password" not in json.loads(row["new_data"])
    assert "password_hash" not in json.loads(row["new_data"])

    with pytest.raises(AuthorizationError):
        svc.delete(admin.id, admin.id)
    svc.delete(new_id, admin.id)
    assert AccountsRepo(db).get(new_id) is None


# ------------------------------- customers ------------------------------

def test_customer_crud_is_audited(db, audit, admin):
    svc = CustomersService(db, audit)
    cid = svc.create("Bob Plumbing", "555-0199", None, admin.id)
    svc.update(cid, "Bob's Plumbing", "555-0199", "1 Main St", admin.id)

    row = _last_history(db)
    assert row["linked_action_table"] == "customers"
    rec = audit.get_record(row["id"], admin)
    assert rec.changed_fields == {"name", "address"}

    assert [c.id for c in CustomersRepo(db).search("bob")] == [cid]
    svc.delete(cid, admin.id)
    with pytest.raises(NotFoundError):
        svc.get(cid)


def test_customer_name_required(db):
    with pytest.raises(ValidationError):
        CustomersRepo(db).create("   ")


# ------------------------------- products -------------------------------

def _input(category_id, **overrides):
    base = dict(
        category_id=category_id,
        name="Brass tee",
        price_per_unit_bought=4,
        price_per_unit_sold=9,
        quantity_bought=12,
    )
    base.update(overrides)
    return ProductInput(**base)


def test_product_create_defaults(db, ids):
    repo = ProductsRepo(db)
    pid = repo.create(_input(ids["category"]))
    p = repo.require(pid)
    assert p.quantity_sold == 0
    assert p.available == 12
    assert p.total_price_bought == pytest.approx(48.0)
    assert p.category_name == "Pipes"


def test_product_create_unknown_category(db):
    with pytest.raises(NotFoundError):
        ProductsRepo(db).create(_input(999))


def test_product_update_cannot_drop_below_sold(db, ids):
    """Copper has 2 sold; quantity_bought may go to 2 but not to 1."""
    repo = ProductsRepo(db)
    with pytest.raises(ValidationError):
        repo.update(ids["copper"], _input(ids["category"], name="Copper pipe", quantity_bought=1))
    repo.update(ids["copper"], _input(ids["category"], name="Copper pipe", quantity_bought=2))
    p = repo.require(ids["copper"])
    assert (p.quantity_bought, p.quantity_sold, p.available) == (2, 2, 0)


def test_adjust_quantity_sold_is_guarded(db, ids):
    repo = ProductsRepo(db)
    with pytest.raises(InsufficientStockError):
        repo.adjust_quantity_sold(ids["copper"], 9)
    with pytest.raises(ValidationError):
        repo.adjust_quantity_sold(ids["copper"], -3)
    repo.adjust_quantity_sold(ids["copper"], 8)
    assert repo.available(ids["copper"]) == 0


def test_product_delete_recomputes_sale_totals(db, ids, admin, audit):
    engine = SaleTransactionEngine(db, audit)
    sale = engine.create_sale(
        ids["customer"],
        [LineItem(ids["elbow"], 2, 50.0), LineItem(ids["valve"], 1, 30.0)],
        admin.id,
    )
    ProductsService(db, audit).delete(ids["elbow"], admin.id)

    refreshed = engine.get_sale_with_items(sale.sale_id)
    assert refreshed.total_price == pytest.approx(30.0)
    assert [it.product_id for it in refreshed.items] == [ids["valve"]]
    assert _last_history(db)["action"] == "deleted a product"


def test_category_delete_cascades_products(db, ids, admin, audit):
    engine = SaleTransactionEngine(db, audit)
    sale = engine.create_sale(ids["customer"], [LineItem(ids["valve"], 2, 30.0)], admin.id)

    CategoriesService(db, audit).delete(ids["category"], admin.id)

    assert ProductsRepo(db).list_products() == []
    assert CategoriesRepo(db).get(ids["category"]) is None
    assert engine.get_sale_with_items(sale.sale_id).total_price == pytest.approx(0.0)


def test_products_service_audits_edits(db, ids, admin, audit, quantity_sold):
    svc = ProductsService(db, audit)
    svc.update(
        ids["valve"],
        _input(ids["category"], name="Ball valve", price_per_unit_bought=15,
               price_per_unit_sold=35, quantity_bought=20, total_price_bought=300),
        admin.id,
    )
    rec = audit.get_record(_last_history(db)["id"], admin)
    assert rec.changed_fields == {"price_per_unit_sold"}
    assert quantity_sold(ids["valve"]) == 0
