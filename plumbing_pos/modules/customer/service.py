from __future__ import annotations

from ...constants import TABLE_CUSTOMERS
from ...database import DatabaseContext
from ...database.repositories.customers_repo import Customer, CustomersRepo
from ..history.audit import AuditLogger
from ..history.snapshots import snapshot_of


class CustomersService:
    def __init__(self, db: DatabaseContext, audit: AuditLogger | None = None):
        self.db = db
        self.repo = CustomersRepo(db)
        self.audit = audit or AuditLogger(db)

    def list_customers(self) -> list[Customer]:
        return self.repo.list_customers()

    def search(self, term: str) -> list[Customer]:
        return self.repo.search(term)

    def get(self, customer_id: int) -> Customer:
        return self.repo.require(customer_id)

    def create(self, name: str, contact_info: str | None, address: str | None, actor_id: int) -> int:
        with self.db.atomic():
            customer_id = self.repo.create(name, contact_info, address)
            self.audit.record(
                action="added a new customer",
                linked_action_table=TABLE_CUSTOMERS,
                linked_action_id=customer_id,
                new_data=snapshot_of(TABLE_CUSTOMERS, self.repo.require(customer_id)),
                account_id=actor_id,
            )
        return customer_id

    def update(self, customer_id: int, name: str, contact_info: str | None, address: str | None, actor_id: int) -> None:
        with self.db.atomic():
            old = self.repo.require(customer_id)
            self.repo.update(customer_id, name, contact_info, address)
            self.audit.record(
                action="updated customer",
                linked_action_table=TABLE_CUSTOMERS,
                linked_action_id=customer_id,
                old_data=snapshot_of(TABLE_CUSTOMERS, old),
                new_data=snapshot_of(TABLE_CUSTOMERS, self.repo.require(customer_id)),
                account_id=actor_id,
            )

    def delete(self, customer_id: int, actor_id: int) -> None:
        """Their sales go too; sold quantities return to stock."""
        with self.db.atomic():
            old = self.repo.require(customer_id)
            self.repo.delete(customer_id)
            self.audit.record(
                action="deleted a customer",
                linked_action_table=TABLE_CUSTOMERS,
                linked_action_id=customer_id,
                old_data=snapshot_of(TABLE_CUSTOMERS, old),
                account_id=actor_id,
            )
