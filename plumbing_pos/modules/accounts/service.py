from __future__ import annotations

import logging

from ...constants import ROLE_ADMIN, TABLE_ACCOUNTS
from ...database import DatabaseContext
from ...database.repositories.accounts_repo import Account, AccountsRepo
from ...errors import AuthorizationError
from ..history.audit import AuditLogger
from ..history.snapshots import snapshot_of

_log = logging.getLogger(__name__)


class AccountsService:
    """Account management. Only admins may create, change or delete accounts."""

    def __init__(self, db: DatabaseContext, audit: AuditLogger | None = None):
        self.db = db
        self.repo = AccountsRepo(db)
        self.audit = audit or AuditLogger(db)

    def _require_admin(self, actor_id: int) -> None:
        actor = self.repo.require(actor_id)
        if actor.role != ROLE_ADMIN:
            raise AuthorizationError("Only administrators can manage accounts.")

    def list_accounts(self) -> list[Account]:
        return self.repo.list_accounts()

    def get(self, account_id: int) -> Account:
        return self.repo.require(account_id)

    def create(self, username: str, password: str, role: str, actor_id: int) -> int:
        with self.db.atomic():
            self._require_admin(actor_id)
            account_id = self.repo.create(username, password, role)
            self.audit.record(
                action="added a new account",
                linked_action_table=TABLE_ACCOUNTS,
                linked_action_id=account_id,
                new_data=snapshot_of(TABLE_ACCOUNTS, self.repo.require(account_id)),
                account_id=actor_id,
            )
        _log.info("Account %s created by %s", account_id, actor_id)
        return account_id

    def update(self, account_id: int, username: str, role: str, actor_id: int, password: str | None = None) -> None:
        with self.db.atomic():
            self._require_admin(actor_id)
            old = self.repo.require(account_id)
            self.repo.update(account_id, username, role, password)
            self.audit.record(
                action="updated account",
                linked_action_table=TABLE_ACCOUNTS,
                linked_action_id=account_id,
                old_data=snapshot_of(TABLE_ACCOUNTS, old),
                new_data=snapshot_of(TABLE_ACCOUNTS, self.repo.require(account_id)),
                account_id=actor_id,
            )

    def delete(self, account_id: int, actor_id: int) -> None:
        """Deleting an account also removes its history (ON DELETE CASCADE)."""
        if account_id == actor_id:
            raise AuthorizationError("You cannot delete the account you are logged in with.")
        with self.db.atomic():
            self._require_admin(actor_id)
            old = self.repo.require(account_id)
            self.repo.delete(account_id)
            self.audit.record(
                action="deleted an account",
                linked_action_table=TABLE_ACCOUNTS,
                linked_action_id=account_id,
                old_data=snapshot_of(TABLE_ACCOUNTS, old),
                account_id=actor_id,
            )
