# plumbing_pos/database/repositories/accounts_repo.py
from __future__ import annotations

from dataclasses import dataclass
import sqlite3

from ...constants import ROLES
from ...errors import NotFoundError, ValidationError
from ...utils.auth import hash_password
from ...utils.validators import ensure_non_empty
from .. import DatabaseContext


@dataclass
class Account:
    id: int | None
    username: str
    role: str
    created_at: str | None = None


_COLUMNS = "id, username, role, created_at"


class AccountsRepo:
    """
    Thin data-access layer for user accounts.

    password_hash never leaves this class except through
    get_password_hash(), which the session gate uses to verify a login.
    """

    def __init__(self, db: DatabaseContext):
        self.db = db

    # ------------------------------ helpers ------------------------------

    @staticmethod
    def _norm_username(username: str) -> str:
        return (username or "").strip()

    @staticmethod
    def _ensure_role(role: str) -> str:
        role = (role or "").strip().lower()
        if role not in ROLES:
            raise ValidationError(f"Unknown role '{role}'. Expected one of: {', '.join(ROLES)}.")
        return role

    def _ensure_username_free(self, username: str, exclude_id: int | None = None) -> None:
        row = self.db.fetch_one(
            "SELECT id FROM accounts WHERE username = ? AND (? IS NULL OR id <> ?)",
            (username, exclude_id, exclude_id),
        )
        if row is not None:
            raise ValidationError(f"Username '{username}' is already taken.")

    # ------------------------------- reads -------------------------------

    def list_accounts(self) -> list[Account]:
        rows = self.db.fetch_all(f"SELECT {_COLUMNS} FROM accounts ORDER BY id DESC")
        return [Account(**r) for r in rows]

    def get(self, account_id: int) -> Account | None:
        r = self.db.fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE id = ?", (account_id,))
        return Account(**r) if r else None

    def require(self, account_id: int) -> Account:
        acc = self.get(account_id)
        if acc is None:
            raise NotFoundError(f"Account {account_id} not found.")
        return acc

    def get_by_username(self, username: str, role: str | None = None) -> Account | None:
        uname = self._norm_username(username)
        if role is None:
            r = self.db.fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE username = ?", (uname,))
        else:
            r = self.db.fetch_one(
                f"SELECT {_COLUMNS} FROM accounts WHERE username = ? AND role = ?",
                (uname, role),
            )
        return Account(**r) if r else None

    def get_password_hash(self, account_id: int) -> str | None:
        r = self.db.fetch_one("SELECT password_hash FROM accounts WHERE id = ?", (account_id,))
        return r["password_hash"] if r else None

    # ------------------------------ writes -------------------------------

    def create(self, username: str, password: str, role: str) -> int:
        uname = ensure_non_empty(username, "Username")
        ensure_non_empty(password, "Password")
        role_n = self._ensure_role(role)
        with self.db.atomic() as conn:
            self._ensure_username_free(uname)
            cur = conn.execute(
                "INSERT INTO accounts (username, password_hash, role) VALUES (?, ?, ?)",
                (uname, hash_password(password), role_n),
            )
            return int(cur.lastrowid)

    def update(self, account_id: int, username: str, role: str, password: str | None = None) -> None:
        """
        Update username/role; the password is re-hashed only when a new one is given.
        """
        uname = ensure_non_empty(username, "Username")
        role_n = self._ensure_role(role)
        with self.db.atomic() as conn:
            self.require(account_id)
            self._ensure_username_free(uname, exclude_id=account_id)
            if password:
                conn.execute(
                    "UPDATE accounts SET username = ?, role = ?, password_hash = ? WHERE id = ?",
                    (uname, role_n, hash_password(password), account_id),
                )
            else:
                conn.execute(
                    "UPDATE accounts SET username = ?, role = ? WHERE id = ?",
                    (uname, role_n, account_id),
                )

    def delete(self, account_id: int) -> None:
        """Delete an account; its user_history rows go with it (ON DELETE CASCADE)."""
        with self.db.atomic() as conn:
            cur: sqlite3.Cursor = conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
            if cur.rowcount == 0:
                raise NotFoundError(f"Account {account_id} not found.")
