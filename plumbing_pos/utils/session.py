# plumbing_pos/utils/session.py
"""
File-backed login session and role gate.

The session is a small JSON file ({id, username, role}) in the data
directory; its presence is the "authenticated" flag. Passwords are checked
with bcrypt against the accounts table.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
import json
import logging
from pathlib import Path

from ..constants import ACTION_LOGGED_IN, ACTION_LOGGED_OUT, TABLE_ACCOUNTS
from ..database import DatabaseContext
from ..database.repositories.accounts_repo import AccountsRepo
from ..errors import AuthorizationError, ValidationError
from ..modules.history.audit import AuditLogger
from .auth import needs_rehash, verify_password

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
    id: int
    username: str
    role: str


class SessionStore:
    def __init__(self, db: DatabaseContext, auth_file: Path | str | None = None, audit: AuditLogger | None = None):
        if auth_file is None:
            from ..config import AUTH_FILE

            auth_file = AUTH_FILE
        self.db = db
        self.auth_file = Path(auth_file)
        self.accounts = AccountsRepo(db)
        self.audit = audit or AuditLogger(db)

    # ------------------------------ file ------------------------------

    def _write(self, user: SessionUser) -> None:
        self.auth_file.parent.mkdir(parents=True, exist_ok=True)
        self.auth_file.write_text(json.dumps(asdict(user), indent=2), encoding="utf-8")

    def _read(self) -> SessionUser | None:
        try:
            data = json.loads(self.auth_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            _log.warning("Unreadable session file %s: %s", self.auth_file, e)
            return None
        try:
            return SessionUser(id=int(data["id"]), username=str(data["username"]), role=str(data["role"]))
        except (KeyError, TypeError, ValueError):
            _log.warning("Malformed session file %s", self.auth_file)
            return None

    # ----------------------------- session -----------------------------

    def login(self, username: str, password: str, role: str) -> SessionUser:
        if not username or not password or not role:
            raise ValidationError("Username, password and role are required.")
        account = self.accounts.get_by_username(username, role)
        if account is None:
            _log.info("Login rejected: no %s account named %r", role, username)
            raise AuthorizationError("Invalid username or role")
        if not verify_password(password, self.accounts.get_password_hash(account.id)):
            _log.info("Login rejected: bad password for %r", username)
            raise AuthorizationError("Invalid password")
        if needs_rehash(self.accounts.get_password_hash(account.id)):
            self.accounts.update(account.id, account.username, account.role, password)
            _log.info("Upgraded password hash for %r", account.username)

        user = SessionUser(id=account.id, username=account.username, role=account.role)
        self._write(user)
        self.audit.record(
            action=ACTION_LOGGED_IN,
            linked_action_table=TABLE_ACCOUNTS,
            linked_action_id=account.id,
            account_id=account.id,
        )
        _log.info("User %s logged in as %s", user.username, user.role)
        return user

    def logout(self) -> bool:
        """Drop the session. Returns False when nobody was logged in."""
        user = self._read()
        self.auth_file.unlink(missing_ok=True)
        if user is None:
            return False
        if self.accounts.get(user.id) is not None:
            self.audit.record(
                action=ACTION_LOGGED_OUT,
                linked_action_table=TABLE_ACCOUNTS,
                linked_action_id=user.id,
                account_id=user.id,
            )
        _log.info("User %s logged out", user.username)
        return True

    def current_user(self) -> SessionUser | None:
        return self._read()

    def current_role(self) -> str | None:
        user = self._read()
        return user.role if user else None

    def is_authenticated(self) -> bool:
        return self._read() is not None

    def require_user(self, *roles: str) -> SessionUser:
        """
        The logged-in user, provided the account still exists and (when
        `roles` are given) holds one of them.
        """
        user = self._read()
        if user is None:
            raise AuthorizationError("Not logged in.")
        account = self.accounts.get(user.id)
        if account is None:
            self.auth_file.unlink(missing_ok=True)
            raise AuthorizationError("Session account no longer exists.")
        if roles and account.role not in roles:
            raise AuthorizationError(
                f"Role '{account.role}' may not perform this action (requires {', '.join(roles)})."
            )
        return SessionUser(id=account.id, username=account.username, role=account.role)
