import logging
import sqlite3

from ...constants import DEFAULT_ADMIN_PASSWORD, DEFAULT_ADMIN_USERNAME, ROLE_ADMIN
from ...utils.auth import hash_password

_log = logging.getLogger(__name__)


def seed(conn: sqlite3.Connection) -> bool:
    """
    Create the default administrator if no admin account exists.
    Safe to run on every start; returns True when an account was inserted.
    """
    row = conn.execute("SELECT id FROM accounts WHERE role = ? LIMIT 1", (ROLE_ADMIN,)).fetchone()
    if row is not None:
        _log.debug("Admin user already exists")
        return False
    conn.execute(
        "INSERT INTO accounts (username, password_hash, role) VALUES (?, ?, ?)",
        (DEFAULT_ADMIN_USERNAME, hash_password(DEFAULT_ADMIN_PASSWORD), ROLE_ADMIN),
    )
    _log.info("Default admin user created: username=%s", DEFAULT_ADMIN_USERNAME)
    return True
