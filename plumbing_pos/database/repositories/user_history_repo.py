# plumbing_pos/database/repositories/user_history_repo.py
from __future__ import annotations

from dataclasses import dataclass

from .. import DatabaseContext


@dataclass
class UserHistoryRow:
    """A user_history row as stored: snapshots are still JSON text."""
    id: int
    action: str
    linked_action_id: int | None
    linked_action_table: str
    old_data: str | None
    new_data: str | None
    account_id: int
    created_at: str
    username: str | None = None


_SELECT = """
    SELECT uh.id, uh.action, uh.linked_action_id, uh.linked_action_table,
           uh.old_data, uh.new_data, uh.account_id, uh.created_at,
           a.username
      FROM user_history uh
      LEFT JOIN accounts a ON a.id = uh.account_id
"""


class UserHistoryRepo:
    """
    Append-only storage for the audit trail.

    Rows are never updated (a schema trigger enforces it). Deletion helpers
    take an explicit cutoff; the retention rule itself lives in AuditLogger.
    """

    def __init__(self, db: DatabaseContext):
        self.db = db

    # ------------------------------ writes -------------------------------

    def insert(
        self,
        action: str,
        linked_action_table: str,
        linked_action_id: int | None,
        old_data: str | None,
        new_data: str | None,
        account_id: int,
        created_at: str | None = None,
    ) -> int:
        cur = self.db.execute(
            """
            INSERT INTO user_history (
                action, linked_action_id, linked_action_table, old_data, new_data, account_id,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
            """,
            (
                action, linked_action_id, linked_action_table,
                old_data or None, new_data or None, account_id, created_at,
            ),
        )
        return int(cur.lastrowid)

    def delete_if_older(self, history_id: int, cutoff: str) -> int:
        cur = self.db.execute(
            "DELETE FROM user_history WHERE id = ? AND created_at <= ?",
            (history_id, cutoff),
        )
        return cur.rowcount

    def delete_older_than(self, cutoff: str, account_id: int | None = None) -> int:
        if account_id is None:
            cur = self.db.execute("DELETE FROM user_history WHERE created_at <= ?", (cutoff,))
        else:
            cur = self.db.execute(
                "DELETE FROM user_history WHERE created_at <= ? AND account_id = ?",
                (cutoff, account_id),
            )
        return cur.rowcount

    # ------------------------------- reads -------------------------------

    def get(self, history_id: int, account_id: int | None = None) -> UserHistoryRow | None:
        """When `account_id` is given the row must also belong to that account."""
        if account_id is None:
            r = self.db.fetch_one(_SELECT + " WHERE uh.id = ?", (history_id,))
        else:
            r = self.db.fetch_one(
                _SELECT + " WHERE uh.id = ? AND uh.account_id = ?", (history_id, account_id)
            )
        return UserHistoryRow(**r) if r else None

    def get_if_older(self, history_id: int, cutoff: str) -> UserHistoryRow | None:
        r = self.db.fetch_one(
            _SELECT + " WHERE uh.id = ? AND uh.created_at <= ?", (history_id, cutoff)
        )
        return UserHistoryRow(**r) if r else None

    def count(self, account_id: int | None = None) -> int:
        if account_id is None:
            r = self.db.fetch_one("SELECT COUNT(*) AS total FROM user_history")
        else:
            r = self.db.fetch_one(
                "SELECT COUNT(*) AS total FROM user_history WHERE account_id = ?", (account_id,)
            )
        return int(r["total"])

    def list_page(self, limit: int, offset: int, account_id: int | None = None) -> list[UserHistoryRow]:
        """Newest first. `account_id` restricts the page to one account's records."""
        if account_id is None:
            rows = self.db.fetch_all(
                _SELECT + " ORDER BY uh.created_at DESC, uh.id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
        else:
            rows = self.db.fetch_all(
                _SELECT
                + " WHERE uh.account_id = ? ORDER BY uh.created_at DESC, uh.id DESC LIMIT ? OFFSET ?",
                (account_id, limit, offset),
            )
        return [UserHistoryRow(**r) for r in rows]
