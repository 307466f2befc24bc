# plumbing_pos/modules/history/audit.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
import math
from typing import TYPE_CHECKING, Any, Callable, Mapping

from ...constants import (
    ACTION_DELETE_HISTORY,
    PURGE_WINDOWS,
    RETENTION_FLOOR_DAYS,
    ROLE_ADMIN,
    TABLE_USER_HISTORY,
)
from ...database import DatabaseContext
from ...database.repositories.user_history_repo import UserHistoryRepo, UserHistoryRow
from ...errors import AuthorizationError, NotFoundError, RetentionWindowError, ValidationError
from ...utils.helpers import cutoff_timestamp, to_db_timestamp, utc_now
from .diff import compute_field_diff
from .snapshots import HistorySnapshot, Snapshot, decode_snapshot, encode_snapshot, to_plain

if TYPE_CHECKING:
    from ...utils.session import SessionUser

_log = logging.getLogger(__name__)


@dataclass
class HistoryRecord:
    """A user_history row with its snapshots decoded."""
    id: int
    action: str
    linked_action_id: int | None
    linked_action_table: str
    old_data: Snapshot | dict | None
    new_data: Snapshot | dict | None
    account_id: int
    created_at: str
    username: str | None = None

    @classmethod
    def from_row(cls, row: UserHistoryRow) -> "HistoryRecord":
        return cls(
            id=row.id,
            action=row.action,
            linked_action_id=row.linked_action_id,
            linked_action_table=row.linked_action_table,
            old_data=decode_snapshot(row.linked_action_table, row.old_data),
            new_data=decode_snapshot(row.linked_action_table, row.new_data),
            account_id=row.account_id,
            created_at=row.created_at,
            username=row.username,
        )

    @property
    def changed_fields(self) -> frozenset[str]:
        return compute_field_diff(to_plain(self.old_data), to_plain(self.new_data))


@dataclass
class HistoryPage:
    records: list[HistoryRecord] = field(default_factory=list)
    current_page: int = 1
    page_size: int = 10
    total_records: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_records / self.page_size) if self.page_size else 0


class AuditLogger:
    """
    Audit trail of user actions.

    Records are immutable once written. They may only be deleted once they
    are at least RETENTION_FLOOR_DAYS old, whoever asks.
    """

    def __init__(self, db: DatabaseContext, *, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.repo = UserHistoryRepo(db)
        self._clock = clock

    # ------------------------------ record ------------------------------

    def record(
        self,
        action: str,
        linked_action_table: str,
        linked_action_id: int | None = None,
        old_data: Snapshot | Mapping[str, Any] | str | None = None,
        new_data: Snapshot | Mapping[str, Any] | str | None = None,
        account_id: int | None = None,
    ) -> int:
        """Append one history row. Joins the caller's atomic unit when there is one."""
        if not action or not str(action).strip():
            raise ValidationError("Audit action cannot be empty.")
        if not linked_action_table:
            raise ValidationError("Audit record needs the affected table name.")
        if account_id is None:
            raise ValidationError("Audit record needs the acting account.")
        with self.db.atomic():
            history_id = self.repo.insert(
                action=str(action).strip(),
                linked_action_table=linked_action_table,
                linked_action_id=linked_action_id,
                old_data=encode_snapshot(old_data),
                new_data=encode_snapshot(new_data),
                account_id=account_id,
                created_at=to_db_timestamp(self._clock()),
            )
        _log.debug(
            "Logged action: %s on table %s by account %s", action, linked_action_table, account_id
        )
        return history_id

    # ------------------------------- read -------------------------------

    def list_history(self, viewer: "SessionUser", page: int = 1, page_size: int = 10) -> HistoryPage:
        """Newest first; admins see every account's records, others only their own."""
        page = max(int(page), 1)
        page_size = max(int(page_size), 1)
        scope = None if viewer.role == ROLE_ADMIN else viewer.id
        with self.db.atomic():
            total = self.repo.count(scope)
            rows = self.repo.list_page(page_size, (page - 1) * page_size, scope)
        return HistoryPage(
            records=[HistoryRecord.from_row(r) for r in rows],
            current_page=page,
            page_size=page_size,
            total_records=total,
        )

    def get_record(self, history_id: int, viewer: "SessionUser") -> HistoryRecord:
        scope = None if viewer.role == ROLE_ADMIN else viewer.id
        row = self.repo.get(history_id, scope)
        if row is None:
            raise NotFoundError(
                f"History record {history_id} not found or you are not authorized to view it."
            )
        return HistoryRecord.from_row(row)

    # ------------------------------ delete ------------------------------

    def retention_cutoff(self) -> str:
        return cutoff_timestamp(self._clock(), RETENTION_FLOOR_DAYS)

    def delete_record(self, history_id: int, actor: "SessionUser") -> int:
        """
        Delete one record older than the retention floor and audit the deletion.
        Non-admins may delete only their own records.
        """
        with self.db.atomic():
            cutoff = self.retention_cutoff()
            row = self.repo.get_if_older(history_id, cutoff)
            if row is None:
                raise RetentionWindowError(
                    f"History record {history_id} not found or is less than "
                    f"{RETENTION_FLOOR_DAYS} days old."
                )
            if actor.role != ROLE_ADMIN and row.account_id != actor.id:
                raise AuthorizationError("You can only delete your own history.")
            deleted = self.repo.delete_if_older(history_id, cutoff)
            self.record(
                action=ACTION_DELETE_HISTORY,
                linked_action_table=TABLE_USER_HISTORY,
                linked_action_id=None,
                old_data=HistorySnapshot(
                    id=row.id,
                    action=row.action,
                    linked_action_id=row.linked_action_id,
                    linked_action_table=row.linked_action_table,
                    old_data=row.old_data,
                    new_data=row.new_data,
                    account_id=row.account_id,
                    created_at=row.created_at,
                ),
                new_data=None,
                account_id=actor.id,
            )
        _log.info("History record %s deleted by account %s", history_id, actor.id)
        return deleted

    def bulk_delete(self, timeframe: str, actor: "SessionUser") -> int:
        """
        Delete every record older than `timeframe` (see PURGE_WINDOWS).

        The cutoff never moves past the retention floor, so younger rows are
        simply left out of the count. Non-admins purge only their own rows.
        """
        days = PURGE_WINDOWS.get(timeframe)
        if days is None:
            raise ValidationError(
                f"Invalid timeframe '{timeframe}'. Expected one of: {', '.join(PURGE_WINDOWS)}."
            )
        return self.purge_older_than(timedelta(days=days), actor, label=timeframe)

    def purge_older_than(self, older_than: timedelta, actor: "SessionUser", *, label: str | None = None) -> int:
        """Bulk delete with an explicit age. Returns the number of rows removed."""
        now = self._clock()
        cutoff = min(to_db_timestamp(now - older_than), cutoff_timestamp(now, RETENTION_FLOOR_DAYS))
        with self.db.atomic():
            if actor.role == ROLE_ADMIN:
                deleted = self.repo.delete_older_than(cutoff)
            else:
                deleted = self.repo.delete_older_than(cutoff, account_id=actor.id)
        _log.info(
            "Bulk delete (%s) by account %s: %s record(s) removed",
            label or older_than, actor.id, deleted,
        )
        return deleted
