# plumbing_pos/database/__init__.py
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import logging
import sqlite3
import threading
from typing import Any, Callable, Iterator, Sequence, TypeVar

from ..errors import StorageError
from . import schema as schema_module
from .seeders.default_data import seed as seed_default_data

_log = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseContext:
    """
    Owns the single sqlite3 connection of the process.

    - explicit open()/close() lifecycle (also usable as a context manager)
    - foreign_keys ON, WAL for file databases, row_factory = sqlite3.Row
    - every read and write goes through one re-entrant lock, so a unit of
      work started with atomic() is never interleaved with another caller
    - atomic() runs under BEGIN IMMEDIATE; nested calls become SAVEPOINTs
    """

    def __init__(self, db_path: Path | str | None = None, *, seed: bool = True, timeout: float = 5.0):
        if db_path is None:
            from ..config import DB_PATH

            db_path = DB_PATH
        self.db_path = db_path
        self._seed = seed
        self._timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

    # ------------------------------ lifecycle ------------------------------

    def open(self) -> "DatabaseContext":
        if self._conn is not None:
            return self
        in_memory = str(self.db_path) == ":memory:"
        if not in_memory:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            # isolation_level=None: transactions are issued explicitly by atomic()
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self._timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON;")
            conn.execute(f"PRAGMA busy_timeout = {int(self._timeout * 1000)};")
            if not in_memory:
                conn.execute("PRAGMA journal_mode = WAL;")
        except sqlite3.Error as e:
            raise StorageError(f"Could not open database at {self.db_path}: {e}") from e

        self._conn = conn
        _log.info("Database connected: %s", self.db_path)

        # executescript commits on its own, so the schema is applied outside atomic()
        try:
            with self._lock:
                schema_module.apply_schema(conn)
        except sqlite3.Error as e:
            self.close()
            raise StorageError(f"Could not apply schema: {e}") from e

        if self._seed:
            with self.atomic() as c:
                seed_default_data(c)
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                _log.info("Database closed: %s", self.db_path)

    def __enter__(self) -> "DatabaseContext":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StorageError("Database not initialized. Call open() first.")
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    # ---------------------------- TX helpers -----------------------------

    @contextmanager
    def atomic(self) -> Iterator[sqlite3.Connection]:
        """
        Run the enclosed block as one all-or-nothing unit.

        Commit on success, rollback on any error. sqlite3 errors are re-raised
        as StorageError; domain errors propagate unchanged after the rollback.
        """
        with self._lock:
            conn = self.conn
            depth = self._depth
            savepoint = f"sp_{depth}"
            try:
                if depth == 0:
                    conn.execute("BEGIN IMMEDIATE")
                else:
                    conn.execute(f"SAVEPOINT {savepoint}")
            except sqlite3.Error as e:
                raise StorageError(f"Could not start transaction: {e}") from e

            self._depth += 1
            try:
                yield conn
            except BaseException as exc:
                self._depth -= 1
                self._rollback(conn, depth, savepoint)
                if isinstance(exc, sqlite3.Error):
                    raise StorageError(str(exc)) from exc
                raise
            else:
                self._depth -= 1
                try:
                    if depth == 0:
                        conn.execute("COMMIT")
                    else:
                        conn.execute(f"RELEASE SAVEPOINT {savepoint}")
                except sqlite3.Error as e:
                    self._rollback(conn, depth, savepoint)
                    raise StorageError(f"Could not commit transaction: {e}") from e

    @staticmethod
    def _rollback(conn: sqlite3.Connection, depth: int, savepoint: str) -> None:
        try:
            if depth == 0:
                conn.execute("ROLLBACK")
            else:
                conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                conn.execute(f"RELEASE SAVEPOINT {savepoint}")
        except sqlite3.Error:
            _log.exception("Rollback failed")

    def run_atomic(self, unit_of_work: Callable[[sqlite3.Connection], T]) -> T:
        """Call `unit_of_work(conn)` inside atomic() and return its result."""
        with self.atomic() as conn:
            return unit_of_work(conn)

    # ------------------------------ queries ------------------------------

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        with self._lock:
            try:
                return self.conn.execute(sql, params)
            except sqlite3.Error as e:
                if self.in_transaction:
                    # let atomic() roll back and translate
                    raise
                raise StorageError(str(e)) from e

    def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self.execute(sql, params).fetchone()

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self.execute(sql, params).fetchall()


def open_database(db_path: Path | str | None = None, *, seed: bool = True) -> DatabaseContext:
    """Open (creating and seeding if needed) the application database."""
    return DatabaseContext(db_path, seed=seed).open()


__all__ = [
    "DatabaseContext",
    "open_database",
]
