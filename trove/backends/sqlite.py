"""SQLite storage backend."""

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from ..exceptions import BackendConnectionError
from .base import StorageBackend

logger = logging.getLogger(__name__)

COUNTER_TABLE = "internal::autonum"


class SQLiteBackend(StorageBackend):
    """SQLite storage backend.

    Each collection is one table of (key, value) text rows. Several
    collections may share a database file; their autonum counters live
    in a shared ``internal::autonum`` table.

    The connection runs in autocommit mode: every write is durable when
    the call returns, unless it happens inside begin/commit_transaction.

    Example:
        backend = SQLiteBackend()
        backend.connect("scores", path="data/trove.sqlite")

        # Or in-memory
        backend.connect("scores", path=":memory:")
    """

    def __init__(self):
        self._conn: Optional[sqlite3.Connection] = None
        self._path: Optional[str] = None
        self._table: Optional[str] = None
        self._in_transaction = False

    def connect(self, table: str = "default", path: str = ":memory:", **kwargs) -> None:
        """Connect to SQLite database.

        Args:
            table: Table holding this collection's rows
            path: Database file path, or ":memory:" for in-memory database
            **kwargs: Passed through to sqlite3.connect (e.g. timeout)

        Raises:
            BackendConnectionError: If the database cannot be opened
        """
        self._path = path
        self._table = table
        try:
            self._conn = sqlite3.connect(
                path, check_same_thread=False, isolation_level=None, **kwargs
            )
            if path != ":memory:":
                self._conn.execute("PRAGMA synchronous = 1")
                self._conn.execute("PRAGMA journal_mode = wal")
            self._create_tables()
        except sqlite3.Error as e:
            raise BackendConnectionError(
                f"Database could not be opened at {path}: {e}"
            ) from e
        logger.debug("Opened table %s in %s", table, path)

    @property
    def _quoted(self) -> str:
        return '"' + self._table.replace('"', '""') + '"'

    def _create_tables(self) -> None:
        """Create the collection and counter tables if they don't exist."""
        self._conn.execute(
            f"CREATE TABLE IF NOT EXISTS {self._quoted} "
            "(key TEXT PRIMARY KEY, value TEXT)"
        )
        self._conn.execute(
            f'CREATE TABLE IF NOT EXISTS "{COUNTER_TABLE}" '
            "(collection TEXT PRIMARY KEY, lastnum INTEGER NOT NULL)"
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("Closed table %s in %s", self._table, self._path)

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute(
            f"SELECT value FROM {self._quoted} WHERE key = ?", (key,)
        ).fetchone()
        return None if row is None else row[0]

    def put(self, key: str, raw: str) -> None:
        # Upsert keeps the rowid, so overwritten keys keep their position
        self._conn.execute(
            f"INSERT INTO {self._quoted} (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, raw),
        )

    def delete(self, key: str) -> bool:
        cursor = self._conn.execute(
            f"DELETE FROM {self._quoted} WHERE key = ?", (key,)
        )
        return cursor.rowcount > 0

    def delete_many(self, keys: Iterable[str]) -> int:
        """Delete several rows in one transaction."""
        with self._atomic():
            return sum(1 for key in keys if self.delete(key))

    def exists(self, key: str) -> bool:
        cursor = self._conn.execute(
            f"SELECT 1 FROM {self._quoted} WHERE key = ?", (key,)
        )
        return cursor.fetchone() is not None

    def count(self) -> int:
        return self._conn.execute(f"SELECT count(*) FROM {self._quoted}").fetchone()[0]

    def keys(self) -> Iterator[str]:
        # fetchall: callers may write to the table while iterating
        rows = self._conn.execute(
            f"SELECT key FROM {self._quoted} ORDER BY rowid"
        ).fetchall()
        for (key,) in rows:
            yield key

    def scan(self) -> Iterator[Tuple[str, str]]:
        cursor = self._conn.execute(
            f"SELECT key, value FROM {self._quoted} ORDER BY rowid"
        )
        while True:
            rows = cursor.fetchmany(256)
            if not rows:
                break
            for key, raw in rows:
                yield key, raw

    def sample(self, count: int) -> List[Tuple[str, str]]:
        cursor = self._conn.execute(
            f"SELECT key, value FROM {self._quoted} ORDER BY RANDOM() LIMIT ?",
            (max(count, 0),),
        )
        return [(key, raw) for key, raw in cursor]

    def clear(self) -> None:
        self._conn.execute(f"DELETE FROM {self._quoted}")

    def next_counter(self, name: str) -> int:
        with self._atomic():
            row = self._conn.execute(
                f'SELECT lastnum FROM "{COUNTER_TABLE}" WHERE collection = ?', (name,)
            ).fetchone()
            lastnum = (row[0] if row else 0) + 1
            self._conn.execute(
                f'INSERT OR REPLACE INTO "{COUNTER_TABLE}" (collection, lastnum) '
                "VALUES (?, ?)",
                (name, lastnum),
            )
        return lastnum

    @contextmanager
    def _atomic(self):
        """Group statements in a transaction unless one is already open."""
        if self._in_transaction:
            yield
            return
        handle = self.begin_transaction()
        try:
            yield
        except BaseException:
            self.rollback_transaction(handle)
            raise
        self.commit_transaction(handle)

    # Transaction support

    def begin_transaction(self) -> Any:
        """Begin a transaction."""
        self._conn.execute("BEGIN IMMEDIATE")
        self._in_transaction = True
        return True

    def commit_transaction(self, handle: Any) -> None:
        """Commit transaction."""
        self._in_transaction = False
        self._conn.execute("COMMIT")

    def rollback_transaction(self, handle: Any) -> None:
        """Rollback transaction."""
        self._in_transaction = False
        self._conn.execute("ROLLBACK")

    @property
    def supports_transactions(self) -> bool:
        """SQLite supports transactions."""
        return True
