"""SQLite connection factory with WAL mode and foreign keys."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from nautilus.errors import ConfigError

SQLITE_URL_PREFIX = "sqlite:///"


def path_from_url(url: str) -> str:
    """Map a ``DATABASE_URL`` to a SQLite file path.

    Accepts ``sqlite:///relative.db``, ``sqlite:////abs/path.db`` or a
    bare filesystem path.
    """
    if url.startswith(SQLITE_URL_PREFIX):
        path = url[len(SQLITE_URL_PREFIX):]
    elif "://" in url:
        msg = f"Unsupported DATABASE_URL scheme: {url.split('://', 1)[0]}"
        raise ConfigError(msg)
    else:
        path = url
    if not path:
        msg = "DATABASE_URL does not name a database file"
        raise ConfigError(msg)
    return path


class Database:
    """Thread-safe SQLite connection manager.

    Uses WAL mode for concurrent readers and a threading lock for writes.
    Each thread gets its own connection via thread-local storage.
    Connections run in autocommit mode; multi-statement atomic work goes
    through ``transaction()``.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._local = threading.local()
        self._write_lock = threading.Lock()

    @classmethod
    def from_url(cls, url: str) -> Database:
        path = path_from_url(url)
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return cls(path)

    @property
    def path(self) -> str:
        return self._db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                self._db_path, check_same_thread=False, isolation_level=None,
            )
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.row_factory = sqlite3.Row
            self._local.conn = conn
        return conn

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        return self._get_conn().execute(sql, params)

    def fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        return self._get_conn().execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        return self._get_conn().execute(sql, params).fetchall()

    def write(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute a single write operation with thread safety."""
        with self._write_lock:
            return self._get_conn().execute(sql, params)

    def write_many(self, sql: str, params_seq: list[tuple]) -> None:
        """Execute multiple write operations atomically."""
        with self.transaction() as conn:
            conn.executemany(sql, params_seq)

    def write_script(self, sql: str) -> None:
        """Execute a multi-statement SQL script."""
        with self._write_lock:
            self._get_conn().executescript(sql)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed writes in one BEGIN/COMMIT block.

        Any exception rolls back every write made inside the block and
        is re-raised.
        """
        with self._write_lock:
            conn = self._get_conn()
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None
