"""
Dual-backend store handle for SQLite and PostgreSQL.

SQLite is the zero-dependency default; PostgreSQL is used when a database
URL is supplied (requires the ``postgres`` extra, psycopg v3).

The hosting process owns the handle: it calls ``open()`` before handing
the store to the engine and ``close()`` on shutdown. Every statement runs
and commits on its own; nothing here groups statements into a larger
transaction.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any

from dyntable.runtime.errors import StoreError

logger = logging.getLogger(__name__)

# Driver errors that are re-raised as StoreError
_DRIVER_ERRORS: tuple[type[Exception], ...] = (sqlite3.Error,)
try:
    import psycopg

    _DRIVER_ERRORS += (psycopg.Error,)
except ImportError:
    pass

# Raised by the drivers while binding a parameter the store cannot hold
# (integers past 64 bits, strings with lone surrogates)
_BIND_ERRORS: tuple[type[Exception], ...] = (OverflowError, ValueError)

_STORE_ERRORS = _DRIVER_ERRORS + _BIND_ERRORS


def normalize_database_url(database_url: str) -> str:
    """Normalize Heroku's postgres:// scheme to postgresql://."""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


class DatabaseStore:
    """
    Store connection handle.

    Usage:
        store = DatabaseStore(db_path="data.db")
        store.open()
        try:
            rows = store.execute("SELECT 1 AS one")
        finally:
            store.close()

    Queries are written with ``?`` placeholders; they are rewritten to
    ``%s`` for PostgreSQL.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        database_url: str | None = None,
        *,
        default_path: str = ".dyntable/data.db",
    ):
        """
        Initialize backend selection. No connection is made until ``open()``.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
            database_url: PostgreSQL connection URL (takes precedence over db_path)
            default_path: Default SQLite path when neither is provided
        """
        self._use_postgres = bool(database_url)
        self._connection: Any = None
        self._lock = threading.RLock()

        if self._use_postgres:
            self._pg_url: str | None = normalize_database_url(database_url or "")
            self._db_path: Path | None = None
        else:
            self._pg_url = None
            self._db_path = Path(db_path) if db_path else Path(default_path)

    # -------------------------------------------------------------------------
    # Backend properties
    # -------------------------------------------------------------------------

    @property
    def backend_type(self) -> str:
        """Get the backend type identifier."""
        return "postgres" if self._use_postgres else "sqlite"

    @property
    def _ph(self) -> str:
        """Get the parameter placeholder for the current backend."""
        return "%s" if self._use_postgres else "?"

    @property
    def identity_column_sql(self) -> str:
        """DDL for the server-assigned identity column."""
        if self._use_postgres:
            return '"id" SERIAL PRIMARY KEY'
        return '"id" INTEGER PRIMARY KEY AUTOINCREMENT'

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> DatabaseStore:
        """Open the persistent connection. Calling it twice is a no-op."""
        with self._lock:
            if self._connection is not None:
                return self
            try:
                self._connection = self._connect()
            except _DRIVER_ERRORS as exc:
                raise StoreError(str(exc)) from exc
            logger.debug("Opened %s store", self.backend_type)
        return self

    def close(self) -> None:
        """Close the persistent connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
                logger.debug("Closed %s store", self.backend_type)

    def __enter__(self) -> DatabaseStore:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _connect(self) -> Any:
        if self._use_postgres:
            import psycopg
            from psycopg.rows import dict_row

            return psycopg.connect(self._pg_url, row_factory=dict_row)

        assert self._db_path is not None
        if str(self._db_path) != ":memory:":
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    # -------------------------------------------------------------------------
    # Statement execution
    # -------------------------------------------------------------------------

    @contextmanager
    def cursor(self) -> Iterator[Any]:
        """
        Yield a cursor on the persistent connection.

        Commits when the block exits cleanly, rolls back otherwise. Driver
        and parameter binding errors surface as StoreError with the
        message unchanged.
        """
        with self._lock:
            if self._connection is None:
                raise StoreError("Store is not open")
            conn = self._connection
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except _STORE_ERRORS as exc:
                conn.rollback()
                raise StoreError(str(exc)) from exc
            except Exception:
                conn.rollback()
                raise
            finally:
                cursor.close()

    def _prepare(self, query: str, params: Sequence[Any]) -> tuple[str, tuple[Any, ...]]:
        if self._use_postgres:
            query = query.replace("?", "%s")
        return query, tuple(self.to_db(p) for p in params)

    def to_db(self, value: Any) -> Any:
        """Convert a Python value to a driver-compatible value."""
        if isinstance(value, Decimal) and not self._use_postgres:
            return float(value)
        return value

    def execute(self, query: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        """Execute a query and return results as list of dicts."""
        query, values = self._prepare(query, params)
        with self.cursor() as cursor:
            cursor.execute(query, values)
            if cursor.description:
                return [dict(row) for row in cursor.fetchall()]
            return []

    def execute_modify(self, query: str, params: Sequence[Any] = ()) -> int:
        """Execute a modification or DDL statement and return rowcount."""
        query, values = self._prepare(query, params)
        with self.cursor() as cursor:
            cursor.execute(query, values)
            rowcount: int = cursor.rowcount
            return rowcount

    def execute_insert(self, query: str, params: Sequence[Any] = ()) -> int:
        """
        Execute an INSERT and return the assigned identity.

        PostgreSQL gets ``RETURNING id`` appended; SQLite reports
        ``lastrowid``.
        """
        if self._use_postgres:
            query = f'{query} RETURNING "id"'
        query, values = self._prepare(query, params)
        with self.cursor() as cursor:
            cursor.execute(query, values)
            if self._use_postgres:
                row = cursor.fetchone()
                return int(row["id"])
            return int(cursor.lastrowid)
