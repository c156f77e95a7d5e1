import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import psycopg2
import psycopg2.extras
from psycopg2.pool import ThreadedConnectionPool

from storefront.api import config

logger = logging.getLogger(__name__)

_POOL: Optional[ThreadedConnectionPool] = None


# PUBLIC_INTERFACE
def init_db_pool() -> None:
    """Initialize the global PostgreSQL connection pool."""
    global _POOL
    if _POOL is not None:
        return

    _POOL = ThreadedConnectionPool(
        minconn=config.db_pool_min(),
        maxconn=config.db_pool_max(),
        dsn=config.database_dsn(),
    )
    logger.info("Database pool initialised")


# PUBLIC_INTERFACE
def close_db_pool() -> None:
    """Close every pooled connection."""
    global _POOL
    if _POOL is None:
        return
    _POOL.closeall()
    _POOL = None


@contextmanager
def _get_conn():
    if _POOL is None:
        init_db_pool()
    assert _POOL is not None
    conn = _POOL.getconn()
    try:
        yield conn
    finally:
        _POOL.putconn(conn)


def _dict_cursor(conn):
    return conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)


# PUBLIC_INTERFACE
def fetch_one(query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
    """Fetch a single row as a dict, or None."""
    with _get_conn() as conn:
        with _dict_cursor(conn) as cur:
            cur.execute(query, params or [])
            row = cur.fetchone()
            conn.rollback()
            return dict(row) if row else None


# PUBLIC_INTERFACE
def fetch_all(query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
    """Fetch all rows as dicts."""
    with _get_conn() as conn:
        with _dict_cursor(conn) as cur:
            cur.execute(query, params or [])
            rows = cur.fetchall()
            conn.rollback()
            return [dict(r) for r in rows]


# PUBLIC_INTERFACE
def execute(query: str, params: Optional[Sequence[Any]] = None) -> int:
    """Execute a statement (INSERT/UPDATE/DELETE). Returns affected rowcount."""
    with _get_conn() as conn:
        with conn.cursor() as cur:
            cur.execute(query, params or [])
            affected = cur.rowcount
            conn.commit()
            return affected


# PUBLIC_INTERFACE
def execute_returning_one(query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
    """Execute a statement with RETURNING and return the first row as dict (None if no row matched)."""
    with _get_conn() as conn:
        with _dict_cursor(conn) as cur:
            cur.execute(query, params or [])
            row = cur.fetchone()
            conn.commit()
            return dict(row) if row else None


class Transaction:
    """Query helpers bound to a single connection; committed or rolled back as a unit."""

    def __init__(self, conn) -> None:
        self._conn = conn

    def fetch_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        with _dict_cursor(self._conn) as cur:
            cur.execute(query, params or [])
            row = cur.fetchone()
            return dict(row) if row else None

    def fetch_all(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        with _dict_cursor(self._conn) as cur:
            cur.execute(query, params or [])
            return [dict(r) for r in cur.fetchall()]

    def execute(self, query: str, params: Optional[Sequence[Any]] = None) -> int:
        with self._conn.cursor() as cur:
            cur.execute(query, params or [])
            return cur.rowcount

    def execute_returning_one(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Dict[str, Any]]:
        return self.fetch_one(query, params)


# PUBLIC_INTERFACE
@contextmanager
def transaction() -> Iterator[Transaction]:
    """Run several statements on one connection; commit on success, roll back on any exception."""
    with _get_conn() as conn:
        try:
            yield Transaction(conn)
            conn.commit()
        except Exception:
            conn.rollback()
            raise


# PUBLIC_INTERFACE
def update_clause(values: Mapping[str, Any]) -> Tuple[str, List[Any]]:
    """
    Build the ``col=%s, ...`` part of an UPDATE from a column/value mapping.

    Column names come from request models, never from raw user input.
    """
    fields = [f"{col}=%s" for col in values]
    return ", ".join(fields), list(values.values())


# PUBLIC_INTERFACE
def total_pages(total_items: int, limit: int) -> int:
    """Number of pages needed to show ``total_items`` at ``limit`` per page."""
    if total_items <= 0:
        return 0
    return (total_items + limit - 1) // limit
