"""
PostgreSQL client with connection pooling and explicit transactions.

Uses psycopg2 with ThreadedConnectionPool. Single statements auto-commit
through execute()/execute_single(); multi-statement units of work go
through transaction(), which commits once at the end or rolls back
everything on any exception.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

from core.exceptions import PipelineError

logger = logging.getLogger(__name__)

# Global JSONB registration flag
_jsonb_registered = False


def _convert_params(params: Tuple | Dict | None) -> Tuple | Dict | None:
    """Convert UUID objects to strings."""
    if params is None:
        return None

    def convert(value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        if isinstance(value, list):
            return [convert(v) for v in value]
        if isinstance(value, tuple):
            return tuple(convert(v) for v in value)
        if isinstance(value, dict):
            return {k: convert(v) for k, v in value.items()}
        return value

    return convert(params)


class Transaction:
    """
    Statements executed on one connection inside one database transaction.

    Obtained from PostgresClient.transaction(); never commits on its own.
    """

    def __init__(self, cursor):
        self._cursor = cursor

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no result set."""
        self._cursor.execute(query, _convert_params(params))
        if self._cursor.description:
            return [dict(row) for row in self._cursor.fetchall()]
        return []

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount


class PostgresClient:
    """
    PostgreSQL client.

    Usage:
        db = PostgresClient(database_url)

        leads = db.execute("SELECT * FROM leads WHERE is_archived = false")

        with db.transaction() as tx:
            tx.execute("SELECT * FROM leads WHERE id = %s FOR UPDATE", (lead_id,))
            tx.execute("UPDATE leads SET ... WHERE id = %s", (...))
            tx.execute("INSERT INTO stage_history ...", (...))
        # committed here, or rolled back if the block raised
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=2,
                    maxconn=20,
                    dsn=self._database_url,
                    connect_timeout=30,
                )

                global _jsonb_registered
                if not _jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    _jsonb_registered = True

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self):
        """Borrow a pooled connection. Any uncommitted work is rolled back on return."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")
            yield conn

        finally:
            if conn:
                if not conn.closed:
                    conn.rollback()
                pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Run a unit of work atomically.

        Commits when the block exits normally. Any exception rolls back every
        statement executed in the block and is re-raised.
        """
        with self.get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    yield Transaction(cur)
                conn.commit()
            except PipelineError as e:
                conn.rollback()
                logger.debug(f"Transaction rolled back: {e.code}")
                raise
            except Exception:
                conn.rollback()
                logger.warning("Transaction rolled back", exc_info=True)
                raise

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute a single statement, return list of row dicts."""
        with self.transaction() as tx:
            return tx.execute(query, params)

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
