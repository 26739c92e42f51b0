# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Thesis Contributors

"""Database connection management for Thesis.

Config via THESIS_DB_* environment variables (see ``thesis.core.config``).
"""

from __future__ import annotations

import queue
import threading
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from psycopg2 import pool as psycopg2_pool
from psycopg2.extras import RealDictCursor
from psycopg2.pool import PoolError

from .config import get_config
from .exceptions import DatabaseException

# Connection pool (lazy init, thread-safe)
_pool: psycopg2_pool.ThreadedConnectionPool | None = None
_pool_lock = threading.Lock()


def _get_pool() -> psycopg2_pool.ThreadedConnectionPool:
    """Get or create the connection pool."""
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                config = get_config()
                _pool = psycopg2_pool.ThreadedConnectionPool(
                    **config.pool_config,
                    **config.connection_params,
                )
    return _pool


def _get_conn_with_timeout(pool: psycopg2_pool.ThreadedConnectionPool, timeout: int) -> Any:
    """Get a connection from pool with timeout.

    Raises:
        PoolError: If timeout expires before connection is available
    """
    result_queue: queue.Queue = queue.Queue()

    def _get_conn():
        try:
            conn = pool.getconn()
            result_queue.put(("success", conn))
        except Exception as e:
            result_queue.put(("error", e))

    thread = threading.Thread(target=_get_conn, daemon=True)
    thread.start()

    try:
        result_type, result_value = result_queue.get(timeout=timeout)
        if result_type == "error":
            raise result_value
        return result_value
    except queue.Empty:
        raise PoolError(f"Connection pool timeout after {timeout} seconds")


def _validate_connection(conn: Any) -> bool:
    """Check if a connection is valid and healthy."""
    if conn.closed:
        return False

    try:
        with conn.cursor() as cur:
            cur.execute("SELECT 1")
            cur.fetchone()
        return True
    except Exception:
        return False


def _get_healthy_connection(pool: psycopg2_pool.ThreadedConnectionPool, timeout: int) -> Any:
    """Get a healthy connection from pool, discarding stale ones.

    Raises:
        PoolError: If unable to get a healthy connection
    """
    max_attempts = 3
    for attempt in range(max_attempts):
        conn = _get_conn_with_timeout(pool, timeout)
        if _validate_connection(conn):
            return conn

        # Stale connection: drop it and try again
        pool.putconn(conn, close=True)

        if attempt == max_attempts - 1:
            raise PoolError("Failed to get healthy connection after multiple attempts")

    raise PoolError("Failed to get healthy connection")


@contextmanager
def get_cursor() -> Generator[Any, None, None]:
    """Get a database cursor with auto-commit on success, rollback on error.

    Usage:
        with get_cursor() as cur:
            cur.execute("SELECT * FROM stances WHERE debate_id = %s", (debate_id,))
            rows = cur.fetchall()
    """
    pool = _get_pool()
    config = get_config()
    conn = _get_healthy_connection(pool, config.db_pool_timeout)
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


@contextmanager
def get_connection() -> Generator[Any, None, None]:
    """Get a database connection from the pool.

    For cases that need connection-level control (like schema setup).
    """
    pool = _get_pool()
    config = get_config()
    conn = _get_healthy_connection(pool, config.db_pool_timeout)
    try:
        yield conn
    finally:
        pool.putconn(conn)


def close_pool() -> None:
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None


def generate_id() -> str:
    """Generate a UUID for database records."""
    return str(uuid.uuid4())


def init_schema(schema_path: str | None = None) -> None:
    """Initialize database schema from schema.sql.

    Args:
        schema_path: Path to schema.sql file (defaults to the packaged one)

    Raises:
        FileNotFoundError: If the schema file does not exist
        DatabaseException: If the statements fail
    """
    if schema_path is None:
        schema_path = str(Path(__file__).parent.parent / "schema.sql")

    if not Path(schema_path).exists():
        raise FileNotFoundError(f"schema.sql not found: {schema_path}")

    with open(schema_path) as f:
        schema_sql = f.read()

    with get_connection() as conn:
        conn.autocommit = True
        try:
            with conn.cursor() as cur:
                cur.execute(schema_sql)
        except psycopg2.Error as e:
            raise DatabaseException(f"Schema initialization failed: {e}") from e

