"""
Database helper functions for common patterns.
Repositories call these instead of touching the pool directly.
"""

import asyncio
import functools
import json
from typing import Any

import psycopg

from app.db.pool import get_db_connection
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    """Custom exception for database operations."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


def to_jsonb(value: Any) -> str:
    """Serialize a dict/list for a %s::jsonb placeholder."""
    return json.dumps(value, default=str)


async def _with_cursor(
    operation: str,
    query: str,
    params: tuple,
    connection: psycopg.AsyncConnection | None,
    consume,
):
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await consume(cur)

        async with await get_db_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await consume(cur)

    except psycopg.Error as e:
        logger.error(f"Database {operation} error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation=operation) from e


async def fetch_one(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> dict[str, Any] | None:
    """
    Execute query and return single row as dict.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        Dict with row data or None if no results
    """

    async def consume(cur):
        row = await cur.fetchone()
        return row if row else None

    return await _with_cursor("fetch_one", query, params, connection, consume)


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """Execute query and return all rows as list of dicts."""

    async def consume(cur):
        return await cur.fetchall()

    return await _with_cursor("fetch_all", query, params, connection, consume)


async def fetch_val(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> Any:
    """Execute query and return the first column of the first row."""

    async def consume(cur):
        row = await cur.fetchone()
        return list(row.values())[0] if row else None

    return await _with_cursor("fetch_val", query, params, connection, consume)


async def execute_query(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """Execute query and return number of affected rows."""

    async def consume(cur):
        return cur.rowcount

    return await _with_cursor("execute", query, params, connection, consume)


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Decorator to retry database operations on temporary failures.

    Only psycopg.OperationalError (and DatabaseError wrapping one) is retried;
    everything else is raised as a non-recoverable DatabaseError.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)

                except (psycopg.OperationalError, DatabaseError) as e:
                    transient = isinstance(e, psycopg.OperationalError) or isinstance(
                        e.__cause__, psycopg.OperationalError
                    )
                    if transient and attempt < max_retries:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            "Database operation failed, retrying",
                            operation=func.__name__,
                            attempt=attempt + 1,
                            max_retries=max_retries,
                            delay=delay,
                            error=str(e),
                        )
                        await asyncio.sleep(delay)
                        continue

                    if isinstance(e, DatabaseError):
                        raise
                    raise DatabaseError(
                        f"Operation failed after {max_retries} retries: {e}",
                        operation=func.__name__,
                        recoverable=False,
                    ) from e

                except (psycopg.IntegrityError, psycopg.DataError) as e:
                    logger.error("Database operation failed with permanent error", error=str(e))
                    raise DatabaseError(
                        f"Permanent database error: {e}", operation=func.__name__, recoverable=False
                    ) from e

        return wrapper

    return decorator
