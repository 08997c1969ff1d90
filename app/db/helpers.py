# app/db/helpers.py
"""
Database helper functions for common read patterns.
Reduces boilerplate in the repository layer.
"""

import asyncio
import functools
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
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
                return row if row else None
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                    return row if row else None

    except psycopg.Error as e:
        logger.error("Database fetch_one error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_one") from e


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """
    Execute query and return all rows as list of dicts.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        List of dicts with row data
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()

    except psycopg.Error as e:
        logger.error("Database fetch_all error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_all") from e


async def fetch_val(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> Any:
    """
    Execute query and return single value.

    Returns:
        Single value from first column of first row
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                row = await cur.fetchone()
                return list(row.values())[0] if row else None
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
                    return list(row.values())[0] if row else None

    except psycopg.Error as e:
        logger.error("Database fetch_val error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_val") from e


def with_db_retry(max_retries: int = 3, base_delay: float = 0.1):
    """
    Decorator to retry database reads on temporary failures.

    Only DatabaseError caused by psycopg.OperationalError is retried; every
    other failure propagates immediately.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries (exponential backoff)
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except DatabaseError as e:
                    transient = isinstance(e.__cause__, psycopg.OperationalError)
                    if not transient or attempt >= max_retries:
                        raise
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

            raise RuntimeError("Database retry loop exhausted")

        return wrapper

    return decorator
