# app/db/pool.py
"""
PostgreSQL connection pool manager using psycopg_pool.
Sized for one-shot snapshot runs against the Supabase ledger.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabasePoolManager:
    """
    Database connection pool manager.

    Every connection is read-only: the snapshot pipeline never writes to
    the ledger.
    """

    def __init__(self):
        self.pool: AsyncConnectionPool | None = None
        self._initialized = False
        self._closed = False

    async def initialize(self) -> None:
        """Open the pool and verify a connection can be used."""
        if self._initialized:
            logger.warning("Database pool already initialized")
            return

        if self._closed:
            raise RuntimeError("Cannot reinitialize closed pool")

        if not settings.SUPABASE_DB_URL:
            raise RuntimeError("SUPABASE_DB_URL is not configured")

        try:
            logger.info("Initializing database connection pool")

            pool_config = self._get_pool_config()

            self.pool = AsyncConnectionPool(
                conninfo=settings.SUPABASE_DB_URL,
                open=False,
                **pool_config,
            )
            await self.pool.open()
            await self.pool.wait()

            # Mark as initialized before the test query so connection() accepts it
            self._initialized = True

            await self._test_pool_connections()

            logger.info(
                "Database pool initialized successfully",
                min_size=pool_config["min_size"],
                max_size=pool_config["max_size"],
                timeout=pool_config["timeout"],
            )

        except Exception as e:
            logger.error("Failed to initialize database pool", error=str(e))
            self._initialized = False
            if self.pool:
                try:
                    await self.pool.close()
                except Exception as cleanup_error:
                    logger.debug("Ignoring pool cleanup error", error=str(cleanup_error))
                self.pool = None
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

    def _get_pool_config(self) -> dict[str, Any]:
        config = settings.get_db_pool_config()
        config.update(
            {
                "check": AsyncConnectionPool.check_connection,
                "configure": self._configure_connection,
            }
        )

        logger.debug(
            "Pool configuration loaded",
            min_size=config["min_size"],
            max_size=config["max_size"],
            timeout=config["timeout"],
            environment=settings.environment,
        )

        return config

    async def _configure_connection(self, conn: psycopg.AsyncConnection) -> None:
        """Configure each new connection from the pool."""
        conn.row_factory = dict_row

        app_name = f"community-snapshot-{settings.environment}"

        # Autocommit keeps connections out of INTRANS between queries
        await conn.set_autocommit(True)

        await conn.execute(sql.SQL("SET application_name = {}").format(sql.Literal(app_name)))
        await conn.execute("SET timezone = 'UTC'")
        await conn.execute("SET statement_timeout = '60s'")
        await conn.execute("SET default_transaction_read_only = on")

        logger.debug("Database connection configured successfully")

    async def _test_pool_connections(self) -> None:
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT 1 AS ok")
                row = await cur.fetchone()
        if not row or row["ok"] != 1:
            raise RuntimeError("Database connection test failed - got unexpected result")

        logger.debug("Database pool connection test passed")

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if not self._initialized or self._closed:
            return

        try:
            logger.info("Closing database connection pool")

            if self.pool:
                await asyncio.wait_for(self.pool.close(), timeout=30.0)

            self._initialized = False
            self._closed = True

            logger.info("Database pool closed successfully")

        except TimeoutError:
            logger.warning("Database pool close timed out, forcing shutdown")
        except Exception as e:
            logger.error("Error closing database pool", error=str(e))

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """
        Get a connection from the pool.

        Usage:
            async with db_pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
        """
        if not self._initialized:
            raise RuntimeError("Database pool not initialized. Call initialize() first.")

        if self._closed:
            raise RuntimeError("Database pool is closed")

        try:
            async with self.pool.connection() as conn:
                yield conn

        except Exception as e:
            logger.error("Database connection error", error=str(e), error_type=type(e).__name__)
            raise


# Global pool instance
db_pool = DatabasePoolManager()


async def get_db_connection():
    """Get database connection from pool."""
    return db_pool.connection()
