"""Database connection pool management for PostgreSQL."""

import asyncpg
from asyncpg.pool import Pool
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Optional
import logging

from core.repositories import TransactionManager
from settings import load_settings

logger = logging.getLogger(__name__)

# Connection owned by the transaction the current task is running in
_transaction_connection: ContextVar[Optional[asyncpg.Connection]] = ContextVar(
    "transaction_connection", default=None
)


class DatabasePool(TransactionManager):
    """Manages PostgreSQL connection pool."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        min_size: int = 5,
        max_size: int = 20,
        command_timeout: float = 60.0
    ):
        """
        Initialize database pool.

        Args:
            database_url: PostgreSQL connection URL (optional, loads from settings if not provided)
            min_size: Minimum pool size when database_url is given
            max_size: Maximum pool size when database_url is given
            command_timeout: Per-statement timeout when database_url is given
        """
        if database_url:
            self.database_url = database_url
            self.min_size = min_size
            self.max_size = max_size
            self.command_timeout = command_timeout
        else:
            settings = load_settings()
            self.database_url = settings.database_url
            self.min_size = settings.db_pool_min_size
            self.max_size = settings.db_pool_max_size
            self.command_timeout = settings.db_command_timeout

        self.pool: Optional[Pool] = None

    async def initialize(self):
        """Create connection pool."""
        if not self.pool:
            self.pool = await asyncpg.create_pool(
                self.database_url,
                min_size=self.min_size,
                max_size=self.max_size,
                max_inactive_connection_lifetime=300,
                command_timeout=self.command_timeout
            )
            logger.info("Database connection pool initialized")

    async def close(self):
        """Close connection pool."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("Database connection pool closed")

    @asynccontextmanager
    async def acquire(self):
        """
        Acquire a connection from the pool.

        Inside ``transaction()`` this yields the transaction's connection so
        the caller's statements join it.
        """
        current = _transaction_connection.get()
        if current is not None:
            yield current
            return

        if not self.pool:
            await self.initialize()

        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self):
        """
        Run the enclosed repository calls in a single transaction.

        Nested calls open a savepoint on the same connection.
        """
        async with self.acquire() as connection:
            async with connection.transaction():
                token = _transaction_connection.set(connection)
                try:
                    yield
                finally:
                    _transaction_connection.reset(token)


async def apply_schema(db_pool: DatabasePool, schema_sql: str) -> None:
    """Execute a schema script (CREATE TABLE IF NOT EXISTS ...)."""
    async with db_pool.acquire() as conn:
        await conn.execute(schema_sql)
    logger.info("Database schema applied")


async def check_connection(db_pool: DatabasePool) -> bool:
    """
    Run a trivial query to verify the pool can reach the server.

    Returns:
        True if the query succeeded
    """
    try:
        async with db_pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        logger.info("Database connection check passed")
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
