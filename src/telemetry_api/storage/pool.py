"""
Document Database Connection Pool

Manages the asyncpg connection pool for the alarm document store.
Creates the telemetry schema on first initialization.
"""

from pathlib import Path
from typing import Optional

import asyncpg
from loguru import logger


class DocumentDBPool:
    """Document database connection pool manager."""

    # Tables expected in the telemetry schema
    EXPECTED_TABLES = {"documents"}

    def __init__(self, connection_string: str, min_size: int = 2, max_size: int = 10):
        """
        Initialize document DB pool.

        Args:
            connection_string: PostgreSQL connection string for the document store
            min_size: Minimum pooled connections
            max_size: Maximum pooled connections
        """
        self.connection_string = connection_string
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[asyncpg.Pool] = None
        self._pool_initialized = False

    async def initialize(self) -> None:
        """Create the connection pool, validate it and run migrations."""
        if self._pool_initialized and self.pool is not None:
            logger.debug("Document DB pool already initialized")
            return

        try:
            logger.info("Initializing document database pool")

            self.pool = await asyncpg.create_pool(
                self.connection_string,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60,  # Query timeout (60 seconds)
                timeout=15,  # Connection timeout (15 seconds)
            )

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                if result != 1:
                    raise RuntimeError("Pool validation query failed")

            logger.info("Document DB pool validated")

            await self._run_migrations()

            self._pool_initialized = True
            logger.success("Document database initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize document DB pool: {e}", exc_info=True)
            if self.pool:
                await self.pool.close()
                self.pool = None
            raise

    async def _run_migrations(self) -> None:
        """Execute schema.sql when the telemetry schema is missing any expected table."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'telemetry'
                """
            )
            existing_tables = {row["table_name"] for row in rows}

            if self.EXPECTED_TABLES <= existing_tables:
                logger.info("Telemetry schema up to date", tables=sorted(existing_tables))
                return

            logger.info(
                "Telemetry schema incomplete - running migrations",
                missing=sorted(self.EXPECTED_TABLES - existing_tables),
            )
            schema_path = Path(__file__).parent / "schema.sql"
            if not schema_path.exists():
                raise FileNotFoundError(f"schema.sql not found at {schema_path}")

            await conn.execute(schema_path.read_text())
            logger.success("Telemetry schema migrations completed")

    async def close(self) -> None:
        """Close the connection pool gracefully."""
        if self.pool:
            logger.info("Closing document database pool")
            await self.pool.close()
            self.pool = None
            self._pool_initialized = False
            logger.info("Document DB pool closed")

    def acquire(self):
        """
        Acquire a database connection from the pool.

        Usage:
            async with pool.acquire() as conn:
                row = await conn.fetchrow("SELECT ...")
        """
        if not self.pool:
            raise RuntimeError("Document DB pool not initialized - call initialize() first")
        return self.pool.acquire()

    async def health_check(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if connection is healthy, False otherwise
        """
        try:
            if not self.pool:
                return False

            async with self.pool.acquire() as conn:
                result = await conn.fetchval("SELECT 1")
                return result == 1
        except Exception as e:
            logger.error(f"Document DB health check failed: {e}")
            return False
