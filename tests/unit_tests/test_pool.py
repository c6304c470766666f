"""Tests for DocumentDBPool."""

from unittest.mock import AsyncMock
from unittest.mock import patch

import pytest

from telemetry_api.storage.pool import DocumentDBPool


@pytest.fixture
def asyncpg_pool(mock_pg_pool):
    mock_pg_pool.close = AsyncMock(return_value=None)
    return mock_pg_pool


class TestDocumentDBPool:
    """Tests for pool lifecycle and migrations."""

    @pytest.mark.asyncio
    async def test_initialize_runs_schema_when_missing(self, asyncpg_pool, mock_pg_connection):
        mock_pg_connection.fetch.return_value = []

        with patch("telemetry_api.storage.pool.asyncpg.create_pool", AsyncMock(return_value=asyncpg_pool)):
            pool = DocumentDBPool("postgresql://localhost/test")
            await pool.initialize()

        mock_pg_connection.execute.assert_awaited_once()
        assert "CREATE TABLE IF NOT EXISTS telemetry.documents" in mock_pg_connection.execute.await_args.args[0]

    @pytest.mark.asyncio
    async def test_initialize_skips_schema_when_present(self, asyncpg_pool, mock_pg_connection):
        mock_pg_connection.fetch.return_value = [{"table_name": "documents"}]

        with patch("telemetry_api.storage.pool.asyncpg.create_pool", AsyncMock(return_value=asyncpg_pool)):
            pool = DocumentDBPool("postgresql://localhost/test")
            await pool.initialize()
            await pool.initialize()

        mock_pg_connection.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_initialize_closes_pool_on_failure(self, asyncpg_pool, mock_pg_connection):
        mock_pg_connection.fetchval.return_value = 0

        with patch("telemetry_api.storage.pool.asyncpg.create_pool", AsyncMock(return_value=asyncpg_pool)):
            pool = DocumentDBPool("postgresql://localhost/test")
            with pytest.raises(RuntimeError):
                await pool.initialize()

        asyncpg_pool.close.assert_awaited_once()
        assert pool.pool is None

    def test_acquire_before_initialize(self):
        with pytest.raises(RuntimeError):
            DocumentDBPool("postgresql://localhost/test").acquire()

    @pytest.mark.asyncio
    async def test_health_check(self, asyncpg_pool, mock_pg_connection):
        pool = DocumentDBPool("postgresql://localhost/test")
        assert await pool.health_check() is False

        pool.pool = asyncpg_pool
        assert await pool.health_check() is True

        mock_pg_connection.fetchval.side_effect = ConnectionError("reset")
        assert await pool.health_check() is False
