# tests/infra/test_database.py
"""
Тесты для менеджера базы данных.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ev_platform.infra.database import DatabaseManager, _init_schema, retry_on_connection_error


class TestRetryOnConnectionError:
    """Тесты для декоратора retry_on_connection_error."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self) -> None:
        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def successful_func():
            return "success"

        assert await successful_func() == "success"

    @pytest.mark.asyncio
    async def test_retry_on_connection_error(self) -> None:
        """Повторная попытка после ошибки подключения."""
        call_count = 0

        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def failing_then_success():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionRefusedError("Connection refused")
            return "success"

        assert await failing_then_success() == "success"
        assert call_count == 2

    @pytest.mark.asyncio
    async def test_max_attempts_exceeded(self) -> None:
        @retry_on_connection_error(max_attempts=2, delay=0.01)
        async def always_failing():
            raise ConnectionRefusedError("Connection refused")

        with pytest.raises(ConnectionRefusedError):
            await always_failing()

    @pytest.mark.asyncio
    async def test_non_connection_error_not_retried(self) -> None:
        call_count = 0

        @retry_on_connection_error(max_attempts=3, delay=0.01)
        async def raises_value_error():
            nonlocal call_count
            call_count += 1
            raise ValueError("Not a connection error")

        with pytest.raises(ValueError):
            await raises_value_error()

        assert call_count == 1


class TestDatabaseManager:
    """Тесты для DatabaseManager."""

    @pytest.fixture
    def db_manager(self) -> DatabaseManager:
        # Сбрасываем синглтон для каждого теста
        DatabaseManager._instance = None
        manager = DatabaseManager()
        yield manager
        DatabaseManager._instance = None

    def test_singleton(self, db_manager: DatabaseManager) -> None:
        assert DatabaseManager() is db_manager

    def test_pool_not_initialized(self, db_manager: DatabaseManager) -> None:
        assert db_manager.is_connected is False
        with pytest.raises(RuntimeError):
            _ = db_manager.pool

    @pytest.mark.asyncio
    async def test_connect_creates_pool_once(self, db_manager: DatabaseManager) -> None:
        pool = MagicMock()
        with patch("ev_platform.infra.database.asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            await db_manager.connect(dsn="postgresql://test/db", min_size=1, max_size=2)
            await db_manager.connect(dsn="postgresql://test/db", min_size=1, max_size=2)

        create_pool.assert_awaited_once()
        assert db_manager.pool is pool

    @pytest.mark.asyncio
    async def test_health_check_false_on_error(self, db_manager: DatabaseManager) -> None:
        with patch.object(DatabaseManager, "fetchval", AsyncMock(side_effect=ValueError("boom"))):
            assert await db_manager.health_check() is False


class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, *exc):
        return False


class TestInitSchema:
    """Тесты применения схемы под advisory-локом."""

    @pytest.mark.asyncio
    async def test_schema_applied_under_lock(self) -> None:
        conn = AsyncMock()
        db = MagicMock()
        db.transaction = MagicMock(return_value=FakeTransaction(conn))

        await _init_schema(db)

        first_call, second_call = conn.execute.await_args_list
        assert "pg_advisory_xact_lock" in first_call.args[0]
        assert "CREATE TABLE IF NOT EXISTS client_store.client_rider_mappings" in second_call.args[0]
