# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-with-enough-length-000")
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("RABBITMQ_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

CITY_ID = "6f1c2d3e-0000-4000-8000-000000000001"


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ
# =============================================================================

class FakeTransaction:
    """Асинхронный контекстный менеджер, отдающий мок-соединение."""

    def __init__(self, conn: Any) -> None:
        self.conn = conn

    async def __aenter__(self) -> Any:
        return self.conn

    async def __aexit__(self, *exc: Any) -> bool:
        return False


@pytest.fixture
def mock_conn() -> AsyncMock:
    """Мок соединения asyncpg."""
    conn = AsyncMock()
    conn.execute = AsyncMock(return_value="UPDATE 1")
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)
    return conn


@pytest.fixture
def mock_db(mock_conn: AsyncMock) -> MagicMock:
    """Мок DatabaseManager: acquire() и transaction() отдают mock_conn."""
    db = MagicMock()
    db.acquire = MagicMock(side_effect=lambda: FakeTransaction(mock_conn))
    db.transaction = MagicMock(side_effect=lambda: FakeTransaction(mock_conn))
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    db.fetchval = AsyncMock(return_value=None)
    db.is_connected = True
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок RedisClient."""
    redis = AsyncMock()
    redis.exists = AsyncMock(return_value=False)
    redis.set = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок EventBus."""
    bus = AsyncMock()
    bus.is_connected = True
    bus.publish = AsyncMock(return_value=True)
    return bus


# =============================================================================
# ТЕСТОВЫЕ ДАННЫЕ
# =============================================================================

@pytest.fixture
def city_id() -> str:
    return CITY_ID


@pytest.fixture
def city_snapshot() -> dict[str, Any]:
    """Снимок города в формате события (camelCase)."""
    return {
        "id": CITY_ID,
        "name": "Bengaluru",
        "displayName": "Bengaluru",
        "code": "BLR",
        "state": "Karnataka",
        "country": "India",
        "timezone": "Asia/Kolkata",
        "latitude": 12.9716,
        "longitude": 77.5946,
        "pinCodeRange": "560001-560100",
        "regionCode": "KA",
        "isActive": True,
        "isOperational": True,
        "version": 1,
        "eventSequence": 10,
        "createdAt": "2024-01-01T00:00:00+00:00",
        "updatedAt": "2024-01-01T00:00:00+00:00",
    }


@pytest.fixture
def make_city_event(city_snapshot: dict[str, Any]):
    """Фабрика событий города в формате провода."""

    def factory(event_type: str = "city.created", **overrides: Any) -> dict[str, Any]:
        version = overrides.pop("version", 1)
        sequence = overrides.pop("event_sequence", 10)
        event_id = overrides.pop("event_id", f"evt-{event_type}-{version}-{sequence}")

        if event_type in ("city.created", "city.updated"):
            data = {**city_snapshot, "version": version, "eventSequence": sequence, **overrides}
        elif event_type == "city.deleted":
            data = {"id": CITY_ID, "name": "Bengaluru", "code": "BLR", "version": version}
        else:
            data = {
                "id": CITY_ID,
                "name": "Bengaluru",
                "code": "BLR",
                "isActive": event_type == "city.activated",
                "isOperational": overrides.get("isOperational", True),
                "version": version,
            }

        return {
            "type": event_type,
            "eventId": event_id,
            "cityId": CITY_ID,
            "eventSequence": sequence,
            "version": version,
            "timestamp": datetime(2024, 1, 2, tzinfo=timezone.utc).isoformat(),
            "triggeredBy": "admin-1",
            "metadata": {"source": "vehicle-service", "correlationId": "corr-1"},
            "data": data,
        }

    return factory
