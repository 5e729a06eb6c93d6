# tests/config/test_loader.py
"""
Тесты для модуля загрузки конфигурации.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from ev_platform.config.loader import (
    DatabaseSettings,
    RabbitMQSettings,
    RedisSettings,
    SecuritySettings,
    Settings,
    SystemSettings,
    get_config_path,
    get_project_root,
    load_config_json,
)


class TestGetProjectRoot:
    """Тесты для функции get_project_root."""

    def test_returns_path_object(self) -> None:
        assert isinstance(get_project_root(), Path)

    def test_root_contains_package_and_config(self) -> None:
        """Корень содержит пакет ev_platform и директорию config."""
        root = get_project_root()
        assert (root / "ev_platform").is_dir()
        assert (root / "config").is_dir()

    def test_root_contains_migrations(self) -> None:
        assert (get_project_root() / "migrations" / "init.sql").exists()


class TestLoadConfigJson:
    """Тесты загрузки config.json."""

    def test_config_path_points_to_json(self) -> None:
        assert get_config_path().name == "config.json"

    def test_loads_real_config(self) -> None:
        data = load_config_json()
        assert data["CLIENT_STORE_SERVICE_PORT"] == 4006
        assert "CITY_SYNC_SUBSCRIBERS" in data

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with patch("ev_platform.config.loader.get_config_path", return_value=tmp_path / "missing.json"):
            with pytest.raises(FileNotFoundError):
                load_config_json()


class TestSectionModels:
    """Тесты отдельных секций настроек."""

    def test_is_production(self) -> None:
        assert SystemSettings(ENVIRONMENT="Production").is_production is True
        assert SystemSettings(ENVIRONMENT="development").is_production is False

    def test_database_url_has_priority(self) -> None:
        db = DatabaseSettings(DATABASE_URL="postgresql://u:p@db:5432/x", DB_HOST="other")
        assert db.dsn == "postgresql://u:p@db:5432/x"

    def test_dsn_from_parts(self) -> None:
        db = DatabaseSettings(DB_USER="u", DB_PASSWORD="p", DB_HOST="h", DB_PORT=5433, DB_NAME="n")
        assert db.dsn == "postgresql://u:p@h:5433/n"

    def test_redis_url_with_password(self) -> None:
        redis = RedisSettings(REDIS_PASSWORD="secret", REDIS_HOST="r", REDIS_PORT=6380, REDIS_DB=2)
        assert redis.url == "redis://:secret@r:6380/2"

    def test_rabbitmq_url(self) -> None:
        with patch.dict("os.environ", {"RABBITMQ_PASSWORD": ""}):
            rabbit = RabbitMQSettings(RABBITMQ_USER="u", RABBITMQ_PASSWORD="p", RABBITMQ_HOST="mq")
        assert rabbit.url == "amqp://u:p@mq:5672/"

    def test_allowed_origins_from_csv(self) -> None:
        security = SecuritySettings(JWT_SECRET="x", ALLOWED_ORIGINS="http://a.com, http://b.com,")
        assert security.ALLOWED_ORIGINS == ["http://a.com", "http://b.com"]


class TestSettingsFromConfigJson:
    """Тесты сборки Settings из config.json и окружения."""

    @pytest.fixture
    def config_file(self, tmp_path: Path) -> Path:
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "_comment_main": "игнорируется",
                    "VERSION": "9.9.9",
                    "CLIENT_STORE_SERVICE_PORT": 4006,
                    "CLIENT_STORE_SERVICE_URL": "http://client-store:4006",
                    "CITY_SYNC_SUBSCRIBERS": {"rider-service": "http://rider:4005"},
                    "CITY_SYNC_MAX_RETRIES": 7,
                }
            ),
            encoding="utf-8",
        )
        return path

    def test_values_from_file(self, config_file: Path) -> None:
        with patch("ev_platform.config.loader.get_config_path", return_value=config_file):
            settings = Settings.from_config_json()

        assert settings.system.VERSION == "9.9.9"
        assert settings.city_sync.MAX_RETRIES == 7

    def test_client_store_always_subscribed(self, config_file: Path) -> None:
        with patch("ev_platform.config.loader.get_config_path", return_value=config_file):
            settings = Settings.from_config_json()

        assert settings.city_sync.SUBSCRIBERS == {
            "rider-service": "http://rider:4005",
            "client-store-service": "http://client-store:4006",
        }

    def test_env_overrides(self, config_file: Path) -> None:
        env = {
            "PORT": "5006",
            "RIDER_SERVICE_URL": "http://riders.internal",
            "DATABASE_URL": "postgresql://env/db",
            "JWT_SECRET": "env-secret",
        }
        with patch("ev_platform.config.loader.get_config_path", return_value=config_file), \
                patch.dict("os.environ", env):
            settings = Settings.from_config_json()

        assert settings.deployment.CLIENT_STORE_SERVICE_PORT == 5006
        assert settings.deployment.RIDER_SERVICE_URL == "http://riders.internal"
        assert settings.database.dsn == "postgresql://env/db"
        assert settings.security.JWT_SECRET == "env-secret"
