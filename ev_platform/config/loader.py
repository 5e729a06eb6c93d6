# ev_platform/config/loader.py
"""
Загрузчик конфигурации проекта.
Единственный источник истины: config/config.json.
Секреты и адреса сервисов переопределяются из переменных окружения.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


# =============================================================================
# ОПРЕДЕЛЕНИЕ ПУТЕЙ
# =============================================================================

def get_project_root() -> Path:
    """Возвращает корневую директорию проекта."""
    return Path(__file__).parent.parent.parent


def get_config_path() -> Path:
    """Возвращает путь к файлу конфигурации."""
    return get_project_root() / "config" / "config.json"


def load_config_json() -> dict[str, Any]:
    """Загружает config.json и возвращает словарь."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Файл конфигурации не найден: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


def _split_csv(value: str | list[str] | None) -> list[str]:
    """Разбирает список из строки вида 'a,b,c' или возвращает список как есть."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in value.split(",") if item.strip()]


# =============================================================================
# PYDANTIC МОДЕЛИ КОНФИГУРАЦИИ
# =============================================================================

class SystemSettings(BaseModel):
    """Системные настройки."""
    PROJECT_NAME: str = "ev_platform"
    VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"
    ENVIRONMENT: str = "development"
    COMPONENT_MODE: str = "all"

    @property
    def is_production(self) -> bool:
        """Признак production-окружения."""
        return self.ENVIRONMENT.lower() == "production"


class DeploymentSettings(BaseModel):
    """Настройки развертывания сервисов и адреса внешних зависимостей."""
    CLIENT_STORE_SERVICE_HOST: str = "0.0.0.0"
    CLIENT_STORE_SERVICE_PORT: int = 4006
    VEHICLE_SERVICE_HOST: str = "0.0.0.0"
    VEHICLE_SERVICE_PORT: int = 4004
    CLIENT_STORE_SERVICE_URL: str = "http://localhost:4006"
    VEHICLE_SERVICE_URL: str = "http://localhost:4004"
    RIDER_SERVICE_URL: str = "http://localhost:4005"


class LoggingSettings(BaseModel):
    """Настройки логирования."""
    LOG_LEVEL: str = "DEBUG"
    LOG_TO_FILE: bool = True
    LOG_FILE_PATH: str = "logs/app.log"
    LOG_FORMAT: str = "colored"
    LOG_MAX_BYTES: int = 10485760
    LOG_BACKUP_COUNT: int = 5


class SecuritySettings(BaseModel):
    """Настройки JWT и CORS."""
    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    ALLOWED_ORIGINS: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("JWT_SECRET", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает секрет из переменных окружения."""
        if not v:
            return os.getenv("JWT_SECRET", "")
        return v

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_origins(cls, v: str | list[str] | None) -> list[str]:
        """Разбирает список разрешённых источников."""
        return _split_csv(v)


class DatabaseSettings(BaseModel):
    """Настройки PostgreSQL."""
    DATABASE_URL: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_NAME: str = "ev_platform"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_MIN_POOL_SIZE: int = 5
    DB_MAX_POOL_SIZE: int = 20
    DB_COMMAND_TIMEOUT: int = 60

    @field_validator("DB_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("DB_PASSWORD", "")
        return v

    @property
    def dsn(self) -> str:
        """Возвращает DSN для подключения к PostgreSQL (DATABASE_URL имеет приоритет)."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


class RedisSettings(BaseModel):
    """Настройки Redis."""
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""
    REDIS_NAMESPACE: str = "ev"
    REDIS_MAX_CONNECTIONS: int = 50
    PROCESSED_EVENT_TTL: int = 86400

    @field_validator("REDIS_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        if not v:
            return os.getenv("REDIS_PASSWORD", "")
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к Redis."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


class RabbitMQSettings(BaseModel):
    """Настройки RabbitMQ."""
    RABBITMQ_ENABLED: bool = True
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_EXCHANGE: str = "ev.events"
    RABBITMQ_DEAD_LETTER_EXCHANGE: str = "ev.events.dlx"
    RABBITMQ_PREFETCH_COUNT: int = 10

    @field_validator("RABBITMQ_PASSWORD", mode="before")
    @classmethod
    def get_from_env(cls, v: str) -> str:
        """Получает пароль из переменных окружения."""
        env_pass = os.getenv("RABBITMQ_PASSWORD", "")
        if env_pass:
            return env_pass
        return v

    @property
    def url(self) -> str:
        """Возвращает URL для подключения к RabbitMQ."""
        return (
            f"amqp://{self.RABBITMQ_USER}:{self.RABBITMQ_PASSWORD}"
            f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}{self.RABBITMQ_VHOST}"
        )


class CitySyncSettings(BaseModel):
    """Настройки репликации городов."""
    SUBSCRIBERS: dict[str, str] = Field(default_factory=dict)
    PUBLISH_TIMEOUT: float = 5.0
    HEALTH_CHECK_TIMEOUT: float = 3.0
    MAX_RETRIES: int = 3
    RETRY_AFTER_SECONDS: int = 300
    FAILED_BATCH_SIZE: int = 50
    RECOVERY_INTERVAL_SECONDS: int = 60


class RiderServiceSettings(BaseModel):
    """Настройки клиента сервиса райдеров."""
    TIMEOUT: float = 5.0


# =============================================================================
# ГЛАВНЫЙ КЛАСС НАСТРОЕК
# =============================================================================

class Settings(BaseSettings):
    """
    Главный класс настроек приложения.
    Агрегирует все секции конфигурации.
    """
    system: SystemSettings = Field(default_factory=SystemSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    rabbitmq: RabbitMQSettings = Field(default_factory=RabbitMQSettings)
    city_sync: CitySyncSettings = Field(default_factory=CitySyncSettings)
    rider_service: RiderServiceSettings = Field(default_factory=RiderServiceSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def from_config_json(cls) -> "Settings":
        """
        Создаёт объект Settings из config.json.
        Секреты и адреса переопределяются из переменных окружения.
        """
        config_data = load_config_json()

        # Фильтруем комментарии (ключи, начинающиеся с _comment_)
        filtered_data = {k: v for k, v in config_data.items() if not k.startswith("_comment_")}

        client_store_url = os.getenv(
            "CLIENT_STORE_SERVICE_URL",
            filtered_data.get("CLIENT_STORE_SERVICE_URL", "http://localhost:4006"),
        )
        subscribers = dict(filtered_data.get("CITY_SYNC_SUBSCRIBERS", {}))
        subscribers["client-store-service"] = client_store_url

        return cls(
            system=SystemSettings(
                PROJECT_NAME=filtered_data.get("PROJECT_NAME", "ev_platform"),
                VERSION=filtered_data.get("VERSION", "1.0.0"),
                DEBUG=filtered_data.get("DEBUG", True),
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "DEBUG"),
                ENVIRONMENT=os.getenv("ENVIRONMENT", filtered_data.get("ENVIRONMENT", "development")),
                COMPONENT_MODE=os.getenv("COMPONENT_MODE", filtered_data.get("COMPONENT_MODE", "all")),
            ),
            deployment=DeploymentSettings(
                CLIENT_STORE_SERVICE_HOST=filtered_data.get("CLIENT_STORE_SERVICE_HOST", "0.0.0.0"),
                CLIENT_STORE_SERVICE_PORT=int(os.getenv("PORT", filtered_data.get("CLIENT_STORE_SERVICE_PORT", 4006))),
                VEHICLE_SERVICE_HOST=filtered_data.get("VEHICLE_SERVICE_HOST", "0.0.0.0"),
                VEHICLE_SERVICE_PORT=int(os.getenv("VEHICLE_SERVICE_PORT", filtered_data.get("VEHICLE_SERVICE_PORT", 4004))),
                CLIENT_STORE_SERVICE_URL=client_store_url,
                VEHICLE_SERVICE_URL=os.getenv("VEHICLE_SERVICE_URL", filtered_data.get("VEHICLE_SERVICE_URL", "http://localhost:4004")),
                RIDER_SERVICE_URL=os.getenv("RIDER_SERVICE_URL", filtered_data.get("RIDER_SERVICE_URL", "http://localhost:4005")),
            ),
            logging=LoggingSettings(
                LOG_LEVEL=filtered_data.get("LOG_LEVEL", "DEBUG"),
                LOG_TO_FILE=filtered_data.get("LOG_TO_FILE", True),
                LOG_FILE_PATH=filtered_data.get("LOG_FILE_PATH", "logs/app.log"),
                LOG_FORMAT=filtered_data.get("LOG_FORMAT", "json"),
                LOG_MAX_BYTES=filtered_data.get("LOG_MAX_BYTES", 10485760),
                LOG_BACKUP_COUNT=filtered_data.get("LOG_BACKUP_COUNT", 5),
            ),
            security=SecuritySettings(
                JWT_SECRET=os.getenv("JWT_SECRET", filtered_data.get("JWT_SECRET", "")),
                JWT_ALGORITHM=filtered_data.get("JWT_ALGORITHM", "HS256"),
                ALLOWED_ORIGINS=os.getenv("ALLOWED_ORIGINS", filtered_data.get("ALLOWED_ORIGINS", ["http://localhost:3000"])),
            ),
            database=DatabaseSettings(
                DATABASE_URL=os.getenv("DATABASE_URL", filtered_data.get("DATABASE_URL", "")),
                DB_HOST=os.getenv("DB_HOST", filtered_data.get("DB_HOST", "localhost")),
                DB_PORT=int(os.getenv("DB_PORT", filtered_data.get("DB_PORT", 5432))),
                DB_NAME=os.getenv("DB_NAME", filtered_data.get("DB_NAME", "ev_platform")),
                DB_USER=os.getenv("DB_USER", filtered_data.get("DB_USER", "postgres")),
                DB_PASSWORD=os.getenv("DB_PASSWORD", filtered_data.get("DB_PASSWORD", "")),
                DB_MIN_POOL_SIZE=filtered_data.get("DB_MIN_POOL_SIZE", 5),
                DB_MAX_POOL_SIZE=filtered_data.get("DB_MAX_POOL_SIZE", 20),
                DB_COMMAND_TIMEOUT=filtered_data.get("DB_COMMAND_TIMEOUT", 60),
            ),
            redis=RedisSettings(
                REDIS_HOST=os.getenv("REDIS_HOST", filtered_data.get("REDIS_HOST", "localhost")),
                REDIS_PORT=int(os.getenv("REDIS_PORT", filtered_data.get("REDIS_PORT", 6379))),
                REDIS_DB=filtered_data.get("REDIS_DB", 0),
                REDIS_PASSWORD=os.getenv("REDIS_PASSWORD", filtered_data.get("REDIS_PASSWORD", "")),
                REDIS_NAMESPACE=filtered_data.get("REDIS_NAMESPACE", "ev"),
                REDIS_MAX_CONNECTIONS=filtered_data.get("REDIS_MAX_CONNECTIONS", 50),
                PROCESSED_EVENT_TTL=filtered_data.get("PROCESSED_EVENT_TTL", 86400),
            ),
            rabbitmq=RabbitMQSettings(
                RABBITMQ_ENABLED=os.getenv("RABBITMQ_ENABLED", filtered_data.get("RABBITMQ_ENABLED", True)),
                RABBITMQ_HOST=os.getenv("RABBITMQ_HOST", filtered_data.get("RABBITMQ_HOST", "localhost")),
                RABBITMQ_PORT=int(os.getenv("RABBITMQ_PORT", filtered_data.get("RABBITMQ_PORT", 5672))),
                RABBITMQ_USER=os.getenv("RABBITMQ_USER", filtered_data.get("RABBITMQ_USER", "guest")),
                RABBITMQ_PASSWORD=os.getenv("RABBITMQ_PASSWORD", filtered_data.get("RABBITMQ_PASSWORD", "guest")),
                RABBITMQ_VHOST=filtered_data.get("RABBITMQ_VHOST", "/"),
                RABBITMQ_EXCHANGE=filtered_data.get("RABBITMQ_EXCHANGE", "ev.events"),
                RABBITMQ_DEAD_LETTER_EXCHANGE=filtered_data.get("RABBITMQ_DEAD_LETTER_EXCHANGE", "ev.events.dlx"),
                RABBITMQ_PREFETCH_COUNT=filtered_data.get("RABBITMQ_PREFETCH_COUNT", 10),
            ),
            city_sync=CitySyncSettings(
                SUBSCRIBERS=subscribers,
                PUBLISH_TIMEOUT=filtered_data.get("CITY_SYNC_PUBLISH_TIMEOUT", 5.0),
                HEALTH_CHECK_TIMEOUT=filtered_data.get("CITY_SYNC_HEALTH_CHECK_TIMEOUT", 3.0),
                MAX_RETRIES=filtered_data.get("CITY_SYNC_MAX_RETRIES", 3),
                RETRY_AFTER_SECONDS=filtered_data.get("CITY_SYNC_RETRY_AFTER_SECONDS", 300),
                FAILED_BATCH_SIZE=filtered_data.get("CITY_SYNC_FAILED_BATCH_SIZE", 50),
                RECOVERY_INTERVAL_SECONDS=filtered_data.get("CITY_SYNC_RECOVERY_INTERVAL_SECONDS", 60),
            ),
            rider_service=RiderServiceSettings(
                TIMEOUT=filtered_data.get("RIDER_SERVICE_TIMEOUT", 5.0),
            ),
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Возвращает синглтон настроек приложения.
    Использует кэширование для производительности.
    """
    from dotenv import load_dotenv

    # Загружаем .env файл
    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    return Settings.from_config_json()


# Экспорт синглтона для удобного импорта
settings = get_settings()
