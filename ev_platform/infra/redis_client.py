# ev_platform/infra/redis_client.py
"""
Клиент Redis.
Используется для учёта уже обработанных событий синхронизации.
"""

from __future__ import annotations

import redis.asyncio as redis

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import log_error, log_info


class RedisClient:
    """
    Асинхронный клиент Redis (Singleton на процесс).
    Все ключи автоматически получают префикс namespace.
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "ev"

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def _make_key(self, key: str) -> str:
        """Добавляет namespace к ключу."""
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str | None = None,
        max_connections: int = 50,
        namespace: str | None = None,
    ) -> None:
        """
        Подключается к Redis и проверяет соединение командой PING.

        Args:
            url: URL Redis (если None, берётся из конфига)
            max_connections: Максимальное количество соединений
            namespace: Префикс ключей
        """
        if self._client is not None:
            return

        if url is None:
            from ev_platform.config import settings
            url = settings.redis.url
            max_connections = settings.redis.REDIS_MAX_CONNECTIONS
            namespace = settings.redis.REDIS_NAMESPACE

        if namespace:
            self._namespace = namespace

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        await self._client.ping()

        await log_info("Подключение к Redis установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    async def get(self, key: str) -> str | None:
        return await self.client.get(self._make_key(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Устанавливает значение с необязательным TTL (секунды)."""
        return bool(await self.client.set(self._make_key(key), value, ex=ttl))

    async def set_if_absent(self, key: str, value: str, ttl: int | None = None) -> bool:
        """SET NX: True, если ключ был создан этим вызовом."""
        return bool(await self.client.set(self._make_key(key), value, ex=ttl, nx=True))

    async def delete(self, key: str) -> int:
        return await self.client.delete(self._make_key(key))

    async def exists(self, key: str) -> bool:
        return await self.client.exists(self._make_key(key)) > 0

    async def health_check(self) -> bool:
        """True, если Redis отвечает на PING."""
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


def get_redis() -> RedisClient:
    """Возвращает глобальный экземпляр RedisClient."""
    return RedisClient()


async def init_redis() -> None:
    """Подключается к Redis по настройкам из конфигурации."""
    from ev_platform.config import settings

    await get_redis().connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
        namespace=settings.redis.REDIS_NAMESPACE,
    )


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    await get_redis().disconnect()
