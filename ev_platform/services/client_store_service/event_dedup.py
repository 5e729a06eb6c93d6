# ev_platform/services/client_store_service/event_dedup.py
"""
Учёт уже применённых событий синхронизации в Redis.

Redis здесь вспомогательный: при его недоступности обработка продолжается,
идемпотентность обеспечивают проверки в самой реплике.
"""

from __future__ import annotations

from ev_platform.common.logger import log_warning
from ev_platform.infra.redis_client import RedisClient


class ProcessedEventRegistry:
    """Множество eventId, уже успешно обработанных этим сервисом."""

    KEY_PREFIX = "city_sync:processed"

    def __init__(self, redis: RedisClient, ttl: int = 86400):
        self.redis = redis
        self.ttl = ttl

    def _key(self, event_id: str) -> str:
        return f"{self.KEY_PREFIX}:{event_id}"

    async def is_processed(self, event_id: str) -> bool:
        try:
            return await self.redis.exists(self._key(event_id))
        except Exception as e:
            await log_warning(f"Redis недоступен, проверка дубликата {event_id} пропущена: {e}")
            return False

    async def mark_processed(self, event_id: str) -> None:
        try:
            await self.redis.set(self._key(event_id), "1", ttl=self.ttl)
        except Exception as e:
            await log_warning(f"Redis недоступен, событие {event_id} не отмечено: {e}")
