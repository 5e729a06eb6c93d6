# ev_platform/infra/__init__.py
"""
Инфраструктурный слой: PostgreSQL, Redis, RabbitMQ.
"""

from ev_platform.infra.database import DatabaseManager, get_db
from ev_platform.infra.redis_client import RedisClient, get_redis
from ev_platform.infra.event_bus import EventBus, get_event_bus

__all__ = [
    "DatabaseManager",
    "get_db",
    "RedisClient",
    "get_redis",
    "EventBus",
    "get_event_bus",
]
