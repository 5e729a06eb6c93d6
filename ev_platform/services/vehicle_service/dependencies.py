# ev_platform/services/vehicle_service/dependencies.py
"""
Dependency Injection для vehicle-service.
"""

from __future__ import annotations

from ev_platform.config import settings
from ev_platform.infra.database import DatabaseManager
from ev_platform.infra.event_bus import EventBus
from ev_platform.services.vehicle_service.event_store import EventStore
from ev_platform.services.vehicle_service.publisher import CityEventPublisher
from ev_platform.services.vehicle_service.recovery import SyncRecoveryService
from ev_platform.services.vehicle_service.repository import CityRepository
from ev_platform.services.vehicle_service.service import CityService


# Синглтон процесса: HTTP-клиент и состояние включённых подписчиков
_publisher: CityEventPublisher | None = None


def _event_store(db: DatabaseManager) -> EventStore:
    return EventStore(
        db,
        max_retries=settings.city_sync.MAX_RETRIES,
        retry_after_seconds=settings.city_sync.RETRY_AFTER_SECONDS,
    )


async def init_dependencies(event_bus: EventBus | None = None) -> None:
    """Повторный вызов (режим "all": приложение и воркер в одном процессе) ничего не делает."""
    global _publisher
    if _publisher is not None:
        return
    _publisher = CityEventPublisher(
        subscribers=settings.city_sync.SUBSCRIBERS,
        event_store=_event_store(DatabaseManager()),
        event_bus=event_bus,
        timeout=settings.city_sync.PUBLISH_TIMEOUT,
    )


async def cleanup_dependencies() -> None:
    global _publisher
    if _publisher:
        await _publisher.close()
        _publisher = None


def get_database() -> DatabaseManager:
    return DatabaseManager()


def get_publisher() -> CityEventPublisher:
    if _publisher is None:
        raise RuntimeError("CityEventPublisher не инициализирован. Вызовите init_dependencies()")
    return _publisher


def get_city_service() -> CityService:
    db = get_database()
    return CityService(
        db=db,
        repository=CityRepository(db),
        event_store=_event_store(db),
        publisher=get_publisher(),
    )


def get_recovery_service() -> SyncRecoveryService:
    db = get_database()
    return SyncRecoveryService(
        event_store=_event_store(db),
        publisher=get_publisher(),
        repository=CityRepository(db),
        batch_size=settings.city_sync.FAILED_BATCH_SIZE,
        health_check_timeout=settings.city_sync.HEALTH_CHECK_TIMEOUT,
    )
