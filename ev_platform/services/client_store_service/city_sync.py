# ev_platform/services/client_store_service/city_sync.py
"""
Применение событий городов к локальной реплике.

Правила:
- created: вставка снимка, существующая строка -> skipped
- updated: перезапись снимком, отсутствующая строка создаётся (самовосстановление)
- deleted: мягкое удаление (оба флага false), строка сохраняется
- activated/deactivated: меняется только is_active

Событие, чья пара (version, eventSequence) не новее сохранённой, пропускается.
Исключение: updated с triggeredBy="sync-recovery" применяется всегда.
Обработчики никогда не бросают исключений: сбой возвращается как action="error",
и вызывающая сторона обязана проверить success.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import ValidationError

from ev_platform.common.constants import SYNC_RECOVERY_TRIGGER, TypeMsg
from ev_platform.common.logger import log_error, log_info
from ev_platform.services.client_store_service.city_repository import CityReplicaRepository
from ev_platform.services.client_store_service.event_dedup import ProcessedEventRegistry
from ev_platform.services.client_store_service.vehicle_client import (
    VehicleServiceClient,
    VehicleServiceError,
)
from ev_platform.shared.events.base import EventMetadata
from ev_platform.shared.events.city_events import (
    CityCreatedEvent,
    CityDeletedEvent,
    CityEvent,
    CityEventType,
    CityStatusEvent,
    CityUpdatedEvent,
    EventProcessResult,
    SyncAction,
    parse_city_event,
)
from ev_platform.shared.models.city_dto import (
    CityReplica,
    CitySyncStatistics,
    CitySyncStatus,
)

SERVICE_NAME = "client-store-service"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _result(
    event: CityEvent,
    action: SyncAction,
    message: str | None = None,
    error: str | None = None,
) -> EventProcessResult:
    return EventProcessResult(
        success=action != SyncAction.ERROR,
        action=action,
        city_id=event.city_id,
        event_id=event.event_id,
        message=message,
        error=error,
    )


def is_stale(event: CityEvent, stored: CityReplica) -> bool:
    """True, если реплика уже содержит это или более позднее состояние."""
    return (event.version, event.event_sequence) <= (stored.version, stored.event_sequence)


class CitySyncService:
    def __init__(
        self,
        repository: CityReplicaRepository,
        registry: ProcessedEventRegistry | None = None,
        vehicle_client: VehicleServiceClient | None = None,
    ):
        self.repository = repository
        self.registry = registry
        self.vehicle_client = vehicle_client

    # ===== ВХОДНАЯ ТОЧКА =====

    async def process_event(self, payload: dict[str, Any] | str | bytes) -> EventProcessResult:
        """Разбирает событие и применяет его. Никогда не бросает исключений."""
        try:
            event = parse_city_event(payload)
        except ValidationError as e:
            raw = payload if isinstance(payload, dict) else {}
            await log_error(f"Невалидное событие города: {e.error_count()} ошибок валидации")
            return EventProcessResult(
                success=False,
                action=SyncAction.ERROR,
                city_id=str(raw.get("cityId", "")),
                event_id=str(raw.get("eventId", "")),
                error=f"Invalid city event: {e}",
            )

        if self.registry and await self.registry.is_processed(event.event_id):
            return _result(event, SyncAction.SKIPPED, "Event already processed")

        result = await self.dispatch(event)

        if result.success and self.registry:
            await self.registry.mark_processed(event.event_id)

        await log_info(
            f"Событие {event.type} для города {event.city_id}: {result.action}",
            type_msg=TypeMsg.INFO if result.success else TypeMsg.ERROR,
            extra={"event_id": event.event_id, "action": str(result.action), "error": result.error},
        )
        return result

    async def dispatch(self, event: CityEvent) -> EventProcessResult:
        match event.type:
            case CityEventType.CREATED:
                return await self.handle_city_created(event)
            case CityEventType.UPDATED:
                forced = event.triggered_by == SYNC_RECOVERY_TRIGGER
                return await self.handle_city_updated(event, force=forced)
            case CityEventType.DELETED:
                return await self.handle_city_deleted(event)
            case _:
                return await self.handle_city_status_changed(event)

    # ===== ОБРАБОТЧИКИ =====

    async def handle_city_created(self, event: CityCreatedEvent) -> EventProcessResult:
        try:
            if await self.repository.get_by_id(event.data.id):
                return _result(event, SyncAction.SKIPPED, "City already exists")

            inserted = await self.repository.insert_snapshot(event.data, _now())
            if not inserted:
                # Параллельная доставка успела вставить строку
                return _result(event, SyncAction.SKIPPED, "City already exists")

            return _result(event, SyncAction.CREATED, "City created")
        except Exception as e:
            await log_error(f"Ошибка создания реплики города {event.city_id}: {e}", exc_info=True)
            return _result(event, SyncAction.ERROR, error=str(e))

    async def handle_city_updated(self, event: CityUpdatedEvent, force: bool = False) -> EventProcessResult:
        """
        Перезаписывает реплику снимком из события.

        Args:
            force: применить даже при совпадающей версии (ручная синхронизация
                и пересылка из vehicle-service)
        """
        try:
            stored = await self.repository.get_by_id(event.data.id)
            if stored is None:
                created_event = CityCreatedEvent.model_validate(
                    {**event.model_dump(exclude={"type", "changes"}), "type": CityEventType.CREATED.value}
                )
                return await self.handle_city_created(created_event)

            if not force and is_stale(event, stored):
                return _result(
                    event,
                    SyncAction.SKIPPED,
                    f"Stale event: version {event.version}/{event.event_sequence} "
                    f"<= stored {stored.version}/{stored.event_sequence}",
                )

            await self.repository.overwrite_snapshot(event.data, _now())
            return _result(event, SyncAction.UPDATED, "City updated")
        except Exception as e:
            await log_error(f"Ошибка обновления реплики города {event.city_id}: {e}", exc_info=True)
            return _result(event, SyncAction.ERROR, error=str(e))

    async def handle_city_deleted(self, event: CityDeletedEvent) -> EventProcessResult:
        try:
            stored = await self.repository.get_by_id(event.city_id)
            if stored is None:
                return _result(event, SyncAction.SKIPPED, "City not found")

            if is_stale(event, stored):
                return _result(event, SyncAction.SKIPPED, "Stale event")

            await self.repository.soft_delete(event.city_id, event.version, event.event_sequence, _now())
            return _result(event, SyncAction.DELETED, "City deactivated")
        except Exception as e:
            await log_error(f"Ошибка удаления реплики города {event.city_id}: {e}", exc_info=True)
            return _result(event, SyncAction.ERROR, error=str(e))

    async def handle_city_status_changed(self, event: CityStatusEvent) -> EventProcessResult:
        try:
            stored = await self.repository.get_by_id(event.city_id)
            if stored is None:
                return _result(event, SyncAction.SKIPPED, "City not found")

            if is_stale(event, stored):
                return _result(event, SyncAction.SKIPPED, "Stale event")

            is_active = event.type == CityEventType.ACTIVATED
            await self.repository.set_active(
                event.city_id, is_active, event.version, event.event_sequence, _now()
            )
            return _result(event, SyncAction.UPDATED, "City activated" if is_active else "City deactivated")
        except Exception as e:
            await log_error(f"Ошибка смены статуса реплики города {event.city_id}: {e}", exc_info=True)
            return _result(event, SyncAction.ERROR, error=str(e))

    # ===== СЛУЖЕБНЫЕ ОПЕРАЦИИ =====

    async def manual_sync_city(self, city_id: str) -> EventProcessResult:
        """Подтягивает текущее состояние города из vehicle-service и применяет его."""
        event_id = f"manual-{uuid4()}"
        if self.vehicle_client is None:
            return EventProcessResult(
                success=False,
                action=SyncAction.ERROR,
                city_id=city_id,
                event_id=event_id,
                error="Vehicle service client is not configured",
            )

        try:
            data = await self.vehicle_client.get_city(city_id)
        except VehicleServiceError as e:
            return EventProcessResult(
                success=False, action=SyncAction.ERROR, city_id=city_id, event_id=event_id, error=str(e)
            )

        if data is None:
            return EventProcessResult(
                success=True,
                action=SyncAction.SKIPPED,
                city_id=city_id,
                event_id=event_id,
                message="City not found in vehicle service",
            )

        event = CityUpdatedEvent(
            city_id=data.id,
            event_id=event_id,
            event_sequence=data.event_sequence,
            version=data.version,
            triggered_by="manual-sync",
            metadata=EventMetadata(source=SERVICE_NAME, correlation_id=str(uuid4())),
            data=data,
        )
        return await self.handle_city_updated(event, force=True)

    async def get_sync_status(self) -> CitySyncStatus:
        try:
            return CitySyncStatus(
                statistics=await self.repository.get_statistics(),
                recent_activity=await self.repository.get_recent_syncs(10),
                service_status="healthy",
            )
        except Exception as e:
            await log_error(f"Не удалось получить статус синхронизации: {e}")
            return CitySyncStatus(statistics=CitySyncStatistics(), service_status="error", error=str(e))

    async def get_all_cities(self) -> list[CityReplica]:
        return await self.repository.list_all()
