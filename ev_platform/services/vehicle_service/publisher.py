# ev_platform/services/vehicle_service/publisher.py
"""
Рассылка событий городов подписчикам.

Основной канал: HTTP POST {url}/internal/city-sync каждому активному подписчику,
параллельно. Дополнительно событие публикуется в RabbitMQ, если шина подключена.

Событие считается разосланным, если его принял хотя бы один подписчик.
Полностью доставленные события отмечаются в журнале как processed,
остальным увеличивается retry_count, и их подхватит восстановление.
"""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import uuid4

import httpx

from ev_platform.common.constants import (
    CITY_SYNC_PATH,
    HEADER_EVENT_ID,
    HEADER_EVENT_SOURCE,
    HEADER_EVENT_TYPE,
    VEHICLE_SERVICE_SOURCE,
    TypeMsg,
)
from ev_platform.common.logger import log_error, log_info, log_warning
from ev_platform.infra.event_bus import EventBus
from ev_platform.services.vehicle_service.event_store import EventStore
from ev_platform.services.vehicle_service.schemas import SubscriberDelivery
from ev_platform.shared.events.base import EventMetadata
from ev_platform.shared.events.city_events import (
    CityActivatedEvent,
    CityCreatedEvent,
    CityDeactivatedEvent,
    CityDeletedData,
    CityDeletedEvent,
    CityEvent,
    CityEventData,
    CityFieldChange,
    CityStatusData,
    CityStatusEvent,
    CityUpdatedEvent,
    EventPublishResult,
)
from ev_platform.shared.models.city_dto import CityRecord


def _metadata() -> EventMetadata:
    return EventMetadata(source=VEHICLE_SERVICE_SOURCE, correlation_id=str(uuid4()))


def _snapshot(city: CityRecord) -> CityEventData:
    return CityEventData.model_validate(city.model_dump())


class CityEventPublisher:
    def __init__(
        self,
        subscribers: dict[str, str],
        event_store: EventStore | None = None,
        event_bus: EventBus | None = None,
        timeout: float = 5.0,
        http: httpx.AsyncClient | None = None,
    ):
        self.subscribers = {name: url.rstrip("/") for name, url in subscribers.items()}
        self._disabled: set[str] = set()
        self.event_store = event_store
        self.event_bus = event_bus
        self.http = http or httpx.AsyncClient(timeout=timeout)

    # ===== ПОДПИСЧИКИ =====

    def active_subscribers(self) -> dict[str, str]:
        return {name: url for name, url in self.subscribers.items() if name not in self._disabled}

    def enable_subscriber(self, name: str) -> bool:
        if name not in self.subscribers:
            return False
        self._disabled.discard(name)
        return True

    def disable_subscriber(self, name: str) -> bool:
        if name not in self.subscribers:
            return False
        self._disabled.add(name)
        return True

    # ===== ФАБРИКИ СОБЫТИЙ =====
    # version и event_sequence берутся из уже обновлённой строки города

    def create_city_created_event(self, city: CityRecord, triggered_by: str | None = None) -> CityCreatedEvent:
        return CityCreatedEvent(
            city_id=city.id,
            event_sequence=city.event_sequence,
            version=city.version,
            triggered_by=triggered_by,
            metadata=_metadata(),
            data=_snapshot(city),
        )

    def create_city_updated_event(
        self,
        city: CityRecord,
        changes: list[CityFieldChange] | None = None,
        triggered_by: str | None = None,
        event_id: str | None = None,
    ) -> CityUpdatedEvent:
        extra: dict[str, Any] = {"event_id": event_id} if event_id else {}
        return CityUpdatedEvent(
            city_id=city.id,
            event_sequence=city.event_sequence,
            version=city.version,
            triggered_by=triggered_by,
            metadata=_metadata(),
            data=_snapshot(city),
            changes=changes or [],
            **extra,
        )

    def create_city_deleted_event(self, city: CityRecord, triggered_by: str | None = None) -> CityDeletedEvent:
        return CityDeletedEvent(
            city_id=city.id,
            event_sequence=city.event_sequence,
            version=city.version,
            triggered_by=triggered_by,
            metadata=_metadata(),
            data=CityDeletedData(id=city.id, name=city.name, code=city.code, version=city.version),
        )

    def create_city_status_event(
        self,
        city: CityRecord,
        activated: bool,
        triggered_by: str | None = None,
    ) -> CityStatusEvent:
        event_cls = CityActivatedEvent if activated else CityDeactivatedEvent
        return event_cls(
            city_id=city.id,
            event_sequence=city.event_sequence,
            version=city.version,
            triggered_by=triggered_by,
            metadata=_metadata(),
            data=CityStatusData(
                id=city.id,
                name=city.name,
                code=city.code,
                is_active=city.is_active,
                is_operational=city.is_operational,
                version=city.version,
            ),
        )

    # ===== ДОСТАВКА =====

    async def deliver(
        self,
        name: str,
        url: str,
        payload: dict[str, Any],
        event_id: str,
        event_type: str,
    ) -> SubscriberDelivery:
        """POST события одному подписчику. Успех только при 2xx."""
        headers = {
            HEADER_EVENT_SOURCE: VEHICLE_SERVICE_SOURCE,
            HEADER_EVENT_ID: event_id,
            HEADER_EVENT_TYPE: event_type,
        }
        try:
            response = await self.http.post(f"{url}{CITY_SYNC_PATH}", json=payload, headers=headers)
        except httpx.HTTPError as e:
            return SubscriberDelivery(service=name, success=False, error=f"{name}: {str(e) or type(e).__name__}")

        if response.is_success:
            return SubscriberDelivery(service=name, success=True)
        return SubscriberDelivery(service=name, success=False, error=f"{name}: HTTP {response.status_code}")

    async def publish_city_event(self, event: CityEvent) -> EventPublishResult:
        subscribers = self.active_subscribers()
        payload = event.model_dump(mode="json", by_alias=True, exclude_none=True)

        deliveries = await asyncio.gather(
            *(
                self.deliver(name, url, payload, event.event_id, event.type)
                for name, url in subscribers.items()
            )
        )
        published_to = [d.service for d in deliveries if d.success]
        errors = [d.error for d in deliveries if not d.success and d.error]

        if self.event_bus is not None and self.event_bus.is_connected:
            if not await self.event_bus.publish(event):
                await log_warning(f"Событие {event.event_id} не опубликовано в RabbitMQ")

        result = EventPublishResult(
            success=bool(published_to),
            event_id=event.event_id,
            published_to=published_to,
            errors=errors,
        )
        await self._record_outcome(result)

        if errors:
            await log_warning(
                f"Событие {event.type} ({event.event_id}) доставлено не всем: {'; '.join(errors)}"
            )
        else:
            await log_info(
                f"Событие {event.type} ({event.event_id}) доставлено: {', '.join(published_to) or '-'}",
                type_msg=TypeMsg.DEBUG,
            )
        return result

    async def _record_outcome(self, result: EventPublishResult) -> None:
        if self.event_store is None:
            return
        try:
            if result.published_to and not result.errors:
                await self.event_store.mark_event_processed(result.event_id)
            else:
                error = "; ".join(result.errors) or "No active subscribers"
                await self.event_store.increment_retry_count(result.event_id, error)
        except Exception as e:
            await log_error(f"Не удалось обновить журнал для события {result.event_id}: {e}")

    async def close(self) -> None:
        await self.http.aclose()
