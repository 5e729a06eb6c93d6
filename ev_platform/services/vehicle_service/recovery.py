# ev_platform/services/vehicle_service/recovery.py
"""
Восстановление синхронизации: повторная рассылка из журнала событий,
догоняющая синхронизация одного подписчика и принудительная пересылка города.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from uuid import uuid4

import httpx

from ev_platform.common.constants import SYNC_RECOVERY_TRIGGER, TypeMsg
from ev_platform.common.errors import NotFoundError
from ev_platform.common.logger import log_error, log_info, log_warning
from ev_platform.services.vehicle_service.event_store import EventStore
from ev_platform.services.vehicle_service.publisher import CityEventPublisher
from ev_platform.services.vehicle_service.repository import CityRepository
from ev_platform.services.vehicle_service.schemas import (
    CityResyncResult,
    RetryReport,
    ServiceSyncResult,
    StoredCityEvent,
    SubscriberHealth,
    SyncStatusReport,
)


class SyncRecoveryService:
    def __init__(
        self,
        event_store: EventStore,
        publisher: CityEventPublisher,
        repository: CityRepository,
        batch_size: int = 50,
        health_check_timeout: float = 3.0,
    ):
        self.event_store = event_store
        self.publisher = publisher
        self.repository = repository
        self.batch_size = batch_size
        self.health_check_timeout = health_check_timeout

    async def _redeliver(self, event: StoredCityEvent, subscribers: dict[str, str]) -> list[str]:
        """Пересылает сохранённое событие; возвращает ошибки доставки."""
        deliveries = await asyncio.gather(
            *(
                self.publisher.deliver(name, url, event.event_data, event.event_id, event.event_type)
                for name, url in subscribers.items()
            )
        )
        return [d.error or d.service for d in deliveries if not d.success]

    async def _record(self, event: StoredCityEvent, errors: list[str]) -> None:
        if errors:
            await self.event_store.increment_retry_count(event.event_id, "; ".join(errors))
        else:
            await self.event_store.mark_event_processed(event.event_id)

    async def retry_failed_events(self) -> RetryReport:
        """Повторно рассылает неразосланные события всем активным подписчикам."""
        events = await self.event_store.get_failed_events(self.batch_size)
        report = RetryReport(total_failed=len(events))
        if not events:
            return report

        subscribers = self.publisher.active_subscribers()
        if not subscribers:
            await log_warning("Нет активных подписчиков, повторная рассылка пропущена")
            return report

        for event in events:
            report.retried += 1
            errors = await self._redeliver(event, subscribers)
            await self._record(event, errors)
            if errors:
                report.errors.append(f"Event {event.event_id}: {'; '.join(errors)}")
            else:
                report.succeeded += 1

        await log_info(
            f"Повторная рассылка: {report.succeeded}/{report.retried} событий доставлено",
            type_msg=TypeMsg.INFO,
        )
        return report

    async def sync_service_from_event_log(self, service_name: str) -> ServiceSyncResult:
        """Догоняющая синхронизация подписчика, вернувшегося после простоя."""
        url = self.publisher.subscribers.get(service_name)
        if url is None:
            raise NotFoundError(f"Unknown service: {service_name}", code="UNKNOWN_SERVICE")

        await log_info(f"Синхронизация {service_name} из журнала событий")
        events = await self.event_store.get_failed_events(self.batch_size)
        result = ServiceSyncResult(service=service_name, success=True)

        for event in events:
            errors = await self._redeliver(event, {service_name: url})
            await self._record(event, errors)
            if errors:
                result.errors.append(f"Event {event.event_id}: {'; '.join(errors)}")
            else:
                result.synced_events += 1

        result.success = not result.errors
        await log_info(
            f"Синхронизация {service_name} завершена: {result.synced_events} событий, "
            f"{len(result.errors)} ошибок"
        )
        return result

    async def _check_subscriber(self, name: str, url: str) -> SubscriberHealth:
        try:
            response = await self.publisher.http.get(f"{url}/health", timeout=self.health_check_timeout)
            online = response.is_success
        except httpx.HTTPError:
            online = False
        return SubscriberHealth(name=name, url=url, is_online=online, last_check=datetime.now(timezone.utc))

    async def get_city_events(self, city_id: str, from_sequence: int = 0) -> list[StoredCityEvent]:
        """Журнал событий города для сверки реплики подписчика."""
        return await self.event_store.get_city_events(city_id, from_sequence)

    async def get_sync_status(self) -> SyncStatusReport:
        statistics = await self.event_store.get_statistics()
        health = await asyncio.gather(
            *(self._check_subscriber(name, url) for name, url in self.publisher.subscribers.items())
        )
        return SyncStatusReport(**statistics.model_dump(), service_status=list(health))

    async def resync_city(self, city_id: str) -> CityResyncResult:
        """
        Пересылает текущее состояние города всем активным подписчикам
        как событие updated с идентификатором manual-*.
        В журнал событие не пишется.
        """
        city = await self.repository.get_by_id(city_id)
        if not city:
            raise NotFoundError("City not found", code="CITY_NOT_FOUND")

        event = self.publisher.create_city_updated_event(
            city,
            triggered_by=SYNC_RECOVERY_TRIGGER,
            event_id=f"manual-{uuid4()}",
        )
        payload = event.model_dump(mode="json", by_alias=True, exclude_none=True)
        deliveries = await asyncio.gather(
            *(
                self.publisher.deliver(name, url, payload, event.event_id, event.type)
                for name, url in self.publisher.active_subscribers().items()
            )
        )
        failed = [d for d in deliveries if not d.success]
        if failed:
            await log_error(f"Пересылка города {city_id} не удалась для: {', '.join(d.service for d in failed)}")
        return CityResyncResult(
            success=bool(deliveries) and not failed,
            city_id=city_id,
            event_id=event.event_id,
            service_sync_results=list(deliveries),
        )
