# ev_platform/services/client_store_service/consumer.py
"""
Потребитель событий городов из RabbitMQ.

Неуспешный результат обработки превращается в исключение: сообщение
отклоняется без повторной постановки и попадает в dead-letter очередь.
"""

from __future__ import annotations

from typing import Any, Callable

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import log_info
from ev_platform.infra.event_bus import EventBus
from ev_platform.services.client_store_service.city_sync import CitySyncService

CITY_EVENTS_ROUTING_KEY = "city.*"
CITY_EVENTS_QUEUE = "client_store.city_sync"


class CityEventProcessingError(Exception):
    """Событие города не удалось применить к реплике."""
    pass


class CityEventConsumer:
    def __init__(self, event_bus: EventBus, service_factory: Callable[[], CitySyncService]):
        self.event_bus = event_bus
        self.service_factory = service_factory

    async def start(self) -> None:
        await self.event_bus.subscribe(
            CITY_EVENTS_ROUTING_KEY,
            self.handle_message,
            queue_name=CITY_EVENTS_QUEUE,
            dead_letter=True,
        )
        await log_info(f"Подписка на {CITY_EVENTS_ROUTING_KEY} -> {CITY_EVENTS_QUEUE}", type_msg=TypeMsg.INFO)

    async def handle_message(self, payload: dict[str, Any]) -> None:
        result = await self.service_factory().process_event(payload)
        if not result.success:
            raise CityEventProcessingError(
                f"Событие {result.event_id} (город {result.city_id}) не применено: {result.error}"
            )
