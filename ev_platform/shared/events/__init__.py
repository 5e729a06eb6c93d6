# ev_platform/shared/events/__init__.py
"""
Схемы интеграционных событий.

Все события идемпотентны и содержат eventId для дедупликации.
"""

from ev_platform.shared.events.base import CamelModel, EventMetadata, IntegrationEvent
from ev_platform.shared.events.city_events import (
    CityActivatedEvent,
    CityCreatedEvent,
    CityDeactivatedEvent,
    CityDeletedEvent,
    CityEvent,
    CityEventData,
    CityEventType,
    CityUpdatedEvent,
    EventProcessResult,
    EventPublishResult,
    SyncAction,
    parse_city_event,
)

__all__ = [
    "CamelModel",
    "EventMetadata",
    "IntegrationEvent",
    "CityActivatedEvent",
    "CityCreatedEvent",
    "CityDeactivatedEvent",
    "CityDeletedEvent",
    "CityEvent",
    "CityEventData",
    "CityEventType",
    "CityUpdatedEvent",
    "EventProcessResult",
    "EventPublishResult",
    "SyncAction",
    "parse_city_event",
]
