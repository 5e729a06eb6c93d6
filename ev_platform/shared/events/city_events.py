# ev_platform/shared/events/city_events.py
"""
События жизненного цикла города.

Источник: vehicle-service (система учёта городов).
Подписчики: client-store-service и другие сервисы, держащие реплику городов.

Полезная нагрузка зависит от типа:
- city.created / city.updated: полный снимок города (CityEventData)
- city.deleted: только идентификация (CityDeletedData)
- city.activated / city.deactivated: идентификация и флаги (CityStatusData)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from ev_platform.shared.events.base import CamelModel, IntegrationEvent


class CityEventType(str, Enum):
    """Типы событий города."""
    CREATED = "city.created"
    UPDATED = "city.updated"
    DELETED = "city.deleted"
    ACTIVATED = "city.activated"
    DEACTIVATED = "city.deactivated"

    def __str__(self) -> str:
        return self.value


class SyncAction(str, Enum):
    """Итог обработки события подписчиком."""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    SKIPPED = "skipped"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# ПОЛЕЗНАЯ НАГРУЗКА
# =============================================================================

class CityEventData(CamelModel):
    """Полный снимок города на момент события."""
    id: str
    name: str
    display_name: str
    code: str
    state: str
    country: str = "India"
    timezone: str = "Asia/Kolkata"
    latitude: float
    longitude: float
    pin_code_range: str | None = None
    region_code: str | None = None
    is_active: bool = True
    is_operational: bool = False
    launch_date: datetime | None = None
    estimated_population: int | None = None
    market_potential: str | None = None
    version: int = 1
    last_modified_by: str | None = None
    event_sequence: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CityDeletedData(CamelModel):
    id: str
    name: str
    code: str
    version: int


class CityStatusData(CamelModel):
    id: str
    name: str
    code: str
    is_active: bool
    is_operational: bool
    version: int


class CityFieldChange(CamelModel):
    """Изменение одного поля (информационно, подписчик его не применяет)."""
    field: str
    old_value: Any = None
    new_value: Any = None


# =============================================================================
# СОБЫТИЯ
# =============================================================================

class CityEventBase(IntegrationEvent):
    city_id: str


class CityCreatedEvent(CityEventBase):
    type: Literal["city.created"] = "city.created"
    data: CityEventData


class CityUpdatedEvent(CityEventBase):
    type: Literal["city.updated"] = "city.updated"
    data: CityEventData
    changes: list[CityFieldChange] = Field(default_factory=list)


class CityDeletedEvent(CityEventBase):
    type: Literal["city.deleted"] = "city.deleted"
    data: CityDeletedData


class CityActivatedEvent(CityEventBase):
    type: Literal["city.activated"] = "city.activated"
    data: CityStatusData


class CityDeactivatedEvent(CityEventBase):
    type: Literal["city.deactivated"] = "city.deactivated"
    data: CityStatusData


CityEvent = Annotated[
    Union[
        CityCreatedEvent,
        CityUpdatedEvent,
        CityDeletedEvent,
        CityActivatedEvent,
        CityDeactivatedEvent,
    ],
    Field(discriminator="type"),
]

CityStatusEvent = Union[CityActivatedEvent, CityDeactivatedEvent]

_city_event_adapter: TypeAdapter[CityEvent] = TypeAdapter(CityEvent)


def parse_city_event(payload: dict[str, Any] | str | bytes) -> CityEvent:
    """
    Разбирает событие города по полю type.

    Raises:
        pydantic.ValidationError: неизвестный тип или нарушение схемы
    """
    if isinstance(payload, (str, bytes)):
        return _city_event_adapter.validate_json(payload)
    return _city_event_adapter.validate_python(payload)


# =============================================================================
# РЕЗУЛЬТАТЫ
# =============================================================================

class EventProcessResult(CamelModel):
    """Результат обработки события подписчиком."""
    success: bool
    action: SyncAction
    city_id: str
    event_id: str
    message: str | None = None
    error: str | None = None


class EventPublishResult(CamelModel):
    """Результат рассылки события подписчикам."""
    success: bool
    event_id: str
    published_to: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
