# ev_platform/shared/events/base.py
"""
Базовые классы интеграционных событий.

На проводе события передаются в camelCase JSON (eventId, cityId, ...),
в Python используются snake_case атрибуты.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Модель с camelCase-алиасами для внешнего JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_payload(self) -> dict:
        """Словарь для JSON-ответа: camelCase, без пустых полей."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EventMetadata(CamelModel):
    """Метаданные события для трассировки. Допускает произвольные дополнительные ключи."""

    model_config = ConfigDict(extra="allow")

    source: str = ""
    correlation_id: str | None = None


def new_event_id() -> str:
    return str(uuid4())


class IntegrationEvent(CamelModel):
    """
    Базовый класс событий, которыми обмениваются сервисы.

    Обработка должна быть идемпотентной по event_id.
    """

    type: str
    event_id: str = Field(default_factory=new_event_id)
    event_sequence: int = 0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1
    triggered_by: str | None = None
    metadata: EventMetadata = Field(default_factory=EventMetadata)

    @property
    def routing_key(self) -> str:
        """Ключ маршрутизации в RabbitMQ совпадает с типом события."""
        return self.type

    def to_json(self) -> str:
        """Сериализует событие в JSON (camelCase)."""
        return self.model_dump_json(by_alias=True, exclude_none=True)
