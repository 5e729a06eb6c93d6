# ev_platform/services/vehicle_service/schemas.py
"""
Модели журнала событий и отчётов о синхронизации подписчиков.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from ev_platform.shared.events.base import CamelModel


class StoredCityEvent(CamelModel):
    """Строка журнала vehicle.city_event_log."""
    event_id: str
    event_type: str
    city_id: str
    event_sequence: int
    event_data: dict[str, Any]
    processed: bool = False
    processed_at: datetime | None = None
    retry_count: int = 0
    last_error: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EventLogStatistics(CamelModel):
    total_events: int = 0
    processed_events: int = 0
    pending_events: int = 0
    failed_events: int = 0


class SubscriberHealth(CamelModel):
    name: str
    url: str
    is_online: bool
    last_check: datetime


class SyncStatusReport(EventLogStatistics):
    """Статистика журнала и доступность подписчиков."""
    service_status: list[SubscriberHealth] = Field(default_factory=list)


class ServiceSyncResult(CamelModel):
    """Итог догоняющей синхронизации одного подписчика."""
    service: str
    success: bool
    synced_events: int = 0
    errors: list[str] = Field(default_factory=list)


class SubscriberDelivery(CamelModel):
    service: str
    success: bool
    error: str | None = None


class CityResyncResult(CamelModel):
    success: bool
    city_id: str
    event_id: str
    service_sync_results: list[SubscriberDelivery] = Field(default_factory=list)


class RetryReport(CamelModel):
    """Итог повторной рассылки событий из журнала."""
    total_failed: int = 0
    retried: int = 0
    succeeded: int = 0
    errors: list[str] = Field(default_factory=list)
