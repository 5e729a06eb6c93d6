# ev_platform/shared/models/city_dto.py
"""
DTO городов: проекции публичного API, строки реплики и запросы администрирования.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from ev_platform.shared.events.base import CamelModel


class CityListItem(CamelModel):
    """Краткая проекция города для списков."""
    id: str
    name: str
    display_name: str
    code: str
    state: str
    country: str
    latitude: float
    longitude: float
    is_active: bool
    is_operational: bool
    timezone: str


class CityDetail(CityListItem):
    """Детальная проекция города."""
    pin_code_range: str | None = None
    region_code: str | None = None
    launch_date: datetime | None = None
    estimated_population: int | None = None
    market_potential: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CityRecord(CityDetail):
    """Город вместе со служебными полями версионирования."""
    version: int = 1
    last_modified_by: str | None = None
    event_sequence: int = 0


class CityReplica(CityRecord):
    """Строка локальной реплики города у подписчика."""
    last_sync_at: datetime | None = None


class CreateCityRequest(CamelModel):
    """Создание города в системе учёта."""
    name: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    code: str = Field(min_length=1, max_length=10)
    state: str = Field(min_length=1)
    country: str = "India"
    timezone: str = "Asia/Kolkata"
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    pin_code_range: str | None = None
    region_code: str | None = None
    is_active: bool = True
    is_operational: bool = False
    launch_date: datetime | None = None
    estimated_population: int | None = Field(default=None, ge=0)
    market_potential: str | None = None


class UpdateCityRequest(CamelModel):
    """Частичное обновление города: передаются только изменяемые поля."""
    name: str | None = Field(default=None, min_length=1)
    display_name: str | None = None
    code: str | None = Field(default=None, min_length=1, max_length=10)
    state: str | None = None
    country: str | None = None
    timezone: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    pin_code_range: str | None = None
    region_code: str | None = None
    is_active: bool | None = None
    is_operational: bool | None = None
    launch_date: datetime | None = None
    estimated_population: int | None = Field(default=None, ge=0)
    market_potential: str | None = None

    @field_validator(
        "name", "display_name", "code", "state", "country", "timezone",
        "latitude", "longitude", "is_active", "is_operational",
    )
    @classmethod
    def reject_null(cls, v, info):
        """Колонки NOT NULL: поле можно не передавать, но не null."""
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class CitySyncStatistics(CamelModel):
    total_cities: int = 0
    active_cities: int = 0
    operational_cities: int = 0
    last_sync_time: datetime | None = None


class RecentSyncItem(CamelModel):
    id: str
    name: str
    code: str
    last_sync_at: datetime | None = None
    version: int
    event_sequence: int


class CitySyncStatus(CamelModel):
    """Отчёт подписчика о состоянии реплики."""
    statistics: CitySyncStatistics
    recent_activity: list[RecentSyncItem] = Field(default_factory=list)
    service_status: str = "healthy"
    error: str | None = None
