# ev_platform/services/vehicle_service/service.py
"""
Администрирование городов в системе учёта.

Каждая мутация в одной транзакции:
1. увеличивает version строки
2. берёт новый event_sequence из глобальной последовательности
3. сохраняет событие в журнал

После фиксации событие рассылается подписчикам. Сбой рассылки не отменяет
изменение: событие остаётся в журнале и будет разослано повторно.
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import uuid4

from pydantic.alias_generators import to_camel

from ev_platform.common.errors import NotFoundError, ValidationError
from ev_platform.common.logger import log_error, log_info
from ev_platform.infra.database import DatabaseManager
from ev_platform.services.vehicle_service.event_store import EventStore
from ev_platform.services.vehicle_service.publisher import CityEventPublisher
from ev_platform.services.vehicle_service.repository import CityRepository
from ev_platform.shared.events.city_events import CityEvent, CityFieldChange
from ev_platform.shared.models.city_dto import CityRecord, CreateCityRequest, UpdateCityRequest

CITY_EXISTS_MESSAGE = "City with this name or code already exists"


def _city_not_found() -> NotFoundError:
    return NotFoundError("City not found", code="CITY_NOT_FOUND")


def _diff(current: CityRecord, changes: dict[str, Any]) -> list[CityFieldChange]:
    """Изменения только тех полей, значение которых действительно меняется."""
    return [
        CityFieldChange(field=to_camel(name), old_value=getattr(current, name), new_value=value)
        for name, value in changes.items()
        if getattr(current, name) != value
    ]


class CityService:
    def __init__(
        self,
        db: DatabaseManager,
        repository: CityRepository,
        event_store: EventStore,
        publisher: CityEventPublisher,
    ):
        self.db = db
        self.repository = repository
        self.event_store = event_store
        self.publisher = publisher

    # ===== ЧТЕНИЕ =====

    async def get_city(self, city_id: str) -> CityRecord:
        city = await self.repository.get_by_id(city_id)
        if not city:
            raise _city_not_found()
        return city

    async def get_city_by_code(self, code: str) -> CityRecord:
        city = await self.repository.get_by_code(code)
        if not city:
            raise _city_not_found()
        return city

    async def list_cities(
        self,
        active: Optional[bool] = None,
        operational: Optional[bool] = None,
    ) -> list[CityRecord]:
        return await self.repository.list_cities(active, operational)

    # ===== МУТАЦИИ =====

    async def create_city(self, request: CreateCityRequest, user_id: str | None = None) -> CityRecord:
        fields = request.model_dump()
        fields["code"] = fields["code"].upper()

        async with self.db.transaction() as conn:
            if await self.repository.find_conflict(fields["name"], fields["code"], conn=conn):
                raise ValidationError(CITY_EXISTS_MESSAGE, code="CITY_EXISTS")

            sequence = await self.repository.next_event_sequence(conn)
            city = await self.repository.insert(str(uuid4()), fields, sequence, user_id, conn)
            event = self.publisher.create_city_created_event(city, triggered_by=user_id)
            await self.event_store.store_event(event, conn)

        await log_info(f"Город создан: {city.name} ({city.code}), id={city.id}")
        await self._publish(event)
        return city

    async def update_city(
        self,
        city_id: str,
        request: UpdateCityRequest,
        user_id: str | None = None,
    ) -> CityRecord:
        """
        Частичное обновление. Если ни одно поле не меняется, город
        возвращается как есть: версия не растёт, событие не создаётся.
        """
        changes = request.model_dump(exclude_unset=True)
        if changes.get("code"):
            changes["code"] = changes["code"].upper()

        async with self.db.transaction() as conn:
            current = await self.repository.get_for_update(city_id, conn)
            if not current:
                raise _city_not_found()

            if "name" in changes or "code" in changes:
                conflict = await self.repository.find_conflict(
                    changes.get("name"), changes.get("code"), exclude_id=city_id, conn=conn
                )
                if conflict:
                    raise ValidationError(CITY_EXISTS_MESSAGE, code="CITY_EXISTS")

            field_changes = _diff(current, changes)
            if not field_changes:
                return current

            changed = {name: value for name, value in changes.items() if getattr(current, name) != value}
            city = await self._bump(current, changed, user_id, conn)
            event = self.publisher.create_city_updated_event(city, field_changes, triggered_by=user_id)
            await self.event_store.store_event(event, conn)

        await log_info(f"Город {city.code} обновлён до версии {city.version}: {', '.join(c.field for c in field_changes)}")
        await self._publish(event)
        return city

    async def delete_city(self, city_id: str, user_id: str | None = None) -> CityRecord:
        """Мягкое удаление: строка остаётся, оба флага сбрасываются."""
        async with self.db.transaction() as conn:
            current = await self.repository.get_for_update(city_id, conn)
            if not current:
                raise _city_not_found()

            city = await self._bump(current, {"is_active": False, "is_operational": False}, user_id, conn)
            event = self.publisher.create_city_deleted_event(city, triggered_by=user_id)
            await self.event_store.store_event(event, conn)

        await log_info(f"Город {city.code} удалён (мягко)")
        await self._publish(event)
        return city

    async def set_city_status(self, city_id: str, activate: bool, user_id: str | None = None) -> CityRecord:
        """Активация/деактивация меняет только is_active."""
        async with self.db.transaction() as conn:
            current = await self.repository.get_for_update(city_id, conn)
            if not current:
                raise _city_not_found()

            city = await self._bump(current, {"is_active": activate}, user_id, conn)
            event = self.publisher.create_city_status_event(city, activated=activate, triggered_by=user_id)
            await self.event_store.store_event(event, conn)

        await log_info(f"Город {city.code} {'активирован' if activate else 'деактивирован'}")
        await self._publish(event)
        return city

    async def _bump(self, current: CityRecord, changes: dict[str, Any], user_id: str | None, conn) -> CityRecord:
        sequence = await self.repository.next_event_sequence(conn)
        city = await self.repository.update(current.id, changes, current.version + 1, sequence, user_id, conn)
        if not city:
            raise _city_not_found()
        return city

    async def _publish(self, event: CityEvent) -> None:
        try:
            await self.publisher.publish_city_event(event)
        except Exception as e:
            await log_error(f"Рассылка события {event.event_id} не удалась, оно останется в журнале: {e}", exc_info=True)
