# tests/services/test_city_sync_unit.py
"""
Тесты применения событий городов к реплике client-store-service.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from ev_platform.services.client_store_service.city_repository import CityReplicaRepository
from ev_platform.services.client_store_service.city_sync import CitySyncService
from ev_platform.services.client_store_service.event_dedup import ProcessedEventRegistry
from ev_platform.services.client_store_service.vehicle_client import VehicleServiceClient, VehicleServiceError
from ev_platform.shared.events.city_events import CityEventData, SyncAction
from ev_platform.shared.models.city_dto import CityReplica


class InMemoryReplica:
    """Реплика городов в памяти с тем же интерфейсом записи, что у репозитория."""

    def __init__(self) -> None:
        self.rows: dict[str, CityReplica] = {}

    async def get_by_id(self, city_id: str) -> Optional[CityReplica]:
        return self.rows.get(city_id)

    async def insert_snapshot(self, data: CityEventData, synced_at: datetime) -> bool:
        if data.id in self.rows:
            return False
        self.rows[data.id] = CityReplica(**data.model_dump(), last_sync_at=synced_at)
        return True

    async def overwrite_snapshot(self, data: CityEventData, synced_at: datetime) -> bool:
        self.rows[data.id] = CityReplica(**data.model_dump(), last_sync_at=synced_at)
        return True

    async def soft_delete(self, city_id, version, event_sequence, synced_at) -> bool:
        row = self.rows[city_id]
        self.rows[city_id] = row.model_copy(
            update={"is_active": False, "is_operational": False, "version": version, "event_sequence": event_sequence}
        )
        return True

    async def set_active(self, city_id, is_active, version, event_sequence, synced_at) -> bool:
        row = self.rows[city_id]
        self.rows[city_id] = row.model_copy(
            update={"is_active": is_active, "version": version, "event_sequence": event_sequence}
        )
        return True


@pytest.fixture
def replica() -> InMemoryReplica:
    return InMemoryReplica()


@pytest.fixture
def service(replica: InMemoryReplica) -> CitySyncService:
    return CitySyncService(repository=replica)


class TestCreated:
    """city.created"""

    @pytest.mark.asyncio
    async def test_creates_row(self, service, replica, make_city_event, city_id) -> None:
        result = await service.process_event(make_city_event("city.created"))

        assert result.success is True
        assert result.action == SyncAction.CREATED
        assert replica.rows[city_id].code == "BLR"
        assert replica.rows[city_id].last_sync_at is not None

    @pytest.mark.asyncio
    async def test_second_create_is_skipped(self, service, replica, make_city_event, city_id) -> None:
        """Повторная доставка не меняет строку."""
        await service.process_event(make_city_event("city.created"))
        before = replica.rows[city_id]

        result = await service.process_event(make_city_event("city.created", name="Renamed"))

        assert result.success is True
        assert result.action == SyncAction.SKIPPED
        assert replica.rows[city_id] == before

    @pytest.mark.asyncio
    async def test_insert_race_is_skipped(self, make_city_event) -> None:
        repository = MagicMock(spec=CityReplicaRepository)
        repository.get_by_id = AsyncMock(return_value=None)
        repository.insert_snapshot = AsyncMock(return_value=False)

        result = await CitySyncService(repository).process_event(make_city_event("city.created"))

        assert result.action == SyncAction.SKIPPED


class TestUpdated:
    """city.updated"""

    @pytest.mark.asyncio
    async def test_missing_row_is_created(self, service, replica, make_city_event, city_id) -> None:
        result = await service.process_event(make_city_event("city.updated", version=2, event_sequence=11))

        assert result.success is True
        assert result.action == SyncAction.CREATED
        assert replica.rows[city_id].version == 2

    @pytest.mark.asyncio
    async def test_newer_event_overwrites(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.created"))

        result = await service.process_event(
            make_city_event("city.updated", version=2, event_sequence=11, displayName="Bangalore")
        )

        assert result.action == SyncAction.UPDATED
        assert replica.rows[city_id].display_name == "Bangalore"
        assert replica.rows[city_id].version == 2

    @pytest.mark.asyncio
    async def test_stale_event_skipped(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.updated", version=3, event_sequence=20))

        result = await service.process_event(
            make_city_event("city.updated", version=2, event_sequence=15, displayName="Old")
        )

        assert result.success is True
        assert result.action == SyncAction.SKIPPED
        assert replica.rows[city_id].display_name == "Bengaluru"
        assert replica.rows[city_id].version == 3

    @pytest.mark.asyncio
    async def test_same_version_is_stale(self, service, replica, make_city_event) -> None:
        await service.process_event(make_city_event("city.updated", version=2, event_sequence=11))

        result = await service.process_event(
            make_city_event("city.updated", version=2, event_sequence=11, event_id="redelivered")
        )

        assert result.action == SyncAction.SKIPPED

    @pytest.mark.asyncio
    async def test_recovery_resend_repairs_drifted_row(self, service, replica, make_city_event, city_id) -> None:
        """Пересылка из vehicle-service применяется при совпадающей версии."""
        await service.process_event(make_city_event("city.updated", version=3, event_sequence=40))
        replica.rows[city_id] = replica.rows[city_id].model_copy(update={"name": "Locally edited"})

        payload = make_city_event("city.updated", version=3, event_sequence=40, event_id="manual-1")
        payload["triggeredBy"] = "sync-recovery"
        result = await service.process_event(payload)

        assert result.success is True
        assert result.action == SyncAction.UPDATED
        assert replica.rows[city_id].name == "Bengaluru"

    @pytest.mark.asyncio
    async def test_admin_update_at_same_version_still_stale(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.updated", version=3, event_sequence=40))
        replica.rows[city_id] = replica.rows[city_id].model_copy(update={"name": "Locally edited"})

        result = await service.process_event(
            make_city_event("city.updated", version=3, event_sequence=40, event_id="other")
        )

        assert result.action == SyncAction.SKIPPED
        assert replica.rows[city_id].name == "Locally edited"


class TestDeleted:
    """city.deleted"""

    @pytest.mark.asyncio
    async def test_row_kept_with_flags_cleared(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.created"))

        result = await service.process_event(make_city_event("city.deleted", version=2, event_sequence=11))

        assert result.action == SyncAction.DELETED
        row = replica.rows[city_id]
        assert row.is_active is False
        assert row.is_operational is False

    @pytest.mark.asyncio
    async def test_missing_row_skipped(self, service, make_city_event) -> None:
        result = await service.process_event(make_city_event("city.deleted", version=2))

        assert result.success is True
        assert result.action == SyncAction.SKIPPED

    @pytest.mark.asyncio
    async def test_stale_delete_leaves_row(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.updated", version=3, event_sequence=20))
        before = replica.rows[city_id]

        result = await service.process_event(make_city_event("city.deleted", version=2, event_sequence=15))

        assert result.success is True
        assert result.action == SyncAction.SKIPPED
        assert replica.rows[city_id] == before
        assert before.is_active is True


class TestStatusChanged:
    """city.activated / city.deactivated"""

    @pytest.mark.asyncio
    async def test_deactivate_keeps_operational(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.created"))

        result = await service.process_event(make_city_event("city.deactivated", version=2, event_sequence=11))

        assert result.action == SyncAction.UPDATED
        assert replica.rows[city_id].is_active is False
        assert replica.rows[city_id].is_operational is True

    @pytest.mark.asyncio
    async def test_activate_keeps_operational_false(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.created", isActive=False, isOperational=False))

        result = await service.process_event(
            make_city_event("city.activated", version=2, event_sequence=11, isOperational=True)
        )

        assert result.message == "City activated"
        assert replica.rows[city_id].is_active is True
        assert replica.rows[city_id].is_operational is False

    @pytest.mark.asyncio
    async def test_stale_activate_leaves_row(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.updated", version=3, event_sequence=20))
        await service.process_event(make_city_event("city.deactivated", version=4, event_sequence=21))

        result = await service.process_event(make_city_event("city.activated", version=2, event_sequence=15))

        assert result.success is True
        assert result.action == SyncAction.SKIPPED
        assert replica.rows[city_id].is_active is False
        assert replica.rows[city_id].version == 4

    @pytest.mark.asyncio
    async def test_stale_deactivate_leaves_row(self, service, replica, make_city_event, city_id) -> None:
        await service.process_event(make_city_event("city.updated", version=3, event_sequence=20))

        result = await service.process_event(make_city_event("city.deactivated", version=3, event_sequence=20))

        assert result.action == SyncAction.SKIPPED
        assert replica.rows[city_id].is_active is True


class TestProcessEvent:
    """Общие свойства process_event."""

    @pytest.mark.asyncio
    async def test_unknown_type_is_error(self, service, make_city_event) -> None:
        payload = make_city_event("city.created")
        payload["type"] = "city.merged"

        result = await service.process_event(payload)

        assert result.success is False
        assert result.action == SyncAction.ERROR
        assert result.event_id == payload["eventId"]

    @pytest.mark.asyncio
    async def test_repository_failure_is_error(self, make_city_event) -> None:
        repository = MagicMock(spec=CityReplicaRepository)
        repository.get_by_id = AsyncMock(side_effect=RuntimeError("connection lost"))

        result = await CitySyncService(repository).process_event(make_city_event("city.updated"))

        assert result.success is False
        assert result.error == "connection lost"

    @pytest.mark.asyncio
    async def test_remembered_event_skipped_without_db(self, make_city_event) -> None:
        repository = MagicMock(spec=CityReplicaRepository)
        repository.get_by_id = AsyncMock()
        registry = MagicMock(spec=ProcessedEventRegistry)
        registry.is_processed = AsyncMock(return_value=True)

        result = await CitySyncService(repository, registry=registry).process_event(make_city_event("city.created"))

        assert result.action == SyncAction.SKIPPED
        repository.get_by_id.assert_not_called()

    @pytest.mark.asyncio
    async def test_success_marks_event(self, replica, make_city_event) -> None:
        registry = MagicMock(spec=ProcessedEventRegistry)
        registry.is_processed = AsyncMock(return_value=False)
        registry.mark_processed = AsyncMock()
        payload = make_city_event("city.created")

        await CitySyncService(replica, registry=registry).process_event(payload)

        registry.mark_processed.assert_awaited_once_with(payload["eventId"])

    @pytest.mark.asyncio
    async def test_failure_not_marked(self, make_city_event) -> None:
        repository = MagicMock(spec=CityReplicaRepository)
        repository.get_by_id = AsyncMock(side_effect=RuntimeError("boom"))
        registry = MagicMock(spec=ProcessedEventRegistry)
        registry.is_processed = AsyncMock(return_value=False)
        registry.mark_processed = AsyncMock()

        await CitySyncService(repository, registry=registry).process_event(make_city_event("city.created"))

        registry.mark_processed.assert_not_called()


class TestManualSync:
    """Ручная синхронизация из vehicle-service."""

    @pytest.mark.asyncio
    async def test_applies_current_state_even_if_same_version(
        self, service, replica, make_city_event, city_snapshot, city_id
    ) -> None:
        await service.process_event(make_city_event("city.created"))
        replica.rows[city_id] = replica.rows[city_id].model_copy(update={"display_name": "Drifted"})

        client = MagicMock(spec=VehicleServiceClient)
        client.get_city = AsyncMock(return_value=CityEventData.model_validate(city_snapshot))
        service.vehicle_client = client

        result = await service.manual_sync_city(city_id)

        assert result.action == SyncAction.UPDATED
        assert result.event_id.startswith("manual-")
        assert replica.rows[city_id].display_name == "Bengaluru"

    @pytest.mark.asyncio
    async def test_city_missing_upstream(self, service, city_id) -> None:
        client = MagicMock(spec=VehicleServiceClient)
        client.get_city = AsyncMock(return_value=None)
        service.vehicle_client = client

        result = await service.manual_sync_city(city_id)

        assert result.success is True
        assert result.action == SyncAction.SKIPPED

    @pytest.mark.asyncio
    async def test_upstream_unavailable(self, service, city_id) -> None:
        client = MagicMock(spec=VehicleServiceClient)
        client.get_city = AsyncMock(side_effect=VehicleServiceError("connection refused"))
        service.vehicle_client = client

        result = await service.manual_sync_city(city_id)

        assert result.success is False
        assert result.action == SyncAction.ERROR


class TestEventRegistry:
    """Учёт обработанных событий в Redis."""

    @pytest.mark.asyncio
    async def test_redis_failure_treated_as_not_processed(self, mock_redis) -> None:
        mock_redis.exists = AsyncMock(side_effect=ConnectionError("redis down"))
        registry = ProcessedEventRegistry(mock_redis)

        assert await registry.is_processed("e-1") is False

    @pytest.mark.asyncio
    async def test_mark_processed_uses_ttl(self, mock_redis) -> None:
        registry = ProcessedEventRegistry(mock_redis, ttl=60)

        await registry.mark_processed("e-1")

        mock_redis.set.assert_awaited_once_with("city_sync:processed:e-1", "1", ttl=60)


class TestReplicaRepositorySql:
    """SQL записи реплики."""

    @pytest.mark.asyncio
    async def test_soft_delete_clears_both_flags(self, mock_db, mock_conn) -> None:
        await CityReplicaRepository(mock_db).soft_delete("c-1", 2, 11, datetime(2024, 1, 1))

        query = mock_conn.execute.await_args.args[0]
        assert "is_active = FALSE" in query
        assert "is_operational = FALSE" in query
        assert "DELETE" not in query

    @pytest.mark.asyncio
    async def test_set_active_leaves_operational(self, mock_db, mock_conn) -> None:
        await CityReplicaRepository(mock_db).set_active("c-1", True, 2, 11, datetime(2024, 1, 1))

        assert "is_operational" not in mock_conn.execute.await_args.args[0]
