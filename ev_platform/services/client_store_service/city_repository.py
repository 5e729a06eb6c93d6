from datetime import datetime
from typing import Optional, List

from ev_platform.infra.database import DatabaseManager
from ev_platform.shared.events.city_events import CityEventData
from ev_platform.shared.models.city_dto import (
    CityDetail,
    CityListItem,
    CityReplica,
    CitySyncStatistics,
    RecentSyncItem,
)

LIST_COLUMNS = """
    id, name, display_name, code, state, country,
    latitude, longitude, is_active, is_operational, timezone
"""

DETAIL_COLUMNS = LIST_COLUMNS + """,
    pin_code_range, region_code, launch_date, estimated_population,
    market_potential, created_at, updated_at
"""

REPLICA_COLUMNS = DETAIL_COLUMNS + """,
    version, last_modified_by, event_sequence, last_sync_at
"""


class CityReplicaRepository:
    """Локальная реплика городов (client_store.cities)."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    # ===== ЧТЕНИЕ ДЛЯ СИНХРОНИЗАЦИИ =====

    async def get_by_id(self, city_id: str) -> Optional[CityReplica]:
        """Строка реплики со служебными полями."""
        query = f"SELECT {REPLICA_COLUMNS} FROM client_store.cities WHERE id = $1"
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, city_id)
            if record:
                return CityReplica(**dict(record))
            return None

    async def list_all(self) -> List[CityReplica]:
        query = f"SELECT {REPLICA_COLUMNS} FROM client_store.cities ORDER BY name ASC"
        async with self.db.acquire() as conn:
            records = await conn.fetch(query)
            return [CityReplica(**dict(r)) for r in records]

    # ===== ЗАПИСЬ ИЗ СОБЫТИЙ =====

    async def insert_snapshot(self, data: CityEventData, synced_at: datetime) -> bool:
        """
        Вставляет снимок города как есть.
        False, если строка с таким id уже есть (в том числе при гонке двух доставок).
        """
        query = """
            INSERT INTO client_store.cities (
                id, name, display_name, code, state, country, timezone,
                latitude, longitude, pin_code_range, region_code,
                is_active, is_operational, launch_date, estimated_population,
                market_potential, version, last_modified_by, event_sequence,
                last_sync_at, created_at, updated_at
            )
            VALUES (
                $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14,
                $15, $16, $17, $18, $19, $20,
                COALESCE($21, NOW()), COALESCE($22, NOW())
            )
            ON CONFLICT (id) DO NOTHING
            RETURNING id
        """
        async with self.db.acquire() as conn:
            inserted = await conn.fetchval(
                query,
                data.id,
                data.name,
                data.display_name,
                data.code,
                data.state,
                data.country,
                data.timezone,
                data.latitude,
                data.longitude,
                data.pin_code_range,
                data.region_code,
                data.is_active,
                data.is_operational,
                data.launch_date,
                data.estimated_population,
                data.market_potential,
                data.version,
                data.last_modified_by,
                data.event_sequence,
                synced_at,
                data.created_at,
                data.updated_at,
            )
            return inserted is not None

    async def overwrite_snapshot(self, data: CityEventData, synced_at: datetime) -> bool:
        """Перезаписывает все зеркальные поля строки снимком."""
        query = """
            UPDATE client_store.cities SET
                name = $2,
                display_name = $3,
                code = $4,
                state = $5,
                country = $6,
                timezone = $7,
                latitude = $8,
                longitude = $9,
                pin_code_range = $10,
                region_code = $11,
                is_active = $12,
                is_operational = $13,
                launch_date = $14,
                estimated_population = $15,
                market_potential = $16,
                version = $17,
                last_modified_by = $18,
                event_sequence = $19,
                last_sync_at = $20,
                updated_at = COALESCE($21, NOW())
            WHERE id = $1
        """
        async with self.db.acquire() as conn:
            status = await conn.execute(
                query,
                data.id,
                data.name,
                data.display_name,
                data.code,
                data.state,
                data.country,
                data.timezone,
                data.latitude,
                data.longitude,
                data.pin_code_range,
                data.region_code,
                data.is_active,
                data.is_operational,
                data.launch_date,
                data.estimated_population,
                data.market_potential,
                data.version,
                data.last_modified_by,
                data.event_sequence,
                synced_at,
                data.updated_at,
            )
            return status.endswith(" 1")

    async def soft_delete(self, city_id: str, version: int, event_sequence: int, synced_at: datetime) -> bool:
        """Снимает оба флага, строку не удаляет."""
        query = """
            UPDATE client_store.cities SET
                is_active = FALSE,
                is_operational = FALSE,
                version = $2,
                event_sequence = $3,
                last_sync_at = $4,
                updated_at = NOW()
            WHERE id = $1
        """
        async with self.db.acquire() as conn:
            status = await conn.execute(query, city_id, version, event_sequence, synced_at)
            return status.endswith(" 1")

    async def set_active(
        self,
        city_id: str,
        is_active: bool,
        version: int,
        event_sequence: int,
        synced_at: datetime,
    ) -> bool:
        """Меняет только is_active; is_operational не трогается."""
        query = """
            UPDATE client_store.cities SET
                is_active = $2,
                version = $3,
                event_sequence = $4,
                last_sync_at = $5,
                updated_at = NOW()
            WHERE id = $1
        """
        async with self.db.acquire() as conn:
            status = await conn.execute(query, city_id, is_active, version, event_sequence, synced_at)
            return status.endswith(" 1")

    # ===== ПУБЛИЧНОЕ ЧТЕНИЕ =====

    async def list_cities(
        self,
        active: Optional[bool] = None,
        operational: Optional[bool] = None,
    ) -> List[CityListItem]:
        """Список с необязательными фильтрами: сначала работающие, затем активные, затем по имени."""
        conditions = []
        params: list = []
        if active is not None:
            params.append(active)
            conditions.append(f"is_active = ${len(params)}")
        if operational is not None:
            params.append(operational)
            conditions.append(f"is_operational = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"""
            SELECT {LIST_COLUMNS}
            FROM client_store.cities
            {where}
            ORDER BY is_operational DESC, is_active DESC, name ASC
        """
        async with self.db.acquire() as conn:
            records = await conn.fetch(query, *params)
            return [CityListItem(**dict(r)) for r in records]

    async def list_operational(self) -> List[CityListItem]:
        query = f"""
            SELECT {LIST_COLUMNS}
            FROM client_store.cities
            WHERE is_active = TRUE AND is_operational = TRUE
            ORDER BY name ASC
        """
        async with self.db.acquire() as conn:
            records = await conn.fetch(query)
            return [CityListItem(**dict(r)) for r in records]

    async def list_active(self) -> List[CityListItem]:
        query = f"""
            SELECT {LIST_COLUMNS}
            FROM client_store.cities
            WHERE is_active = TRUE
            ORDER BY is_operational DESC, name ASC
        """
        async with self.db.acquire() as conn:
            records = await conn.fetch(query)
            return [CityListItem(**dict(r)) for r in records]

    async def get_detail(self, city_id: str) -> Optional[CityDetail]:
        query = f"SELECT {DETAIL_COLUMNS} FROM client_store.cities WHERE id = $1"
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, city_id)
            return CityDetail(**dict(record)) if record else None

    async def get_detail_by_code(self, code: str) -> Optional[CityDetail]:
        """Поиск по коду без учёта регистра ввода (коды хранятся в верхнем регистре)."""
        query = f"SELECT {DETAIL_COLUMNS} FROM client_store.cities WHERE code = $1"
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, code.upper())
            return CityDetail(**dict(record)) if record else None

    # ===== СТАТИСТИКА =====

    async def get_statistics(self) -> CitySyncStatistics:
        query = """
            SELECT
                COUNT(*) AS total_cities,
                COUNT(*) FILTER (WHERE is_active) AS active_cities,
                COUNT(*) FILTER (WHERE is_operational) AS operational_cities,
                MAX(last_sync_at) AS last_sync_time
            FROM client_store.cities
        """
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query)
            return CitySyncStatistics(**dict(record))

    async def get_recent_syncs(self, limit: int = 10) -> List[RecentSyncItem]:
        query = """
            SELECT id, name, code, last_sync_at, version, event_sequence
            FROM client_store.cities
            WHERE last_sync_at IS NOT NULL
            ORDER BY last_sync_at DESC
            LIMIT $1
        """
        async with self.db.acquire() as conn:
            records = await conn.fetch(query, limit)
            return [RecentSyncItem(**dict(r)) for r in records]
