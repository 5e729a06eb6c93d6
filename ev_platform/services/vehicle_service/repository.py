from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, List, Optional

from asyncpg import Connection

from ev_platform.infra.database import DatabaseManager
from ev_platform.shared.models.city_dto import CityRecord

CITY_COLUMNS = """
    id, name, display_name, code, state, country, timezone,
    latitude, longitude, pin_code_range, region_code,
    is_active, is_operational, launch_date, estimated_population, market_potential,
    version, last_modified_by, event_sequence, created_at, updated_at
"""

# Поля, которые администратор может менять через update_city
UPDATABLE_COLUMNS = (
    "name",
    "display_name",
    "code",
    "state",
    "country",
    "timezone",
    "latitude",
    "longitude",
    "pin_code_range",
    "region_code",
    "is_active",
    "is_operational",
    "launch_date",
    "estimated_population",
    "market_potential",
)


def _to_record(record) -> CityRecord:
    return CityRecord(**dict(record))


class CityRepository:
    """
    Города в системе учёта (vehicle.cities).

    Методы записи принимают соединение транзакции, чтобы изменение строки
    и запись в журнал событий фиксировались атомарно.
    """

    def __init__(self, db: DatabaseManager):
        self.db = db

    @asynccontextmanager
    async def _connection(self, conn: Optional[Connection]) -> AsyncGenerator[Connection, None]:
        if conn is not None:
            yield conn
        else:
            async with self.db.acquire() as acquired:
                yield acquired

    # ===== ЧТЕНИЕ =====

    async def get_by_id(self, city_id: str, conn: Optional[Connection] = None) -> Optional[CityRecord]:
        query = f"SELECT {CITY_COLUMNS} FROM vehicle.cities WHERE id = $1"
        async with self._connection(conn) as c:
            record = await c.fetchrow(query, city_id)
            return _to_record(record) if record else None

    async def get_for_update(self, city_id: str, conn: Connection) -> Optional[CityRecord]:
        """Строка с блокировкой до конца транзакции."""
        query = f"SELECT {CITY_COLUMNS} FROM vehicle.cities WHERE id = $1 FOR UPDATE"
        record = await conn.fetchrow(query, city_id)
        return _to_record(record) if record else None

    async def get_by_code(self, code: str) -> Optional[CityRecord]:
        query = f"SELECT {CITY_COLUMNS} FROM vehicle.cities WHERE code = $1"
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, code.upper())
            return _to_record(record) if record else None

    async def find_conflict(
        self,
        name: Optional[str],
        code: Optional[str],
        exclude_id: Optional[str] = None,
        conn: Optional[Connection] = None,
    ) -> Optional[CityRecord]:
        """Другой город с тем же именем (без учёта регистра) или кодом."""
        query = f"""
            SELECT {CITY_COLUMNS}
            FROM vehicle.cities
            WHERE (LOWER(name) = LOWER($1::text) OR code = $2::text)
              AND ($3::text IS NULL OR id <> $3)
            LIMIT 1
        """
        async with self._connection(conn) as c:
            record = await c.fetchrow(query, name, code.upper() if code else None, exclude_id)
            return _to_record(record) if record else None

    async def list_cities(
        self,
        active: Optional[bool] = None,
        operational: Optional[bool] = None,
    ) -> List[CityRecord]:
        conditions: list[str] = []
        params: list[Any] = []
        if active is not None:
            params.append(active)
            conditions.append(f"is_active = ${len(params)}")
        if operational is not None:
            params.append(operational)
            conditions.append(f"is_operational = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query = f"SELECT {CITY_COLUMNS} FROM vehicle.cities {where} ORDER BY name ASC"
        async with self.db.acquire() as conn:
            records = await conn.fetch(query, *params)
            return [_to_record(r) for r in records]

    # ===== ЗАПИСЬ =====

    async def next_event_sequence(self, conn: Connection) -> int:
        """Следующий номер из глобальной последовательности событий."""
        return int(await conn.fetchval("SELECT nextval('vehicle.city_event_seq')"))

    async def insert(self, city_id: str, fields: dict[str, Any], event_sequence: int, modified_by: Optional[str], conn: Connection) -> CityRecord:
        columns = ["id", *fields.keys(), "version", "last_modified_by", "event_sequence"]
        values = [city_id, *fields.values(), 1, modified_by, event_sequence]
        placeholders = ", ".join(f"${i}" for i in range(1, len(values) + 1))
        query = f"""
            INSERT INTO vehicle.cities ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING {CITY_COLUMNS}
        """
        return _to_record(await conn.fetchrow(query, *values))

    async def update(
        self,
        city_id: str,
        changes: dict[str, Any],
        version: int,
        event_sequence: int,
        modified_by: Optional[str],
        conn: Connection,
    ) -> Optional[CityRecord]:
        """Применяет изменения и служебные поля; неизвестные ключи игнорируются."""
        columns = [column for column in UPDATABLE_COLUMNS if column in changes]
        values = [changes[column] for column in columns]

        assignments = [f"{column} = ${index}" for index, column in enumerate(columns, start=2)]
        offset = len(columns) + 2
        assignments += [
            f"version = ${offset}",
            f"event_sequence = ${offset + 1}",
            f"last_modified_by = ${offset + 2}",
            "updated_at = NOW()",
        ]
        query = f"""
            UPDATE vehicle.cities
            SET {", ".join(assignments)}
            WHERE id = $1
            RETURNING {CITY_COLUMNS}
        """
        record = await conn.fetchrow(query, city_id, *values, version, event_sequence, modified_by)
        return _to_record(record) if record else None
