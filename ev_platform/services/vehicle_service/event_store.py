# ev_platform/services/vehicle_service/event_store.py
"""
Журнал событий городов (vehicle.city_event_log).

Каждое событие сохраняется в той же транзакции, что и изменение города.
Неразосланные события остаются processed = FALSE и подхватываются
восстановлением, пока retry_count не достигнет предела.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

from asyncpg import Connection

from ev_platform.common.logger import log_warning
from ev_platform.infra.database import DatabaseManager
from ev_platform.services.vehicle_service.schemas import EventLogStatistics, StoredCityEvent
from ev_platform.shared.events.city_events import CityEvent

EVENT_COLUMNS = """
    event_id, event_type, city_id, event_sequence, event_data,
    processed, processed_at, retry_count, last_error, created_at, updated_at
"""


def _to_stored(record) -> StoredCityEvent:
    data = dict(record)
    # asyncpg без кодека отдаёт JSONB строкой
    if isinstance(data["event_data"], str):
        data["event_data"] = json.loads(data["event_data"])
    return StoredCityEvent(**data)


class EventStore:
    def __init__(self, db: DatabaseManager, max_retries: int = 3, retry_after_seconds: int = 300):
        self.db = db
        self.max_retries = max_retries
        self.retry_after_seconds = retry_after_seconds

    async def store_event(self, event: CityEvent, conn: Optional[Connection] = None) -> None:
        """Сохраняет событие. Повторная запись того же event_id игнорируется."""
        query = """
            INSERT INTO vehicle.city_event_log (event_id, event_type, city_id, event_sequence, event_data)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            ON CONFLICT (event_id) DO NOTHING
        """
        args = (event.event_id, event.type, event.city_id, event.event_sequence, event.to_json())
        if conn is not None:
            await conn.execute(query, *args)
        else:
            await self.db.execute(query, *args)

    async def get_failed_events(self, limit: int = 50) -> List[StoredCityEvent]:
        """
        Неразосланные события, старые первыми.

        Событие берётся, только если попыток меньше max_retries и с последней
        попытки прошло не меньше retry_after_seconds.
        """
        query = f"""
            SELECT {EVENT_COLUMNS}
            FROM vehicle.city_event_log
            WHERE processed = FALSE
              AND retry_count < $1
              AND updated_at < NOW() - make_interval(secs => $2)
            ORDER BY created_at ASC
            LIMIT $3
        """
        records = await self.db.fetch(query, self.max_retries, float(self.retry_after_seconds), limit)
        return [_to_stored(r) for r in records]

    async def mark_event_processed(self, event_id: str) -> None:
        await self.db.execute(
            """
            UPDATE vehicle.city_event_log
            SET processed = TRUE, processed_at = NOW(), last_error = NULL, updated_at = NOW()
            WHERE event_id = $1
            """,
            event_id,
        )

    async def increment_retry_count(self, event_id: str, error: Optional[str] = None) -> None:
        status = await self.db.execute(
            """
            UPDATE vehicle.city_event_log
            SET retry_count = retry_count + 1, last_error = $2, updated_at = NOW()
            WHERE event_id = $1
            """,
            event_id,
            error,
        )
        if status.endswith(" 0"):
            await log_warning(f"Событие {event_id} не найдено в журнале")

    async def get_city_events(self, city_id: str, from_sequence: int = 0) -> List[StoredCityEvent]:
        """История событий города начиная с номера последовательности."""
        query = f"""
            SELECT {EVENT_COLUMNS}
            FROM vehicle.city_event_log
            WHERE city_id = $1 AND event_sequence >= $2
            ORDER BY event_sequence ASC
        """
        records = await self.db.fetch(query, city_id, from_sequence)
        return [_to_stored(r) for r in records]

    async def get_statistics(self) -> EventLogStatistics:
        query = """
            SELECT
                COUNT(*) AS total_events,
                COUNT(*) FILTER (WHERE processed) AS processed_events,
                COUNT(*) FILTER (WHERE NOT processed) AS pending_events,
                COUNT(*) FILTER (WHERE NOT processed AND retry_count > 0) AS failed_events
            FROM vehicle.city_event_log
        """
        record: Any = await self.db.fetchrow(query)
        return EventLogStatistics(**dict(record)) if record else EventLogStatistics()
