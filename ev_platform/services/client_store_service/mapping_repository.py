from typing import Any, Optional, List, Tuple

import asyncpg

from ev_platform.common.errors import ConflictError
from ev_platform.infra.database import DatabaseManager
from ev_platform.shared.models.common import PaginationParams
from ev_platform.shared.models.enums import VerificationStatus
from ev_platform.shared.models.mapping_dto import ClientRiderMappingDTO, MappingFilters

# Уникальные ограничения таблицы -> код конфликта API
CLIENT_RIDER_ID_CONSTRAINT = "client_rider_mappings_client_rider_id_key"
CLIENT_PLATFORM_CONSTRAINT = "client_rider_mappings_client_platform_key"

DUPLICATE_CLIENT_RIDER_ID = "DUPLICATE_CLIENT_RIDER_ID"
DUPLICATE_PLATFORM_RIDER = "DUPLICATE_PLATFORM_RIDER"

MAPPING_COLUMNS = """
    m.id, m.client_id, m.platform_rider_id, m.public_rider_id, m.client_rider_id,
    m.assigned_by, m.assigned_by_name, m.notes, m.source, m.priority,
    m.verification_status, m.verified_by, m.verified_at, m.is_active,
    m.deactivation_reason, m.deactivation_date, m.created_at, m.updated_at,
    c.name AS client_name, c.client_code
"""

SORT_COLUMNS = {
    "createdAt": "m.created_at",
    "updatedAt": "m.updated_at",
    "clientRiderId": "m.client_rider_id",
    "platformRiderId": "m.platform_rider_id",
    "verificationStatus": "m.verification_status",
    "priority": "m.priority",
}

UPDATABLE_COLUMNS = (
    "client_rider_id",
    "assigned_by",
    "assigned_by_name",
    "notes",
    "source",
    "priority",
    "verification_status",
    "is_active",
)


def _to_dto(record: asyncpg.Record) -> ClientRiderMappingDTO:
    return ClientRiderMappingDTO(**dict(record))


def translate_unique_violation(e: asyncpg.UniqueViolationError) -> ConflictError:
    """Нарушение уникальности при записи -> ConflictError с кодом API."""
    constraint = getattr(e, "constraint_name", None)
    if constraint == CLIENT_RIDER_ID_CONSTRAINT:
        return ConflictError(
            "Client rider ID is already in use by another mapping",
            code=DUPLICATE_CLIENT_RIDER_ID,
        )
    if constraint == CLIENT_PLATFORM_CONSTRAINT:
        return ConflictError(
            "This rider is already mapped to the client",
            code=DUPLICATE_PLATFORM_RIDER,
        )
    return ConflictError(str(e), code="DUPLICATE_ENTRY")


class ClientRiderMappingRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    # ===== ЧТЕНИЕ =====

    async def get_by_id(self, mapping_id: str) -> Optional[ClientRiderMappingDTO]:
        query = f"""
            SELECT {MAPPING_COLUMNS}
            FROM client_store.client_rider_mappings m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
            WHERE m.id = $1
        """
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, mapping_id)
            return _to_dto(record) if record else None

    async def find_by_client_rider_id(
        self,
        client_rider_id: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[ClientRiderMappingDTO]:
        """Сопоставление с таким clientRiderId у любого клиента (активное или нет)."""
        query = f"""
            SELECT {MAPPING_COLUMNS}
            FROM client_store.client_rider_mappings m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
            WHERE m.client_rider_id = $1 AND ($2::text IS NULL OR m.id <> $2)
            LIMIT 1
        """
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, client_rider_id, exclude_id)
            return _to_dto(record) if record else None

    async def find_by_client_and_rider(
        self,
        client_id: str,
        platform_rider_id: str,
    ) -> Optional[ClientRiderMappingDTO]:
        query = f"""
            SELECT {MAPPING_COLUMNS}
            FROM client_store.client_rider_mappings m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
            WHERE m.client_id = $1 AND m.platform_rider_id = $2
        """
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, client_id, platform_rider_id)
            return _to_dto(record) if record else None

    async def find_active_by_client_rider(
        self,
        client_id: str,
        client_rider_id: str,
    ) -> Optional[ClientRiderMappingDTO]:
        query = f"""
            SELECT {MAPPING_COLUMNS}
            FROM client_store.client_rider_mappings m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
            WHERE m.client_id = $1 AND m.client_rider_id = $2 AND m.is_active = TRUE
        """
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, client_id, client_rider_id)
            return _to_dto(record) if record else None

    async def list_page(
        self,
        filters: MappingFilters,
        pagination: PaginationParams,
    ) -> Tuple[List[ClientRiderMappingDTO], int]:
        """Страница сопоставлений и общее число подходящих записей."""
        conditions: list[str] = []
        params: list[Any] = []

        if filters.client_id:
            params.append(filters.client_id)
            conditions.append(f"m.client_id = ${len(params)}")
        if filters.platform_rider_id:
            params.append(filters.platform_rider_id)
            conditions.append(f"m.platform_rider_id = ${len(params)}")
        if filters.client_rider_id:
            params.append(filters.client_rider_id)
            conditions.append(f"m.client_rider_id ILIKE '%' || ${len(params)} || '%'")
        if filters.is_active is not None:
            params.append(filters.is_active)
            conditions.append(f"m.is_active = ${len(params)}")
        if filters.verification_status is not None:
            params.append(filters.verification_status.value)
            conditions.append(f"m.verification_status = ${len(params)}")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        order_column = SORT_COLUMNS.get(filters.sort_by, "m.created_at")
        order_direction = "ASC" if filters.sort_order.value == "asc" else "DESC"

        count_query = f"SELECT COUNT(*) FROM client_store.client_rider_mappings m {where}"
        page_query = f"""
            SELECT {MAPPING_COLUMNS}
            FROM client_store.client_rider_mappings m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
            {where}
            ORDER BY {order_column} {order_direction}
            LIMIT ${len(params) + 1} OFFSET ${len(params) + 2}
        """
        async with self.db.acquire() as conn:
            total = await conn.fetchval(count_query, *params)
            records = await conn.fetch(page_query, *params, pagination.limit, pagination.offset)
            return [_to_dto(r) for r in records], total

    async def list_by_rider(self, platform_rider_id: str, include_inactive: bool = False) -> List[ClientRiderMappingDTO]:
        query = f"""
            SELECT {MAPPING_COLUMNS}
            FROM client_store.client_rider_mappings m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
            WHERE m.platform_rider_id = $1 AND ($2 OR m.is_active = TRUE)
            ORDER BY m.created_at DESC
        """
        async with self.db.acquire() as conn:
            records = await conn.fetch(query, platform_rider_id, include_inactive)
            return [_to_dto(r) for r in records]

    async def list_by_client(self, client_id: str, include_inactive: bool = False) -> List[ClientRiderMappingDTO]:
        query = f"""
            SELECT {MAPPING_COLUMNS}
            FROM client_store.client_rider_mappings m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
            WHERE m.client_id = $1 AND ($2 OR m.is_active = TRUE)
            ORDER BY m.created_at DESC
        """
        async with self.db.acquire() as conn:
            records = await conn.fetch(query, client_id, include_inactive)
            return [_to_dto(r) for r in records]

    # ===== ЗАПИСЬ =====

    async def create(
        self,
        client_id: str,
        platform_rider_id: str,
        client_rider_id: str,
        public_rider_id: Optional[str] = None,
        assigned_by: Optional[str] = None,
        assigned_by_name: Optional[str] = None,
        notes: Optional[str] = None,
        source: str = "manual",
        priority: str = "standard",
        verification_status: VerificationStatus = VerificationStatus.PENDING,
    ) -> ClientRiderMappingDTO:
        """
        Вставляет сопоставление.

        Raises:
            ConflictError: нарушено одно из уникальных ограничений
        """
        query = f"""
            WITH m AS (
                INSERT INTO client_store.client_rider_mappings (
                    client_id, platform_rider_id, public_rider_id, client_rider_id,
                    assigned_by, assigned_by_name, notes, source, priority, verification_status
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                RETURNING *
            )
            SELECT {MAPPING_COLUMNS}
            FROM m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
        """
        try:
            async with self.db.acquire() as conn:
                record = await conn.fetchrow(
                    query,
                    client_id,
                    platform_rider_id,
                    public_rider_id,
                    client_rider_id,
                    assigned_by,
                    assigned_by_name,
                    notes,
                    source,
                    priority,
                    verification_status.value,
                )
        except asyncpg.UniqueViolationError as e:
            raise translate_unique_violation(e) from e
        return _to_dto(record)

    async def _update_returning(self, mapping_id: str, set_clause: str, *values: Any) -> Optional[ClientRiderMappingDTO]:
        query = f"""
            WITH m AS (
                UPDATE client_store.client_rider_mappings
                SET {set_clause}, updated_at = NOW()
                WHERE id = $1
                RETURNING *
            )
            SELECT {MAPPING_COLUMNS}
            FROM m
            LEFT JOIN client_store.clients c ON c.id = m.client_id
        """
        try:
            async with self.db.acquire() as conn:
                record = await conn.fetchrow(query, mapping_id, *values)
        except asyncpg.UniqueViolationError as e:
            raise translate_unique_violation(e) from e
        return _to_dto(record) if record else None

    async def update(self, mapping_id: str, changes: dict[str, Any]) -> Optional[ClientRiderMappingDTO]:
        """Обновляет разрешённые поля; неизвестные ключи игнорируются."""
        columns = [column for column in UPDATABLE_COLUMNS if column in changes]
        if not columns:
            return await self.get_by_id(mapping_id)

        values = []
        for column in columns:
            value = changes[column]
            values.append(value.value if isinstance(value, VerificationStatus) else value)

        set_clause = ", ".join(f"{column} = ${index}" for index, column in enumerate(columns, start=2))
        return await self._update_returning(mapping_id, set_clause, *values)

    async def deactivate(self, mapping_id: str, reason: str) -> Optional[ClientRiderMappingDTO]:
        return await self._update_returning(
            mapping_id,
            "is_active = FALSE, deactivation_date = NOW(), deactivation_reason = $2",
            reason,
        )

    async def verify(
        self,
        mapping_id: str,
        verified_by: Optional[str],
        status: VerificationStatus,
    ) -> Optional[ClientRiderMappingDTO]:
        return await self._update_returning(
            mapping_id,
            "verification_status = $2, verified_by = $3, verified_at = NOW()",
            status.value,
            verified_by,
        )
