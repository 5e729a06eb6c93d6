# ev_platform/services/client_store_service/mapping_service.py
"""
Сопоставления «клиент ↔ райдер».

Инварианты:
- clientRiderId уникален глобально, между всеми клиентами
- пара (clientId, внутренний ID райдера) уникальна
- в сопоставлении хранится внутренний ID райдера; публичный сохраняется справочно

Окончательный арбитр уникальности: ограничения БД; предварительные
проверки дают понятные сообщения, а гонку ловит сама вставка.
"""

from __future__ import annotations

from ev_platform.common.errors import ConflictError, NotFoundError, ValidationError
from ev_platform.common.logger import log_info, log_warning
from ev_platform.services.client_store_service.client_repository import ClientRepository
from ev_platform.services.client_store_service.mapping_repository import (
    DUPLICATE_CLIENT_RIDER_ID,
    DUPLICATE_PLATFORM_RIDER,
    ClientRiderMappingRepository,
)
from ev_platform.services.client_store_service.rider_client import RiderServiceClient
from ev_platform.shared.models.common import PaginationMeta, PaginationParams
from ev_platform.shared.models.enums import VerificationStatus
from ev_platform.shared.models.mapping_dto import (
    BulkCreateResult,
    BulkFailure,
    BulkMappingItem,
    ClientRiderMappingDTO,
    CreateMappingRequest,
    MappingFilters,
    ResolvedMapping,
    UpdateMappingRequest,
)
from ev_platform.shared.models.rider_ids import InternalRiderId, PublicRiderId

MISSING_FIELDS_MESSAGE = "platformRiderId, clientId, and clientRiderId are required"
BULK_DUPLICATE_CLIENT_RIDER_ID = "Client rider ID is already in use by another mapping"
BULK_DUPLICATE_PLATFORM_RIDER = "This rider is already mapped to the client with a different Client Rider ID"
DEFAULT_DEACTIVATION_REASON = "Manually deactivated"


class ClientRiderMappingService:
    def __init__(
        self,
        repository: ClientRiderMappingRepository,
        client_repository: ClientRepository,
        rider_client: RiderServiceClient,
    ):
        self.repository = repository
        self.client_repository = client_repository
        self.rider_client = rider_client

    # ===== ЧТЕНИЕ =====

    async def list_mappings(
        self,
        filters: MappingFilters,
        pagination: PaginationParams,
    ) -> tuple[list[ClientRiderMappingDTO], PaginationMeta]:
        items, total = await self.repository.list_page(filters, pagination)
        return items, PaginationMeta.create(total, pagination)

    async def get_mapping(self, mapping_id: str) -> ClientRiderMappingDTO:
        mapping = await self.repository.get_by_id(mapping_id)
        if not mapping:
            raise NotFoundError("Client rider mapping not found", code="NOT_FOUND")
        return mapping

    async def resolve_client_rider_id(self, client_id: str, client_rider_id: str) -> ResolvedMapping:
        """clientRiderId конкретного клиента -> внутренний ID райдера (только активные)."""
        mapping = await self.repository.find_active_by_client_rider(client_id, client_rider_id)
        if not mapping:
            raise NotFoundError(
                "No active mapping found for this client rider ID",
                code="MAPPING_NOT_FOUND",
            )
        return ResolvedMapping(
            platform_rider_id=mapping.platform_rider_id,
            client_rider_id=mapping.client_rider_id,
            client_name=mapping.client_name,
            mapping_id=mapping.id,
            verification_status=mapping.verification_status,
        )

    async def get_mappings_by_rider(
        self,
        platform_rider_id: str,
        include_inactive: bool = False,
    ) -> list[ClientRiderMappingDTO]:
        return await self.repository.list_by_rider(platform_rider_id, include_inactive)

    async def get_mappings_by_client(
        self,
        client_id: str,
        include_inactive: bool = False,
    ) -> list[ClientRiderMappingDTO]:
        return await self.repository.list_by_client(client_id, include_inactive)

    # ===== СОЗДАНИЕ =====

    async def create_mapping(self, request: CreateMappingRequest) -> ClientRiderMappingDTO:
        """
        Создаёт сопоставление по ПУБЛИЧНОМУ идентификатору райдера.

        Порядок проверок: обязательные поля, райдер, глобальный clientRiderId,
        пара клиент+райдер, существование клиента.
        """
        if not (request.platform_rider_id and request.client_id and request.client_rider_id):
            raise ValidationError(MISSING_FIELDS_MESSAGE, code="MISSING_FIELDS")

        public_rider_id = PublicRiderId(request.platform_rider_id)
        internal_rider_id = await self.rider_client.resolve_public_rider_id(public_rider_id)
        if internal_rider_id is None:
            raise NotFoundError(f"Rider not found with ID: {public_rider_id}", code="RIDER_NOT_FOUND")

        if await self.repository.find_by_client_rider_id(request.client_rider_id):
            raise ConflictError(
                f'Client rider ID "{request.client_rider_id}" is already in use by another mapping',
                code=DUPLICATE_CLIENT_RIDER_ID,
            )

        existing_pair = await self.repository.find_by_client_and_rider(request.client_id, internal_rider_id)
        if existing_pair:
            raise ConflictError(
                "This rider is already mapped to client with client rider ID: "
                f"{existing_pair.client_rider_id}",
                code=DUPLICATE_PLATFORM_RIDER,
            )

        if not await self.client_repository.exists(request.client_id):
            raise NotFoundError("Client not found", code="CLIENT_NOT_FOUND")

        mapping = await self.repository.create(
            client_id=request.client_id,
            platform_rider_id=internal_rider_id,
            public_rider_id=public_rider_id,
            client_rider_id=request.client_rider_id,
            assigned_by=request.assigned_by,
            assigned_by_name=request.assigned_by_name,
            notes=request.notes,
            source=request.source,
            priority=request.priority,
            verification_status=request.verification_status,
        )
        await log_info(
            f"Создано сопоставление {mapping.id}: клиент {mapping.client_id}, "
            f"райдер {public_rider_id} -> {internal_rider_id}"
        )
        return mapping

    async def bulk_create_mappings(
        self,
        items: list[BulkMappingItem],
        source: str = "bulk-upload",
    ) -> BulkCreateResult:
        """
        Массовое создание по ВНУТРЕННИМ идентификаторам райдеров.
        Каждый элемент обрабатывается независимо, без общей транзакции.
        """
        if not items:
            raise ValidationError("Mappings array is required and must not be empty", code="INVALID_INPUT")

        result = BulkCreateResult()
        for item in items:
            error = await self._create_bulk_item(item, source, result)
            if error:
                result.failed.append(BulkFailure(**item.model_dump(), error=error))

        await log_info(f"Массовое создание: {len(result.successful)} создано, {len(result.failed)} с ошибкой")
        return result

    async def _create_bulk_item(self, item: BulkMappingItem, source: str, result: BulkCreateResult) -> str | None:
        """Создаёт один элемент; возвращает текст ошибки или None."""
        if not (item.platform_rider_id and item.client_id and item.client_rider_id):
            return MISSING_FIELDS_MESSAGE

        internal_rider_id = InternalRiderId(item.platform_rider_id)
        try:
            if await self.repository.find_by_client_rider_id(item.client_rider_id):
                return BULK_DUPLICATE_CLIENT_RIDER_ID
            if await self.repository.find_by_client_and_rider(item.client_id, internal_rider_id):
                return BULK_DUPLICATE_PLATFORM_RIDER

            mapping = await self.repository.create(
                client_id=item.client_id,
                platform_rider_id=internal_rider_id,
                client_rider_id=item.client_rider_id,
                assigned_by=item.assigned_by,
                assigned_by_name=item.assigned_by_name,
                notes=item.notes,
                source=source,
                priority=item.priority,
                verification_status=item.verification_status,
            )
        except ConflictError as e:
            if e.code == DUPLICATE_CLIENT_RIDER_ID:
                return BULK_DUPLICATE_CLIENT_RIDER_ID
            if e.code == DUPLICATE_PLATFORM_RIDER:
                return BULK_DUPLICATE_PLATFORM_RIDER
            return e.message
        except Exception as e:
            await log_warning(f"Элемент массовой загрузки {item.client_rider_id} не создан: {e}")
            return str(e)

        result.successful.append(mapping)
        return None

    # ===== ИЗМЕНЕНИЕ =====

    async def update_mapping(self, mapping_id: str, request: UpdateMappingRequest) -> ClientRiderMappingDTO:
        mapping = await self.get_mapping(mapping_id)

        changes = request.model_dump(exclude_unset=True)
        new_client_rider_id = changes.get("client_rider_id")
        if new_client_rider_id and new_client_rider_id != mapping.client_rider_id:
            if await self.repository.find_by_client_rider_id(new_client_rider_id, exclude_id=mapping_id):
                raise ConflictError(
                    f'Client rider ID "{new_client_rider_id}" is already in use by another mapping',
                    code=DUPLICATE_CLIENT_RIDER_ID,
                )

        updated = await self.repository.update(mapping_id, changes)
        if not updated:
            raise NotFoundError("Client rider mapping not found", code="NOT_FOUND")
        return updated

    async def deactivate_mapping(self, mapping_id: str, reason: str | None = None) -> ClientRiderMappingDTO:
        await self.get_mapping(mapping_id)
        mapping = await self.repository.deactivate(mapping_id, reason or DEFAULT_DEACTIVATION_REASON)
        if not mapping:
            raise NotFoundError("Client rider mapping not found", code="NOT_FOUND")
        return mapping

    async def verify_mapping(
        self,
        mapping_id: str,
        verified_by: str | None,
        status: VerificationStatus = VerificationStatus.VERIFIED,
    ) -> ClientRiderMappingDTO:
        await self.get_mapping(mapping_id)
        mapping = await self.repository.verify(mapping_id, verified_by, status)
        if not mapping:
            raise NotFoundError("Client rider mapping not found", code="NOT_FOUND")
        return mapping
