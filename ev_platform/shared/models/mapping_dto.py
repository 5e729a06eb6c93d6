# ev_platform/shared/models/mapping_dto.py
"""
DTO сопоставлений «клиент ↔ райдер».

Во входящем запросе одиночного создания поле platformRiderId содержит
ПУБЛИЧНЫЙ идентификатор райдера (имя поля сохранено ради совместимости API);
в хранимом сопоставлении platform_rider_id всегда внутренний UUID.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from ev_platform.shared.events.base import CamelModel
from ev_platform.shared.models.enums import SortOrder, VerificationStatus


class ClientRiderMappingDTO(CamelModel):
    id: str
    client_id: str
    platform_rider_id: str
    public_rider_id: str | None = None
    client_rider_id: str
    assigned_by: str | None = None
    assigned_by_name: str | None = None
    notes: str | None = None
    source: str = "manual"
    priority: str = "standard"
    verification_status: VerificationStatus = VerificationStatus.PENDING
    verified_by: str | None = None
    verified_at: datetime | None = None
    is_active: bool = True
    deactivation_reason: str | None = None
    deactivation_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    client_name: str | None = None
    client_code: str | None = None


class CreateMappingRequest(CamelModel):
    """Одиночное создание. Обязательность полей проверяет сервис (MISSING_FIELDS)."""
    platform_rider_id: str | None = None
    client_id: str | None = None
    client_rider_id: str | None = None
    assigned_by: str | None = None
    assigned_by_name: str | None = None
    notes: str | None = None
    source: str = "manual"
    priority: str = "standard"
    verification_status: VerificationStatus = VerificationStatus.PENDING


class UpdateMappingRequest(CamelModel):
    client_rider_id: str | None = Field(default=None, min_length=1)
    assigned_by: str | None = None
    assigned_by_name: str | None = None
    notes: str | None = None
    source: str | None = None
    priority: str | None = None
    verification_status: VerificationStatus | None = None
    is_active: bool | None = None


class VerifyMappingRequest(CamelModel):
    verified_by: str | None = None
    status: VerificationStatus = VerificationStatus.VERIFIED


class DeactivateMappingRequest(CamelModel):
    reason: str | None = None


class BulkMappingItem(CamelModel):
    """Элемент массовой загрузки: platformRiderId здесь уже внутренний UUID."""
    platform_rider_id: str | None = None
    client_id: str | None = None
    client_rider_id: str | None = None
    assigned_by: str | None = None
    assigned_by_name: str | None = None
    notes: str | None = None
    priority: str = "standard"
    verification_status: VerificationStatus = VerificationStatus.PENDING


class BulkCreateRequest(CamelModel):
    mappings: list[BulkMappingItem] = Field(default_factory=list)
    source: str = "bulk-upload"


class BulkFailure(BulkMappingItem):
    """Непринятый элемент: исходные поля плюс текст ошибки."""
    error: str


class BulkCreateResult(CamelModel):
    successful: list[ClientRiderMappingDTO] = Field(default_factory=list)
    failed: list[BulkFailure] = Field(default_factory=list)


MappingSortField = Literal[
    "createdAt",
    "updatedAt",
    "clientRiderId",
    "platformRiderId",
    "verificationStatus",
    "priority",
]


class MappingFilters(CamelModel):
    client_id: str | None = None
    platform_rider_id: str | None = None
    client_rider_id: str | None = None
    is_active: bool | None = None
    verification_status: VerificationStatus | None = None
    sort_by: MappingSortField = "createdAt"
    sort_order: SortOrder = SortOrder.DESC


class ResolvedMapping(CamelModel):
    """Ответ на разрешение clientRiderId в идентификатор платформы."""
    platform_rider_id: str
    client_rider_id: str
    client_name: str | None = None
    mapping_id: str
    verification_status: VerificationStatus


class ClientDTO(CamelModel):
    id: str
    name: str
    client_code: str
    client_type: str | None = None
    is_active: bool = True
