from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ev_platform.common.security import require_user
from ev_platform.services.client_store_service.dependencies import get_mapping_service
from ev_platform.services.client_store_service.mapping_service import ClientRiderMappingService
from ev_platform.shared.models.common import ApiResponse, PaginationParams
from ev_platform.shared.models.enums import SortOrder, VerificationStatus
from ev_platform.shared.models.mapping_dto import (
    BulkCreateRequest,
    CreateMappingRequest,
    DeactivateMappingRequest,
    MappingFilters,
    MappingSortField,
    UpdateMappingRequest,
    VerifyMappingRequest,
)

router = APIRouter(
    prefix="/api/client-rider-mappings",
    tags=["client-rider-mappings"],
    dependencies=[Depends(require_user)],
)


@router.get("")
async def list_mappings(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    client_id: Optional[str] = Query(None, alias="clientId"),
    platform_rider_id: Optional[str] = Query(None, alias="platformRiderId"),
    client_rider_id: Optional[str] = Query(None, alias="clientRiderId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    verification_status: Optional[VerificationStatus] = Query(None, alias="verificationStatus"),
    sort_by: MappingSortField = Query("createdAt", alias="sortBy"),
    sort_order: SortOrder = Query(SortOrder.DESC, alias="sortOrder"),
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    filters = MappingFilters(
        client_id=client_id,
        platform_rider_id=platform_rider_id,
        client_rider_id=client_rider_id,
        is_active=is_active,
        verification_status=verification_status,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    items, pagination = await service.list_mappings(filters, PaginationParams(page=page, limit=limit))
    return ApiResponse(data=items, pagination=pagination).to_payload()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_mapping(
    request: CreateMappingRequest,
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    mapping = await service.create_mapping(request)
    return ApiResponse.of(mapping, "Client rider mapping created successfully").to_payload()


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
async def bulk_create_mappings(
    request: BulkCreateRequest,
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    result = await service.bulk_create_mappings(request.mappings, request.source)
    message = f"Created {len(result.successful)} mappings, {len(result.failed)} failed"
    return ApiResponse.of(result, message).to_payload()


@router.get("/resolve/{client_id}/{client_rider_id}")
async def resolve_client_rider_id(
    client_id: str,
    client_rider_id: str,
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    resolved = await service.resolve_client_rider_id(client_id, client_rider_id)
    return ApiResponse.of(resolved).to_payload()


@router.get("/rider/{platform_rider_id}")
async def get_mappings_by_rider(
    platform_rider_id: str,
    include_inactive: bool = Query(False, alias="includeInactive"),
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    mappings = await service.get_mappings_by_rider(platform_rider_id, include_inactive)
    return ApiResponse.of(mappings, with_count=True).to_payload()


@router.get("/client/{client_id}")
async def get_mappings_by_client(
    client_id: str,
    include_inactive: bool = Query(False, alias="includeInactive"),
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    mappings = await service.get_mappings_by_client(client_id, include_inactive)
    return ApiResponse.of(mappings, with_count=True).to_payload()


@router.get("/{mapping_id}")
async def get_mapping(
    mapping_id: str,
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    return ApiResponse.of(await service.get_mapping(mapping_id)).to_payload()


@router.put("/{mapping_id}")
async def update_mapping(
    mapping_id: str,
    request: UpdateMappingRequest,
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    mapping = await service.update_mapping(mapping_id, request)
    return ApiResponse.of(mapping, "Client rider mapping updated successfully").to_payload()


@router.delete("/{mapping_id}")
async def deactivate_mapping(
    mapping_id: str,
    request: Optional[DeactivateMappingRequest] = None,
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    reason = request.reason if request else None
    mapping = await service.deactivate_mapping(mapping_id, reason)
    return ApiResponse.of(mapping, "Client rider mapping deactivated successfully").to_payload()


@router.post("/{mapping_id}/verify")
async def verify_mapping(
    mapping_id: str,
    request: VerifyMappingRequest,
    service: ClientRiderMappingService = Depends(get_mapping_service),
):
    mapping = await service.verify_mapping(mapping_id, request.verified_by, request.status)
    return ApiResponse.of(mapping, f"Mapping {request.status.value} successfully").to_payload()
