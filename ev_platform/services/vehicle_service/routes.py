from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ev_platform.common.errors import NotFoundError
from ev_platform.common.security import CurrentUser, require_user
from ev_platform.services.vehicle_service.dependencies import (
    get_city_service,
    get_publisher,
    get_recovery_service,
)
from ev_platform.services.vehicle_service.publisher import CityEventPublisher
from ev_platform.services.vehicle_service.recovery import SyncRecoveryService
from ev_platform.services.vehicle_service.service import CityService
from ev_platform.shared.events.city_events import CityEventData
from ev_platform.shared.models.city_dto import CreateCityRequest, UpdateCityRequest
from ev_platform.shared.models.common import ApiResponse

# ===== АДМИНИСТРИРОВАНИЕ ГОРОДОВ =====

router = APIRouter(prefix="/cities", tags=["cities"])


@router.get("")
async def list_cities(
    active: Optional[bool] = None,
    operational: Optional[bool] = None,
    _: CurrentUser = Depends(require_user),
    service: CityService = Depends(get_city_service),
):
    cities = await service.list_cities(active, operational)
    return ApiResponse.of(cities, "Cities retrieved successfully", with_count=True).to_payload()


@router.get("/code/{code}")
async def get_city_by_code(
    code: str,
    _: CurrentUser = Depends(require_user),
    service: CityService = Depends(get_city_service),
):
    return ApiResponse.of(await service.get_city_by_code(code)).to_payload()


@router.get("/{city_id}")
async def get_city(
    city_id: str,
    _: CurrentUser = Depends(require_user),
    service: CityService = Depends(get_city_service),
):
    return ApiResponse.of(await service.get_city(city_id)).to_payload()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_city(
    request: CreateCityRequest,
    user: CurrentUser = Depends(require_user),
    service: CityService = Depends(get_city_service),
):
    city = await service.create_city(request, user_id=user.id)
    return ApiResponse.of(city, "City created successfully").to_payload()


@router.put("/{city_id}")
async def update_city(
    city_id: str,
    request: UpdateCityRequest,
    user: CurrentUser = Depends(require_user),
    service: CityService = Depends(get_city_service),
):
    city = await service.update_city(city_id, request, user_id=user.id)
    return ApiResponse.of(city, "City updated successfully").to_payload()


@router.delete("/{city_id}")
async def delete_city(
    city_id: str,
    user: CurrentUser = Depends(require_user),
    service: CityService = Depends(get_city_service),
):
    city = await service.delete_city(city_id, user_id=user.id)
    return ApiResponse.of(city, "City deleted successfully").to_payload()


@router.post("/{city_id}/activate")
async def activate_city(
    city_id: str,
    user: CurrentUser = Depends(require_user),
    service: CityService = Depends(get_city_service),
):
    city = await service.set_city_status(city_id, True, user_id=user.id)
    return ApiResponse.of(city, "City activated successfully").to_payload()


@router.post("/{city_id}/deactivate")
async def deactivate_city(
    city_id: str,
    user: CurrentUser = Depends(require_user),
    service: CityService = Depends(get_city_service),
):
    city = await service.set_city_status(city_id, False, user_id=user.id)
    return ApiResponse.of(city, "City deactivated successfully").to_payload()


# ===== ВНУТРЕННИЙ API =====

internal_router = APIRouter(prefix="/internal", tags=["internal"])


@internal_router.get("/cities/{city_id}")
async def get_city_snapshot(city_id: str, service: CityService = Depends(get_city_service)):
    """Текущий снимок города для ручной синхронизации подписчиков."""
    city = await service.get_city(city_id)
    return ApiResponse.of(CityEventData.model_validate(city.model_dump())).to_payload()


@internal_router.get("/sync/status")
async def get_sync_status(service: SyncRecoveryService = Depends(get_recovery_service)):
    report = await service.get_sync_status()
    return ApiResponse.of(report, "Sync status retrieved successfully").to_payload()


@internal_router.post("/sync/services/{service_name}")
async def sync_service(service_name: str, service: SyncRecoveryService = Depends(get_recovery_service)):
    result = await service.sync_service_from_event_log(service_name)
    return ApiResponse.of(result, f"Sync completed for {service_name}").to_payload()


@internal_router.post("/sync/cities/{city_id}")
async def resync_city(city_id: str, service: SyncRecoveryService = Depends(get_recovery_service)):
    result = await service.resync_city(city_id)
    return ApiResponse.of(result, "City resync completed").to_payload()


@internal_router.get("/sync/cities/{city_id}/events")
async def get_city_events(
    city_id: str,
    from_sequence: int = Query(0, ge=0, alias="fromSequence"),
    service: SyncRecoveryService = Depends(get_recovery_service),
):
    events = await service.get_city_events(city_id, from_sequence)
    return ApiResponse.of(events, "City events retrieved successfully", with_count=True).to_payload()


@internal_router.post("/sync/retry")
async def retry_failed_events(service: SyncRecoveryService = Depends(get_recovery_service)):
    report = await service.retry_failed_events()
    return ApiResponse.of(report, "Failed events retried").to_payload()


@internal_router.post("/sync/subscribers/{name}/{action}")
async def toggle_subscriber(
    name: str,
    action: str,
    publisher: CityEventPublisher = Depends(get_publisher),
):
    """Включение и отключение подписчика без перезапуска: action = enable | disable."""
    if action not in ("enable", "disable"):
        raise NotFoundError(f"Unknown action: {action}", code="NOT_FOUND")

    toggled = publisher.enable_subscriber(name) if action == "enable" else publisher.disable_subscriber(name)
    if not toggled:
        raise NotFoundError(f"Unknown service: {name}", code="UNKNOWN_SERVICE")
    return ApiResponse.of(sorted(publisher.active_subscribers()), f"Subscriber {name} {action}d").to_payload()
