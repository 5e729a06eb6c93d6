from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from ev_platform.services.client_store_service.city_sync import CitySyncService
from ev_platform.services.client_store_service.dependencies import get_city_sync_service
from ev_platform.shared.events.city_events import EventProcessResult
from ev_platform.shared.models.common import ApiResponse

router = APIRouter(prefix="/internal/city-sync", tags=["city-sync"])


def _result_response(result: EventProcessResult) -> JSONResponse:
    """200 при успехе; 500 с телом результата, чтобы издатель зафиксировал сбой и повторил."""
    return JSONResponse(status_code=200 if result.success else 500, content=result.to_payload())


@router.post("")
async def receive_city_event(
    payload: dict[str, Any] = Body(...),
    service: CitySyncService = Depends(get_city_sync_service),
):
    """Приём события города от vehicle-service."""
    return _result_response(await service.process_event(payload))


@router.get("/status")
async def get_sync_status(service: CitySyncService = Depends(get_city_sync_service)):
    status = await service.get_sync_status()
    return ApiResponse.of(status, "City sync status retrieved successfully").to_payload()


@router.get("/cities")
async def get_synced_cities(service: CitySyncService = Depends(get_city_sync_service)):
    cities = await service.get_all_cities()
    return ApiResponse.of(cities, "Synced cities retrieved successfully", with_count=True).to_payload()


@router.post("/manual/{city_id}")
async def manual_sync_city(city_id: str, service: CitySyncService = Depends(get_city_sync_service)):
    return _result_response(await service.manual_sync_city(city_id))
