from typing import Optional

from fastapi import APIRouter, Depends

from ev_platform.common.errors import NotFoundError
from ev_platform.services.client_store_service.city_repository import CityReplicaRepository
from ev_platform.services.client_store_service.dependencies import get_city_repository
from ev_platform.shared.models.common import ApiResponse

router = APIRouter(prefix="/cities", tags=["cities"])


@router.get("")
async def get_cities(
    active: Optional[bool] = None,
    operational: Optional[bool] = None,
    repository: CityReplicaRepository = Depends(get_city_repository),
):
    # Фильтр включается только значением true; false равносилен отсутствию флага
    cities = await repository.list_cities(
        active=True if active else None,
        operational=True if operational else None,
    )
    return ApiResponse.of(cities, "Cities retrieved successfully", with_count=True).to_payload()


@router.get("/operational")
async def get_operational_cities(repository: CityReplicaRepository = Depends(get_city_repository)):
    cities = await repository.list_operational()
    return ApiResponse.of(cities, "Operational cities retrieved successfully", with_count=True).to_payload()


@router.get("/active")
async def get_active_cities(repository: CityReplicaRepository = Depends(get_city_repository)):
    cities = await repository.list_active()
    return ApiResponse.of(cities, "Active cities retrieved successfully", with_count=True).to_payload()


@router.get("/code/{code}")
async def get_city_by_code(code: str, repository: CityReplicaRepository = Depends(get_city_repository)):
    city = await repository.get_detail_by_code(code)
    if not city:
        raise NotFoundError("City not found with the provided code", code="CITY_NOT_FOUND")
    return ApiResponse.of(city, "City retrieved successfully").to_payload()


@router.get("/{city_id}")
async def get_city(city_id: str, repository: CityReplicaRepository = Depends(get_city_repository)):
    city = await repository.get_detail(city_id)
    if not city:
        raise NotFoundError("City not found", code="CITY_NOT_FOUND")
    return ApiResponse.of(city, "City retrieved successfully").to_payload()
