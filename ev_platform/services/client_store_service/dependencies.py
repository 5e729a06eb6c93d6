# ev_platform/services/client_store_service/dependencies.py
"""
Dependency Injection для client-store-service.
"""

from __future__ import annotations

from ev_platform.config import settings
from ev_platform.infra.database import DatabaseManager
from ev_platform.infra.redis_client import RedisClient
from ev_platform.services.client_store_service.city_repository import CityReplicaRepository
from ev_platform.services.client_store_service.city_sync import CitySyncService
from ev_platform.services.client_store_service.client_repository import ClientRepository
from ev_platform.services.client_store_service.event_dedup import ProcessedEventRegistry
from ev_platform.services.client_store_service.mapping_repository import ClientRiderMappingRepository
from ev_platform.services.client_store_service.mapping_service import ClientRiderMappingService
from ev_platform.services.client_store_service.rider_client import RiderServiceClient
from ev_platform.services.client_store_service.vehicle_client import VehicleServiceClient


# Синглтоны процесса
_redis: RedisClient | None = None
_rider_client: RiderServiceClient | None = None
_vehicle_client: VehicleServiceClient | None = None


async def init_dependencies(redis: RedisClient | None = None) -> None:
    """Создаёт HTTP-клиенты при старте приложения. Redis необязателен."""
    global _redis, _rider_client, _vehicle_client
    _redis = redis
    _rider_client = RiderServiceClient(
        settings.deployment.RIDER_SERVICE_URL,
        timeout=settings.rider_service.TIMEOUT,
    )
    _vehicle_client = VehicleServiceClient(
        settings.deployment.VEHICLE_SERVICE_URL,
        timeout=settings.city_sync.PUBLISH_TIMEOUT,
    )


async def cleanup_dependencies() -> None:
    """Закрывает HTTP-клиенты."""
    global _redis, _rider_client, _vehicle_client
    if _rider_client:
        await _rider_client.close()
        _rider_client = None
    if _vehicle_client:
        await _vehicle_client.close()
        _vehicle_client = None
    _redis = None


def get_database() -> DatabaseManager:
    return DatabaseManager()


def get_rider_client() -> RiderServiceClient:
    if _rider_client is None:
        raise RuntimeError("RiderServiceClient не инициализирован. Вызовите init_dependencies()")
    return _rider_client


def get_city_repository() -> CityReplicaRepository:
    return CityReplicaRepository(get_database())


def get_event_registry() -> ProcessedEventRegistry | None:
    if _redis is None:
        return None
    return ProcessedEventRegistry(_redis, ttl=settings.redis.PROCESSED_EVENT_TTL)


def get_city_sync_service() -> CitySyncService:
    return CitySyncService(
        repository=get_city_repository(),
        registry=get_event_registry(),
        vehicle_client=_vehicle_client,
    )


def get_mapping_service() -> ClientRiderMappingService:
    db = get_database()
    return ClientRiderMappingService(
        repository=ClientRiderMappingRepository(db),
        client_repository=ClientRepository(db),
        rider_client=get_rider_client(),
    )
