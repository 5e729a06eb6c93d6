# ev_platform/services/client_store_service/app.py
"""
client-store-service: клиенты, сопоставления райдеров и реплика городов.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ev_platform.common.constants import TypeMsg
from ev_platform.common.errors import install_exception_handlers
from ev_platform.common.logger import log_info, log_warning, setup_logging
from ev_platform.config import settings
from ev_platform.infra.database import close_db, get_db, init_db
from ev_platform.infra.event_bus import close_event_bus, get_event_bus, init_event_bus
from ev_platform.infra.redis_client import close_redis, get_redis, init_redis
from ev_platform.services.client_store_service import city_routes, mapping_routes, sync_routes
from ev_platform.services.client_store_service.consumer import CityEventConsumer
from ev_platform.services.client_store_service.dependencies import (
    cleanup_dependencies,
    get_city_sync_service,
    init_dependencies,
)
from ev_platform.shared.models.common import HealthStatus

SERVICE_NAME = "client-store-service"


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.environ.setdefault("SERVICE_NAME", "client_store")
    setup_logging()
    await log_info(f"Запуск {SERVICE_NAME}...", type_msg=TypeMsg.INFO)

    await init_db()

    redis = None
    try:
        await init_redis()
        redis = get_redis()
    except Exception as e:
        await log_warning(f"Redis недоступен, дедупликация событий отключена: {e}")

    await init_dependencies(redis=redis)

    if settings.rabbitmq.RABBITMQ_ENABLED:
        try:
            await init_event_bus()
            await CityEventConsumer(get_event_bus(), get_city_sync_service).start()
        except Exception as e:
            await log_warning(f"RabbitMQ недоступен, события принимаются только по HTTP: {e}")

    yield

    await log_info(f"Остановка {SERVICE_NAME}...", type_msg=TypeMsg.INFO)
    await cleanup_dependencies()
    await close_event_bus()
    if redis:
        await close_redis()
    await close_db()


app = FastAPI(
    title="Client Store Service",
    description="Клиенты, сопоставления клиент-райдер и реплика справочника городов",
    version=settings.system.VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)

app.include_router(city_routes.router, prefix="/api/v1")
app.include_router(sync_routes.router)
app.include_router(mapping_routes.router)


@app.get("/health", response_model=HealthStatus, tags=["Health"])
async def health_check() -> HealthStatus:
    db = get_db()
    db_ok = db.is_connected and await db.health_check()
    return HealthStatus(
        service=SERVICE_NAME,
        status="healthy" if db_ok else "degraded",
        version=settings.system.VERSION,
        dependencies={
            "postgres": "healthy" if db_ok else "unhealthy",
            "rabbitmq": "healthy" if get_event_bus().is_connected else "unavailable",
        },
    )
