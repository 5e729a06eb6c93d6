# ev_platform/services/vehicle_service/app.py
"""
vehicle-service: система учёта городов и источник событий синхронизации.
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
from ev_platform.services.vehicle_service import routes
from ev_platform.services.vehicle_service.dependencies import cleanup_dependencies, init_dependencies
from ev_platform.shared.models.common import HealthStatus

SERVICE_NAME = "vehicle-service"


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.environ.setdefault("SERVICE_NAME", "vehicle")
    setup_logging()
    await log_info(f"Запуск {SERVICE_NAME}...", type_msg=TypeMsg.INFO)

    await init_db()

    event_bus = None
    if settings.rabbitmq.RABBITMQ_ENABLED:
        try:
            await init_event_bus()
            event_bus = get_event_bus()
        except Exception as e:
            await log_warning(f"RabbitMQ недоступен, события рассылаются только по HTTP: {e}")

    await init_dependencies(event_bus=event_bus)

    yield

    await log_info(f"Остановка {SERVICE_NAME}...", type_msg=TypeMsg.INFO)
    await cleanup_dependencies()
    await close_event_bus()
    await close_db()


app = FastAPI(
    title="Vehicle Service",
    description="Справочник городов и рассылка событий их изменения",
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

app.include_router(routes.router, prefix="/api/v1")
app.include_router(routes.internal_router)


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
