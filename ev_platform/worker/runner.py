# ev_platform/worker/runner.py
"""
Запускалка фоновых воркеров.
"""

from __future__ import annotations

import asyncio
import os
from typing import List

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import log_error, log_info, setup_logging
from ev_platform.config import settings
from ev_platform.infra.database import close_db, init_db
from ev_platform.services.vehicle_service.dependencies import (
    cleanup_dependencies,
    get_recovery_service,
    init_dependencies,
)
from ev_platform.worker.base import BaseWorker
from ev_platform.worker.sync_recovery import CitySyncRecoveryWorker


async def run_workers(init_infra: bool = True) -> None:
    """
    Запускает CitySyncRecoveryWorker.

    Args:
        init_infra: Если True, инициализирует БД и зависимости vehicle-service.
                    В режиме "all" инфраструктуру поднимает main.py.
    """
    await log_info("Запуск воркеров синхронизации...", type_msg=TypeMsg.INFO)

    if init_infra:
        await init_db()
        await init_dependencies()

    workers: List[BaseWorker] = [
        CitySyncRecoveryWorker(
            service_factory=get_recovery_service,
            interval=settings.city_sync.RECOVERY_INTERVAL_SECONDS,
        ),
    ]

    try:
        for worker in workers:
            await worker.start()

        await log_info(f"Запущено {len(workers)} воркеров", type_msg=TypeMsg.INFO)

        # Ждём завершения (Ctrl+C)
        while True:
            await asyncio.sleep(1)

    except asyncio.CancelledError:
        await log_info("Получен сигнал остановки", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}", exc_info=True)
    finally:
        for worker in workers:
            await worker.stop()

        if init_infra:
            await cleanup_dependencies()
            await close_db()

        await log_info("Воркеры остановлены", type_msg=TypeMsg.INFO)


def main() -> None:
    """Точка входа."""
    os.environ.setdefault("SERVICE_NAME", "sync_worker")
    setup_logging()
    try:
        asyncio.run(run_workers())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
