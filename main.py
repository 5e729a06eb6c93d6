#!/usr/bin/env python3
# main.py
"""
Главная точка входа EV Platform.
Запускает client-store-service, vehicle-service или воркер синхронизации
в зависимости от аргумента или COMPONENT_MODE.
"""

from __future__ import annotations

import asyncio
import signal
import sys

import uvicorn

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import log_error, log_info, setup_logging
from ev_platform.config import settings

VALID_MODES = ("client_store_service", "vehicle_service", "sync_worker", "all")

# Глобальный флаг для graceful shutdown
_shutdown_event: asyncio.Event | None = None
_running_tasks: list[asyncio.Task] = []


def setup_signal_handlers() -> None:
    """Настраивает обработчики сигналов для graceful shutdown."""
    global _shutdown_event
    _shutdown_event = asyncio.Event()

    def signal_handler(sig: int) -> None:
        if _shutdown_event and not _shutdown_event.is_set():
            print(f"\nПолучен сигнал остановки (sig={sig}), завершаем работу...")
            _shutdown_event.set()
            for task in _running_tasks:
                if not task.done():
                    task.cancel()

    try:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
    except NotImplementedError:
        # Windows не поддерживает add_signal_handler
        signal.signal(signal.SIGINT, lambda s, f: signal_handler(s))
        signal.signal(signal.SIGTERM, lambda s, f: signal_handler(s))


async def _serve(app_path: str, title: str, host: str, port: int) -> None:
    await log_info(f"Запуск {title} на порту {port}...", type_msg=TypeMsg.INFO)

    config = uvicorn.Config(
        app_path,
        host=host,
        port=port,
        log_level="debug" if settings.system.DEBUG else "info",
    )
    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info(f"{title}: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def run_client_store_service() -> None:
    await _serve(
        "ev_platform.services.client_store_service.app:app",
        "Client Store Service",
        settings.deployment.CLIENT_STORE_SERVICE_HOST,
        settings.deployment.CLIENT_STORE_SERVICE_PORT,
    )


async def run_vehicle_service() -> None:
    await _serve(
        "ev_platform.services.vehicle_service.app:app",
        "Vehicle Service",
        settings.deployment.VEHICLE_SERVICE_HOST,
        settings.deployment.VEHICLE_SERVICE_PORT,
    )


async def run_sync_worker() -> None:
    from ev_platform.worker.runner import run_workers

    await run_workers()


def resolve_mode(mode: str | None) -> str:
    """Аргумент командной строки, затем COMPONENT_MODE, иначе "all"."""
    candidate = mode or settings.system.COMPONENT_MODE
    if candidate not in VALID_MODES:
        raise ValueError(f"Неизвестный режим '{candidate}', допустимые: {', '.join(VALID_MODES)}")
    return candidate


async def main(mode: str | None = None) -> None:
    """
    Главная функция запуска.

    Args:
        mode: client_store_service, vehicle_service, sync_worker или all
    """
    global _running_tasks

    setup_logging()
    setup_signal_handlers()

    mode = resolve_mode(mode)
    await log_info(
        f"EV Platform v{settings.system.VERSION}: запуск в режиме '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    runners = {
        "client_store_service": [run_client_store_service],
        "vehicle_service": [run_vehicle_service],
        "sync_worker": [run_sync_worker],
        "all": [run_client_store_service, run_vehicle_service, run_sync_worker],
    }[mode]

    _running_tasks = [asyncio.create_task(runner()) for runner in runners]
    try:
        results = await asyncio.gather(*_running_tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                await log_error(f"Компонент завершился с ошибкой: {result}")
    except asyncio.CancelledError:
        await log_info("Отмена всех компонентов...", type_msg=TypeMsg.INFO)
        for task in _running_tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*_running_tasks, return_exceptions=True)
    finally:
        await log_info("Все компоненты остановлены", type_msg=TypeMsg.INFO)


def run() -> None:
    """Консольная точка входа: режим берётся из первого аргумента."""
    try:
        asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else None))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
