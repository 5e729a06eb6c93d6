# ev_platform/worker/sync_recovery.py
"""
Воркер восстановления синхронизации городов: периодически
рассылает повторно события, не доставленные подписчикам.
"""

from __future__ import annotations

from typing import Callable

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import log_info, log_warning
from ev_platform.services.vehicle_service.recovery import SyncRecoveryService
from ev_platform.worker.base import BaseWorker


class CitySyncRecoveryWorker(BaseWorker):
    def __init__(self, service_factory: Callable[[], SyncRecoveryService], interval: float = 60) -> None:
        super().__init__(interval)
        self.service_factory = service_factory

    @property
    def name(self) -> str:
        return "city_sync_recovery"

    async def tick(self) -> None:
        report = await self.service_factory().retry_failed_events()
        if not report.retried:
            return
        if report.errors:
            await log_warning(
                f"Восстановление: {report.succeeded}/{report.retried} доставлено, ошибки: {'; '.join(report.errors)}"
            )
        else:
            await log_info(f"Восстановление: доставлено {report.succeeded} событий", type_msg=TypeMsg.INFO)
