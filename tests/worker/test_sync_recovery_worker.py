# tests/worker/test_sync_recovery_worker.py
"""
Тесты воркера восстановления синхронизации.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ev_platform.services.vehicle_service.recovery import SyncRecoveryService
from ev_platform.services.vehicle_service.schemas import RetryReport
from ev_platform.worker.sync_recovery import CitySyncRecoveryWorker


@pytest.fixture
def recovery() -> MagicMock:
    service = MagicMock(spec=SyncRecoveryService)
    service.retry_failed_events = AsyncMock(return_value=RetryReport(total_failed=1, retried=1, succeeded=1))
    return service


class TestCitySyncRecoveryWorker:
    """Тесты CitySyncRecoveryWorker."""

    def test_name(self, recovery) -> None:
        assert CitySyncRecoveryWorker(lambda: recovery).name == "city_sync_recovery"

    @pytest.mark.asyncio
    async def test_tick_retries_failed_events(self, recovery) -> None:
        worker = CitySyncRecoveryWorker(lambda: recovery)

        assert await worker.run_once() is True
        recovery.retry_failed_events.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tick_with_errors_still_succeeds(self, recovery) -> None:
        recovery.retry_failed_events.return_value = RetryReport(
            total_failed=1, retried=1, succeeded=0, errors=["Event e-1: client-store-service: HTTP 500"]
        )
        assert await CitySyncRecoveryWorker(lambda: recovery).run_once() is True

    @pytest.mark.asyncio
    async def test_error_is_logged_not_raised(self, recovery) -> None:
        recovery.retry_failed_events.side_effect = RuntimeError("database unavailable")

        assert await CitySyncRecoveryWorker(lambda: recovery).run_once() is False

    @pytest.mark.asyncio
    async def test_start_and_stop(self, recovery) -> None:
        worker = CitySyncRecoveryWorker(lambda: recovery, interval=0.01)

        await worker.start()
        assert worker.is_running is True
        await asyncio.sleep(0.05)
        await worker.stop()

        assert worker.is_running is False
        assert recovery.retry_failed_events.await_count >= 1

    @pytest.mark.asyncio
    async def test_loop_survives_failed_tick(self, recovery) -> None:
        calls = 0

        async def flaky() -> RetryReport:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("boom")
            return RetryReport()

        recovery.retry_failed_events.side_effect = flaky
        worker = CitySyncRecoveryWorker(lambda: recovery, interval=0.01)

        await worker.start()
        await asyncio.sleep(0.05)
        await worker.stop()

        assert recovery.retry_failed_events.await_count >= 2
