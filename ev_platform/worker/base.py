# ev_platform/worker/base.py
"""
Базовый класс для периодических воркеров.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import List

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import log_error, log_info


class BaseWorker(ABC):
    """
    Базовый класс воркера, выполняющего tick() с заданным интервалом.
    Ошибка одного тика логируется, цикл продолжается.
    """

    def __init__(self, interval: float) -> None:
        """
        Args:
            interval: Пауза между тиками, секунды
        """
        self.interval = interval
        self._running = False
        self._tasks: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    @abstractmethod
    def name(self) -> str:
        """Имя воркера."""
        pass

    @abstractmethod
    async def tick(self) -> None:
        """Одна итерация работы."""
        pass

    async def start(self) -> None:
        """Запускает воркер в фоновой задаче."""
        if self._running:
            return

        self._running = True
        self._tasks.append(asyncio.create_task(self._loop(), name=self.name))
        await log_info(
            f"Воркер {self.name} запущен, интервал {self.interval} с",
            type_msg=TypeMsg.INFO,
        )

    async def stop(self) -> None:
        """Останавливает воркер."""
        if not self._running:
            return

        self._running = False

        for task in self._tasks:
            task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        await log_info(f"Воркер {self.name} остановлен", type_msg=TypeMsg.INFO)

    async def run_once(self) -> bool:
        """Выполняет один тик. False, если тик завершился ошибкой."""
        try:
            await self.tick()
            return True
        except Exception as e:
            await log_error(f"Ошибка в воркере {self.name}: {e}", exc_info=True)
            return False

    async def _loop(self) -> None:
        while self._running:
            await self.run_once()
            await asyncio.sleep(self.interval)
