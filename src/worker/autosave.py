# src/worker/autosave.py
"""
Воркер автосохранения журнала поездок.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from src.common.constants import TypeMsg
from src.common.logger import log_error, log_info
from src.core.rides.ledger import TripLedger
from src.infra.ride_store import RideStore


class RideAutosaver:
    """
    Периодически сохраняет снимок журнала в хранилище.
    При остановке выполняет финальное сохранение.
    """

    name = "ride_autosave"

    def __init__(self, ledger: TripLedger, store: RideStore, interval: float = 30.0) -> None:
        """
        Инициализирует воркер.

        Args:
            ledger: Журнал поездок
            store: Хранилище снимков
            interval: Период сохранения в секундах
        """
        self._ledger = ledger
        self._store = store
        self._interval = interval
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Запускает воркер."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._loop(), name=self.name)
        await log_info(f"Воркер {self.name} запущен (интервал {self._interval} с)", type_msg=TypeMsg.INFO)

    async def stop(self) -> None:
        """Останавливает воркер и сохраняет последний снимок."""
        if not self._running:
            return

        self._running = False
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        await self.save_now()
        await log_info(f"Воркер {self.name} остановлен", type_msg=TypeMsg.INFO)

    async def save_now(self) -> bool:
        """
        Сохраняет текущий снимок журнала.

        Returns:
            True если сохранение прошло успешно
        """
        # Снимок снимается синхронно, без точек переключения
        rides = self._ledger.snapshot()
        try:
            await self._store.save(rides)
        except Exception as e:
            await log_error(f"Ошибка автосохранения поездок: {e}", exc_info=True)
            return False
        return True

    async def _loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            await self.save_now()
