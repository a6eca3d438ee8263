# src/core/rides/locks.py
"""
Блокировки поездок.

Каждая поездка получает свою блокировку с двумя режимами:
- shared: подача предложений, выполняются параллельно друг с другом;
- exclusive: принятие, смена статуса, отмена; исключает всё остальное.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional


class RideLock:
    """Блокировка «много читателей / один писатель» для одной поездки."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._shared = 0
        self._exclusive = False
        self._waiting_exclusive = 0

    @property
    def locked(self) -> bool:
        """Занята ли блокировка в каком-либо режиме."""
        return self._exclusive or self._shared > 0

    @asynccontextmanager
    async def shared(self) -> AsyncIterator[None]:
        async with self._cond:
            # Ожидающий писатель имеет приоритет, иначе поток предложений его заморит
            await self._cond.wait_for(lambda: not self._exclusive and not self._waiting_exclusive)
            self._shared += 1
        try:
            yield
        finally:
            async with self._cond:
                self._shared -= 1
                if self._shared == 0:
                    self._cond.notify_all()

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        async with self._cond:
            self._waiting_exclusive += 1
            try:
                await self._cond.wait_for(lambda: not self._exclusive and self._shared == 0)
            except BaseException:
                self._waiting_exclusive -= 1
                self._cond.notify_all()
                raise
            self._waiting_exclusive -= 1
            self._exclusive = True
        try:
            yield
        finally:
            async with self._cond:
                self._exclusive = False
                self._cond.notify_all()


class RideLockRegistry:
    """
    Реестр блокировок по ride_id.

    Блокировка заводится вместе с поездкой (add/reset), обращение
    к неизвестной поездке новую блокировку не создаёт.
    """

    def __init__(self) -> None:
        self._locks: dict[str, RideLock] = {}

    def add(self, ride_id: str) -> RideLock:
        """Заводит блокировку для новой поездки (повторный вызов возвращает ту же)."""
        lock = self._locks.get(ride_id)
        if lock is None:
            lock = self._locks[ride_id] = RideLock()
        return lock

    def reset(self, ride_ids: Iterable[str]) -> None:
        """Пересоздаёт реестр под восстановленный набор поездок."""
        self._locks = {ride_id: RideLock() for ride_id in ride_ids}

    def for_ride(self, ride_id: str) -> Optional[RideLock]:
        """Блокировка известной поездки или None."""
        return self._locks.get(ride_id)

    def __len__(self) -> int:
        return len(self._locks)
