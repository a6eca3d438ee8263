# tests/worker/test_autosave.py
"""
Тесты для воркера автосохранения.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.core.rides.ledger import TripLedger
from src.infra.ride_store import MemoryRideStore
from src.worker.autosave import RideAutosaver


class TestRideAutosaver:
    """Тесты для RideAutosaver."""

    @pytest.mark.asyncio
    async def test_periodic_save(self, ledger: TripLedger) -> None:
        """Воркер периодически сохраняет снимок журнала."""
        store = MemoryRideStore()
        ledger.create_ride("R", "A", "B")
        autosaver = RideAutosaver(ledger, store, interval=0.01)

        await autosaver.start()
        assert autosaver.running
        await asyncio.sleep(0.05)

        assert len(await store.load()) == 1
        await autosaver.stop()
        assert not autosaver.running

    @pytest.mark.asyncio
    async def test_stop_saves_final_snapshot(self, ledger: TripLedger) -> None:
        """При остановке сохраняются изменения после последнего цикла."""
        store = MemoryRideStore()
        autosaver = RideAutosaver(ledger, store, interval=3600)
        await autosaver.start()

        ride = ledger.create_ride("R", "A", "B")
        await autosaver.stop()

        assert [r.ride_id for r in await store.load()] == [ride.ride_id]

    @pytest.mark.asyncio
    async def test_start_and_stop_are_idempotent(self, ledger: TripLedger) -> None:
        store = AsyncMock()
        autosaver = RideAutosaver(ledger, store, interval=3600)

        await autosaver.stop()
        store.save.assert_not_awaited()

        await autosaver.start()
        await autosaver.start()
        await autosaver.stop()
        store.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_failure_is_logged(self, ledger: TripLedger) -> None:
        """Ошибка хранилища логируется и не останавливает воркер."""
        store = AsyncMock()
        store.save = AsyncMock(side_effect=OSError("disk full"))
        autosaver = RideAutosaver(ledger, store, interval=3600)

        with patch("src.worker.autosave.log_error", new_callable=AsyncMock) as mock_log:
            assert await autosaver.save_now() is False

        mock_log.assert_awaited_once()
        assert "disk full" in mock_log.await_args.args[0]
