# tests/infra/test_ride_store.py
"""
Тесты для хранилищ снимков журнала поездок.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from src.config.loader import StorageSettings
from src.core.rides.ledger import TripLedger
from src.core.rides.models import Ride
from src.infra.ride_store import (
    JsonFileRideStore,
    MemoryRideStore,
    RedisRideStore,
    create_ride_store,
)


@pytest.fixture
def rides(ledger: TripLedger) -> list[Ride]:
    """Две поездки: pending с предложением и accepted."""
    first = ledger.create_ride("R1", "A", {"lat": 50.45, "lon": 30.52, "address": "Khreshchatyk"})
    ledger.add_offer(first.ride_id, "W1", 10, 5)

    second = ledger.create_ride("R2", "C", "D")
    ledger.add_offer(second.ride_id, "W2", 12, 3)
    ledger.award_offer(second.ride_id, "W2")
    return ledger.snapshot()


class TestMemoryRideStore:
    """Тесты для MemoryRideStore."""

    @pytest.mark.asyncio
    async def test_empty_and_saved(self, rides: list[Ride]) -> None:
        store = MemoryRideStore()
        assert await store.load() == []

        await store.save(rides)
        loaded = await store.load()

        assert loaded == rides
        assert loaded[0] is not rides[0]


class TestJsonFileRideStore:
    """Тесты для JsonFileRideStore."""

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path: Path) -> None:
        """Отсутствующий файл — пустой журнал."""
        store = JsonFileRideStore(tmp_path / "rides.json")
        assert await store.load() == []

    @pytest.mark.asyncio
    async def test_save_and_restore(self, tmp_path: Path, rides: list[Ride], dispatch_limits) -> None:
        """Сохранённый снимок восстанавливается в новый журнал без потерь."""
        path = tmp_path / "nested" / "rides.json"
        store = JsonFileRideStore(path)

        await store.save(rides)

        assert path.exists()
        assert not path.with_name("rides.json.tmp").exists()
        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["version"] == 1
        assert len(raw["rides"]) == 2

        restored = TripLedger(dispatch_limits)
        assert restored.restore(await store.load()) == 2
        assert restored.snapshot() == rides

    def test_relative_path_resolves_under_project_root(self, project_root: Path) -> None:
        store = JsonFileRideStore("data/rides.json")
        assert store.path == project_root / "data" / "rides.json"

    @pytest.mark.asyncio
    async def test_corrupted_file_raises(self, tmp_path: Path) -> None:
        """Повреждённый снимок не подменяется пустым журналом."""
        path = tmp_path / "rides.json"
        path.write_text("{broken", encoding="utf-8")

        with pytest.raises(ValueError):
            await JsonFileRideStore(path).load()


class TestRedisRideStore:
    """Тесты для RedisRideStore."""

    @pytest.mark.asyncio
    async def test_save(self, mock_redis: AsyncMock, rides: list[Ride]) -> None:
        """Каждая поездка под своим ключом, ID в индексе."""
        await RedisRideStore(mock_redis).save(rides)

        keys = [c.args[0] for c in mock_redis.set_model.await_args_list]
        assert keys == [f"ride:{r.ride_id}" for r in rides]
        mock_redis.sadd.assert_awaited_once_with("rides:index", *(r.ride_id for r in rides))

    @pytest.mark.asyncio
    async def test_save_empty_skips_index(self, mock_redis: AsyncMock) -> None:
        await RedisRideStore(mock_redis).save([])
        mock_redis.sadd.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_load_skips_missing(self, mock_redis: AsyncMock, rides: list[Ride]) -> None:
        """Поездка из индекса без данных пропускается."""
        by_key = {f"ride:{r.ride_id}": r for r in rides}
        mock_redis.smembers = AsyncMock(return_value={*(r.ride_id for r in rides), "lost"})
        mock_redis.get_model = AsyncMock(side_effect=lambda key, model: by_key.get(key))

        loaded = await RedisRideStore(mock_redis).load()

        assert sorted(r.ride_id for r in loaded) == sorted(r.ride_id for r in rides)
        assert [r.created_at for r in loaded] == sorted(r.created_at for r in loaded)


class TestCreateRideStore:
    """Тесты для create_ride_store."""

    def test_backends(self, mock_redis: AsyncMock, tmp_path: Path) -> None:
        assert isinstance(create_ride_store(StorageSettings(STORAGE_BACKEND="memory")), MemoryRideStore)

        json_store = create_ride_store(
            StorageSettings(STORAGE_BACKEND="json", STORAGE_FILE_PATH=str(tmp_path / "r.json"))
        )
        assert isinstance(json_store, JsonFileRideStore)

        assert isinstance(create_ride_store(StorageSettings(STORAGE_BACKEND="redis"), mock_redis), RedisRideStore)

    def test_redis_backend_requires_client(self) -> None:
        with pytest.raises(ValueError):
            create_ride_store(StorageSettings(STORAGE_BACKEND="redis"))
