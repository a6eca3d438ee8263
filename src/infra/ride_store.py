# src/infra/ride_store.py
"""
Хранилища снимков журнала поездок.

Журнал в памяти остаётся источником истины; хранилище только сохраняет
и восстанавливает его снимок, чтобы поездки пережили перезапуск процесса.
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from src.common.constants import TypeMsg
from src.common.logger import log_info, log_warning
from src.config.loader import StorageSettings, get_project_root
from src.core.rides.models import Ride, utcnow
from src.infra.redis_client import RedisClient


class RideSnapshot(BaseModel):
    """Снимок журнала поездок."""

    version: int = 1
    saved_at: datetime = Field(default_factory=utcnow)
    rides: list[Ride] = Field(default_factory=list)


class RideStore(ABC):
    """Интерфейс хранилища снимков."""

    @abstractmethod
    async def load(self) -> list[Ride]:
        """Загружает сохранённые поездки (пустой список, если снимка нет)."""

    @abstractmethod
    async def save(self, rides: list[Ride]) -> None:
        """Сохраняет снимок поездок."""


class MemoryRideStore(RideStore):
    """Хранилище в памяти процесса: снимок не переживает перезапуск."""

    def __init__(self) -> None:
        self._rides: list[Ride] = []

    async def load(self) -> list[Ride]:
        return [ride.model_copy(deep=True) for ride in self._rides]

    async def save(self, rides: list[Ride]) -> None:
        self._rides = [ride.model_copy(deep=True) for ride in rides]


class JsonFileRideStore(RideStore):
    """
    Снимок в JSON файле (аналог data.json).

    Запись атомарная: сначала во временный файл рядом, затем os.replace.
    """

    def __init__(self, path: str | Path) -> None:
        path = Path(path)
        if not path.is_absolute():
            path = get_project_root() / path
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> list[Ride]:
        if not self._path.exists():
            await log_info(f"Снимок поездок {self._path} не найден, старт с пустым журналом", type_msg=TypeMsg.INFO)
            return []

        raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        snapshot = RideSnapshot.model_validate_json(raw)
        await log_info(f"Загружено {len(snapshot.rides)} поездок из {self._path}", type_msg=TypeMsg.INFO)
        return snapshot.rides

    async def save(self, rides: list[Ride]) -> None:
        data = RideSnapshot(rides=rides).model_dump_json(indent=2)
        await asyncio.to_thread(self._write, data)
        await log_info(f"Сохранено {len(rides)} поездок в {self._path}", type_msg=TypeMsg.DEBUG)

    def _write(self, data: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self._path)


class RedisRideStore(RideStore):
    """
    Снимок в Redis: каждая поездка под ключом ride:{ride_id},
    множество rides:index хранит известные ID.
    """

    INDEX_KEY = "rides:index"

    def __init__(self, redis_client: RedisClient) -> None:
        self._redis = redis_client

    @staticmethod
    def _ride_key(ride_id: str) -> str:
        return f"ride:{ride_id}"

    async def load(self) -> list[Ride]:
        ride_ids = await self._redis.smembers(self.INDEX_KEY)
        rides: list[Ride] = []
        for ride_id in sorted(ride_ids):
            ride = await self._redis.get_model(self._ride_key(ride_id), Ride)
            if ride is None:
                await log_warning(f"Поездка {ride_id} есть в индексе, но отсутствует в Redis")
                continue
            rides.append(ride)
        rides.sort(key=lambda r: r.created_at)
        await log_info(f"Загружено {len(rides)} поездок из Redis", type_msg=TypeMsg.INFO)
        return rides

    async def save(self, rides: list[Ride]) -> None:
        for ride in rides:
            await self._redis.set_model(self._ride_key(ride.ride_id), ride)
        if rides:
            await self._redis.sadd(self.INDEX_KEY, *(ride.ride_id for ride in rides))
        await log_info(f"Сохранено {len(rides)} поездок в Redis", type_msg=TypeMsg.DEBUG)


def create_ride_store(storage: StorageSettings, redis_client: RedisClient | None = None) -> RideStore:
    """
    Создаёт хранилище по настройке STORAGE_BACKEND.

    Args:
        storage: Настройки хранилища
        redis_client: Подключённый клиент Redis (обязателен для backend=redis)
    """
    match storage.STORAGE_BACKEND:
        case "json":
            return JsonFileRideStore(storage.STORAGE_FILE_PATH)
        case "redis":
            if redis_client is None:
                raise ValueError("Для STORAGE_BACKEND=redis нужен клиент Redis")
            return RedisRideStore(redis_client)
        case _:
            return MemoryRideStore()
