# src/infra/__init__.py
"""
Инфраструктурный слой.
Redis и хранилища снимков журнала поездок.
"""

from src.infra.redis_client import RedisClient, get_redis
from src.infra.ride_store import (
    JsonFileRideStore,
    MemoryRideStore,
    RedisRideStore,
    RideStore,
    create_ride_store,
)

__all__ = [
    "RedisClient",
    "get_redis",
    "RideStore",
    "MemoryRideStore",
    "JsonFileRideStore",
    "RedisRideStore",
    "create_ride_store",
]
