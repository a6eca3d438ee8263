# src/core/notifications/observers.py
"""
Наблюдатели событий поездок.
"""

from __future__ import annotations

from src.common.constants import TypeMsg
from src.common.logger import log_info
from src.infra.redis_client import RedisClient
from src.shared.events.base import DomainEvent


class RedisRideObserver:
    """Публикует каждое событие поездки в канал Redis ride:{ride_id}."""

    def __init__(self, redis_client: RedisClient) -> None:
        self._redis = redis_client

    @staticmethod
    def channel_for(ride_id: str) -> str:
        """Канал событий поездки (без namespace)."""
        return f"ride:{ride_id}"

    async def __call__(self, event: DomainEvent) -> None:
        receivers = await self._redis.publish(self.channel_for(event.ride_id), event.to_json())
        await log_info(
            f"{event.event_type} опубликовано в ride:{event.ride_id} ({receivers} подписчиков)",
            type_msg=TypeMsg.DEBUG,
        )
