# src/shared/events/__init__.py
"""
Схемы событий диспетчера.

Словарь событий:
- ride.created: новая поездка (доступным исполнителям)
- ride.offer.received: новое предложение (заказчику)
- ride.accepted: предложение принято (заказчику и победителю)
- ride.taken: поездку забрал другой исполнитель (остальным исполнителям)
- ride.status.changed: посадка или завершение (заказчику)
- ride.cancelled: отмена (всем, кто видел поездку)

Все события идемпотентны и содержат event_id для дедупликации.
"""

from src.shared.events.base import DomainEvent, EventMetadata, EventT
from src.shared.events.ride_events import (
    RideCreated,
    RideOfferReceived,
    RideAccepted,
    RideTaken,
    RideStatusChanged,
    RideCancelled,
)

__all__ = [
    # Base
    "DomainEvent",
    "EventMetadata",
    "EventT",
    # Ride
    "RideCreated",
    "RideOfferReceived",
    "RideAccepted",
    "RideTaken",
    "RideStatusChanged",
    "RideCancelled",
]
