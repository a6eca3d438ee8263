# src/core/notifications/__init__.py
"""
Домен уведомлений.
Доставка событий поездок участникам и наблюдателям.
"""

from src.core.notifications.service import EventObserver, Notifier, Transport
from src.core.notifications.observers import RedisRideObserver

__all__ = [
    "EventObserver",
    "Notifier",
    "Transport",
    "RedisRideObserver",
]
