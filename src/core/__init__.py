# src/core/__init__.py
"""
Доменный слой (Core Domain).
Журнал поездок, каталог присутствия, уведомления и движок переговоров.
"""

from src.core.rides import Offer, Ride, TripLedger
from src.core.directory import Directory, Presence

__all__ = [
    "Offer",
    "Ride",
    "TripLedger",
    "Directory",
    "Presence",
]
