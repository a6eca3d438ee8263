# src/core/rides/__init__.py
"""
Домен поездок.
Модели, машина состояний и журнал поездок.
"""

from src.core.rides.models import Location, LocationPoint, Offer, Ride
from src.core.rides.state_machine import RideStateMachine
from src.core.rides.ledger import TripLedger
from src.core.rides.locks import RideLock, RideLockRegistry

__all__ = [
    "Location",
    "LocationPoint",
    "Offer",
    "Ride",
    "RideStateMachine",
    "TripLedger",
    "RideLock",
    "RideLockRegistry",
]
