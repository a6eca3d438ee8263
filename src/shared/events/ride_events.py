# src/shared/events/ride_events.py
"""
События домена поездок.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from src.core.rides.models import Location, Offer, Ride
from src.shared.events.base import DomainEvent


class RideCreated(DomainEvent):
    """Событие: новая поездка, рассылается доступным исполнителям."""

    event_type: Literal["ride.created"] = "ride.created"

    requester_identity: str
    requester_name: Optional[str] = None
    pickup: Location
    dropoff: Location
    created_at: datetime

    @classmethod
    def from_ride(cls, ride: Ride) -> "RideCreated":
        return cls(
            ride_id=ride.ride_id,
            requester_identity=ride.requester_identity,
            requester_name=ride.requester_name,
            pickup=ride.pickup,
            dropoff=ride.dropoff,
            created_at=ride.created_at,
        )


class RideOfferReceived(DomainEvent):
    """Событие: исполнитель подал предложение (только заказчику)."""

    event_type: Literal["ride.offer.received"] = "ride.offer.received"

    offer_id: str
    worker_identity: str
    price: float
    eta_minutes: int
    submitted_at: datetime

    @classmethod
    def from_offer(cls, offer: Offer) -> "RideOfferReceived":
        return cls(
            ride_id=offer.ride_id,
            offer_id=offer.offer_id,
            worker_identity=offer.worker_identity,
            price=offer.price,
            eta_minutes=offer.eta_minutes,
            submitted_at=offer.submitted_at,
        )


class RideAccepted(DomainEvent):
    """Событие: предложение принято. Заказчик получает данные исполнителя, исполнитель — поездку."""

    event_type: Literal["ride.accepted"] = "ride.accepted"

    requester_identity: str
    requester_name: Optional[str] = None
    worker_identity: str
    offer_id: str
    price: float
    eta_minutes: int
    pickup: Location
    dropoff: Location
    accepted_at: datetime

    @classmethod
    def from_ride(cls, ride: Ride) -> "RideAccepted":
        offer = ride.winning_offer
        if offer is None or ride.accepted_at is None:
            raise ValueError(f"Ride {ride.ride_id} has no winning offer")
        return cls(
            ride_id=ride.ride_id,
            requester_identity=ride.requester_identity,
            requester_name=ride.requester_name,
            worker_identity=offer.worker_identity,
            offer_id=offer.offer_id,
            price=offer.price,
            eta_minutes=offer.eta_minutes,
            pickup=ride.pickup,
            dropoff=ride.dropoff,
            accepted_at=ride.accepted_at,
        )


class RideTaken(DomainEvent):
    """Событие: поездку забрал другой исполнитель."""

    event_type: Literal["ride.taken"] = "ride.taken"

    @classmethod
    def from_ride(cls, ride: Ride) -> "RideTaken":
        return cls(ride_id=ride.ride_id)


class RideStatusChanged(DomainEvent):
    """Событие: исполнитель сменил статус поездки."""

    event_type: Literal["ride.status.changed"] = "ride.status.changed"

    old_status: str
    new_status: str  # picked_up, completed
    worker_identity: Optional[str] = None
    changed_at: Optional[datetime] = None

    @classmethod
    def from_ride(cls, ride: Ride, old_status: str) -> "RideStatusChanged":
        return cls(
            ride_id=ride.ride_id,
            old_status=str(old_status),
            new_status=ride.status.value,
            worker_identity=ride.winning_worker,
            changed_at=ride.picked_up_at if ride.completed_at is None else ride.completed_at,
        )


class RideCancelled(DomainEvent):
    """Событие: поездка отменена."""

    event_type: Literal["ride.cancelled"] = "ride.cancelled"

    previous_status: str
    cancelled_by: str  # заказчик, исполнитель или system
    cancelled_at: Optional[datetime] = None

    @classmethod
    def from_ride(cls, ride: Ride, previous_status: str) -> "RideCancelled":
        return cls(
            ride_id=ride.ride_id,
            previous_status=str(previous_status),
            cancelled_by=ride.cancelled_by or "",
            cancelled_at=ride.cancelled_at,
        )
