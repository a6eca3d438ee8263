# tests/shared/test_ride_events.py
"""
Тесты для событий домена поездок.
"""

from __future__ import annotations

import pytest

from src.core.rides.ledger import TripLedger
from src.core.rides.models import LocationPoint
from src.shared.events import (
    DomainEvent,
    RideAccepted,
    RideCancelled,
    RideCreated,
    RideOfferReceived,
    RideStatusChanged,
    RideTaken,
)


class TestDomainEvent:
    """Тесты для базового события."""

    def test_metadata_defaults(self) -> None:
        first = RideTaken(ride_id="r1")
        second = RideTaken(ride_id="r1")

        assert first.event_id != second.event_id
        assert first.metadata.source_service == "ride_dispatch"
        assert first.timestamp.tzinfo is not None

    def test_json_roundtrip(self) -> None:
        event = RideCancelled(ride_id="r1", previous_status="pending", cancelled_by="R")

        restored = RideCancelled.from_json(event.to_json())

        assert restored == event

    def test_to_message(self) -> None:
        """Клиентское сообщение: тип события отдельно, данные без event_type."""
        message = RideTaken(ride_id="r1").to_message()

        assert message["type"] == "event"
        assert message["event"] == "ride.taken"
        assert message["data"]["ride_id"] == "r1"
        assert "event_type" not in message["data"]
        assert "event_id" in message["data"]["metadata"]

    def test_base_parses_any_event(self) -> None:
        event = DomainEvent.from_json(RideTaken(ride_id="r1").to_json())
        assert event.event_type == "ride.taken"


class TestRideEvents:
    """Тесты для сборки событий из снимка поездки."""

    def test_created_and_offer(self, ledger: TripLedger) -> None:
        ride = ledger.create_ride("R", {"lat": 1.0, "lon": 2.0}, "B", requester_name="Anna")
        offer = ledger.add_offer(ride.ride_id, "W1", 15, 4)

        created = RideCreated.from_ride(ride)
        received = RideOfferReceived.from_offer(offer)

        assert created.pickup == LocationPoint(lat=1.0, lon=2.0)
        assert created.requester_name == "Anna"
        assert received.ride_id == ride.ride_id
        assert received.worker_identity == "W1"
        assert received.eta_minutes == 4

    def test_accepted_carries_both_sides(self, ledger: TripLedger) -> None:
        ride = ledger.create_ride("R", "A", "B")
        ledger.add_offer(ride.ride_id, "W1", 15, 4)
        accepted = ledger.award_offer(ride.ride_id, "W1")

        event = RideAccepted.from_ride(accepted)

        assert event.requester_identity == "R"
        assert event.worker_identity == "W1"
        assert event.offer_id == accepted.winning_offer_id
        assert (event.pickup, event.dropoff) == ("A", "B")
        assert event.accepted_at == accepted.accepted_at

    def test_accepted_requires_winner(self, ledger: TripLedger) -> None:
        ride = ledger.create_ride("R", "A", "B")
        with pytest.raises(ValueError):
            RideAccepted.from_ride(ride)

    def test_status_changed_and_cancelled(self, ledger: TripLedger) -> None:
        ride = ledger.create_ride("R", "A", "B")
        ledger.add_offer(ride.ride_id, "W1", 15, 4)
        ledger.award_offer(ride.ride_id, "W1")
        picked = ledger.record_transition(ride.ride_id, "picked_up", "W1")
        cancelled = ledger.record_transition(ride.ride_id, "cancelled", "R")

        changed = RideStatusChanged.from_ride(picked, "accepted")
        cancel = RideCancelled.from_ride(cancelled, "picked_up")

        assert (changed.old_status, changed.new_status) == ("accepted", "picked_up")
        assert changed.worker_identity == "W1"
        assert changed.changed_at == picked.picked_up_at
        assert cancel.cancelled_by == "R"
        assert cancel.previous_status == "picked_up"
        assert cancel.cancelled_at == cancelled.cancelled_at
