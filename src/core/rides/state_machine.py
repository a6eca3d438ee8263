# src/core/rides/state_machine.py
"""
Машина состояний поездки.

    pending --(принято предложение)--> accepted --(посадка)--> picked_up
      --(завершение)--> completed
    pending | accepted | picked_up --(отмена)--> cancelled

completed и cancelled терминальные.
"""

from __future__ import annotations

from src.common.constants import RideStatus, TERMINAL_STATUSES
from src.common.exceptions import InvalidTransition


class RideStateMachine:
    ALLOWED_TRANSITIONS: dict[RideStatus, frozenset[RideStatus]] = {
        RideStatus.PENDING: frozenset({RideStatus.ACCEPTED, RideStatus.CANCELLED}),
        RideStatus.ACCEPTED: frozenset({RideStatus.PICKED_UP, RideStatus.CANCELLED}),
        RideStatus.PICKED_UP: frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED}),
        **{status: frozenset() for status in TERMINAL_STATUSES},
    }

    # Поле временной метки, проставляемое при входе в статус
    TIMESTAMP_FIELDS: dict[RideStatus, str] = {
        RideStatus.ACCEPTED: "accepted_at",
        RideStatus.PICKED_UP: "picked_up_at",
        RideStatus.COMPLETED: "completed_at",
        RideStatus.CANCELLED: "cancelled_at",
    }

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        try:
            curr = RideStatus(current_status)
            new = RideStatus(new_status)
        except ValueError:
            return False
        return new in RideStateMachine.ALLOWED_TRANSITIONS.get(curr, frozenset())

    @staticmethod
    def ensure_transition(current_status: str, new_status: str) -> RideStatus:
        """Проверяет переход и возвращает целевой статус или бросает InvalidTransition."""
        if not RideStateMachine.can_transition(current_status, new_status):
            raise InvalidTransition(
                f"Invalid transition from {current_status} to {new_status}",
                current_status=str(current_status),
                new_status=str(new_status),
            )
        return RideStatus(new_status)
