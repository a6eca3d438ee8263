# src/common/constants.py
"""
Общие константы и перечисления диспетчера поездок.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class PresenceKind(str, Enum):
    """Вид участника: заказчик или исполнитель."""
    REQUESTER = "requester"
    WORKER = "worker"

    def __str__(self) -> str:
        return self.value


class Availability(str, Enum):
    """Доступность участника."""
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"

    def __str__(self) -> str:
        return self.value


class RideStatus(str, Enum):
    """Статусы поездки."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class OfferOutcome(str, Enum):
    """Итог предложения исполнителя."""
    PENDING = "pending"
    WON = "won"
    LOST = "lost"

    def __str__(self) -> str:
        return self.value


# Терминальные статусы: переходы из них запрещены
TERMINAL_STATUSES: frozenset[RideStatus] = frozenset({
    RideStatus.COMPLETED,
    RideStatus.CANCELLED,
})

# Актор отмены, если поездку отменяет сама система
SYSTEM_ACTOR = "system"
