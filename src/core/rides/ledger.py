# src/core/rides/ledger.py
"""
Журнал поездок — единственный источник истины о поездках и предложениях.

Все методы синхронные: каждая мутация выполняется целиком между точками
переключения event loop. Согласование с другими операциями над той же
поездкой обеспечивают блокировки из `locks` (их берёт движок переговоров).
Наружу отдаются только глубокие копии записей.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional
from uuid import uuid4

from pydantic import ValidationError

from src.common.constants import OfferOutcome, RideStatus
from src.common.exceptions import (
    DuplicateOffer,
    InvalidOffer,
    InvalidRequest,
    InvalidTransition,
    LedgerInconsistency,
    OfferNotFound,
    RideAlreadyAccepted,
    RideNotFound,
    RideNotPending,
)
from src.common.logger import get_logger
from src.config.loader import DispatchSettings
from src.core.rides.locks import RideLock, RideLockRegistry
from src.core.rides.models import Location, LocationPoint, Offer, Ride, utcnow
from src.core.rides.state_machine import RideStateMachine

logger = get_logger("ride_dispatch.ledger")

# Статусы, в которых у поездки обязан быть победитель
_AWARDED_STATUSES = frozenset({
    RideStatus.ACCEPTED,
    RideStatus.PICKED_UP,
    RideStatus.COMPLETED,
})


class TripLedger:
    """
    Журнал поездок.

    Хранит записи Ride в памяти; снимок для внешнего хранилища отдаёт
    snapshot(), восстановление выполняет restore() с проверкой инвариантов.
    """

    def __init__(self, limits: DispatchSettings | None = None) -> None:
        self._rides: dict[str, Ride] = {}
        self._limits = limits or DispatchSettings()
        self.locks = RideLockRegistry()

    def __len__(self) -> int:
        return len(self._rides)

    def __contains__(self, ride_id: object) -> bool:
        return ride_id in self._rides

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    def get_ride(self, ride_id: str) -> Optional[Ride]:
        """Снимок поездки или None."""
        ride = self._rides.get(ride_id)
        return ride.model_copy(deep=True) if ride is not None else None

    def list_rides(self, status: RideStatus | None = None) -> list[Ride]:
        """Снимки поездок по времени создания, опционально с фильтром по статусу."""
        rides = sorted(self._rides.values(), key=lambda r: r.created_at)
        return [
            ride.model_copy(deep=True)
            for ride in rides
            if status is None or ride.status == status
        ]

    def lock_for(self, ride_id: str) -> RideLock:
        """
        Блокировка поездки.

        Raises:
            RideNotFound: поездка неизвестна
        """
        lock = self.locks.for_ride(ride_id)
        if lock is None:
            raise RideNotFound(f"Ride {ride_id} not found", ride_id=ride_id)
        return lock

    def active_ride_for_worker(self, worker_identity: str) -> Optional[Ride]:
        """Принятая и ещё не завершённая поездка исполнителя."""
        for ride in self._rides.values():
            if ride.status in (RideStatus.ACCEPTED, RideStatus.PICKED_UP) and ride.winning_worker == worker_identity:
                return ride.model_copy(deep=True)
        return None

    # =========================================================================
    # МУТАЦИИ
    # =========================================================================

    def create_ride(
        self,
        requester_identity: str,
        pickup: Any,
        dropoff: Any,
        requester_name: str | None = None,
    ) -> Ride:
        """
        Создаёт поездку в статусе pending без предложений.

        Raises:
            InvalidRequest: пустой заказчик или пустые/некорректные адреса
        """
        if not requester_identity:
            raise InvalidRequest("requester identity is required")

        ride = Ride(
            requester_identity=requester_identity,
            requester_name=requester_name,
            pickup=self._validate_location(pickup, "pickup"),
            dropoff=self._validate_location(dropoff, "dropoff"),
        )
        while ride.ride_id in self._rides:
            ride.ride_id = str(uuid4())

        self._rides[ride.ride_id] = ride
        self.locks.add(ride.ride_id)
        return ride.model_copy(deep=True)

    def add_offer(
        self,
        ride_id: str,
        worker_identity: str,
        price: Any,
        eta_minutes: Any,
    ) -> Offer:
        """
        Добавляет предложение исполнителя к поездке в статусе pending.

        Raises:
            RideNotFound, RideNotPending, DuplicateOffer, InvalidOffer
        """
        ride = self._require(ride_id)

        if ride.status != RideStatus.PENDING:
            raise RideNotPending(
                f"Ride {ride_id} is {ride.status.value}, offers are closed",
                ride_id=ride_id,
                status=ride.status.value,
            )

        existing = ride.find_offer(worker_identity)
        if existing is not None and existing.outcome == OfferOutcome.PENDING:
            raise DuplicateOffer(
                f"Worker {worker_identity} already has an offer on ride {ride_id}",
                ride_id=ride_id,
                offer_id=existing.offer_id,
            )

        offer = Offer(
            ride_id=ride_id,
            worker_identity=worker_identity,
            price=self._validate_price(price),
            eta_minutes=self._validate_eta(eta_minutes),
        )
        ride.offers.append(offer)
        return offer.model_copy()

    def record_transition(self, ride_id: str, new_status: RideStatus | str, actor: str) -> Ride:
        """
        Переводит поездку в новый статус и проставляет временную метку.

        Переход в accepted выполняется только через award_offer.

        Raises:
            RideNotFound, InvalidTransition
        """
        ride = self._require(ride_id)
        target = RideStateMachine.ensure_transition(ride.status, new_status)

        if target == RideStatus.ACCEPTED:
            raise InvalidTransition(
                "Ride can only become accepted through offer arbitration",
                current_status=ride.status.value,
                new_status=target.value,
            )

        ride.status = target
        setattr(ride, RideStateMachine.TIMESTAMP_FIELDS[target], utcnow())
        if target == RideStatus.CANCELLED:
            ride.cancelled_by = actor

        self._audit(ride)
        return ride.model_copy(deep=True)

    def award_offer(self, ride_id: str, worker_identity: str) -> Ride:
        """
        Арбитраж: предложение исполнителя выигрывает, остальные проигрывают,
        поездка переходит в accepted.

        Raises:
            RideNotFound, RideAlreadyAccepted, RideNotPending, OfferNotFound
        """
        ride = self._require(ride_id)

        if ride.status != RideStatus.PENDING:
            if ride.winning_offer_id is not None:
                raise RideAlreadyAccepted(
                    f"Ride {ride_id} is already accepted",
                    ride_id=ride_id,
                    status=ride.status.value,
                )
            raise RideNotPending(
                f"Ride {ride_id} is {ride.status.value}",
                ride_id=ride_id,
                status=ride.status.value,
            )

        winner = ride.find_offer(worker_identity)
        if winner is None:
            raise OfferNotFound(
                f"Worker {worker_identity} has no offer on ride {ride_id}",
                ride_id=ride_id,
                worker_identity=worker_identity,
            )

        for offer in ride.offers:
            offer.outcome = OfferOutcome.WON if offer is winner else OfferOutcome.LOST
        ride.winning_offer_id = winner.offer_id
        ride.status = RideStatus.ACCEPTED
        ride.accepted_at = utcnow()

        self._audit(ride)
        return ride.model_copy(deep=True)

    def record_audience(self, ride_id: str, identities: Iterable[str]) -> None:
        """Запоминает исполнителей, которым была показана поездка."""
        ride = self._require(ride_id)
        for identity in identities:
            if identity not in ride.notified_workers:
                ride.notified_workers.append(identity)

    # =========================================================================
    # СНИМКИ И ИНВАРИАНТЫ
    # =========================================================================

    def snapshot(self) -> list[Ride]:
        """Копия всех поездок для сохранения во внешнее хранилище."""
        return self.list_rides()

    def restore(self, rides: Iterable[Ride]) -> int:
        """
        Заменяет содержимое журнала восстановленными поездками.

        Raises:
            LedgerInconsistency: снимок нарушает инварианты
        """
        restored: dict[str, Ride] = {}
        for ride in rides:
            if ride.ride_id in restored:
                raise LedgerInconsistency(f"Duplicate ride_id {ride.ride_id} in snapshot")
            problems = self.check_invariants(ride)
            if problems:
                raise LedgerInconsistency(
                    f"Ride {ride.ride_id} violates ledger invariants",
                    problems=problems,
                )
            restored[ride.ride_id] = ride.model_copy(deep=True)

        self._rides = restored
        self.locks.reset(restored)
        return len(restored)

    @staticmethod
    def check_invariants(ride: Ride) -> list[str]:
        """Возвращает список нарушений инвариантов (пустой — всё в порядке)."""
        problems: list[str] = []
        won = [o for o in ride.offers if o.outcome == OfferOutcome.WON]

        if len(won) > 1:
            problems.append(f"{len(won)} offers marked won")
        if won and won[0].offer_id != ride.winning_offer_id:
            problems.append("won offer differs from winning_offer_id")
        if ride.winning_offer_id is not None and ride.winning_offer is None:
            problems.append("winning_offer_id does not reference an offer")
        if ride.winning_offer_id is not None and not won:
            problems.append("winning offer is not marked won")
        if ride.status in _AWARDED_STATUSES and ride.winning_offer_id is None:
            problems.append(f"status {ride.status.value} without a winning offer")
        if ride.status == RideStatus.PENDING and ride.winning_offer_id is not None:
            problems.append("pending ride has a winning offer")

        workers = ride.offerer_identities()
        if len(workers) != len(set(workers)):
            problems.append("worker has more than one offer")
        if any(o.ride_id != ride.ride_id for o in ride.offers):
            problems.append("offer belongs to another ride")
        return problems

    # =========================================================================
    # ВНУТРЕННИЕ МЕТОДЫ
    # =========================================================================

    def _require(self, ride_id: str) -> Ride:
        ride = self._rides.get(ride_id)
        if ride is None:
            raise RideNotFound(f"Ride {ride_id} not found", ride_id=ride_id)
        return ride

    def _audit(self, ride: Ride) -> None:
        """Сообщает о нарушении инвариантов. Штатно никогда не срабатывает."""
        problems = self.check_invariants(ride)
        if problems:
            logger.critical(
                f"Нарушены инварианты поездки {ride.ride_id}: {'; '.join(problems)}",
                extra={"extra_data": {"ride_id": ride.ride_id, "problems": problems}},
            )

    def _validate_location(self, value: Any, field_name: str) -> Location:
        if isinstance(value, LocationPoint):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise InvalidRequest(f"{field_name} must not be empty", field=field_name)
            if len(stripped) > self._limits.MAX_LOCATION_LENGTH:
                raise InvalidRequest(f"{field_name} is too long", field=field_name)
            return stripped
        if isinstance(value, dict) and value:
            try:
                return LocationPoint.model_validate(value)
            except ValidationError as e:
                raise InvalidRequest(f"{field_name} is not a valid location", field=field_name) from e
        raise InvalidRequest(f"{field_name} must not be empty", field=field_name)

    def _validate_price(self, price: Any) -> float:
        if isinstance(price, bool) or not isinstance(price, (int, float)):
            raise InvalidOffer("price must be a number", price=price)
        if not math.isfinite(price) or price <= 0:
            raise InvalidOffer("price must be positive", price=price)
        if price > self._limits.MAX_OFFER_PRICE:
            raise InvalidOffer("price exceeds the allowed maximum", price=price)
        return float(price)

    def _validate_eta(self, eta_minutes: Any) -> int:
        if isinstance(eta_minutes, bool) or not isinstance(eta_minutes, (int, float)):
            raise InvalidOffer("eta_minutes must be a number", eta_minutes=eta_minutes)
        if isinstance(eta_minutes, float):
            if not eta_minutes.is_integer():
                raise InvalidOffer("eta_minutes must be a whole number", eta_minutes=eta_minutes)
            eta_minutes = int(eta_minutes)
        if eta_minutes <= 0:
            raise InvalidOffer("eta_minutes must be positive", eta_minutes=eta_minutes)
        if eta_minutes > self._limits.MAX_ETA_MINUTES:
            raise InvalidOffer("eta_minutes exceeds the allowed maximum", eta_minutes=eta_minutes)
        return eta_minutes
