# src/core/negotiation/service.py
"""
Движок переговоров.
Арбитраж предложений: ровно один победитель на поездку даже при
одновременных попытках принятия.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable

from src.common.constants import (
    Availability,
    PresenceKind,
    RideStatus,
    SYSTEM_ACTOR,
    TypeMsg,
)
from src.common.exceptions import (
    InvalidRequest,
    InvalidTransition,
    NotAuthenticated,
    NotAuthorized,
    RideNotFound,
    RideNotPending,
)
from src.common.logger import log_info
from src.core.directory.models import Presence
from src.core.directory.service import Directory
from src.core.notifications.service import Notifier
from src.core.rides.ledger import TripLedger
from src.core.rides.models import Offer, Ride
from src.shared.events import (
    DomainEvent,
    RideAccepted,
    RideCancelled,
    RideCreated,
    RideOfferReceived,
    RideStatusChanged,
    RideTaken,
)

# Статусы, которые исполнитель выставляет сам
_WORKER_STATUSES = (RideStatus.PICKED_UP, RideStatus.COMPLETED)


class NegotiationEngine:
    """
    Движок переговоров.

    Порядок каждой операции: команда → изменение журнала → рассылка событий.
    Подача предложений берёт разделяемую секцию поездки, принятие, смена
    статуса и отмена берут исключительную. События собираются из снимка,
    снятого внутри секции, и рассылаются после её освобождения.
    Ошибки журнала и каталога пробрасываются вызывающему без изменений.
    """

    def __init__(
        self,
        ledger: TripLedger,
        directory: Directory,
        notifier: Notifier,
    ) -> None:
        """
        Инициализация движка.

        Args:
            ledger: Журнал поездок
            directory: Каталог присутствия
            notifier: Сервис уведомлений
        """
        self._ledger = ledger
        self._directory = directory
        self._notifier = notifier

    @property
    def ledger(self) -> TripLedger:
        return self._ledger

    @property
    def directory(self) -> Directory:
        return self._directory

    # =========================================================================
    # ПРИСУТСТВИЕ
    # =========================================================================

    async def connect(self, identity: str, kind: PresenceKind | str, handle: Any) -> Presence:
        """
        Регистрирует соединение участника.

        Исполнитель с незавершённой поездкой восстанавливается как busy.
        """
        kind = PresenceKind(kind)
        active = self._ledger.active_ride_for_worker(identity) if kind == PresenceKind.WORKER else None
        availability = Availability.BUSY if active is not None else Availability.AVAILABLE
        presence = await self._directory.register_presence(identity, kind, handle, availability)
        if active is not None:
            await log_info(
                f"Исполнитель {identity} вернулся к поездке {active.ride_id}",
                type_msg=TypeMsg.INFO,
            )
        return presence

    async def disconnect(self, identity: str) -> None:
        """Участник отключился. Поездки не отменяются."""
        await self._directory.remove_presence(identity)

    # =========================================================================
    # ОПЕРАЦИИ ПОЕЗДКИ
    # =========================================================================

    async def request_ride(
        self,
        requester_identity: str,
        pickup: Any,
        dropoff: Any,
        requester_name: str | None = None,
    ) -> Ride:
        """
        Создаёт поездку и рассылает её доступным исполнителям.

        Рассылка рекомендательная: предложение по поездке, которая уже
        вышла из pending, просто получит RideNotPending.

        Raises:
            NotAuthenticated, NotAuthorized, InvalidRequest
        """
        self._require_caller(requester_identity, PresenceKind.REQUESTER)

        created = self._ledger.create_ride(requester_identity, pickup, dropoff, requester_name)
        audience = sorted(self._directory.list_available_workers() - {requester_identity})
        self._ledger.record_audience(created.ride_id, audience)
        ride = self._ledger.get_ride(created.ride_id)

        await log_info(
            f"Поездка {ride.ride_id} создана заказчиком {requester_identity}, разослана {len(audience)} исполнителям",
            type_msg=TypeMsg.INFO,
        )

        await self._emit(audience, RideCreated.from_ride(ride))
        return ride

    async def submit_offer(
        self,
        ride_id: str,
        worker_identity: str,
        price: Any,
        eta_minutes: Any,
    ) -> Offer:
        """
        Подаёт предложение исполнителя. Уведомляется только заказчик.

        Raises:
            NotAuthenticated, NotAuthorized, RideNotFound, RideNotPending,
            DuplicateOffer, InvalidOffer
        """
        self._require_caller(worker_identity, PresenceKind.WORKER)

        async with self._ledger.lock_for(ride_id).shared():
            try:
                offer = self._ledger.add_offer(ride_id, worker_identity, price, eta_minutes)
            except RideNotPending:
                await log_info(
                    f"Предложение {worker_identity} по неактуальной поездке {ride_id} отклонено",
                    type_msg=TypeMsg.DEBUG,
                )
                raise
            requester = self._ledger.get_ride(ride_id).requester_identity

        await log_info(
            f"Предложение {offer.offer_id} от {worker_identity} по поездке {ride_id}: {offer.price} / {offer.eta_minutes} мин",
            type_msg=TypeMsg.INFO,
        )

        await self._emit([requester], RideOfferReceived.from_offer(offer))
        return offer

    async def accept_offer(
        self,
        ride_id: str,
        worker_identity: str,
        actor: str | None = None,
    ) -> Ride:
        """
        Принимает предложение исполнителя.

        Проверка статуса и арбитраж выполняются одной неделимой операцией
        в исключительной секции поездки: предложение победителя won,
        остальные lost, поездка accepted, исполнитель busy.
        Проигравшие гонку получают RideAlreadyAccepted.

        Args:
            ride_id: ID поездки
            worker_identity: Исполнитель, чьё предложение принимается
            actor: Кто принимает (должен быть заказчиком поездки);
                None — внутренний вызов без проверки

        Raises:
            NotAuthenticated, NotAuthorized, RideNotFound, RideAlreadyAccepted,
            RideNotPending, OfferNotFound
        """
        if actor is not None:
            self._require_caller(actor)
            current = self._require_ride(ride_id)
            if actor != current.requester_identity:
                raise NotAuthorized(
                    f"Only the requester can accept offers on ride {ride_id}",
                    ride_id=ride_id,
                )

        async with self._ledger.lock_for(ride_id).exclusive():
            ride = self._ledger.award_offer(ride_id, worker_identity)
            await asyncio.shield(self._occupy_worker(worker_identity))

        await log_info(
            f"Поездка {ride_id} принята: исполнитель {worker_identity}, предложение {ride.winning_offer_id}",
            type_msg=TypeMsg.INFO,
        )

        await self._emit([ride.requester_identity, worker_identity], RideAccepted.from_ride(ride))

        losers = [w for w in self._visibility(ride) if w != worker_identity]
        await self._emit(losers, RideTaken.from_ride(ride))
        return ride

    async def advance_status(
        self,
        ride_id: str,
        worker_identity: str,
        new_status: RideStatus | str,
    ) -> Ride:
        """
        Смена статуса исполнителем: accepted → picked_up → completed.

        Raises:
            NotAuthenticated, InvalidRequest, RideNotFound, NotAuthorized,
            InvalidTransition
        """
        self._require_caller(worker_identity)
        try:
            target = RideStatus(new_status)
        except ValueError as e:
            raise InvalidRequest(f"Unknown status {new_status!r}", status=str(new_status)) from e

        async with self._ledger.lock_for(ride_id).exclusive():
            current = self._require_ride(ride_id)
            if current.winning_worker != worker_identity:
                raise NotAuthorized(
                    f"Only the winning worker can advance ride {ride_id}",
                    ride_id=ride_id,
                )
            if target not in _WORKER_STATUSES:
                raise InvalidTransition(
                    f"Worker cannot move ride to {target.value}",
                    current_status=current.status.value,
                    new_status=target.value,
                )
            ride = self._ledger.record_transition(ride_id, target, worker_identity)
            if target == RideStatus.COMPLETED:
                await asyncio.shield(self._release_worker(worker_identity))

        await log_info(
            f"Поездка {ride_id}: {current.status.value} → {ride.status.value}",
            type_msg=TypeMsg.INFO,
        )

        await self._emit([ride.requester_identity], RideStatusChanged.from_ride(ride, current.status.value))
        return ride

    async def cancel_ride(self, ride_id: str, actor_identity: str) -> Ride:
        """
        Отменяет поездку из любого нетерминального статуса.

        Отменить может заказчик, исполнитель-победитель или система.
        Победитель возвращается в available, событие получают все,
        кто видел поездку.

        Raises:
            NotAuthenticated, RideNotFound, NotAuthorized, InvalidTransition
        """
        if actor_identity != SYSTEM_ACTOR:
            self._require_caller(actor_identity)

        async with self._ledger.lock_for(ride_id).exclusive():
            current = self._require_ride(ride_id)
            winner = current.winning_worker
            if actor_identity not in (SYSTEM_ACTOR, current.requester_identity, winner):
                raise NotAuthorized(
                    f"{actor_identity} cannot cancel ride {ride_id}",
                    ride_id=ride_id,
                )
            ride = self._ledger.record_transition(ride_id, RideStatus.CANCELLED, actor_identity)
            if winner is not None:
                await asyncio.shield(self._release_worker(winner))

        await log_info(
            f"Поездка {ride_id} отменена ({actor_identity}) из статуса {current.status.value}",
            type_msg=TypeMsg.INFO,
        )

        audience = [ride.requester_identity, *self._visibility(ride)]
        await self._emit(audience, RideCancelled.from_ride(ride, current.status.value))
        return ride

    def get_ride(self, ride_id: str, caller: str | None = None) -> Ride:
        """
        Актуальное состояние поездки для повторной синхронизации после переподключения.

        Raises:
            NotAuthenticated, RideNotFound
        """
        if caller is not None:
            self._require_caller(caller)
        return self._require_ride(ride_id)

    # =========================================================================
    # ВНУТРЕННИЕ МЕТОДЫ
    # =========================================================================

    def _require_caller(self, identity: str, kind: PresenceKind | None = None) -> Presence:
        presence = self._directory.get_presence(identity)
        if presence is None:
            raise NotAuthenticated(f"{identity} is not registered", identity=identity)
        if kind is not None and presence.kind != kind:
            raise NotAuthorized(
                f"Operation requires a {kind.value}",
                identity=identity,
                kind=presence.kind.value,
            )
        return presence

    def _require_ride(self, ride_id: str) -> Ride:
        ride = self._ledger.get_ride(ride_id)
        if ride is None:
            raise RideNotFound(f"Ride {ride_id} not found", ride_id=ride_id)
        return ride

    @staticmethod
    def _visibility(ride: Ride) -> list[str]:
        """Исполнители, видевшие поездку: получатели рассылки и подавшие предложения."""
        return list(dict.fromkeys([*ride.notified_workers, *ride.offerer_identities()]))

    async def _occupy_worker(self, identity: str) -> None:
        presence = self._directory.get_presence(identity)
        # Отключённый исполнитель станет busy при переподключении
        if presence is not None and presence.availability != Availability.OFFLINE:
            await self._directory.set_availability(identity, Availability.BUSY)

    async def _release_worker(self, identity: str) -> None:
        # Исполнитель может выиграть несколько поездок: свободен только после последней
        if self._ledger.active_ride_for_worker(identity) is not None:
            return
        presence = self._directory.get_presence(identity)
        if presence is not None and presence.availability == Availability.BUSY:
            await self._directory.set_availability(identity, Availability.AVAILABLE)

    async def _emit(self, identities: Iterable[str], event: DomainEvent) -> int:
        identities = list(identities)
        delivered = await self._notifier.notify(identities, event) if identities else 0
        await self._notifier.publish_to_observers(event)
        return delivered
