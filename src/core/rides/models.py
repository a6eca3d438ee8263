# src/core/rides/models.py
"""
Модели данных поездок и предложений.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from src.common.constants import OfferOutcome, RideStatus


def utcnow() -> datetime:
    """Текущее время в UTC."""
    return datetime.now(timezone.utc)


class LocationPoint(BaseModel):
    """Точка с координатами и необязательным адресом."""

    lat: float = Field(..., ge=-90.0, le=90.0, description="Широта")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Долгота")
    address: Optional[str] = Field(None, description="Адрес")


# Описание места: строка-адрес или координаты
Location = Union[str, LocationPoint]


class Offer(BaseModel):
    """Предложение исполнителя по поездке. Изменяется только outcome."""

    offer_id: str = Field(default_factory=lambda: str(uuid4()), description="UUID предложения")
    ride_id: str = Field(..., description="ID поездки")
    worker_identity: str = Field(..., description="Идентификатор исполнителя")
    price: float = Field(..., description="Цена")
    eta_minutes: int = Field(..., description="Время подачи в минутах")
    submitted_at: datetime = Field(default_factory=utcnow, description="Время подачи предложения")
    outcome: OfferOutcome = Field(OfferOutcome.PENDING, description="Итог предложения")


class Ride(BaseModel):
    """Модель поездки."""

    ride_id: str = Field(default_factory=lambda: str(uuid4()), description="UUID поездки")
    requester_identity: str = Field(..., description="Идентификатор заказчика")
    requester_name: Optional[str] = Field(None, description="Отображаемое имя заказчика")

    pickup: Location = Field(..., description="Место подачи")
    dropoff: Location = Field(..., description="Место назначения")

    status: RideStatus = Field(RideStatus.PENDING, description="Статус поездки")
    offers: list[Offer] = Field(default_factory=list, description="Предложения в порядке поступления")
    winning_offer_id: Optional[str] = Field(None, description="ID выигравшего предложения")

    # Исполнители, получившие рассылку о новой поездке
    notified_workers: list[str] = Field(default_factory=list)
    cancelled_by: Optional[str] = Field(None, description="Кто отменил поездку")

    # Временные метки
    created_at: datetime = Field(default_factory=utcnow)
    accepted_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def winning_offer(self) -> Optional[Offer]:
        """Выигравшее предложение, если поездка принята."""
        if self.winning_offer_id is None:
            return None
        for offer in self.offers:
            if offer.offer_id == self.winning_offer_id:
                return offer
        return None

    @property
    def winning_worker(self) -> Optional[str]:
        """Исполнитель выигравшего предложения."""
        offer = self.winning_offer
        return offer.worker_identity if offer else None

    def find_offer(self, worker_identity: str) -> Optional[Offer]:
        """Предложение исполнителя по этой поездке."""
        for offer in self.offers:
            if offer.worker_identity == worker_identity:
                return offer
        return None

    def offerer_identities(self) -> list[str]:
        """Исполнители, подавшие предложения, в порядке подачи."""
        return [offer.worker_identity for offer in self.offers]
