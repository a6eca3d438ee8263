# src/common/exceptions.py
"""
Таксономия ошибок диспетчера.

Все ошибки, кроме LedgerInconsistency, видны клиенту: транспортный слой
превращает их в ответ с полем `code`. Ни одна из них не роняет движок.
"""

from __future__ import annotations

from typing import Any


class DispatchError(Exception):
    """Базовая ошибка диспетчера."""

    code: str = "dispatch_error"

    def __init__(self, message: str = "", **details: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Представление для ответа клиенту."""
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class InvalidRequest(DispatchError):
    """Некорректные входные данные."""
    code = "invalid_request"


class NotAuthenticated(DispatchError):
    """Вызывающий не зарегистрирован в каталоге."""
    code = "not_authenticated"


class NotAuthorized(DispatchError):
    """Вызывающему не разрешена операция."""
    code = "not_authorized"


class IdentityNotFound(DispatchError):
    """Идентификатор не найден в каталоге."""
    code = "identity_not_found"


class RideNotFound(DispatchError):
    """Поездка не найдена."""
    code = "ride_not_found"


class RideNotPending(DispatchError):
    """Поездка уже не принимает предложения."""
    code = "ride_not_pending"


class RideAlreadyAccepted(DispatchError):
    """Поездка уже принята другим исполнителем."""
    code = "ride_already_accepted"


class InvalidTransition(DispatchError):
    """Недопустимый переход статуса."""
    code = "invalid_transition"


class DuplicateOffer(DispatchError):
    """У исполнителя уже есть предложение по этой поездке."""
    code = "duplicate_offer"


class InvalidOffer(DispatchError):
    """Некорректная цена или время подачи."""
    code = "invalid_offer"


class OfferNotFound(DispatchError):
    """У исполнителя нет предложения по этой поездке."""
    code = "offer_not_found"


class LedgerInconsistency(DispatchError):
    """Нарушены инварианты журнала поездок (системный сбой)."""
    code = "ledger_inconsistency"
