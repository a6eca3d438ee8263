# src/services/dispatch_gateway/commands.py
"""
Маршрутизатор команд клиента.

Команда приходит как (action, payload, вызывающий) и превращается в вызов
движка переговоров. Ответ — {"type": "result", ...} или {"type": "error", ...}.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field, ValidationError

from src.common.constants import TypeMsg
from src.common.exceptions import DispatchError, InvalidRequest, NotAuthenticated
from src.common.logger import log_error, log_info
from src.core.negotiation.service import NegotiationEngine


# === MODELS ===

class ClientMessage(BaseModel):
    """Сообщение клиента."""
    action: str = Field(..., min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
    request_id: str | int | None = None


class RequestRidePayload(BaseModel):
    pickup: Any
    dropoff: Any
    requester_name: Optional[str] = None


class SubmitOfferPayload(BaseModel):
    ride_id: str
    price: float
    eta_minutes: int


class AcceptOfferPayload(BaseModel):
    ride_id: str
    worker_identity: str


class AdvanceStatusPayload(BaseModel):
    ride_id: str
    status: str


class RideRefPayload(BaseModel):
    """Команды, которым нужен только ride_id."""
    ride_id: str


Handler = Callable[[str, dict[str, Any]], Awaitable[Any]]


class CommandRouter:
    """
    Маршрутизатор команд.

    Вызывающий должен быть зарегистрирован в каталоге, иначе NotAuthenticated.
    Ошибки диспетчера превращаются в ответ с кодом и никогда не рвут соединение.
    """

    def __init__(self, engine: NegotiationEngine) -> None:
        self._engine = engine
        self._handlers: dict[str, Handler] = {
            "request_ride": self._request_ride,
            "submit_offer": self._submit_offer,
            "accept_offer": self._accept_offer,
            "advance_status": self._advance_status,
            "cancel_ride": self._cancel_ride,
            "get_ride": self._get_ride,
            "ping": self._ping,
        }

    @property
    def actions(self) -> list[str]:
        """Поддерживаемые команды."""
        return list(self._handlers)

    async def dispatch(self, caller: str, raw: Any) -> dict[str, Any]:
        """
        Выполняет команду клиента.

        Args:
            caller: Идентификатор вызывающего
            raw: Разобранный JSON сообщения

        Returns:
            Ответ клиенту
        """
        action: Optional[str] = raw.get("action") if isinstance(raw, dict) else None
        request_id: Any = raw.get("request_id") if isinstance(raw, dict) else None

        try:
            message = _validate(ClientMessage, raw)
            action, request_id = message.action, message.request_id

            if not self._engine.directory.is_registered(caller):
                raise NotAuthenticated(f"{caller} is not registered", identity=caller)

            handler = self._handlers.get(message.action)
            if handler is None:
                raise InvalidRequest(f"Unknown action {message.action!r}", action=message.action)

            data = await handler(caller, message.payload)
        except DispatchError as e:
            await log_info(
                f"Команда {action} от {caller} отклонена: {e.code} ({e.message})",
                type_msg=TypeMsg.DEBUG,
            )
            return error_reply(e, action=action, request_id=request_id)
        except Exception as e:
            await log_error(f"Ошибка выполнения команды {action} от {caller}: {e}", exc_info=True)
            return {
                "type": "error",
                "action": action,
                "request_id": request_id,
                "code": "internal_error",
                "message": "Internal error",
            }

        return {
            "type": "result",
            "action": action,
            "request_id": request_id,
            "data": data,
        }

    # =========================================================================
    # ОБРАБОТЧИКИ
    # =========================================================================

    async def _request_ride(self, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        params = _validate(RequestRidePayload, payload)
        ride = await self._engine.request_ride(caller, params.pickup, params.dropoff, params.requester_name)
        return ride.model_dump(mode="json")

    async def _submit_offer(self, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        params = _validate(SubmitOfferPayload, payload)
        offer = await self._engine.submit_offer(params.ride_id, caller, params.price, params.eta_minutes)
        return offer.model_dump(mode="json")

    async def _accept_offer(self, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        params = _validate(AcceptOfferPayload, payload)
        ride = await self._engine.accept_offer(params.ride_id, params.worker_identity, actor=caller)
        return ride.model_dump(mode="json")

    async def _advance_status(self, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        params = _validate(AdvanceStatusPayload, payload)
        ride = await self._engine.advance_status(params.ride_id, caller, params.status)
        return ride.model_dump(mode="json")

    async def _cancel_ride(self, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        params = _validate(RideRefPayload, payload)
        ride = await self._engine.cancel_ride(params.ride_id, caller)
        return ride.model_dump(mode="json")

    async def _get_ride(self, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        params = _validate(RideRefPayload, payload)
        return self._engine.get_ride(params.ride_id, caller).model_dump(mode="json")

    async def _ping(self, caller: str, payload: dict[str, Any]) -> dict[str, Any]:
        return {"pong": True}


def error_reply(
    error: DispatchError,
    action: Optional[str] = None,
    request_id: str | int | None = None,
) -> dict[str, Any]:
    """Ответ клиенту с ошибкой диспетчера."""
    return {
        "type": "error",
        "action": action,
        "request_id": request_id,
        **error.to_dict(),
    }


def _validate(model: type[BaseModel], data: Any) -> Any:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "message" for err in e.errors()})
        raise InvalidRequest(f"Malformed {model.__name__}: {', '.join(fields)}", fields=fields) from e
