# src/core/notifications/service.py
"""
Сервис уведомлений.
Доставляет события поездок участникам через транспортный слой.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Protocol

from src.common.constants import TypeMsg
from src.common.logger import log_info, log_error
from src.core.directory.service import Directory
from src.shared.events.base import DomainEvent

# Наблюдатель получает каждое событие поездки
EventObserver = Callable[[DomainEvent], Awaitable[None]]


class Transport(Protocol):
    """Транспорт, владеющий дескрипторами соединений."""

    async def send(self, handle: Any, message: dict[str, Any]) -> bool:
        """Отправляет сообщение по дескриптору. False — доставить не удалось."""
        ...


class Notifier:
    """
    Сервис уведомлений.

    Доставка best-effort: недостижимые адресаты молча пропускаются,
    очередей и повторов нет. Участник сам запрашивает актуальное
    состояние поездки после переподключения.
    """

    def __init__(self, directory: Directory, transport: Transport) -> None:
        """
        Инициализация сервиса.

        Args:
            directory: Каталог присутствия для поиска дескрипторов
            transport: Транспорт доставки
        """
        self._directory = directory
        self._transport = transport
        self._observers: list[EventObserver] = []

    def add_observer(self, observer: EventObserver) -> None:
        """Подписывает наблюдателя на все события поездок."""
        self._observers.append(observer)

    async def notify(self, identities: Iterable[str], event: DomainEvent) -> int:
        """
        Доставляет событие адресатам.

        Args:
            identities: Идентификаторы адресатов
            event: Событие

        Returns:
            Количество успешных доставок
        """
        message = event.to_message()
        targets: list[tuple[str, Any]] = []
        for identity in dict.fromkeys(identities):
            handle = self._directory.resolve_handle(identity)
            if handle is None:
                await log_info(
                    f"{event.event_type}: {identity} недоступен, событие пропущено",
                    type_msg=TypeMsg.DEBUG,
                )
                continue
            targets.append((identity, handle))

        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._deliver(identity, handle, event.event_type, message) for identity, handle in targets)
        )
        return sum(results)

    async def publish_to_observers(self, event: DomainEvent) -> None:
        """Передаёт событие всем наблюдателям. Ошибки наблюдателей только логируются."""
        for observer in self._observers:
            try:
                await observer(event)
            except Exception as e:
                await log_error(f"Наблюдатель не обработал {event.event_type} ({event.ride_id}): {e}")

    async def _deliver(self, identity: str, handle: Any, event_type: str, message: dict[str, Any]) -> bool:
        try:
            delivered = await self._transport.send(handle, message)
        except Exception as e:
            await log_info(f"{event_type}: ошибка доставки {identity}: {e}", type_msg=TypeMsg.DEBUG)
            return False
        if not delivered:
            await log_info(f"{event_type}: {identity} не принял событие", type_msg=TypeMsg.DEBUG)
        return bool(delivered)
