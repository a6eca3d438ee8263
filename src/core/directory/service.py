# src/core/directory/service.py
"""
Каталог присутствия.
Отслеживает, какие заказчики и исполнители доступны и куда им доставлять события.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from src.common.constants import Availability, PresenceKind, TypeMsg
from src.common.exceptions import IdentityNotFound
from src.common.logger import log_info
from src.core.directory.models import Presence
from src.core.rides.models import utcnow


class Directory:
    """
    Каталог присутствия.

    Записи индексированы по идентификатору; дескриптор соединения
    только хранится и никогда не используется для поиска.
    Мутации одного идентификатора сериализуются его собственной блокировкой,
    межидентификаторных инвариантов нет.
    """

    def __init__(self) -> None:
        self._presence: dict[str, Presence] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = self._locks[identity] = asyncio.Lock()
        return lock

    async def register_presence(
        self,
        identity: str,
        kind: PresenceKind | str,
        handle: Any,
        availability: Availability | str = Availability.AVAILABLE,
    ) -> Presence:
        """
        Регистрирует участника или обновляет его запись (идемпотентно).

        Args:
            identity: Идентификатор
            kind: requester или worker
            handle: Дескриптор доставки транспортного слоя
            availability: Доступность, с которой участник появляется в каталоге

        Returns:
            Снимок записи
        """
        kind = PresenceKind(kind)
        availability = Availability(availability)
        async with self._lock(identity):
            now = utcnow()
            current = self._presence.get(identity)
            if current is None:
                current = Presence(
                    identity=identity,
                    kind=kind,
                    handle=handle,
                    availability=availability,
                    connected_at=now,
                    updated_at=now,
                )
                self._presence[identity] = current
            else:
                current.kind = kind
                current.handle = handle
                current.availability = availability
                current.connected_at = now
                current.updated_at = now
            snapshot = current.model_copy()

        await log_info(f"Участник {identity} ({kind.value}) на связи", type_msg=TypeMsg.DEBUG)
        return snapshot

    async def set_availability(self, identity: str, availability: Availability | str) -> Presence:
        """
        Меняет доступность участника.

        Raises:
            IdentityNotFound: идентификатор не зарегистрирован
        """
        availability = Availability(availability)
        async with self._lock(identity):
            current = self._presence.get(identity)
            if current is None:
                raise IdentityNotFound(f"Identity {identity} is not registered", identity=identity)
            current.availability = availability
            current.updated_at = utcnow()
            return current.model_copy()

    async def remove_presence(self, identity: str) -> None:
        """
        Отключение участника: запись остаётся, доступность offline, дескриптор сбрасывается.
        Поездки участника не затрагиваются.
        """
        async with self._lock(identity):
            current = self._presence.get(identity)
            if current is None:
                return
            current.availability = Availability.OFFLINE
            current.handle = None
            current.updated_at = utcnow()

        await log_info(f"Участник {identity} отключился", type_msg=TypeMsg.DEBUG)

    def list_available_workers(self) -> set[str]:
        """Исполнители со статусом available."""
        return {
            p.identity
            for p in self._presence.values()
            if p.kind == PresenceKind.WORKER and p.availability == Availability.AVAILABLE
        }

    def resolve_handle(self, identity: str) -> Optional[Any]:
        """Дескриптор доставки или None, если участник недостижим."""
        current = self._presence.get(identity)
        if current is None or not current.is_reachable:
            return None
        return current.handle

    def get_presence(self, identity: str) -> Optional[Presence]:
        """Снимок записи или None."""
        current = self._presence.get(identity)
        return current.model_copy() if current is not None else None

    def is_registered(self, identity: str) -> bool:
        """Известен ли идентификатор каталогу."""
        return identity in self._presence

    def stats(self) -> dict[str, dict[str, int]]:
        """Количество записей по виду и доступности."""
        counts: dict[str, dict[str, int]] = {kind.value: {} for kind in PresenceKind}
        for p in self._presence.values():
            by_kind = counts[p.kind.value]
            by_kind[p.availability.value] = by_kind.get(p.availability.value, 0) + 1
        return counts
