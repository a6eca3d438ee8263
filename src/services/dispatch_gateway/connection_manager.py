# src/services/dispatch_gateway/connection_manager.py
"""
Менеджер WebSocket соединений.
Владеет дескрипторами соединений и доставляет по ним сообщения.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from src.common.constants import TypeMsg
from src.common.logger import log_info


@dataclass(eq=False)
class ConnectionInfo:
    """Информация о соединении. Служит дескриптором доставки для каталога."""
    websocket: WebSocket
    identity: str
    kind: str  # requester, worker
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    messages_sent: int = 0


class ConnectionManager:
    """
    Менеджер WebSocket соединений.

    Поддерживает:
    - Подключение/отключение клиентов (одно соединение на идентификатор)
    - Доставку сообщений по дескриптору (транспорт сервиса уведомлений)
    - Статистику соединений
    """

    def __init__(self) -> None:
        # identity -> ConnectionInfo
        self._connections: dict[str, ConnectionInfo] = {}

        # Для статистики
        self._total_connections: int = 0
        self._total_messages_sent: int = 0

    @property
    def active_connections(self) -> int:
        """Количество активных соединений."""
        return len(self._connections)

    async def connect(self, websocket: WebSocket, identity: str, kind: str) -> ConnectionInfo:
        """
        Подключить клиента.

        Если у идентификатора уже есть соединение, старое закрывается.
        """
        old_conn = self._connections.get(identity)
        if old_conn is not None:
            await self._close_connection(old_conn)

        await websocket.accept()

        conn = ConnectionInfo(websocket=websocket, identity=identity, kind=kind)
        self._connections[identity] = conn
        self._total_connections += 1
        return conn

    def disconnect(self, identity: str, conn: ConnectionInfo) -> bool:
        """
        Отключить клиента.

        Returns:
            True если отключено текущее соединение идентификатора
            (False — соединение уже заменено новым)
        """
        if self._connections.get(identity) is not conn:
            return False
        del self._connections[identity]
        return True

    async def send(self, handle: ConnectionInfo, message: dict[str, Any]) -> bool:
        """
        Отправить сообщение по дескриптору.

        Returns:
            True если сообщение отправлено
        """
        try:
            await handle.websocket.send_json(message)
        except Exception as e:
            await log_info(f"Не удалось отправить сообщение {handle.identity}: {e}", type_msg=TypeMsg.DEBUG)
            return False
        handle.messages_sent += 1
        self._total_messages_sent += 1
        return True

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        return {
            "active_connections": len(self._connections),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
            "connections_by_kind": self._count_by_kind(),
        }

    def _count_by_kind(self) -> dict[str, int]:
        """Подсчёт соединений по виду участника."""
        counts: dict[str, int] = {}
        for conn in self._connections.values():
            counts[conn.kind] = counts.get(conn.kind, 0) + 1
        return counts

    async def _close_connection(self, conn: ConnectionInfo) -> None:
        """Закрыть соединение."""
        try:
            await conn.websocket.close()
        except Exception as e:
            await log_info(f"Старое соединение {conn.identity} уже закрыто: {e}", type_msg=TypeMsg.DEBUG)
