# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Awaitable, Callable
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("STORAGE_BACKEND", "memory")

from src.common.constants import PresenceKind
from src.config.loader import DispatchSettings
from src.core.directory.models import Presence
from src.core.directory.service import Directory
from src.core.negotiation.service import NegotiationEngine
from src.core.notifications.service import Notifier
from src.core.rides.ledger import TripLedger


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "ride_dispatch_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "LOG_FORMAT": "json",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_MAX_BYTES": 1024,
        "REDIS_HOST": "localhost",
        "REDIS_PORT": 6379,
        "REDIS_DB": 1,
        "REDIS_PASSWORD": "",
        "REDIS_NAMESPACE": "dispatch_test",
        "REDIS_MAX_CONNECTIONS": 10,
        "MAX_OFFER_PRICE": 500.0,
        "MAX_ETA_MINUTES": 60,
        "MAX_LOCATION_LENGTH": 100,
        "STORAGE_BACKEND": "json",
        "STORAGE_FILE_PATH": "data/test_rides.json",
        "AUTOSAVE_INTERVAL": 15,
        "GATEWAY_HOST": "127.0.0.1",
        "GATEWAY_PORT": 9000,
        "PUBLISH_EVENTS_TO_REDIS": True,
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2), encoding="utf-8")
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    redis.sadd = AsyncMock(return_value=1)
    redis.smembers = AsyncMock(return_value=set())
    redis.publish = AsyncMock(return_value=1)
    return redis


class RecordingTransport:
    """Транспорт для тестов: дескриптор — строка, сообщения копятся в списке."""

    def __init__(self) -> None:
        self.sent: list[tuple[Any, dict[str, Any]]] = []
        self.refuse: set[Any] = set()

    async def send(self, handle: Any, message: dict[str, Any]) -> bool:
        if handle in self.refuse:
            return False
        self.sent.append((handle, message))
        return True

    def messages_for(self, handle: Any) -> list[dict[str, Any]]:
        return [message for h, message in self.sent if h == handle]

    def events_for(self, handle: Any) -> list[str]:
        return [message["event"] for message in self.messages_for(handle)]

    def clear(self) -> None:
        self.sent.clear()


# =============================================================================
# ФИКСТУРЫ ДИСПЕТЧЕРА
# =============================================================================

@pytest.fixture
def dispatch_limits() -> DispatchSettings:
    """Ограничения предложений для тестов."""
    return DispatchSettings(MAX_OFFER_PRICE=1000.0, MAX_ETA_MINUTES=120, MAX_LOCATION_LENGTH=200)


@pytest.fixture
def ledger(dispatch_limits: DispatchSettings) -> TripLedger:
    """Пустой журнал поездок."""
    return TripLedger(dispatch_limits)


@pytest.fixture
def directory() -> Directory:
    """Пустой каталог присутствия."""
    return Directory()


@pytest.fixture
def transport() -> RecordingTransport:
    """Записывающий транспорт."""
    return RecordingTransport()


@pytest.fixture
def notifier(directory: Directory, transport: RecordingTransport) -> Notifier:
    """Сервис уведомлений поверх записывающего транспорта."""
    return Notifier(directory, transport)


@pytest.fixture
def engine(ledger: TripLedger, directory: Directory, notifier: Notifier) -> NegotiationEngine:
    """Движок переговоров с реальными журналом и каталогом."""
    return NegotiationEngine(ledger, directory, notifier)


@pytest.fixture
def connect(engine: NegotiationEngine) -> Callable[[str, PresenceKind], Awaitable[Presence]]:
    """Подключает участника; дескриптором служит сам идентификатор."""
    async def _connect(identity: str, kind: PresenceKind = PresenceKind.WORKER) -> Presence:
        return await engine.connect(identity, kind, identity)
    return _connect
