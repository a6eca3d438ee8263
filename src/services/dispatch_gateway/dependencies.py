# src/services/dispatch_gateway/dependencies.py
"""
Сборка компонентов диспетчера и зависимости FastAPI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from src.config.loader import Settings
from src.core.directory.service import Directory
from src.core.negotiation.service import NegotiationEngine
from src.core.notifications.observers import RedisRideObserver
from src.core.notifications.service import Notifier
from src.core.rides.ledger import TripLedger
from src.infra.redis_client import RedisClient
from src.infra.ride_store import RideStore, create_ride_store
from src.services.dispatch_gateway.commands import CommandRouter
from src.services.dispatch_gateway.connection_manager import ConnectionManager
from src.worker.autosave import RideAutosaver


@dataclass
class DispatchComponents:
    """Все компоненты одного экземпляра шлюза."""
    ledger: TripLedger
    directory: Directory
    manager: ConnectionManager
    notifier: Notifier
    engine: NegotiationEngine
    router: CommandRouter
    store: RideStore
    autosaver: Optional[RideAutosaver] = None


def build_components(settings: Settings, redis_client: RedisClient | None = None) -> DispatchComponents:
    """
    Собирает компоненты по настройкам.

    Args:
        settings: Настройки приложения
        redis_client: Подключённый клиент Redis (для backend=redis и наблюдателя)
    """
    ledger = TripLedger(settings.dispatch)
    directory = Directory()
    manager = ConnectionManager()
    notifier = Notifier(directory, manager)
    engine = NegotiationEngine(ledger, directory, notifier)

    if settings.gateway.PUBLISH_EVENTS_TO_REDIS and redis_client is not None:
        notifier.add_observer(RedisRideObserver(redis_client))

    store = create_ride_store(settings.storage, redis_client)
    autosaver = None
    if settings.storage.STORAGE_BACKEND != "memory":
        autosaver = RideAutosaver(ledger, store, settings.storage.AUTOSAVE_INTERVAL)

    return DispatchComponents(
        ledger=ledger,
        directory=directory,
        manager=manager,
        notifier=notifier,
        engine=engine,
        router=CommandRouter(engine),
        store=store,
        autosaver=autosaver,
    )


def get_components(request: Request) -> DispatchComponents:
    return request.app.state.components


def get_engine(request: Request) -> NegotiationEngine:
    return get_components(request).engine
