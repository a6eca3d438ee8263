# src/services/dispatch_gateway/app.py
"""
FastAPI приложение для WebSocket шлюза диспетчера.

WebSocket endpoints:
- /ws/requester/{identity} — для заказчиков
- /ws/worker/{identity} — для исполнителей

REST endpoints:
- GET /health — проверка здоровья
- GET /stats — статистика соединений, присутствия и поездок
- GET /rides/{ride_id} — актуальное состояние поездки
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.common.constants import PresenceKind, RideStatus, TypeMsg
from src.common.exceptions import (
    DispatchError,
    InvalidRequest,
    NotAuthenticated,
    NotAuthorized,
    RideNotFound,
)
from src.common.logger import log_error, log_info, setup_logging
from src.config.loader import Settings
from src.core.negotiation.service import NegotiationEngine
from src.infra.redis_client import RedisClient, get_redis
from src.services.dispatch_gateway.commands import error_reply
from src.services.dispatch_gateway.dependencies import (
    DispatchComponents,
    build_components,
    get_components,
    get_engine,
)

SERVICE_NAME = "dispatch_gateway"


# === MODELS ===

class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""
    service: str
    status: str = "healthy"  # healthy, degraded
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)


class StatsResponse(BaseModel):
    """Статистика шлюза."""
    connections: dict[str, Any]
    presence: dict[str, dict[str, int]]
    rides: dict[str, int]


# Коды HTTP для ошибок диспетчера
_HTTP_STATUS: dict[type[DispatchError], int] = {
    NotAuthenticated: 401,
    NotAuthorized: 403,
    RideNotFound: 404,
}


async def dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    """Ошибка диспетчера → JSON ответ с кодом."""
    status_code = _HTTP_STATUS.get(type(exc), 400)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Создаёт приложение шлюза.

    Args:
        settings: Настройки (по умолчанию — из config.json)
    """
    if settings is None:
        from src.config import settings as default_settings
        settings = default_settings

    # === LIFESPAN ===

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Жизненный цикл приложения."""
        setup_logging()

        redis_client: RedisClient | None = None
        if settings.storage.STORAGE_BACKEND == "redis" or settings.gateway.PUBLISH_EVENTS_TO_REDIS:
            redis_client = get_redis()
            await redis_client.connect(
                url=settings.redis.url,
                max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
                namespace=settings.redis.REDIS_NAMESPACE,
            )

        components = build_components(settings, redis_client)
        restored = components.ledger.restore(await components.store.load())
        app.state.components = components
        app.state.redis = redis_client

        if components.autosaver is not None:
            await components.autosaver.start()

        await log_info(
            f"Шлюз диспетчера запущен: хранилище {settings.storage.STORAGE_BACKEND}, восстановлено поездок: {restored}",
            type_msg=TypeMsg.INFO,
        )

        yield

        # Shutdown
        if components.autosaver is not None:
            await components.autosaver.stop()
        if redis_client is not None:
            await redis_client.disconnect()
        await log_info("Шлюз диспетчера остановлен", type_msg=TypeMsg.INFO)

    # === APP ===

    app = FastAPI(
        title="Ride Dispatch Gateway",
        description="WebSocket шлюз переговоров заказчиков и исполнителей.",
        version=settings.system.VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_exception_handler(DispatchError, dispatch_error_handler)

    # === HEALTH CHECK ===

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check(request: Request) -> HealthStatus:
        """Проверка здоровья сервиса."""
        dependencies: dict[str, str] = {"storage": settings.storage.STORAGE_BACKEND}
        status = "healthy"
        redis_client: RedisClient | None = getattr(request.app.state, "redis", None)
        if redis_client is not None:
            redis_ok = await redis_client.health_check()
            dependencies["redis"] = "healthy" if redis_ok else "unhealthy"
            if not redis_ok:
                status = "degraded"
        return HealthStatus(
            service=SERVICE_NAME,
            status=status,
            version=settings.system.VERSION,
            dependencies=dependencies,
        )

    # === STATS ===

    @app.get("/stats", response_model=StatsResponse, tags=["Stats"])
    async def get_stats(components: DispatchComponents = Depends(get_components)) -> StatsResponse:
        """Статистика соединений, присутствия и поездок по статусам."""
        rides = {status.value: 0 for status in RideStatus}
        for ride in components.ledger.list_rides():
            rides[ride.status.value] += 1
        return StatsResponse(
            connections=components.manager.get_stats(),
            presence=components.directory.stats(),
            rides=rides,
        )

    # === RIDES ===

    @app.get("/rides/{ride_id}", tags=["Rides"])
    async def get_ride(
        ride_id: str,
        identity: Optional[str] = Query(default=None),
        engine: NegotiationEngine = Depends(get_engine),
    ) -> dict[str, Any]:
        """
        Актуальное состояние поездки (повторная синхронизация после переподключения).

        - Если указан `identity` — он должен быть зарегистрирован
        """
        return engine.get_ride(ride_id, identity).model_dump(mode="json")

    # === WEBSOCKET ===

    @app.websocket("/ws/{kind}/{identity}")
    async def websocket_session(websocket: WebSocket, kind: str, identity: str) -> None:
        """
        WebSocket сессия участника.

        Входящие сообщения:
        - {"action": "request_ride", "payload": {"pickup": ..., "dropoff": ...}, "request_id": "..."}
        - {"action": "submit_offer", "payload": {"ride_id": ..., "price": ..., "eta_minutes": ...}}
        - {"action": "accept_offer", "payload": {"ride_id": ..., "worker_identity": ...}}
        - {"action": "advance_status", "payload": {"ride_id": ..., "status": "picked_up"}}
        - {"action": "cancel_ride", "payload": {"ride_id": ...}}
        - {"action": "get_ride", "payload": {"ride_id": ...}}
        - {"action": "ping"}
        """
        if kind not in {k.value for k in PresenceKind}:
            await websocket.close(code=1008)
            return

        components: DispatchComponents = websocket.app.state.components
        manager = components.manager
        engine = components.engine

        conn = await manager.connect(websocket, identity, kind)
        presence = await engine.connect(identity, kind, conn)
        await manager.send(conn, {
            "type": "connected",
            "identity": identity,
            "kind": kind,
            "availability": presence.availability.value,
        })

        try:
            while True:
                text = await websocket.receive_text()
                try:
                    raw = json.loads(text)
                except json.JSONDecodeError:
                    reply = error_reply(InvalidRequest("Message is not valid JSON"))
                else:
                    reply = await components.router.dispatch(identity, raw)
                await manager.send(conn, reply)

        except WebSocketDisconnect:
            pass
        except Exception as e:
            await log_error(f"Ошибка WebSocket сессии {identity}: {e}", exc_info=True)
        finally:
            if manager.disconnect(identity, conn):
                await engine.disconnect(identity)

    return app


app = create_app()
