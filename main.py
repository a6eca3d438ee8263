#!/usr/bin/env python3
# main.py
"""
Главная точка входа диспетчера поездок.
Запускает WebSocket шлюз (uvicorn) с настройками из config/config.json.
"""

from __future__ import annotations

import asyncio
import sys

from src.config import settings
from src.common.logger import setup_logging, log_info, log_error
from src.common.constants import TypeMsg


async def run_gateway() -> None:
    """Запускает WebSocket шлюз диспетчера."""
    import uvicorn

    await log_info(
        f"Запуск шлюза диспетчера на {settings.gateway.HOST}:{settings.gateway.PORT}...",
        type_msg=TypeMsg.INFO
    )

    config = uvicorn.Config(
        "src.services.dispatch_gateway.app:app",
        host=settings.gateway.HOST,
        port=settings.gateway.PORT,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    try:
        await server.serve()
    except asyncio.CancelledError:
        await log_info("Шлюз диспетчера: graceful shutdown", type_msg=TypeMsg.DEBUG)
        await server.shutdown()


async def main() -> None:
    """Главная функция запуска."""
    setup_logging()

    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION} — окружение '{settings.system.ENVIRONMENT}'",
        type_msg=TypeMsg.INFO
    )

    try:
        await run_gateway()
    except asyncio.CancelledError:
        await log_info("Задача отменена, выполняется graceful shutdown", type_msg=TypeMsg.INFO)
    except Exception as e:
        await log_error(f"Критическая ошибка: {e}")
        raise
    finally:
        await log_info("Приложение остановлено", type_msg=TypeMsg.INFO)


def print_usage() -> None:
    """Выводит справку по использованию."""
    print(f"""
{settings.system.PROJECT_NAME} v{settings.system.VERSION} — диспетчер поездок и переговоров

Использование:
    python main.py

Настройки: config/config.json, переопределения через .env / переменные окружения
    GATEWAY_PORT, STORAGE_BACKEND (memory | json | redis), STORAGE_FILE_PATH,
    REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, LOG_LEVEL

WebSocket:
    ws://{settings.gateway.HOST}:{settings.gateway.PORT}/ws/requester/<identity>
    ws://{settings.gateway.HOST}:{settings.gateway.PORT}/ws/worker/<identity>
    """)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1].lower() in ("--help", "-h"):
        print_usage()
        sys.exit(0)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
