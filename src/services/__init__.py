# src/services/__init__.py
"""
Сервисы приложения.

Сервисы:
- dispatch_gateway: WebSocket шлюз заказчиков и исполнителей (FastAPI)
"""

__all__: list[str] = []
