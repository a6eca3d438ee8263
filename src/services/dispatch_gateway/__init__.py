# src/services/dispatch_gateway/__init__.py
"""
WebSocket шлюз диспетчера: транспорт команд и событий.
"""
