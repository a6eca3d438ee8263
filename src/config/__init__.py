# src/config/__init__.py
"""
Конфигурация диспетчера.
Экспортирует синглтон настроек и секции.
"""

from src.config.loader import (
    Settings,
    DispatchSettings,
    StorageSettings,
    GatewaySettings,
    get_project_root,
    get_settings,
    settings,
)

__all__ = [
    "Settings",
    "DispatchSettings",
    "StorageSettings",
    "GatewaySettings",
    "get_project_root",
    "get_settings",
    "settings",
]
