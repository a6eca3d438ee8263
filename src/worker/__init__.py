# src/worker/__init__.py
"""
Фоновые воркеры шлюза.
"""

from src.worker.autosave import RideAutosaver

__all__ = ["RideAutosaver"]
