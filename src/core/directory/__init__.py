# src/core/directory/__init__.py
"""
Каталог присутствия участников.
"""

from src.core.directory.models import Presence
from src.core.directory.service import Directory

__all__ = [
    "Presence",
    "Directory",
]
