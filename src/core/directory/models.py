# src/core/directory/models.py
"""
Модель присутствия участника.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.common.constants import Availability, PresenceKind
from src.core.rides.models import utcnow


class Presence(BaseModel):
    """Доступность и адрес доставки для одного идентификатора."""

    identity: str = Field(..., description="Идентификатор участника")
    kind: PresenceKind = Field(..., description="Заказчик или исполнитель")
    # Дескриптор соединения принадлежит транспортному слою
    handle: Optional[Any] = Field(None, description="Дескриптор доставки")
    availability: Availability = Field(Availability.AVAILABLE, description="Доступность")
    connected_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_reachable(self) -> bool:
        """Есть ли куда доставлять события."""
        return self.handle is not None and self.availability != Availability.OFFLINE
