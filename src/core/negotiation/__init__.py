# src/core/negotiation/__init__.py
"""
Движок переговоров: подача и принятие предложений.
"""

from src.core.negotiation.service import NegotiationEngine

__all__ = [
    "NegotiationEngine",
]
