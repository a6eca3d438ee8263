# src/shared/__init__.py
"""
Общий код между движком и транспортом.

Модули:
- events: схемы событий, рассылаемых участникам и наблюдателям
"""

__all__: list[str] = []
