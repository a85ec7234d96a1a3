"""
Repository and provider interfaces of the production domain.
"""

from .production_repository import ProductionRepository
from .providers import CalendarProvider, DependencyProvider, EventSink

__all__ = [
    "ProductionRepository",
    "CalendarProvider",
    "DependencyProvider",
    "EventSink",
]
