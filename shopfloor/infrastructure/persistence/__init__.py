"""In-memory persistence adapters."""

from .in_memory import (
    InMemoryCalendarProvider,
    InMemoryDependencyProvider,
    InMemoryProductionRepository,
)

__all__ = [
    "InMemoryProductionRepository",
    "InMemoryCalendarProvider",
    "InMemoryDependencyProvider",
]
