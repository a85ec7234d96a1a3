"""
Domain Events Module

Exports all production domain events.
"""

from .domain_events import (
    DomainEvent,
    ItemBlocked,
    ItemCompleted,
    ItemResumed,
    ItemStatusChanged,
    OrderCompleted,
    RunStatusChanged,
)

__all__ = [
    "DomainEvent",
    "ItemStatusChanged",
    "ItemBlocked",
    "ItemResumed",
    "ItemCompleted",
    "RunStatusChanged",
    "OrderCompleted",
]
