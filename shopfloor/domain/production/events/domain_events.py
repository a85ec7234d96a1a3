"""
Domain Events

Immutable records of what happened to items, runs and orders. They are
handed to the event sink after the underlying change has been committed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, ClassVar
from uuid import UUID, uuid4

from ...shared.base import utcnow


@dataclass(frozen=True, kw_only=True)
class DomainEvent:
    """Base class for all production events."""

    event_type: ClassVar[str] = "domain_event"

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=utcnow)
    tenant_id: str = "default"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.event_type
        return data


@dataclass(frozen=True, kw_only=True)
class ItemStatusChanged(DomainEvent):
    """Raised for every accepted item transition, operator or system driven."""

    event_type: ClassVar[str] = "item_status_changed"

    item_id: UUID
    order_id: str
    batch_code: str
    station_id: str
    from_status: str
    to_status: str
    actor_id: str | None = None
    reason: str | None = None


@dataclass(frozen=True, kw_only=True)
class ItemBlocked(DomainEvent):
    """Raised when an operator reports an obstruction on an item."""

    event_type: ClassVar[str] = "item_blocked"

    item_id: UUID
    order_id: str
    item_name: str
    station_name: str
    reason: str
    actor_name: str


@dataclass(frozen=True, kw_only=True)
class ItemResumed(DomainEvent):
    """Raised when a blocked item goes back to work."""

    event_type: ClassVar[str] = "item_resumed"

    item_id: UUID
    order_id: str
    item_name: str
    station_name: str
    actor_name: str


@dataclass(frozen=True, kw_only=True)
class ItemCompleted(DomainEvent):
    """Raised for the first item of a run finished within the quiet period."""

    event_type: ClassVar[str] = "item_completed"

    item_id: UUID
    order_id: str
    batch_code: str
    station_id: str
    item_name: str
    station_name: str
    actor_name: str
    duration_minutes: int | None = None


@dataclass(frozen=True, kw_only=True)
class RunStatusChanged(DomainEvent):
    """Raised when a run's derived status changes."""

    event_type: ClassVar[str] = "run_status_changed"

    run_id: UUID
    order_id: str
    batch_code: str
    station_id: str
    from_status: str
    to_status: str


@dataclass(frozen=True, kw_only=True)
class OrderCompleted(DomainEvent):
    """Raised once, when every item of an order is done."""

    event_type: ClassVar[str] = "order_completed"

    order_id: str
    total_duration_minutes: int
