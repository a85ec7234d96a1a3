"""Collaborator interfaces the engine is configured with."""

from abc import ABC, abstractmethod

from ..entities.station import Station
from ..events.domain_events import DomainEvent
from ..value_objects.working_calendar import WorkingCalendar


class CalendarProvider(ABC):
    """Source of per-tenant working calendars."""

    @abstractmethod
    def get_working_calendar(self, tenant_id: str) -> WorkingCalendar:
        """Return the tenant's calendar (a default one if none is configured)."""
        pass


class DependencyProvider(ABC):
    """Source of the station dependency configuration."""

    @abstractmethod
    def list_dependencies(self, station_id: str) -> list[str]:
        """Stations that must finish a row before ``station_id`` may start it."""
        pass

    @abstractmethod
    def get_station(self, station_id: str) -> Station | None:
        """Station details for notification payloads."""
        pass


class EventSink(ABC):
    """Receiver of domain events (push notifications, activity log, live views)."""

    @abstractmethod
    def emit(self, event: DomainEvent) -> None:
        """Accept one event. May raise; callers treat delivery as best effort."""
        pass
