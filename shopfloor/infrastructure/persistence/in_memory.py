"""
In-memory persistence adapters.

Thread-safe, versioned stores for tests and for embedding the engine in a
process that keeps its own state. Stored records are never handed out; every
read returns a copy, as a database would.
"""

import threading
from collections.abc import Iterable, Mapping
from uuid import UUID

from ...domain.production.entities.batch_run import BatchRun
from ...domain.production.entities.production_item import ProductionItem
from ...domain.production.entities.station import Station, StationDependency
from ...domain.production.repositories.production_repository import (
    ProductionRepository,
)
from ...domain.production.repositories.providers import (
    CalendarProvider,
    DependencyProvider,
)
from ...domain.production.value_objects.keys import LogicalItemKey, RunKey
from ...domain.production.value_objects.working_calendar import (
    WorkingCalendar,
    parse_working_calendar,
)
from ...domain.shared.exceptions import ConcurrentModificationError, NotFoundError


class InMemoryProductionRepository(ProductionRepository):
    """Dictionary-backed ProductionRepository with optimistic versioning."""

    def __init__(self) -> None:
        self._items: dict[UUID, ProductionItem] = {}
        self._runs: dict[RunKey, BatchRun] = {}
        self._order_durations: dict[str, int] = {}
        self._lock = threading.RLock()

    @staticmethod
    def _copy(entity):
        return entity.model_copy(deep=True)

    # Items

    def get_item(self, item_id: UUID) -> ProductionItem | None:
        with self._lock:
            item = self._items.get(item_id)
            return self._copy(item) if item else None

    def list_items_by_logical_key(self, key: LogicalItemKey) -> list[ProductionItem]:
        with self._lock:
            return [
                self._copy(item)
                for item in self._items.values()
                if item.logical_key == key
            ]

    def list_items_by_run(self, key: RunKey) -> list[ProductionItem]:
        with self._lock:
            return [
                self._copy(item) for item in self._items.values() if item.run_key == key
            ]

    def list_items_by_order(self, order_id: str) -> list[ProductionItem]:
        with self._lock:
            return [
                self._copy(item)
                for item in self._items.values()
                if item.order_id == order_id
            ]

    def add_items(self, items: Iterable[ProductionItem]) -> list[ProductionItem]:
        items = list(items)
        with self._lock:
            for item in items:
                if item.id in self._items:
                    raise ValueError(f"ProductionItem {item.id} already exists")
            for item in items:
                self._items[item.id] = self._copy(item)
            return [self._copy(item) for item in items]

    def save_item(
        self, item: ProductionItem, expected_version: int | None = None
    ) -> ProductionItem:
        expected = item.version if expected_version is None else expected_version
        with self._lock:
            stored = self._items.get(item.id)
            if stored is None:
                raise NotFoundError("ProductionItem", item.id)
            if stored.version != expected:
                raise ConcurrentModificationError("ProductionItem", item.id, expected)
            saved = item.model_copy(update={"version": expected + 1}, deep=True)
            self._items[item.id] = saved
            return self._copy(saved)

    # Runs

    def get_run(self, key: RunKey) -> BatchRun | None:
        with self._lock:
            run = self._runs.get(key)
            return self._copy(run) if run else None

    def list_runs_by_order(self, order_id: str) -> list[BatchRun]:
        with self._lock:
            runs = [run for run in self._runs.values() if run.order_id == order_id]
            runs.sort(key=lambda run: (run.batch_code, run.step_index))
            return [self._copy(run) for run in runs]

    def add_runs(self, runs: Iterable[BatchRun]) -> list[BatchRun]:
        runs = list(runs)
        with self._lock:
            for run in runs:
                if run.run_key in self._runs:
                    raise ValueError(f"BatchRun {run.run_key} already exists")
            for run in runs:
                self._runs[run.run_key] = self._copy(run)
            return [self._copy(run) for run in runs]

    def save_run(self, run: BatchRun, expected_version: int | None = None) -> BatchRun:
        expected = run.version if expected_version is None else expected_version
        with self._lock:
            stored = self._runs.get(run.run_key)
            if stored is None or stored.id != run.id:
                raise NotFoundError("BatchRun", run.id)
            if stored.version != expected:
                raise ConcurrentModificationError("BatchRun", run.id, expected)
            saved = run.model_copy(update={"version": expected + 1}, deep=True)
            self._runs[run.run_key] = saved
            return self._copy(saved)

    def delete_run(self, key: RunKey) -> int:
        with self._lock:
            self._runs.pop(key, None)
            doomed = [
                item_id for item_id, item in self._items.items() if item.run_key == key
            ]
            for item_id in doomed:
                del self._items[item_id]
            return len(doomed)

    # Orders

    def record_order_duration(self, order_id: str, total_minutes: int) -> bool:
        with self._lock:
            if order_id in self._order_durations:
                return False
            self._order_durations[order_id] = total_minutes
            return True

    def get_order_duration(self, order_id: str) -> int | None:
        with self._lock:
            return self._order_durations.get(order_id)


class InMemoryCalendarProvider(CalendarProvider):
    """Per-tenant calendars, falling back to a default calendar."""

    def __init__(
        self,
        calendars: Mapping[str, WorkingCalendar] | None = None,
        default: WorkingCalendar | None = None,
    ) -> None:
        self._calendars = dict(calendars or {})
        self._default = default or WorkingCalendar.default()

    def set_calendar(self, tenant_id: str, calendar: WorkingCalendar) -> None:
        self._calendars[tenant_id] = calendar

    def set_from_settings(self, tenant_id: str, raw: Mapping) -> WorkingCalendar:
        """Store a calendar built from raw tenant settings."""
        calendar = parse_working_calendar(raw)
        self._calendars[tenant_id] = calendar
        return calendar

    def get_working_calendar(self, tenant_id: str) -> WorkingCalendar:
        return self._calendars.get(tenant_id, self._default)


class InMemoryDependencyProvider(DependencyProvider):
    """Station list and dependency edges held in memory."""

    def __init__(
        self,
        stations: Iterable[Station] = (),
        dependencies: Iterable[StationDependency] = (),
    ) -> None:
        self._stations = {station.id: station for station in stations}
        self._dependencies: list[StationDependency] = list(dependencies)

    @classmethod
    def from_mapping(
        cls,
        dependencies: Mapping[str, Iterable[str]],
        stations: Iterable[Station] = (),
    ) -> "InMemoryDependencyProvider":
        """Build from ``{station_id: [depends_on_station_id, ...]}``."""
        edges = [
            StationDependency(station_id=station_id, depends_on_station_id=upstream)
            for station_id, upstreams in dependencies.items()
            for upstream in upstreams
        ]
        return cls(stations, edges)

    def add_station(self, station: Station) -> None:
        self._stations[station.id] = station

    def add_dependency(self, station_id: str, depends_on_station_id: str) -> None:
        self._dependencies.append(
            StationDependency(
                station_id=station_id, depends_on_station_id=depends_on_station_id
            )
        )

    def list_dependencies(self, station_id: str) -> list[str]:
        return [
            dep.depends_on_station_id
            for dep in self._dependencies
            if dep.station_id == station_id
        ]

    def get_station(self, station_id: str) -> Station | None:
        return self._stations.get(station_id)
