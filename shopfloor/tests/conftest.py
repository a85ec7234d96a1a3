from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

from shopfloor.application.services.production_service import (
    ProductionEngine,
    ReleaseRow,
)
from shopfloor.core.db import create_db_engine, init_db
from shopfloor.core.retry_mechanisms import RetryConfig
from shopfloor.domain.production.entities.station import Actor, Station
from shopfloor.domain.production.value_objects.working_calendar import WorkingCalendar
from shopfloor.infrastructure.events.event_bus import InMemoryEventBus
from shopfloor.infrastructure.persistence.in_memory import (
    InMemoryCalendarProvider,
    InMemoryDependencyProvider,
    InMemoryProductionRepository,
)

# Monday
START_OF_WEEK = datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable clock for the engine."""

    def __init__(self, now: datetime = START_OF_WEEK) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 0, hours: int = 0, days: int = 0) -> datetime:
        self.now += timedelta(minutes=minutes, hours=hours, days=days)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def office_calendar() -> WorkingCalendar:
    return WorkingCalendar.create([1, 2, 3, 4, 5], [("08:00", "17:00")])


@pytest.fixture
def stations() -> list[Station]:
    return [
        Station(id="cut", name="Cutting", sort_order=0),
        Station(id="edge", name="Edge banding", sort_order=1),
        Station(id="assembly", name="Assembly", sort_order=2),
    ]


@pytest.fixture
def dependency_provider(stations: list[Station]) -> InMemoryDependencyProvider:
    # assembly needs both cutting and edge banding finished
    return InMemoryDependencyProvider.from_mapping(
        {"assembly": ["cut", "edge"]}, stations
    )


@pytest.fixture
def calendar_provider(office_calendar: WorkingCalendar) -> InMemoryCalendarProvider:
    return InMemoryCalendarProvider(default=office_calendar)


@pytest.fixture
def repository() -> InMemoryProductionRepository:
    return InMemoryProductionRepository()


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def engine(
    repository: InMemoryProductionRepository,
    calendar_provider: InMemoryCalendarProvider,
    dependency_provider: InMemoryDependencyProvider,
    event_bus: InMemoryEventBus,
    clock: FakeClock,
) -> ProductionEngine:
    return ProductionEngine(
        repository,
        calendar_provider,
        dependency_provider,
        event_bus,
        clock=clock,
        retry_config=RetryConfig(max_attempts=3),
        quiet_period_minutes=15,
    )


@pytest.fixture
def operator() -> Actor:
    return Actor(id="op-1", name="Alice Operator")


@pytest.fixture
def manager() -> Actor:
    return Actor(id="mgr-1", name="Morgan Manager", can_manage_queue=True)


@pytest.fixture
def released_order(engine: ProductionEngine, manager: Actor) -> str:
    """Order ORD-1, batch B1, rows r1 and r2 released to every station."""
    result = engine.release_batch(
        "ORD-1",
        "B1",
        [
            ReleaseRow(row_key="r1", item_name="Cabinet side", qty=2, material="Oak"),
            ReleaseRow(row_key="r2", item_name="Cabinet top", qty=1, material="Oak"),
        ],
        ["cut", "edge", "assembly"],
        manager,
    )
    assert result.is_success()
    return "ORD-1"


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite database per test."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()
