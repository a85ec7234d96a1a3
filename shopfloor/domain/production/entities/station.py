"""Stations, their dependencies and the operators acting on them."""

from uuid import UUID, uuid4

from pydantic import Field, model_validator

from ...shared.base import ValueObject


class Station(ValueObject):
    """A workstation items pass through, ordered by ``sort_order`` on the floor."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=100)
    sort_order: int = Field(default=0, ge=0)


class StationDependency(ValueObject):
    """
    ``station_id`` may only start a row once ``depends_on_station_id`` has
    finished the same row. A station with several dependencies needs all of
    them done.
    """

    id: UUID = Field(default_factory=uuid4)
    station_id: str = Field(min_length=1)
    depends_on_station_id: str = Field(min_length=1)

    @model_validator(mode="after")
    def not_self_dependent(self) -> "StationDependency":
        if self.station_id == self.depends_on_station_id:
            raise ValueError("A station cannot depend on itself")
        return self


class Actor(ValueObject):
    """The operator performing an action."""

    id: str = Field(min_length=1)
    name: str = ""
    # Admins, owners and production managers may start work ahead of plan
    # and take batches off the queue.
    can_manage_queue: bool = False

    @property
    def display_name(self) -> str:
        return self.name or self.id
