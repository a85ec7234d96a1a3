"""Batch run entity: all items of one order batch at one station."""

from datetime import date, datetime

from pydantic import Field

from ...shared.base import Entity
from ..value_objects.enums import ItemStatus
from ..value_objects.keys import RunKey


class BatchRun(Entity):
    """
    Aggregate view of a batch at a station.

    The status is always derived from the run's items; the timestamps are
    recorded the first time the derived status reaches them and are never
    overwritten afterwards.
    """

    tenant_id: str = Field(default="default", min_length=1)
    order_id: str = Field(min_length=1)
    batch_code: str = Field(min_length=1)
    station_id: str = Field(min_length=1)

    # Position of the station in the batch's route
    step_index: int = Field(default=0, ge=0)
    planned_date: date | None = None

    status: ItemStatus = Field(default=ItemStatus.QUEUED)
    started_at: datetime | None = None
    done_at: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=0)

    def is_valid(self) -> bool:
        """Validate business rules."""
        if self.done_at is not None and self.duration_minutes is None:
            return False
        return True

    @property
    def run_key(self) -> RunKey:
        return RunKey(self.order_id, self.batch_code, self.station_id)

    def is_planned_after(self, today: date) -> bool:
        return self.planned_date is not None and self.planned_date > today

    def apply_status(
        self,
        status: ItemStatus,
        now: datetime,
        total_duration_minutes: int = 0,
    ) -> bool:
        """
        Store a recomputed status. Returns False when it is unchanged.

        ``total_duration_minutes`` is the sum of the item durations, used the
        first time the run is done.
        """
        if status == self.status:
            return False

        self.status = status
        if status == ItemStatus.IN_PROGRESS and self.started_at is None:
            self.started_at = now
        if status == ItemStatus.DONE:
            if self.started_at is None:
                self.started_at = now
            if self.done_at is None:
                self.done_at = now
            if self.duration_minutes is None:
                self.duration_minutes = total_duration_minutes
        self.mark_updated(now)
        return True
