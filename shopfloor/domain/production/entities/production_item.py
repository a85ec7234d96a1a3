"""Production item entity: one construction row at one station."""

from datetime import datetime

from pydantic import Field

from ...shared.base import Entity
from ...shared.exceptions import PreconditionFailedError
from ..value_objects.enums import ItemStatus
from ..value_objects.keys import LogicalItemKey, RunKey
from ..value_objects.working_calendar import WorkingCalendar


class ProductionItem(Entity):
    """
    A single row of an order batch as it is worked at one station.

    The same row exists once per station it visits; those siblings share a
    LogicalItemKey and their statuses drive each other's eligibility.

    Operator transitions mutate the item in place and return whether anything
    changed. Re-applying an action to an item that is already in the action's
    target state is a no-op so that retried requests are harmless. Guard
    violations raise PreconditionFailedError and leave the item untouched.
    """

    tenant_id: str = Field(default="default", min_length=1)
    order_id: str = Field(min_length=1)
    batch_code: str = Field(min_length=1)
    row_key: str = Field(min_length=1)
    station_id: str = Field(min_length=1)

    item_name: str = ""
    qty: float = Field(default=1, ge=0)
    material: str | None = None

    status: ItemStatus = Field(default=ItemStatus.PENDING)

    # Execution data
    started_at: datetime | None = None
    done_at: datetime | None = None
    duration_minutes: int | None = Field(default=None, ge=0)

    # Blocking data, present only while blocked
    blocked_reason: str | None = None
    blocked_reason_id: str | None = None
    blocked_at: datetime | None = None
    blocked_by: str | None = None

    def is_valid(self) -> bool:
        """Validate business rules."""
        if self.duration_minutes is not None and self.status != ItemStatus.DONE:
            return False
        if self.status == ItemStatus.DONE and self.done_at is None:
            return False
        if self.status != ItemStatus.BLOCKED and self.blocked_at is not None:
            return False
        return True

    @property
    def logical_key(self) -> LogicalItemKey:
        return LogicalItemKey(self.order_id, self.batch_code, self.row_key)

    @property
    def run_key(self) -> RunKey:
        return RunKey(self.order_id, self.batch_code, self.station_id)

    @property
    def is_done(self) -> bool:
        return self.status == ItemStatus.DONE

    @property
    def has_started(self) -> bool:
        return self.started_at is not None

    def _ensure_not_done(self, action: str) -> None:
        if self.status.is_terminal:
            raise PreconditionFailedError(
                "TERMINAL_STATE",
                f"Cannot {action} item {self.id}: it is already done",
                {"item_id": str(self.id), "status": self.status.value},
            )

    def _ensure_dependencies_met(self, dependencies_met: bool) -> None:
        # Only the first start is gated; work already begun may always continue.
        if not self.has_started and not dependencies_met:
            raise PreconditionFailedError(
                "DEPENDENCIES_NOT_MET",
                f"Cannot start item {self.id}: upstream stations are not done",
                {"item_id": str(self.id), "station_id": self.station_id},
            )

    def _move_to(self, target: ItemStatus, now: datetime) -> None:
        if not self.status.can_transition_to(target):
            raise PreconditionFailedError(
                "INVALID_TRANSITION",
                f"Item {self.id} cannot move from {self.status.value} to {target.value}",
                {"item_id": str(self.id), "status": self.status.value},
            )
        self.status = target
        self.mark_updated(now)

    def _clear_blocked(self) -> None:
        self.blocked_reason = None
        self.blocked_reason_id = None
        self.blocked_at = None
        self.blocked_by = None

    def start(self, now: datetime, dependencies_met: bool = True) -> bool:
        """
        Begin work on the item.

        Starting a blocked item resumes it.

        Raises:
            PreconditionFailedError: item is done, or dependencies are unmet
        """
        self._ensure_not_done("start")
        if self.status == ItemStatus.IN_PROGRESS:
            return False
        if self.status == ItemStatus.BLOCKED:
            return self.resume(now, dependencies_met)

        self._ensure_dependencies_met(dependencies_met)
        if self.started_at is None:
            self.started_at = now
        self._move_to(ItemStatus.IN_PROGRESS, now)
        return True

    def resume(self, now: datetime, dependencies_met: bool = True) -> bool:
        """
        Return a blocked item to work, clearing the blocked fields.

        Raises:
            PreconditionFailedError: item is done, was never blocked, or (if
                it was blocked before being started) dependencies are unmet
        """
        self._ensure_not_done("resume")
        if self.status == ItemStatus.IN_PROGRESS:
            return False
        if self.status != ItemStatus.BLOCKED:
            raise PreconditionFailedError(
                "NOT_BLOCKED",
                f"Cannot resume item {self.id} from status {self.status.value}",
                {"item_id": str(self.id), "status": self.status.value},
            )

        self._ensure_dependencies_met(dependencies_met)
        if self.started_at is None:
            self.started_at = now
        self._clear_blocked()
        self._move_to(ItemStatus.IN_PROGRESS, now)
        return True

    def mark_done(self, now: datetime, calendar: WorkingCalendar) -> bool:
        """
        Finish the item, recording its working-time duration.

        Raises:
            PreconditionFailedError: item is not in progress
        """
        if self.status == ItemStatus.DONE:
            return False
        if self.status != ItemStatus.IN_PROGRESS:
            raise PreconditionFailedError(
                "NOT_IN_PROGRESS",
                f"Cannot complete item {self.id} from status {self.status.value}",
                {"item_id": str(self.id), "status": self.status.value},
            )

        self.done_at = now
        self.duration_minutes = calendar.compute_working_minutes(
            self.started_at, now, now=now
        )
        self._move_to(ItemStatus.DONE, now)
        return True

    def mark_blocked(
        self,
        now: datetime,
        reason: str,
        reason_id: str | None = None,
        blocked_by: str | None = None,
    ) -> bool:
        """
        Report an obstruction. Allowed before work has started; ``started_at``
        is left as it was.

        Raises:
            PreconditionFailedError: item is done
        """
        self._ensure_not_done("block")
        if self.status == ItemStatus.BLOCKED:
            return False

        self.blocked_reason = reason
        self.blocked_reason_id = reason_id
        self.blocked_at = now
        self.blocked_by = blocked_by
        self._move_to(ItemStatus.BLOCKED, now)
        return True

    def apply_system_status(self, status: ItemStatus, now: datetime) -> bool:
        """
        Scheduler-driven pending/queued flip. Items an operator has taken over
        are left alone.
        """
        if not status.is_system_assigned:
            raise ValueError(f"{status.value} is not a scheduler-assigned status")
        if not self.status.is_system_assigned or self.status == status:
            return False
        self._move_to(status, now)
        return True
