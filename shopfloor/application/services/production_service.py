"""
Production application service.

The entry point operators and the surrounding application call into. Each
operation is a single-item transaction: the item is read, transitioned and
saved under a per-item lock, and only after the save has committed are the
run aggregate, sibling eligibility and notifications brought up to date.
"""

import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from ...core.config import settings
from ...core.observability import (
    get_logger,
    log_error_with_context,
    monitor_transition,
    set_actor_id,
    set_correlation_id,
)
from ...core.retry_mechanisms import RetryConfig
from ...custom_types import Failure, Result, Success
from ...domain.production.entities.batch_run import BatchRun
from ...domain.production.entities.production_item import ProductionItem
from ...domain.production.entities.station import Actor
from ...domain.production.repositories.production_repository import (
    ProductionRepository,
)
from ...domain.production.repositories.providers import (
    CalendarProvider,
    DependencyProvider,
    EventSink,
)
from ...domain.production.services.dependency_resolver import (
    build_sibling_statuses,
    dependencies_met,
)
from ...domain.production.services.notification_emitter import NotificationEmitter
from ...domain.production.services.run_aggregator import (
    RunAggregator,
    compute_run_status,
)
from ...domain.production.services.scheduling_reconciler import (
    ReconcileReport,
    SchedulingReconciler,
)
from ...domain.production.value_objects.enums import ItemStatus, OperatorAction
from ...domain.production.value_objects.keys import LogicalItemKey, RunKey
from ...domain.shared.base import utcnow
from ...domain.shared.exceptions import (
    ConcurrentModificationError,
    DomainError,
    NotFoundError,
    PreconditionFailedError,
)

logger = get_logger(__name__)

ItemResult = Result[ProductionItem, DomainError]


class ReleaseRow(BaseModel):
    """One construction row to release, optionally limited to some stations."""

    row_key: str = Field(min_length=1)
    item_name: str = ""
    qty: float = Field(default=1, ge=0)
    material: str | None = None
    # None means every station of the route
    station_ids: list[str] | None = None


class ProductionEngine:
    """
    Production scheduling engine.

    Operator actions return ``Success``/``Failure`` results; guard violations,
    missing items and lost version races are failures, never exceptions.
    Retrying an action that has already been applied succeeds with
    ``changed=False`` and writes nothing.
    """

    def __init__(
        self,
        repository: ProductionRepository,
        calendars: CalendarProvider,
        dependencies: DependencyProvider,
        sink: EventSink,
        clock: Callable[[], datetime] | None = None,
        retry_config: RetryConfig | None = None,
        quiet_period_minutes: int | None = None,
    ) -> None:
        self.repository = repository
        self.calendars = calendars
        self.dependencies = dependencies
        self.clock = clock or utcnow

        retry_config = retry_config or RetryConfig.from_settings()
        self.aggregator = RunAggregator(repository, retry_config)
        self.reconciler = SchedulingReconciler(repository, dependencies, retry_config)
        self.emitter = NotificationEmitter(
            sink,
            dependencies,
            quiet_period_minutes
            if quiet_period_minutes is not None
            else settings.DONE_NOTIFICATION_QUIET_PERIOD_MINUTES,
        )

        # item id -> (lock, number of callers holding or waiting for it)
        self._locks: dict[UUID, tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _item_lock(self, item_id: UUID) -> Iterator[None]:
        with self._locks_guard:
            lock, users = self._locks.get(item_id) or (threading.Lock(), 0)
            self._locks[item_id] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                lock, users = self._locks[item_id]
                if users == 1:
                    del self._locks[item_id]
                else:
                    self._locks[item_id] = (lock, users - 1)

    # Operator transitions

    @monitor_transition(OperatorAction.START.value)
    def start(self, item_id: UUID, actor: Actor) -> ItemResult:
        """Start work on an item (resumes it if blocked)."""

        def apply(item: ProductionItem, now: datetime) -> bool:
            if not item.has_started and not actor.can_manage_queue:
                self._ensure_not_ahead_of_plan(item, now)
            return item.start(now, self._dependencies_met(item))

        return self._transition(item_id, actor, OperatorAction.START, apply)

    @monitor_transition(OperatorAction.MARK_DONE.value)
    def mark_done(self, item_id: UUID, actor: Actor) -> ItemResult:
        """Finish an item in progress, recording its working minutes."""

        def apply(item: ProductionItem, now: datetime) -> bool:
            calendar = self.calendars.get_working_calendar(item.tenant_id)
            return item.mark_done(now, calendar)

        return self._transition(item_id, actor, OperatorAction.MARK_DONE, apply)

    @monitor_transition(OperatorAction.MARK_BLOCKED.value)
    def mark_blocked(
        self,
        item_id: UUID,
        actor: Actor,
        reason: str,
        reason_id: str | None = None,
    ) -> ItemResult:
        """Report an obstruction on an item."""

        def apply(item: ProductionItem, now: datetime) -> bool:
            return item.mark_blocked(now, reason, reason_id, blocked_by=actor.id)

        return self._transition(
            item_id, actor, OperatorAction.MARK_BLOCKED, apply, reason=reason
        )

    @monitor_transition(OperatorAction.RESUME.value)
    def resume(self, item_id: UUID, actor: Actor) -> ItemResult:
        """Put a blocked item back to work."""

        def apply(item: ProductionItem, now: datetime) -> bool:
            return item.resume(now, self._dependencies_met(item))

        return self._transition(item_id, actor, OperatorAction.RESUME, apply)

    def _dependencies_met(self, item: ProductionItem) -> bool:
        siblings = self.repository.list_items_by_logical_key(item.logical_key)
        return dependencies_met(
            self.dependencies.list_dependencies(item.station_id),
            build_sibling_statuses(siblings),
        )

    def _ensure_not_ahead_of_plan(self, item: ProductionItem, now: datetime) -> None:
        run = self.repository.get_run(item.run_key)
        if run is None:
            return
        calendar = self.calendars.get_working_calendar(item.tenant_id)
        today = now.astimezone(calendar.zone()).date()
        if run.is_planned_after(today):
            raise PreconditionFailedError(
                "PLANNED_IN_FUTURE",
                f"Batch {run.batch_code} is planned for {run.planned_date}",
                {"item_id": str(item.id), "planned_date": str(run.planned_date)},
            )

    def _transition(
        self,
        item_id: UUID,
        actor: Actor,
        action: OperatorAction,
        apply: Callable[[ProductionItem, datetime], bool],
        reason: str | None = None,
    ) -> ItemResult:
        set_correlation_id()
        set_actor_id(actor.id)
        now = self.clock()

        with self._item_lock(item_id):
            item = self.repository.get_item(item_id)
            if item is None:
                return Failure(NotFoundError("ProductionItem", item_id))

            from_status = item.status
            try:
                changed = apply(item, now)
                if not changed:
                    logger.info(
                        "Transition already applied",
                        item_id=str(item_id),
                        action=action.value,
                        status=item.status.value,
                    )
                    return Success(item, changed=False)
                saved = self.repository.save_item(item)
            except (
                PreconditionFailedError,
                NotFoundError,
                ConcurrentModificationError,
            ) as e:
                logger.info(
                    "Transition rejected",
                    item_id=str(item_id),
                    action=action.value,
                    status=from_status.value,
                    error_type=e.error_type.value,
                    error_message=e.message,
                )
                return Failure(e)

        logger.info(
            "Item transitioned",
            item_id=str(item_id),
            action=action.value,
            from_status=from_status.value,
            to_status=saved.status.value,
        )
        self._after_transition(saved, from_status, actor, now, reason)
        return Success(saved)

    def _after_transition(
        self,
        item: ProductionItem,
        from_status: ItemStatus,
        actor: Actor,
        now: datetime,
        reason: str | None,
    ) -> None:
        """Follow-up work on committed state; never undoes the transition."""
        self.emitter.item_transitioned(item, from_status, actor, now, reason)

        report = self.reconciler.reconcile_after(item, now)
        self._publish_reconciliation(report, now)

        run_keys = {item.run_key}
        run_keys.update(flip.item.run_key for flip in report.flips)
        for key in sorted(run_keys):
            self._recompute_run(key, now)

        if item.status == ItemStatus.DONE:
            total = self.aggregator.check_order_completion(item.order_id)
            if total is not None:
                self.emitter.order_completed(item.order_id, total, now, item.tenant_id)

    def _publish_reconciliation(self, report: ReconcileReport, now: datetime) -> None:
        for flip in report.flips:
            self.emitter.system_flip(flip, now)
        for conflict in report.conflicts:
            log_error_with_context(
                conflict, "reconcile", severity="warning", include_traceback=False
            )

    def _recompute_run(self, key: RunKey, now: datetime) -> None:
        try:
            recomputation = self.aggregator.recompute(key, now)
        except ConcurrentModificationError as e:
            # The next transition on the run recomputes it from its items.
            log_error_with_context(
                e, "recompute_run", {"run_key": str(key)}, severity="warning"
            )
            return
        if recomputation is not None:
            self.emitter.run_changed(recomputation, now)

    # Read-only queries

    def get_run_status(
        self, order_id: str, batch_code: str, station_id: str
    ) -> Result[ItemStatus, DomainError]:
        """Current status of a run, derived from its items."""
        key = RunKey(order_id, batch_code, station_id)
        items = self.repository.list_items_by_run(key)
        if not items and self.repository.get_run(key) is None:
            return Failure(NotFoundError("BatchRun", str(key)))
        return Success(compute_run_status(items), changed=False)

    def get_working_minutes_elapsed(
        self, item_id: UUID
    ) -> Result[int, DomainError]:
        """Working minutes an item has taken so far (final value once done)."""
        item = self.repository.get_item(item_id)
        if item is None:
            return Failure(NotFoundError("ProductionItem", item_id))
        if item.is_done:
            return Success(item.duration_minutes or 0, changed=False)
        if item.started_at is None:
            return Success(0, changed=False)
        calendar = self.calendars.get_working_calendar(item.tenant_id)
        now = self.clock()
        return Success(
            calendar.compute_working_minutes(item.started_at, now, now=now),
            changed=False,
        )

    # Queue management

    def release_batch(
        self,
        order_id: str,
        batch_code: str,
        rows: Sequence[ReleaseRow],
        station_ids: Sequence[str],
        actor: Actor,
        planned_date: date | None = None,
        tenant_id: str = "default",
    ) -> Result[list[BatchRun], DomainError]:
        """
        Put a batch into production along a route of stations.

        Creates one run per route station and one item per row for each
        station the row is sent to, then sets every new item to queued or
        pending according to its station dependencies.
        """
        set_correlation_id()
        set_actor_id(actor.id)
        now = self.clock()

        try:
            self._ensure_can_manage_queue(actor, "release")
            self._validate_release(order_id, batch_code, rows, station_ids)
        except PreconditionFailedError as e:
            logger.info("Release rejected", order_id=order_id, error_message=e.message)
            return Failure(e)

        runs = [
            BatchRun(
                tenant_id=tenant_id,
                order_id=order_id,
                batch_code=batch_code,
                station_id=station_id,
                step_index=index,
                planned_date=planned_date,
                status=ItemStatus.QUEUED,
                created_at=now,
            )
            for index, station_id in enumerate(station_ids)
        ]
        items = [
            ProductionItem(
                tenant_id=tenant_id,
                order_id=order_id,
                batch_code=batch_code,
                row_key=row.row_key,
                station_id=station_id,
                item_name=row.item_name,
                qty=row.qty,
                material=row.material,
                status=ItemStatus.PENDING,
                created_at=now,
            )
            for row in rows
            for station_id in station_ids
            if row.station_ids is None or station_id in row.station_ids
        ]

        self.repository.add_runs(runs)
        self.repository.add_items(items)
        logger.info(
            "Batch released",
            order_id=order_id,
            batch_code=batch_code,
            stations=len(runs),
            items=len(items),
        )

        for row in rows:
            report = self.reconciler.reconcile_logical_item(
                LogicalItemKey(order_id, batch_code, row.row_key), now
            )
            for conflict in report.conflicts:
                log_error_with_context(conflict, "release", severity="warning")
        for run in runs:
            self._recompute_run(run.run_key, now)

        return Success(self.repository.list_runs_by_order(order_id))

    def _ensure_can_manage_queue(self, actor: Actor, action: str) -> None:
        if not actor.can_manage_queue:
            raise PreconditionFailedError(
                "NOT_AUTHORIZED",
                f"{actor.display_name} may not {action} queue entries",
                {"actor_id": actor.id},
            )

    def _validate_release(
        self,
        order_id: str,
        batch_code: str,
        rows: Sequence[ReleaseRow],
        station_ids: Sequence[str],
    ) -> None:
        if not station_ids:
            raise PreconditionFailedError("NO_STATIONS", "Select at least one station")
        if len(set(station_ids)) != len(station_ids):
            raise PreconditionFailedError(
                "DUPLICATE_STATION", "A station appears twice in the route"
            )
        if not rows:
            raise PreconditionFailedError("NO_ROWS", "Select at least one row")
        row_keys = [row.row_key for row in rows]
        if len(set(row_keys)) != len(row_keys):
            raise PreconditionFailedError("DUPLICATE_ROW", "Row keys must be unique")
        for station_id in station_ids:
            if self.repository.get_run(RunKey(order_id, batch_code, station_id)):
                raise PreconditionFailedError(
                    "ALREADY_RELEASED",
                    f"Batch {batch_code} is already queued at station {station_id}",
                    {"order_id": order_id, "station_id": station_id},
                )

    def remove_from_queue(
        self, order_id: str, batch_code: str, station_id: str, actor: Actor
    ) -> Result[int, DomainError]:
        """
        Take a batch off a station's queue, deleting the run and its items.

        Only runs with no work recorded may be removed: an item that has
        started, is in progress or is done fails the call with RUN_STARTED.
        Rows whose other stations depended on the removed one are swept again.

        Returns:
            Number of items deleted
        """
        set_correlation_id()
        set_actor_id(actor.id)
        now = self.clock()
        key = RunKey(order_id, batch_code, station_id)

        try:
            self._ensure_can_manage_queue(actor, "remove")
        except PreconditionFailedError as e:
            return Failure(e)
        run = self.repository.get_run(key)
        if run is None:
            return Failure(NotFoundError("BatchRun", str(key)))

        items = self.repository.list_items_by_run(key)
        started = [
            item
            for item in items
            if item.has_started
            or item.status in (ItemStatus.IN_PROGRESS, ItemStatus.DONE)
        ]
        if started:
            logger.info(
                "Removal rejected", run_key=str(key), started_items=len(started)
            )
            return Failure(
                PreconditionFailedError(
                    "RUN_STARTED",
                    f"Batch {batch_code} has work recorded at station {station_id}",
                    {"run_key": str(key), "started_items": len(started)},
                )
            )

        deleted = self.repository.delete_run(key)
        logger.info("Removed from queue", run_key=str(key), items=deleted)

        for row_key in sorted({item.logical_key for item in items}):
            report = self.reconciler.reconcile_logical_item(row_key, now)
            self._publish_reconciliation(report, now)
            for flip in report.flips:
                self._recompute_run(flip.item.run_key, now)

        # The removed run may have been the last unfinished one of the order.
        total = self.aggregator.check_order_completion(order_id)
        if total is not None:
            self.emitter.order_completed(order_id, total, now, run.tenant_id)

        return Success(deleted)
