"""
Notification Emitter Domain Service

Turns committed transitions into domain events and hands them to the event
sink. Delivery is best effort: a sink failure is logged and counted, never
raised back into the transition that produced the event.
"""

import threading
from datetime import datetime, timedelta

from ....core.observability import (
    NOTIFICATION_FAILURES,
    get_logger,
    log_error_with_context,
)
from ..entities.production_item import ProductionItem
from ..entities.station import Actor
from ..events.domain_events import (
    DomainEvent,
    ItemBlocked,
    ItemCompleted,
    ItemResumed,
    ItemStatusChanged,
    OrderCompleted,
    RunStatusChanged,
)
from ..repositories.providers import DependencyProvider, EventSink
from ..value_objects.enums import ItemStatus
from ..value_objects.keys import RunKey
from .run_aggregator import RunRecomputation
from .scheduling_reconciler import StatusFlip

logger = get_logger(__name__)


class NotificationEmitter:
    """
    Builds and delivers production events.

    Finished items are announced at most once per run within the quiet
    period, so a batch finished row by row produces one "completed" toast
    rather than one per row.
    """

    def __init__(
        self,
        sink: EventSink,
        stations: DependencyProvider,
        quiet_period_minutes: int = 15,
    ) -> None:
        self.sink = sink
        self.stations = stations
        self.quiet_period = timedelta(minutes=quiet_period_minutes)
        self._last_completed: dict[RunKey, datetime] = {}
        self._lock = threading.Lock()

    def emit(self, event: DomainEvent) -> bool:
        """Deliver one event. Returns False if the sink rejected it."""
        try:
            self.sink.emit(event)
        except Exception as e:
            NOTIFICATION_FAILURES.labels(event_type=event.event_type).inc()
            log_error_with_context(
                e,
                "emit_event",
                {"event_type": event.event_type, "event_id": str(event.event_id)},
                severity="warning",
            )
            return False
        return True

    def _station_name(self, station_id: str) -> str:
        station = self.stations.get_station(station_id)
        return station.name if station else station_id

    def item_transitioned(
        self,
        item: ProductionItem,
        from_status: ItemStatus,
        actor: Actor,
        now: datetime,
        reason: str | None = None,
    ) -> None:
        """Emit the events for an accepted operator transition."""
        self.emit(
            ItemStatusChanged(
                occurred_at=now,
                tenant_id=item.tenant_id,
                item_id=item.id,
                order_id=item.order_id,
                batch_code=item.batch_code,
                station_id=item.station_id,
                from_status=from_status.value,
                to_status=item.status.value,
                actor_id=actor.id,
                reason=reason,
            )
        )

        if item.status == ItemStatus.BLOCKED:
            self.emit(
                ItemBlocked(
                    occurred_at=now,
                    tenant_id=item.tenant_id,
                    item_id=item.id,
                    order_id=item.order_id,
                    item_name=item.item_name,
                    station_name=self._station_name(item.station_id),
                    reason=item.blocked_reason or "",
                    actor_name=actor.display_name,
                )
            )
        elif (
            from_status == ItemStatus.BLOCKED
            and item.status == ItemStatus.IN_PROGRESS
        ):
            self.emit(
                ItemResumed(
                    occurred_at=now,
                    tenant_id=item.tenant_id,
                    item_id=item.id,
                    order_id=item.order_id,
                    item_name=item.item_name,
                    station_name=self._station_name(item.station_id),
                    actor_name=actor.display_name,
                )
            )
        elif item.status == ItemStatus.DONE and self._claim_completion(
            item.run_key, now
        ):
            self.emit(
                ItemCompleted(
                    occurred_at=now,
                    tenant_id=item.tenant_id,
                    item_id=item.id,
                    order_id=item.order_id,
                    batch_code=item.batch_code,
                    station_id=item.station_id,
                    item_name=item.item_name,
                    station_name=self._station_name(item.station_id),
                    actor_name=actor.display_name,
                    duration_minutes=item.duration_minutes,
                )
            )

    def _claim_completion(self, key: RunKey, now: datetime) -> bool:
        with self._lock:
            # runs outside their quiet period have nothing left to suppress
            expired = [
                run_key
                for run_key, announced in self._last_completed.items()
                if now - announced >= self.quiet_period
            ]
            for run_key in expired:
                del self._last_completed[run_key]

            last = self._last_completed.get(key)
            if last is not None and now - last < self.quiet_period:
                logger.debug("Completion notice suppressed", run_key=str(key))
                return False
            self._last_completed[key] = now
            return True

    def system_flip(self, flip: StatusFlip, now: datetime) -> None:
        """Emit the status change of a reconciler flip (no actor)."""
        item = flip.item
        self.emit(
            ItemStatusChanged(
                occurred_at=now,
                tenant_id=item.tenant_id,
                item_id=item.id,
                order_id=item.order_id,
                batch_code=item.batch_code,
                station_id=item.station_id,
                from_status=flip.from_status.value,
                to_status=flip.to_status.value,
                reason="dependencies",
            )
        )

    def run_changed(self, recomputation: RunRecomputation, now: datetime) -> None:
        if not recomputation.changed:
            return
        run = recomputation.run
        self.emit(
            RunStatusChanged(
                occurred_at=now,
                tenant_id=run.tenant_id,
                run_id=run.id,
                order_id=run.order_id,
                batch_code=run.batch_code,
                station_id=run.station_id,
                from_status=recomputation.previous_status.value,
                to_status=run.status.value,
            )
        )

    def order_completed(
        self, order_id: str, total_minutes: int, now: datetime, tenant_id: str
    ) -> None:
        self.emit(
            OrderCompleted(
                occurred_at=now,
                tenant_id=tenant_id,
                order_id=order_id,
                total_duration_minutes=total_minutes,
            )
        )
