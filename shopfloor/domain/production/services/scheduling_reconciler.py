"""
Scheduling Reconciler Domain Service

Keeps the scheduler-assigned statuses (pending/queued) of a row's items in
line with the statuses of the stations they depend on.
"""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime

from ....core.observability import RECONCILER_FLIPS, get_logger
from ....core.retry_mechanisms import RetryConfig, retry_on_conflict
from ...shared.exceptions import ConcurrentModificationError
from ..entities.production_item import ProductionItem
from ..repositories.production_repository import ProductionRepository
from ..repositories.providers import DependencyProvider
from ..value_objects.enums import ItemStatus
from ..value_objects.keys import LogicalItemKey
from .dependency_resolver import build_sibling_statuses, resolve_system_status

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusFlip:
    """A pending/queued change applied by the reconciler."""

    item: ProductionItem
    from_status: ItemStatus
    to_status: ItemStatus


@dataclass
class ReconcileReport:
    """What a reconciliation pass changed, and what it could not write."""

    flips: list[StatusFlip] = field(default_factory=list)
    conflicts: list[ConcurrentModificationError] = field(default_factory=list)

    @property
    def transitions(self) -> int:
        return len(self.flips)

    @property
    def is_clean(self) -> bool:
        return not self.conflicts


class SchedulingReconciler:
    """
    Re-evaluates eligibility of sibling items after a transition.

    Each trigger reconsiders every other pending/queued item of the same row.
    Every applied flip triggers a further pass, so changes propagate until a
    pass applies nothing. Flips only ever depend on which stations are done,
    which a flip never changes, so a second pass over consistent state is a
    no-op.
    """

    def __init__(
        self,
        repository: ProductionRepository,
        dependencies: DependencyProvider,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.repository = repository
        self.dependencies = dependencies
        self.retry_config = retry_config

    def reconcile_after(
        self, item: ProductionItem, now: datetime
    ) -> ReconcileReport:
        """Reconcile the siblings of an item that has just transitioned."""
        return self._run(item.logical_key, item.station_id, now)

    def reconcile_logical_item(
        self, key: LogicalItemKey, now: datetime
    ) -> ReconcileReport:
        """Sweep every pending/queued item of a row (after release, or as repair)."""
        return self._run(key, None, now)

    def _run(
        self, key: LogicalItemKey, trigger_station_id: str | None, now: datetime
    ) -> ReconcileReport:
        report = ReconcileReport()
        triggers: deque[str | None] = deque([trigger_station_id])

        while triggers:
            trigger = triggers.popleft()
            siblings = self.repository.list_items_by_logical_key(key)
            statuses = build_sibling_statuses(siblings)

            for sibling in siblings:
                if sibling.station_id == trigger:
                    continue
                if not sibling.status.is_system_assigned:
                    continue
                deps = self.dependencies.list_dependencies(sibling.station_id)
                if resolve_system_status(sibling, deps, statuses) == sibling.status:
                    continue

                try:
                    flip = self._apply_flip(sibling, now)
                except ConcurrentModificationError as e:
                    logger.error(
                        "Reconciler flip abandoned after retries",
                        item_id=str(sibling.id),
                        logical_key=str(key),
                    )
                    report.conflicts.append(e)
                    continue

                if flip is not None:
                    report.flips.append(flip)
                    triggers.append(flip.item.station_id)

        if report.flips:
            logger.info(
                "Reconciled logical item",
                logical_key=str(key),
                flips=report.transitions,
            )
        return report

    def _apply_flip(self, item: ProductionItem, now: datetime) -> StatusFlip | None:
        """Recompute and save one item against freshly read state."""

        def attempt() -> StatusFlip | None:
            current = self.repository.get_item(item.id)
            if current is None or not current.status.is_system_assigned:
                return None
            siblings = self.repository.list_items_by_logical_key(current.logical_key)
            target = resolve_system_status(
                current,
                self.dependencies.list_dependencies(current.station_id),
                build_sibling_statuses(siblings),
            )
            previous = current.status
            if not current.apply_system_status(target, now):
                return None
            saved = self.repository.save_item(current)
            RECONCILER_FLIPS.labels(to_status=target.value).inc()
            logger.debug(
                "Item eligibility flipped",
                item_id=str(saved.id),
                station_id=saved.station_id,
                from_status=previous.value,
                to_status=target.value,
            )
            return StatusFlip(item=saved, from_status=previous, to_status=target)

        return retry_on_conflict(attempt, "reconcile_flip", self.retry_config)
