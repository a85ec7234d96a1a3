"""
Run Aggregator Domain Service

Derives batch-run status from the run's items and keeps the stored run and
order totals in line after every item transition.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from ....core.observability import get_logger
from ....core.retry_mechanisms import RetryConfig, retry_on_conflict
from ..entities.batch_run import BatchRun
from ..entities.production_item import ProductionItem
from ..repositories.production_repository import ProductionRepository
from ..value_objects.enums import ItemStatus
from ..value_objects.keys import RunKey

logger = get_logger(__name__)


def compute_run_status(items: Iterable[ProductionItem]) -> ItemStatus:
    """
    Status of a run from its items, first matching rule wins:

    1. no items -> queued
    2. all done -> done
    3. any in progress -> in_progress
    4. any queued -> queued
    5. any pending -> pending
    6. any blocked -> blocked
    7. otherwise -> queued
    """
    statuses = [item.status for item in items]
    if not statuses:
        return ItemStatus.QUEUED
    if all(status == ItemStatus.DONE for status in statuses):
        return ItemStatus.DONE
    for status in (
        ItemStatus.IN_PROGRESS,
        ItemStatus.QUEUED,
        ItemStatus.PENDING,
        ItemStatus.BLOCKED,
    ):
        if status in statuses:
            return status
    return ItemStatus.QUEUED


def total_duration_minutes(items: Iterable[ProductionItem]) -> int:
    return sum(item.duration_minutes or 0 for item in items)


@dataclass
class RunRecomputation:
    """Outcome of recomputing one run."""

    run: BatchRun
    previous_status: ItemStatus
    changed: bool


class RunAggregator:
    """
    Recomputes stored runs and detects order completion.

    Reads happen after the triggering item save has been committed; a lost
    version race on the run is retried against freshly read state.
    """

    def __init__(
        self,
        repository: ProductionRepository,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self.repository = repository
        self.retry_config = retry_config

    def recompute(self, key: RunKey, now: datetime) -> RunRecomputation | None:
        """
        Bring the stored run for ``key`` in line with its items.

        Returns:
            The recomputation, or None if the batch has no run at the station
        """

        def attempt() -> RunRecomputation | None:
            run = self.repository.get_run(key)
            if run is None:
                logger.warning("Run not found for item transition", run_key=str(key))
                return None
            items = self.repository.list_items_by_run(key)
            previous = run.status
            changed = run.apply_status(
                compute_run_status(items), now, total_duration_minutes(items)
            )
            if changed:
                run = self.repository.save_run(run)
                logger.info(
                    "Run status changed",
                    run_key=str(key),
                    from_status=previous.value,
                    to_status=run.status.value,
                )
            return RunRecomputation(run=run, previous_status=previous, changed=changed)

        return retry_on_conflict(attempt, "recompute_run", self.retry_config)

    def check_order_completion(self, order_id: str) -> int | None:
        """
        Record the order's total working minutes once all of its items are done.

        Returns:
            The total if it was recorded by this call, None otherwise
        """
        items = self.repository.list_items_by_order(order_id)
        if not items or not all(item.is_done for item in items):
            return None
        total = total_duration_minutes(items)
        if not self.repository.record_order_duration(order_id, total):
            return None
        logger.info("Order completed", order_id=order_id, total_minutes=total)
        return total
