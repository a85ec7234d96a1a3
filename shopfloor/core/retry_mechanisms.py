"""
Bounded retry for optimistic concurrency conflicts.

The reconciler and run aggregator write items and runs they did not lock.
When a save loses a version race the operation is re-read and re-applied a
small, bounded number of times before the conflict is surfaced.
"""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from ..domain.shared.exceptions import ConcurrentModificationError
from .config import settings
from .observability import CONFLICT_RETRIES, get_logger

T = TypeVar("T")

logger = get_logger(__name__)


@dataclass
class RetryConfig:
    """Configuration for conflict retry behavior."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.0
    jitter_max_seconds: float = 0.0

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(max_attempts=settings.RECONCILER_MAX_RETRIES)

    def delay_for(self, attempt_number: int) -> float:
        """Linear backoff with optional jitter (attempt_number is 1-based)."""
        delay = self.base_delay_seconds * attempt_number
        if self.jitter_max_seconds:
            delay += random.uniform(0, self.jitter_max_seconds)
        return delay


def retry_on_conflict(
    operation: Callable[[], T],
    operation_name: str,
    config: RetryConfig | None = None,
) -> T:
    """
    Run ``operation`` and re-run it after a ConcurrentModificationError.

    ``operation`` must re-read whatever state it writes, so each attempt works
    on the latest committed version.

    Raises:
        ConcurrentModificationError: the last conflict, once attempts run out
    """
    config = config or RetryConfig.from_settings()
    last_error: ConcurrentModificationError | None = None

    for attempt in range(1, config.max_attempts + 1):
        try:
            return operation()
        except ConcurrentModificationError as e:
            last_error = e
            CONFLICT_RETRIES.labels(operation=operation_name).inc()
            logger.warning(
                "Version conflict",
                operation=operation_name,
                attempt=attempt,
                max_attempts=config.max_attempts,
                entity_id=str(e.entity_id),
            )
            if attempt < config.max_attempts:
                delay = config.delay_for(attempt)
                if delay > 0:
                    time.sleep(delay)

    assert last_error is not None
    raise last_error
