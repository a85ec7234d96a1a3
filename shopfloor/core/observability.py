"""
Observability Infrastructure

Structured logging with correlation tracking and Prometheus counters for the
production engine: transitions, reconciler flips and notification failures.
"""

import contextvars
import functools
import logging
import sys
import time
import uuid
from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from prometheus_client import Counter, Histogram, start_http_server

from .config import settings

# Context variables for correlation tracking
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)
actor_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "actor_id", default=""
)

F = TypeVar("F", bound=Callable[..., Any])

# Prometheus metrics
TRANSITIONS = Counter(
    "shopfloor_item_transitions_total",
    "Operator transitions processed by the production engine",
    ["action", "outcome"],
)

TRANSITION_DURATION = Histogram(
    "shopfloor_item_transition_duration_seconds",
    "Time spent processing an operator transition",
    ["action"],
)

RECONCILER_FLIPS = Counter(
    "shopfloor_reconciler_flips_total",
    "System-driven pending/queued flips applied by the reconciler",
    ["to_status"],
)

CONFLICT_RETRIES = Counter(
    "shopfloor_conflict_retries_total",
    "Retries after an optimistic version conflict",
    ["operation"],
)

NOTIFICATION_FAILURES = Counter(
    "shopfloor_notification_failures_total",
    "Domain events that the event sink failed to accept",
    ["event_type"],
)


class CorrelationIdProcessor:
    """Structlog processor to add correlation ID to all log entries."""

    def __call__(
        self, logger: Any, name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        correlation_id = correlation_id_var.get("")
        actor_id = actor_id_var.get("")

        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        if actor_id:
            event_dict["actor_id"] = actor_id

        return event_dict


def setup_structured_logging() -> None:
    """Configure structured logging with JSON output and correlation tracking."""

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        CorrelationIdProcessor(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.add_log_level,
    ]

    if settings.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=settings.ENVIRONMENT == "local")
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    if settings.LOG_SQL:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
    else:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def setup_metrics() -> None:
    """Expose Prometheus metrics over HTTP when enabled."""
    if not settings.ENABLE_METRICS:
        return

    start_http_server(settings.METRICS_PORT)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID for request tracking."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    correlation_id_var.set(correlation_id)
    return correlation_id


def set_actor_id(actor_id: str) -> None:
    """Set the operator ID for the current unit of work."""
    actor_id_var.set(actor_id)


def get_correlation_id() -> str:
    """Get current correlation ID."""
    return correlation_id_var.get("")


def log_error_with_context(
    error: Exception,
    operation: str,
    context: dict[str, Any] | None = None,
    severity: str = "error",
    include_traceback: bool = True,
) -> None:
    """Log errors with structured context."""
    logger = get_logger("error_tracking")

    error_data = {
        "operation": operation,
        "error_type": type(error).__name__,
        "error_message": str(error),
        "severity": severity,
    }

    if getattr(error, "details", None):
        error_data["error_details"] = error.details

    if context:
        error_data.update(context)

    if severity == "critical":
        logger.critical(
            "Critical error occurred", **error_data, exc_info=include_traceback
        )
    elif severity == "error":
        logger.error("Error occurred", **error_data, exc_info=include_traceback)
    elif severity == "warning":
        logger.warning("Warning occurred", **error_data)
    else:
        logger.info("Issue occurred", **error_data)


def monitor_transition(action: str):
    """Decorator to time an engine operation and count its outcome.

    The wrapped callable returns a ``Success``/``Failure`` result; the outcome
    label is ``success``, ``noop`` (retry of an applied action) or the error
    type of the failure.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            start_time = time.perf_counter()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                TRANSITIONS.labels(action=action, outcome="exception").inc()
                logger.error(
                    "Transition raised",
                    action=action,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                raise
            finally:
                TRANSITION_DURATION.labels(action=action).observe(
                    time.perf_counter() - start_time
                )

            if result.is_success():
                outcome = "success" if result.changed else "noop"
            else:
                outcome = result.error.error_type.value
            TRANSITIONS.labels(action=action, outcome=outcome).inc()
            return result

        return wrapper  # type: ignore

    return decorator


def initialize_observability() -> None:
    """Initialize logging and metrics for the hosting process."""
    setup_structured_logging()
    setup_metrics()

    get_logger("observability").info(
        "Observability initialized",
        log_level=settings.LOG_LEVEL,
        log_format=settings.LOG_FORMAT,
        metrics_enabled=settings.ENABLE_METRICS,
    )
