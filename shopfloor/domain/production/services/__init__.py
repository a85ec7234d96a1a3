"""
Production domain services.
"""

from .dependency_resolver import (
    build_sibling_statuses,
    dependencies_met,
    is_eligible,
    resolve_system_status,
)
from .notification_emitter import NotificationEmitter
from .run_aggregator import (
    RunAggregator,
    RunRecomputation,
    compute_run_status,
    total_duration_minutes,
)
from .scheduling_reconciler import ReconcileReport, SchedulingReconciler, StatusFlip

__all__ = [
    "is_eligible",
    "build_sibling_statuses",
    "resolve_system_status",
    "dependencies_met",
    "compute_run_status",
    "total_duration_minutes",
    "RunAggregator",
    "RunRecomputation",
    "SchedulingReconciler",
    "ReconcileReport",
    "StatusFlip",
    "NotificationEmitter",
]
