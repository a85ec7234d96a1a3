"""Production value objects."""

from .enums import ItemStatus, OperatorAction
from .keys import LogicalItemKey, RunKey
from .working_calendar import (
    WorkingCalendar,
    WorkShift,
    compute_working_minutes,
    parse_working_calendar,
    validate_working_calendar,
)

__all__ = [
    "ItemStatus",
    "OperatorAction",
    "LogicalItemKey",
    "RunKey",
    "WorkingCalendar",
    "WorkShift",
    "compute_working_minutes",
    "parse_working_calendar",
    "validate_working_calendar",
]
