"""
Working Calendar Value Objects

Tenant working time: which weekdays are worked and which shift windows count
on those days. Durations shown to operators and stored on finished items are
working minutes, never wall-clock minutes.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator

from ....core.config import settings
from ....core.observability import get_logger
from ...shared.base import ValueObject, utcnow
from ...shared.exceptions import CalendarConfigInvalidError

logger = get_logger(__name__)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(?::[0-5]\d)?$")
MINUTES_PER_DAY = 24 * 60


def time_to_minutes(value: Any) -> int | None:
    """Minutes after midnight for an ``HH:MM`` (or ``HH:MM:SS``) string."""
    if not isinstance(value, str):
        return None
    match = TIME_PATTERN.match(value.strip())
    if match is None:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def normalize_work_time(value: Any, fallback: str = "08:00") -> str:
    """Return ``value`` as zero-padded ``HH:MM`` or ``fallback`` if unparseable."""
    minutes = time_to_minutes(value)
    if minutes is None:
        return fallback
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class WorkShift(ValueObject):
    """
    One daily shift window in ``HH:MM`` 24h format.

    A shift whose end is not after its start (e.g. 22:00-06:00) runs overnight
    and ends on the following day. Values are kept as given so that malformed
    tenant configuration can be detected and reported at computation time.
    """

    start: str
    end: str

    def minutes(self) -> tuple[int, int] | None:
        """(start, end) minutes after midnight, or None if either is malformed."""
        start = time_to_minutes(self.start)
        end = time_to_minutes(self.end)
        if start is None or end is None:
            return None
        return start, end

    @property
    def is_overnight(self) -> bool:
        bounds = self.minutes()
        return bounds is not None and bounds[1] <= bounds[0]

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


class WorkingCalendar(ValueObject):
    """
    Working days and shifts of a tenant.

    Weekdays are numbered 0=Sunday .. 6=Saturday, so ``{1, 2, 3, 4, 5}`` is
    Monday to Friday. An empty shift list means the whole day is working time
    on every workday.
    """

    workdays: frozenset[int] = Field(default_factory=frozenset)
    shifts: tuple[WorkShift, ...] = ()
    timezone: str = "UTC"

    @field_validator("workdays")
    @classmethod
    def validate_workdays(cls, v: frozenset[int]) -> frozenset[int]:
        for day in v:
            if not 0 <= day <= 6:
                raise ValueError(f"Invalid weekday: {day}. Must be 0-6 (Sunday=0)")
        return v

    @classmethod
    def create(
        cls,
        workdays: Iterable[int],
        shifts: Iterable[tuple[str, str] | Mapping[str, str] | WorkShift] = (),
        timezone: str = "UTC",
    ) -> WorkingCalendar:
        """Build a calendar from plain values."""
        parsed: list[WorkShift] = []
        for shift in shifts:
            if isinstance(shift, WorkShift):
                parsed.append(shift)
            elif isinstance(shift, Mapping):
                parsed.append(WorkShift(start=shift["start"], end=shift["end"]))
            else:
                start, end = shift
                parsed.append(WorkShift(start=start, end=end))
        return cls(workdays=frozenset(workdays), shifts=tuple(parsed), timezone=timezone)

    @classmethod
    def default(cls) -> WorkingCalendar:
        """Calendar from the configured defaults (Mon-Fri 08:00-17:00, UTC)."""
        return cls.create(
            settings.DEFAULT_WORKDAYS,
            [(settings.DEFAULT_SHIFT_START, settings.DEFAULT_SHIFT_END)],
            settings.DEFAULT_TIMEZONE,
        )

    def is_workday(self, day: date) -> bool:
        return day.isoweekday() % 7 in self.workdays

    def shift_windows(self) -> list[tuple[int, int]]:
        """
        Shift bounds in minutes after midnight; the end may exceed a day.

        Falls back to the whole day when no shifts are configured or when any
        shift is malformed (logged as a calendar configuration warning).
        """
        if not self.shifts:
            return [(0, MINUTES_PER_DAY)]

        windows: list[tuple[int, int]] = []
        for shift in self.shifts:
            bounds = shift.minutes()
            if bounds is None:
                error = CalendarConfigInvalidError(
                    f"Unparseable shift {shift}; counting whole days as working time",
                    value=str(shift),
                )
                logger.warning(
                    "Invalid working calendar",
                    error_type=error.error_type.value,
                    error_message=error.message,
                    shift=str(shift),
                )
                return [(0, MINUTES_PER_DAY)]
            start, end = bounds
            if end <= start:
                end += MINUTES_PER_DAY
            windows.append((start, end))
        return windows

    def zone(self) -> tzinfo:
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(
                "Invalid working calendar",
                error_message=f"Unknown timezone {self.timezone!r}; using UTC",
            )
            return timezone.utc

    def compute_working_minutes(
        self,
        start: datetime | str | None,
        end: datetime | str | None = None,
        now: datetime | None = None,
    ) -> int:
        """Working minutes between ``start`` and ``end`` (``end=None`` means now)."""
        return compute_working_minutes(start, end, self, now=now)

    def __str__(self) -> str:
        days = ",".join(str(d) for d in sorted(self.workdays))
        shifts = ",".join(str(s) for s in self.shifts) or "all-day"
        return f"WorkingCalendar(days={days}, shifts={shifts}, tz={self.timezone})"


def _parse_timestamp(value: datetime | str | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _localize(value: datetime, zone: tzinfo) -> datetime:
    # Naive timestamps are read as wall-clock time in the calendar's zone.
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def compute_working_minutes(
    start: datetime | str | None,
    end: datetime | str | None,
    calendar: WorkingCalendar,
    now: datetime | None = None,
) -> int:
    """
    Count the minutes between ``start`` and ``end`` that fall inside the
    calendar's shifts on its workdays.

    Every calendar day from the day before ``start`` up to ``end``'s day is
    visited so that an overnight shift begun the previous evening is counted.
    Each positive overlap of a shift window with ``[start, end]`` is truncated
    to whole minutes.

    Returns 0 when ``end <= start`` or either timestamp cannot be parsed.
    """
    start_dt = _parse_timestamp(start)
    end_dt = _parse_timestamp(end) if end is not None else (now or utcnow())
    if start_dt is None or end_dt is None:
        return 0

    zone = calendar.zone()
    start_dt = _localize(start_dt, zone)
    end_dt = _localize(end_dt, zone)
    if end_dt <= start_dt:
        return 0

    start_utc = start_dt.astimezone(timezone.utc)
    end_utc = end_dt.astimezone(timezone.utc)
    windows = calendar.shift_windows()

    total = 0
    day = start_dt.date() - timedelta(days=1)
    last_day = end_dt.date()
    while day <= last_day:
        if calendar.is_workday(day):
            midnight = datetime.combine(day, time(0, 0))
            for window_start, window_end in windows:
                # Anchor on the local wall clock, then compare in UTC.
                shift_start = (midnight + timedelta(minutes=window_start)).replace(
                    tzinfo=zone
                )
                shift_end = (midnight + timedelta(minutes=window_end)).replace(
                    tzinfo=zone
                )
                range_start = max(shift_start.astimezone(timezone.utc), start_utc)
                range_end = min(shift_end.astimezone(timezone.utc), end_utc)
                if range_end > range_start:
                    total += int((range_end - range_start).total_seconds() // 60)
        day += timedelta(days=1)
    return total


def normalize_workdays(raw: Any) -> list[int]:
    """Distinct valid weekdays (0-6), sorted; configured defaults if none."""
    if not isinstance(raw, list | tuple | set | frozenset):
        return list(settings.DEFAULT_WORKDAYS)
    days: set[int] = set()
    for value in raw:
        try:
            day = int(value)
        except (TypeError, ValueError):
            continue
        if not isinstance(value, bool) and 0 <= day <= 6:
            days.add(day)
    return sorted(days) if days else list(settings.DEFAULT_WORKDAYS)


def normalize_work_shifts(raw: Any) -> list[WorkShift]:
    """Well-formed, non-empty shifts from raw settings; the default shift if none."""
    default = [
        WorkShift(start=settings.DEFAULT_SHIFT_START, end=settings.DEFAULT_SHIFT_END)
    ]
    if not isinstance(raw, list | tuple):
        return default
    shifts: list[WorkShift] = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            continue
        start = normalize_work_time(entry.get("start"), "")
        end = normalize_work_time(entry.get("end"), "")
        if not start or not end or start == end:
            continue
        shifts.append(WorkShift(start=start, end=end))
    return shifts or default


def parse_working_calendar(raw: Mapping[str, Any] | None) -> WorkingCalendar:
    """
    Build a calendar from raw tenant settings.

    Understands ``workdays``, ``work_shifts`` (list of ``{start, end}``) and
    the older single-shift ``workday_start``/``workday_end`` pair. Missing or
    unusable values fall back to the configured defaults.
    """
    raw = raw or {}
    workdays = normalize_workdays(raw.get("workdays"))
    tz_name = raw.get("timezone") or settings.DEFAULT_TIMEZONE

    if isinstance(raw.get("work_shifts"), list | tuple):
        shifts = normalize_work_shifts(raw["work_shifts"])
    else:
        start = normalize_work_time(raw.get("workday_start"), settings.DEFAULT_SHIFT_START)
        end = normalize_work_time(raw.get("workday_end"), settings.DEFAULT_SHIFT_END)
        if start == end:
            start, end = settings.DEFAULT_SHIFT_START, settings.DEFAULT_SHIFT_END
        shifts = [WorkShift(start=start, end=end)]

    return WorkingCalendar(
        workdays=frozenset(workdays), shifts=tuple(shifts), timezone=tz_name
    )


def validate_working_calendar(
    workdays: Iterable[int], shifts: Iterable[WorkShift | Mapping[str, str]]
) -> str | None:
    """Return a human-readable problem with the configuration, or None if valid."""
    if not list(workdays):
        return "Select at least one workday."
    shift_list = [
        s if isinstance(s, WorkShift) else WorkShift(start=s["start"], end=s["end"])
        for s in shifts
    ]
    if not shift_list:
        return "Add at least one shift."

    segments: list[tuple[int, int]] = []
    for shift in shift_list:
        bounds = shift.minutes()
        if bounds is None:
            return "Use 24h format HH:MM for all shifts."
        start, end = bounds
        if start == end:
            return "Shift start and end cannot be the same."
        if end > start:
            segments.append((start, end))
        else:
            segments.append((start, MINUTES_PER_DAY))
            segments.append((0, end))

    segments.sort()
    for previous, current in zip(segments, segments[1:]):
        if previous[1] > current[0]:
            return "Shifts overlap. Adjust times so each shift has a separate window."
    return None
