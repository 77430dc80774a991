from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, Sequence

from .models import Holiday, WorkingDaySettings
from .working_day_cache import WorkingDayCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkingDaysSummary:
    """Result of walking an inclusive date range."""

    working_days: list[date] = field(default_factory=list)
    total_days: int = 0
    working_day_count: int = 0
    holiday_count: int = 0

    @property
    def non_working_day_count(self) -> int:
        """Days that are neither working days nor holidays (weekends, empty weekdays)."""
        return self.total_days - self.working_day_count - self.holiday_count


def as_day(value: date | datetime) -> date:
    """Normalize a date or datetime to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day from start to end inclusive; nothing when start > end."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def holiday_for(day: date | datetime, holidays: Iterable[Holiday]) -> Holiday | None:
    """First holiday covering ``day``, if any."""
    day = as_day(day)
    for holiday in holidays:
        if holiday.covers(day):
            return holiday
    return None


def holidays_in_range(holidays: Iterable[Holiday], start: date | datetime, end: date | datetime) -> list[Holiday]:
    """Holidays overlapping the inclusive range, ordered by start date."""
    start, end = as_day(start), as_day(end)
    overlapping = [h for h in holidays if h.start_date <= end and start <= h.end_date]
    return sorted(overlapping, key=lambda h: (h.start_date, h.end_date, h.id))


def count_holiday_days(start: date, end: date, holidays: Sequence[Holiday]) -> int:
    """Number of days in the range covered by at least one holiday."""
    return sum(1 for day in iter_days(start, end) if holiday_for(day, holidays) is not None)


def day_work_hours(day: date | datetime, settings: WorkingDaySettings) -> float:
    """Configured hours for the weekday of ``day``; holidays are not considered."""
    return sum(slot.duration_hours for slot in settings.slots_for(as_day(day)))


def is_working_day(
    day: date | datetime,
    settings: WorkingDaySettings,
    holidays: Sequence[Holiday],
    cache: WorkingDayCache | None = None,
) -> bool:
    """A day is a working day when no holiday covers it and its weekday has hours."""
    day = as_day(day)
    if cache is None:
        return _compute_is_working_day(day, settings, holidays)
    key = WorkingDayCache.make_key(day, settings, holidays)
    return cache.get_or_compute(key, lambda: _compute_is_working_day(day, settings, holidays))


def _compute_is_working_day(day: date, settings: WorkingDaySettings, holidays: Sequence[Holiday]) -> bool:
    if holiday_for(day, holidays) is not None:
        return False
    return day_work_hours(day, settings) > 0


def working_days_between(
    start: date | datetime,
    end: date | datetime,
    settings: WorkingDaySettings,
    holidays: Sequence[Holiday],
    cache: WorkingDayCache | None = None,
) -> WorkingDaysSummary:
    """
    Walk ``start``..``end`` inclusive and classify every day.

    Holiday days are counted as holidays whatever their weekday. An inverted
    range yields an empty summary.
    """

    start, end = as_day(start), as_day(end)
    if start > end:
        return WorkingDaysSummary()

    base_key = WorkingDayCache.make_key(start, settings, holidays) if cache is not None else None
    working: list[date] = []
    total = 0
    holiday_count = 0
    for day in iter_days(start, end):
        total += 1
        if holiday_for(day, holidays) is not None:
            holiday_count += 1
            continue
        if base_key is not None:
            key = (day,) + base_key[1:]
            is_working = cache.get_or_compute(key, lambda d=day: _compute_is_working_day(d, settings, holidays))
        else:
            is_working = day_work_hours(day, settings) > 0
        if is_working:
            working.append(day)

    return WorkingDaysSummary(
        working_days=working,
        total_days=total,
        working_day_count=len(working),
        holiday_count=holiday_count,
    )


def working_days_remaining(
    end_date: date | datetime,
    settings: WorkingDaySettings,
    holidays: Sequence[Holiday],
    today: date | datetime,
    cache: WorkingDayCache | None = None,
) -> int:
    """Working days strictly after ``today`` up to and including ``end_date``."""
    end_date, today = as_day(end_date), as_day(today)
    if end_date <= today:
        return 0
    return working_days_between(today + timedelta(days=1), end_date, settings, holidays, cache).working_day_count
