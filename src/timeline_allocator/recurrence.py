from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Iterator

from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta
from dateutil.rrule import DAILY, MONTHLY, WEEKLY, rrule

from .models import LAST_WEEK, SECOND_LAST_WEEK, RecurringConfig

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 1000
"""Upper bound on generated anchors; only reached by very long or open-ended windows."""

CONTINUOUS_HORIZON_DAYS = 365
"""Default span of an open-ended window when no explicit end is supplied."""

EXCESSIVE_OCCURRENCES = 50

# Indexed by the 0=Sunday weekday numbers used in RecurringConfig.
_RELATIVE_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)
_DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

# Month numbers (year * 12 + month - 1) bounding the supported date range.
_FIRST_MONTH = date.min.year * 12
_LAST_MONTH = date.max.year * 12 + 11


def sunday_based_weekday(day: date) -> int:
    """Weekday of ``day`` as 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def default_window_end(window_start: date, window_end: date | None) -> date:
    """Explicit end, or ``CONTINUOUS_HORIZON_DAYS`` after the start for open-ended windows."""
    if window_end is not None:
        return window_end
    return window_start + timedelta(days=CONTINUOUS_HORIZON_DAYS)


def _reference_date(config: RecurringConfig, window_start: date, anchor: date | None) -> date:
    reference = anchor or window_start
    if config.type == "weekly" and config.weekly_day_of_week is not None:
        shift = (config.weekly_day_of_week - sunday_based_weekday(reference)) % 7
        reference += timedelta(days=shift)
    elif config.type == "monthly":
        reference = reference.replace(day=1)
    return reference


def _step_days(config: RecurringConfig) -> int:
    interval = max(1, config.interval)
    return interval * 7 if config.type == "weekly" else interval


def resolve_month_anchor(config: RecurringConfig, month_start: date) -> date | None:
    """
    Day of the given month selected by a monthly pattern.

    Day-of-month patterns clip to the month's last day (31 -> Feb 28/29).
    Ordinal weekday patterns return None when the month has no such weekday,
    e.g. a 5th Friday in a month with four Fridays.
    """

    if config.monthly_pattern == "dayOfWeek":
        if config.monthly_week_of_month is None or config.monthly_day_of_week is None:
            return None
        if not 0 <= config.monthly_day_of_week <= 6:
            raise ValueError(f"day of week must be 0..6, got {config.monthly_day_of_week}")
        weekday = _RELATIVE_WEEKDAYS[config.monthly_day_of_week]
        ordinal = config.monthly_week_of_month
        if ordinal in (LAST_WEEK, SECOND_LAST_WEEK):
            return month_start + relativedelta(day=31, weekday=weekday(ordinal))
        candidate = month_start + relativedelta(weekday=weekday(ordinal))
        if candidate.month != month_start.month:
            return None
        return candidate

    day_of_month = config.monthly_date or 1
    return month_start + relativedelta(day=day_of_month)


def _month_number(reference: date, index: int, interval: int) -> int:
    return reference.year * 12 + reference.month - 1 + index * interval


def _monthly_anchor(config: RecurringConfig, reference: date, index: int) -> date | None:
    month_start = reference + relativedelta(months=index * max(1, config.interval))
    return resolve_month_anchor(config, month_start)


def anchor_dates(
    config: RecurringConfig,
    window_start: date,
    window_end: date | None = None,
    anchor: date | None = None,
) -> list[date]:
    """
    Pattern anchors covering the window.

    The sequence starts with the latest anchor strictly before
    ``window_start`` and ends with the first anchor at or after
    ``window_end``, so consecutive pairs bound every day of the window.
    ``anchor`` pins the pattern phase (a phase's end date); without it the
    pattern starts at the window start.
    """

    window_end = default_window_end(window_start, window_end)
    return list(_iter_anchors(config, window_start, window_end, anchor))


def _iter_anchors(config: RecurringConfig, window_start: date, window_end: date, anchor: date | None) -> Iterator[date]:
    reference = _reference_date(config, window_start, anchor)

    if config.type in ("daily", "weekly"):
        step = _step_days(config)
        index = ((window_start - reference).days - 1) // step
        for count in range(MAX_ITERATIONS):
            current = reference + timedelta(days=(index + count) * step)
            yield current
            if current >= window_end:
                return
        logger.warning("recurrence stopped after %d anchors before reaching %s", MAX_ITERATIONS, window_end)
        return

    if config.type != "monthly":
        raise ValueError(f"unsupported recurrence type '{config.type}'")

    interval = max(1, config.interval)
    months_apart = (window_start.year - reference.year) * 12 + window_start.month - reference.month
    index = months_apart // interval
    # Walk back past skipped months and anchors on or after the window start.
    for _ in range(MAX_ITERATIONS):
        if _month_number(reference, index, interval) < _FIRST_MONTH:
            index = months_apart // interval
            break
        candidate = _monthly_anchor(config, reference, index)
        if candidate is not None and candidate < window_start:
            break
        index -= 1
    else:
        index = months_apart // interval

    emitted = 0
    for _ in range(MAX_ITERATIONS):
        if _month_number(reference, index, interval) >= _LAST_MONTH:
            break
        candidate = _monthly_anchor(config, reference, index)
        index += 1
        if candidate is None:
            continue
        yield candidate
        emitted += 1
        if candidate >= window_end:
            return
    logger.warning("monthly recurrence stopped after %d months (%d anchors)", MAX_ITERATIONS, emitted)


def generate_occurrences(
    config: RecurringConfig,
    window_start: date,
    window_end: date | None = None,
    anchor: date | None = None,
) -> list[date]:
    """Occurrence dates inside ``window_start``..``window_end``, ascending and unique."""
    window_end = default_window_end(window_start, window_end)
    anchors = anchor_dates(config, window_start, window_end, anchor)
    return sorted({day for day in anchors if window_start <= day <= window_end})


def occurrence_windows(
    config: RecurringConfig,
    window_start: date,
    window_end: date | None = None,
    anchor: date | None = None,
) -> list[tuple[date, date]]:
    """
    Allocation periods of a recurring phase inside the window.

    Each period runs from the day after one anchor up to and including the
    next anchor, clipped to ``window_start``..``window_end``. Empty periods are
    dropped.
    """

    window_end = default_window_end(window_start, window_end)
    if window_start > window_end:
        return []

    windows: list[tuple[date, date]] = []
    previous: date | None = None
    for current in anchor_dates(config, window_start, window_end, anchor):
        if previous is None:
            if current >= window_start:
                windows.append((window_start, min(current, window_end)))
        else:
            period_start = max(previous + timedelta(days=1), window_start)
            period_end = min(current, window_end)
            if period_start <= period_end:
                windows.append((period_start, period_end))
        previous = current
    return windows


def occurrence_count(
    config: RecurringConfig,
    window_start: date,
    window_end: date | None = None,
    anchor: date | None = None,
) -> int:
    return len(generate_occurrences(config, window_start, window_end, anchor))


def total_allocation(
    config: RecurringConfig,
    window_start: date,
    window_end: date | None,
    hours_per_occurrence: float,
    anchor: date | None = None,
) -> float:
    """Hours a recurring phase asks for across the window."""
    return len(occurrence_windows(config, window_start, window_end, anchor)) * hours_per_occurrence


def has_excessive_occurrences(
    config: RecurringConfig,
    window_start: date,
    window_end: date | None = None,
    anchor: date | None = None,
    threshold: int = EXCESSIVE_OCCURRENCES,
) -> bool:
    return occurrence_count(config, window_start, window_end, anchor) >= threshold


def estimate_occurrence_count(config: RecurringConfig, duration_days: int) -> int:
    """Rough count without walking the calendar (months treated as 30 days)."""
    interval = max(1, config.interval)
    if config.type == "daily":
        return duration_days // interval
    if config.type == "weekly":
        return duration_days // (7 * interval)
    if config.type == "monthly":
        return duration_days // (30 * interval)
    return 0


def ordinal_suffix(number: int) -> str:
    if 11 <= number % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def describe_recurrence(config: RecurringConfig) -> str:
    """Human readable pattern, e.g. ``Every 2 weeks on Monday``."""

    interval = max(1, config.interval)
    count = "" if interval == 1 else f"{interval} "
    plural = "s" if interval > 1 else ""

    if config.type == "daily":
        return f"Every {count}day{plural}"

    if config.type == "weekly":
        if config.weekly_day_of_week is None:
            return f"Every {count}week{plural}"
        return f"Every {count}week{plural} on {_DAY_NAMES[config.weekly_day_of_week]}"

    if config.type == "monthly":
        prefix = f"Every {count}month{plural}"
        if config.monthly_pattern == "date" and config.monthly_date:
            return f"{prefix} on the {config.monthly_date}{ordinal_suffix(config.monthly_date)}"
        if (
            config.monthly_pattern == "dayOfWeek"
            and config.monthly_week_of_month is not None
            and config.monthly_day_of_week is not None
        ):
            day_name = _DAY_NAMES[config.monthly_day_of_week]
            if config.monthly_week_of_month == LAST_WEEK:
                which = "last"
            elif config.monthly_week_of_month == SECOND_LAST_WEEK:
                which = "second-to-last"
            else:
                week = config.monthly_week_of_month
                which = f"{week}{ordinal_suffix(week)}"
            return f"{prefix} on the {which} {day_name}"
        return prefix

    return "Custom recurrence"


def to_rrule(config: RecurringConfig, start: date, end: date | None = None) -> rrule:
    """
    Equivalent RFC 5545 rule starting at ``start``.

    Open-ended patterns (continuous projects) carry no UNTIL. Day-of-month
    rules above 28 follow RFC semantics and skip short months instead of
    clipping to their last day.
    """

    dtstart = datetime.combine(start, datetime.min.time())
    until = datetime.combine(end, datetime.min.time()) if end is not None else None
    interval = max(1, config.interval)

    if config.type == "daily":
        return rrule(DAILY, interval=interval, dtstart=dtstart, until=until)

    if config.type == "weekly":
        byweekday = None
        if config.weekly_day_of_week is not None:
            byweekday = _RELATIVE_WEEKDAYS[config.weekly_day_of_week]
        return rrule(WEEKLY, interval=interval, dtstart=dtstart, until=until, byweekday=byweekday)

    if config.type == "monthly":
        if config.monthly_pattern == "dayOfWeek" and config.monthly_day_of_week is not None:
            weekday = _RELATIVE_WEEKDAYS[config.monthly_day_of_week](config.monthly_week_of_month or 1)
            return rrule(MONTHLY, interval=interval, dtstart=dtstart, until=until, byweekday=weekday)
        return rrule(MONTHLY, interval=interval, dtstart=dtstart, until=until, bymonthday=config.monthly_date or 1)

    raise ValueError(f"unsupported recurrence type '{config.type}'")


def rrule_string(config: RecurringConfig, start: date, end: date | None = None) -> str:
    """Serialized ``DTSTART``/``RRULE`` lines for export."""
    return str(to_rrule(config, start, end))
