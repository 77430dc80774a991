from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from .models import CalendarEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DayBreakdown:
    """Committed hours of one project on one day."""

    day: date
    planned_hours: float = 0.0
    completed_hours: float = 0.0
    event_count: int = 0

    @property
    def total_hours(self) -> float:
        return self.planned_hours + self.completed_hours

    @property
    def has_planned(self) -> bool:
        return self.planned_hours > 0

    @property
    def has_completed(self) -> bool:
        return self.completed_hours > 0


def is_valid_event(event: CalendarEvent) -> bool:
    """Events need a start before their end unless an explicit duration is given."""
    if event.duration is not None:
        return event.duration >= 0
    return event.start_time < event.end_time


def event_hours(event: CalendarEvent) -> float:
    """Explicit duration when present, otherwise the span between start and end."""
    if event.duration is not None:
        return float(event.duration)
    return max(0.0, (event.end_time - event.start_time).total_seconds() / 3600)


def is_completed_time(event: CalendarEvent) -> bool:
    """Completed flag, or a completed/tracked event type; tracked time is done work."""
    return event.completed or event.type in ("completed", "tracked")


def is_planned_time(event: CalendarEvent) -> bool:
    return not is_completed_time(event)


def filter_events_for_project(
    events: Iterable[CalendarEvent], project_id: str, phase_id: str | None = None
) -> list[CalendarEvent]:
    """Events of a project, optionally narrowed to one phase."""
    selected = [e for e in events if e.project_id == project_id]
    if phase_id is not None:
        selected = [e for e in selected if e.phase_id == phase_id]
    return selected


def group_events_by_day(events: Iterable[CalendarEvent]) -> dict[date, list[CalendarEvent]]:
    """Group events by the day they start on, skipping malformed ones."""
    grouped: dict[date, list[CalendarEvent]] = {}
    for event in events:
        if not is_valid_event(event):
            logger.debug("skipping event %s: end %s precedes start %s", event.id, event.end_time, event.start_time)
            continue
        grouped.setdefault(event.day, []).append(event)
    return grouped


def day_breakdown(day: date, events_on_day: Iterable[CalendarEvent]) -> DayBreakdown:
    planned = 0.0
    completed = 0.0
    count = 0
    for event in events_on_day:
        hours = event_hours(event)
        if is_completed_time(event):
            completed += hours
        else:
            planned += hours
        count += 1
    return DayBreakdown(day=day, planned_hours=planned, completed_hours=completed, event_count=count)


def daily_breakdowns(
    events: Iterable[CalendarEvent], project_id: str, phase_id: str | None = None
) -> dict[date, DayBreakdown]:
    """Per-day planned/completed hours of a project, ordered by day."""
    grouped = group_events_by_day(filter_events_for_project(events, project_id, phase_id))
    return {day: day_breakdown(day, grouped[day]) for day in sorted(grouped)}


def committed_hours_between(breakdowns: dict[date, DayBreakdown], start: date, end: date) -> float:
    """Planned plus completed hours on days inside ``start``..``end``."""
    return sum(b.total_hours for day, b in breakdowns.items() if start <= day <= end)


def committed_days(breakdowns: dict[date, DayBreakdown]) -> set[date]:
    """Days carrying any event of the project; auto-estimates never land on these."""
    return {day for day, b in breakdowns.items() if b.event_count > 0}
