import datetime as dt

import pytest

from timeline_allocator.events import (
    committed_hours_between,
    daily_breakdowns,
    event_hours,
    filter_events_for_project,
    group_events_by_day,
    is_completed_time,
    is_planned_time,
)
from timeline_allocator.models import CalendarEvent


def _event(event_id, day, start_hour, hours, **kwargs):
    start = dt.datetime(day.year, day.month, day.day, start_hour)
    return CalendarEvent(id=event_id, start_time=start, end_time=start + dt.timedelta(hours=hours), **kwargs)


def test_event_hours_prefers_explicit_duration():
    timed = _event("e1", dt.date(2025, 1, 2), 9, 2.5)
    explicit = _event("e2", dt.date(2025, 1, 2), 9, 2.5, duration=1.0)

    assert event_hours(timed) == pytest.approx(2.5)
    assert event_hours(explicit) == pytest.approx(1.0)


def test_completed_flag_and_tracked_type_count_as_completed():
    assert is_completed_time(_event("e1", dt.date(2025, 1, 2), 9, 1, type="completed"))
    assert is_completed_time(_event("e2", dt.date(2025, 1, 2), 9, 1, type="tracked"))
    assert is_completed_time(_event("e3", dt.date(2025, 1, 2), 9, 1, completed=True))
    assert not is_completed_time(_event("e4", dt.date(2025, 1, 2), 9, 1))
    assert is_planned_time(_event("e5", dt.date(2025, 1, 2), 9, 1))


def test_group_by_day_skips_events_ending_before_they_start():
    good = _event("ok", dt.date(2025, 1, 2), 9, 1)
    bad = CalendarEvent(
        id="bad",
        start_time=dt.datetime(2025, 1, 3, 10),
        end_time=dt.datetime(2025, 1, 3, 9),
    )

    grouped = group_events_by_day([good, bad])

    assert list(grouped) == [dt.date(2025, 1, 2)]


def test_daily_breakdown_splits_planned_and_completed_per_project():
    events = [
        _event("a", dt.date(2025, 1, 2), 9, 2, project_id="p1"),
        _event("b", dt.date(2025, 1, 2), 13, 3, project_id="p1", type="tracked"),
        _event("c", dt.date(2025, 1, 1), 9, 4, project_id="p1", completed=True),
        _event("d", dt.date(2025, 1, 2), 9, 8, project_id="other"),
    ]

    breakdowns = daily_breakdowns(events, "p1")

    assert list(breakdowns) == [dt.date(2025, 1, 1), dt.date(2025, 1, 2)]
    jan2 = breakdowns[dt.date(2025, 1, 2)]
    assert jan2.planned_hours == pytest.approx(2)
    assert jan2.completed_hours == pytest.approx(3)
    assert jan2.total_hours == pytest.approx(5)
    assert jan2.event_count == 2
    assert breakdowns[dt.date(2025, 1, 1)].has_completed
    assert not breakdowns[dt.date(2025, 1, 1)].has_planned


def test_filter_by_phase_and_committed_hours_in_range():
    events = [
        _event("a", dt.date(2025, 1, 2), 9, 2, project_id="p1", phase_id="ph1"),
        _event("b", dt.date(2025, 1, 5), 9, 3, project_id="p1", phase_id="ph2"),
    ]

    assert [e.id for e in filter_events_for_project(events, "p1", "ph2")] == ["b"]

    breakdowns = daily_breakdowns(events, "p1")
    assert committed_hours_between(breakdowns, dt.date(2025, 1, 1), dt.date(2025, 1, 4)) == pytest.approx(2)
    assert committed_hours_between(breakdowns, dt.date(2025, 1, 1), dt.date(2025, 1, 5)) == pytest.approx(5)
