from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from typing import Iterable, Sequence

from .events import DayBreakdown, committed_days, committed_hours_between, daily_breakdowns
from .models import CalendarEvent, DayEstimate, Holiday, Phase, Plan, Project, WorkingDaySettings
from .recurrence import default_window_end, occurrence_windows
from .validation import PlanValidationError, validate_recurring_config
from .working_day_cache import WorkingDayCache
from .working_days import working_days_between

logger = logging.getLogger(__name__)

_SOURCE_ORDER = {"event": 0, "milestone-allocation": 1}


def project_window(project: Project, viewport_end: date | None = None) -> tuple[date, date]:
    """
    Date range estimates may cover.

    Continuous projects have no meaningful end date, so they are bounded by the
    viewport end (or a one year horizon when none is given).
    """

    if project.continuous:
        return project.start_date, default_window_end(project.start_date, viewport_end)
    return project.start_date, project.end_date


def _usable_allocation(hours: float | None) -> bool:
    if isinstance(hours, bool) or not isinstance(hours, (int, float)):
        return False
    return math.isfinite(hours) and hours > 0


def _allocate_window(
    project_id: str,
    phase_id: str | None,
    start: date,
    end: date,
    allocation: float,
    settings: WorkingDaySettings,
    holidays: Sequence[Holiday],
    breakdowns: dict[date, DayBreakdown],
    today: date | None,
    cache: WorkingDayCache | None,
) -> list[DayEstimate]:
    consumed = committed_hours_between(breakdowns, start, end)
    if consumed >= allocation:
        logger.debug(
            "project %s phase %s: %.2fh committed covers %.2fh allocation in %s..%s",
            project_id,
            phase_id,
            consumed,
            allocation,
            start,
            end,
        )
        return []

    remaining = allocation - consumed
    blocked = committed_days(breakdowns)
    summary = working_days_between(start, end, settings, holidays, cache)
    free_days = [
        day for day in summary.working_days if day not in blocked and (today is None or day >= today)
    ]
    if not free_days:
        logger.debug("project %s phase %s: no free working day in %s..%s", project_id, phase_id, start, end)
        return []

    hours_per_day = remaining / len(free_days)
    return [
        DayEstimate(
            date=day,
            hours=hours_per_day,
            project_id=project_id,
            source="milestone-allocation",
            phase_id=phase_id,
        )
        for day in free_days
    ]


def allocate_phase(
    phase: Phase,
    project: Project,
    settings: WorkingDaySettings,
    holidays: Sequence[Holiday],
    events: Iterable[CalendarEvent],
    *,
    window_start: date | None = None,
    today: date | None = None,
    viewport_end: date | None = None,
    cache: WorkingDayCache | None = None,
) -> list[DayEstimate]:
    """
    Spread the uncommitted part of a phase's hours over its free working days.

    Fixed phases cover ``start_date``..``end_date``; a missing start falls back
    to ``window_start`` (the day after the previous phase) and then to the
    project start. Recurring phases are allocated once per occurrence period,
    each period receiving ``time_allocation_hours``. Days with any event of the
    project are skipped; when committed hours already reach the allocation no
    estimate is produced. Malformed input yields an empty list.
    """

    if not _usable_allocation(phase.time_allocation_hours) or phase.end_date is None:
        return []
    if project.start_date is None or project.end_date is None:
        return []

    project_start, project_end = project_window(project, viewport_end)
    breakdowns = daily_breakdowns(events, project.id)

    if phase.is_recurring:
        if phase.recurring_config is None:
            return []
        try:
            validate_recurring_config(phase.recurring_config)
        except PlanValidationError as exc:
            logger.debug("project %s phase %s: skipping recurrence (%s)", project.id, phase.id, exc)
            return []
        periods = occurrence_windows(phase.recurring_config, project_start, project_end, anchor=phase.end_date)
    else:
        start = phase.start_date or window_start or project_start
        periods = [(max(start, project_start), min(phase.end_date, project_end))]

    estimates: list[DayEstimate] = []
    for start, end in periods:
        if start > end:
            continue
        estimates.extend(
            _allocate_window(
                project.id,
                phase.id,
                start,
                end,
                float(phase.time_allocation_hours),
                settings,
                holidays,
                breakdowns,
                today,
                cache,
            )
        )
    return estimates


def allocate_project_budget(
    project: Project,
    settings: WorkingDaySettings,
    holidays: Sequence[Holiday],
    events: Iterable[CalendarEvent],
    *,
    today: date | None = None,
    cache: WorkingDayCache | None = None,
) -> list[DayEstimate]:
    """Auto-estimates for a project without phases, spreading ``estimated_hours``."""

    if project.continuous:
        # An open-ended project has no finite budget window to spread over.
        return []
    if not _usable_allocation(project.estimated_hours) or project.start_date > project.end_date:
        return []
    breakdowns = daily_breakdowns(events, project.id)
    return _allocate_window(
        project.id,
        None,
        project.start_date,
        project.end_date,
        float(project.estimated_hours),
        settings,
        holidays,
        breakdowns,
        today,
        cache,
    )


def event_day_estimates(
    project: Project, events: Iterable[CalendarEvent], window: tuple[date, date] | None = None
) -> list[DayEstimate]:
    """One ``event`` estimate per day carrying committed hours of the project."""
    estimates = []
    for day, breakdown in daily_breakdowns(events, project.id).items():
        if window is not None and not window[0] <= day <= window[1]:
            continue
        if breakdown.total_hours <= 0:
            continue
        estimates.append(
            DayEstimate(
                date=day,
                hours=breakdown.total_hours,
                project_id=project.id,
                source="event",
                is_planned_event=breakdown.has_planned,
                is_completed_event=breakdown.has_completed,
            )
        )
    return estimates


def project_day_estimates(
    project: Project,
    phases: Sequence[Phase],
    settings: WorkingDaySettings,
    holidays: Sequence[Holiday],
    events: Sequence[CalendarEvent],
    *,
    today: date | None = None,
    viewport_end: date | None = None,
    cache: WorkingDayCache | None = None,
) -> list[DayEstimate]:
    """
    All day estimates of a project: committed event days plus auto-estimates.

    Phases are processed in end-date order so an open start date can follow
    on from the previous fixed phase. Projects without phases spread their
    whole estimate instead. Results are sorted by date.
    """

    estimates = event_day_estimates(project, events)
    own_phases = sorted((p for p in phases if p.project_id == project.id), key=lambda p: (p.end_date, p.id))

    if not own_phases:
        estimates.extend(allocate_project_budget(project, settings, holidays, events, today=today, cache=cache))
    else:
        previous_end: date | None = None
        for phase in own_phases:
            next_start = previous_end + timedelta(days=1) if previous_end is not None else None
            estimates.extend(
                allocate_phase(
                    phase,
                    project,
                    settings,
                    holidays,
                    events,
                    window_start=next_start,
                    today=today,
                    viewport_end=viewport_end,
                    cache=cache,
                )
            )
            if not phase.is_recurring:
                previous_end = phase.end_date

    estimates.sort(key=lambda e: (e.date, _SOURCE_ORDER[e.source], e.phase_id or ""))
    return estimates


def plan_day_estimates(
    plan: Plan,
    *,
    project_ids: Iterable[str] | None = None,
    today: date | None = None,
    viewport_end: date | None = None,
    cache: WorkingDayCache | None = None,
) -> dict[str, list[DayEstimate]]:
    """Day estimates for every project of a plan (or the selected ones), keyed by project id."""
    wanted = set(project_ids) if project_ids is not None else None
    result: dict[str, list[DayEstimate]] = {}
    for project in plan.projects:
        if wanted is not None and project.id not in wanted:
            continue
        result[project.id] = project_day_estimates(
            project,
            plan.phases_for(project.id),
            plan.settings,
            plan.holidays,
            plan.events,
            today=today,
            viewport_end=viewport_end,
            cache=cache,
        )
    return result


def aggregate_estimates_by_date(estimates: Iterable[DayEstimate]) -> dict[date, float]:
    """Total hours per day across estimates, ordered by day."""
    totals: dict[date, float] = {}
    for estimate in estimates:
        totals[estimate.date] = totals.get(estimate.date, 0.0) + estimate.hours
    return dict(sorted(totals.items()))


def total_hours(estimates: Iterable[DayEstimate], source: str | None = None) -> float:
    return sum(e.hours for e in estimates if source is None or e.source == source)
