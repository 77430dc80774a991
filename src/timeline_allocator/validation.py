from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence

from .drag import overlapping_holidays
from .models import LAST_WEEK, SECOND_LAST_WEEK, Holiday, Phase, Plan, Project, RecurringConfig

logger = logging.getLogger(__name__)

MAX_HOLIDAY_DAYS = 365


class PlanValidationError(Exception):
    """Raised when plan entities are malformed (bad ranges, unknown references, bad recurrence)."""


def validate_holiday(holiday: Holiday, existing: Iterable[Holiday] = ()) -> list[str]:
    """
    Check a holiday before it is stored.

    Raises on a blank name or an inverted range. Overlaps with other holidays
    and very long holidays are allowed but returned as warnings.
    """

    if not holiday.name or not holiday.name.strip():
        raise PlanValidationError(f"holiday '{holiday.id}': name is required")
    if holiday.start_date > holiday.end_date:
        raise PlanValidationError(
            f"holiday '{holiday.id}': start {holiday.start_date} is after end {holiday.end_date}"
        )

    warnings: list[str] = []
    for other in overlapping_holidays(holiday, existing):
        warnings.append(f"holiday '{holiday.id}' overlaps '{other.id}' ({other.start_date}..{other.end_date})")
    if holiday.duration_days > MAX_HOLIDAY_DAYS:
        warnings.append(f"holiday '{holiday.id}' spans {holiday.duration_days} days")
    return warnings


def validate_recurring_config(config: RecurringConfig, hours_per_occurrence: float | None = None) -> None:
    if config.type not in ("daily", "weekly", "monthly"):
        raise PlanValidationError(f"recurrence type must be daily, weekly or monthly, got '{config.type}'")
    if not isinstance(config.interval, int) or config.interval < 1:
        raise PlanValidationError(f"recurrence interval must be a positive integer, got {config.interval!r}")

    if config.type == "weekly":
        if config.weekly_day_of_week is None or not 0 <= config.weekly_day_of_week <= 6:
            raise PlanValidationError("weekly recurrence needs a day of week between 0 (Sunday) and 6")

    if config.type == "monthly":
        if config.monthly_pattern == "date":
            if config.monthly_date is None or not 1 <= config.monthly_date <= 31:
                raise PlanValidationError("monthly date must be between 1 and 31")
        elif config.monthly_pattern == "dayOfWeek":
            week = config.monthly_week_of_month
            if week is None or not (1 <= week <= 5 or week in (LAST_WEEK, SECOND_LAST_WEEK)):
                raise PlanValidationError("week of month must be 1-5, -1 (last) or -2 (second to last)")
            if config.monthly_day_of_week is None or not 0 <= config.monthly_day_of_week <= 6:
                raise PlanValidationError("monthly day of week must be between 0 (Sunday) and 6")
        else:
            raise PlanValidationError("monthly recurrence needs a pattern of 'date' or 'dayOfWeek'")

    if hours_per_occurrence is not None and not _positive(hours_per_occurrence):
        raise PlanValidationError(f"time per occurrence must be positive, got {hours_per_occurrence}")


def validate_project(project: Project) -> None:
    if not project.continuous and project.start_date > project.end_date:
        raise PlanValidationError(
            f"project '{project.id}': start {project.start_date} is after end {project.end_date}"
        )
    if not isinstance(project.estimated_hours, (int, float)) or not math.isfinite(project.estimated_hours):
        raise PlanValidationError(f"project '{project.id}': estimated hours must be a number")
    if project.estimated_hours < 0:
        raise PlanValidationError(f"project '{project.id}': estimated hours cannot be negative")


def validate_phase(phase: Phase, project: Project) -> None:
    if not _positive(phase.time_allocation_hours):
        raise PlanValidationError(f"phase '{phase.id}': time allocation must be positive")
    if phase.is_recurring:
        if phase.recurring_config is None:
            raise PlanValidationError(f"phase '{phase.id}': recurring phase needs a recurrence")
        try:
            validate_recurring_config(phase.recurring_config, phase.time_allocation_hours)
        except PlanValidationError as exc:
            raise PlanValidationError(f"phase '{phase.id}': {exc}") from exc
        return
    if phase.start_date is not None and phase.start_date > phase.end_date:
        raise PlanValidationError(f"phase '{phase.id}': start {phase.start_date} is after end {phase.end_date}")
    if phase.end_date < project.start_date or (not project.continuous and phase.end_date > project.end_date):
        raise PlanValidationError(f"phase '{phase.id}': end {phase.end_date} is outside project '{project.id}'")


def validate_phase_budget(project: Project, phases: Sequence[Phase]) -> None:
    """Fixed phases of a finite project may not ask for more hours than the project has."""
    if project.continuous:
        return
    allocated = sum(p.time_allocation_hours for p in phases if p.project_id == project.id and not p.is_recurring)
    if allocated > project.estimated_hours + 1e-9:
        raise PlanValidationError(
            f"project '{project.id}': phases allocate {allocated:g}h but the project estimate is "
            f"{project.estimated_hours:g}h"
        )


def validate_plan(plan: Plan) -> list[str]:
    """Validate every entity of a plan; return non-fatal warnings."""

    _assert_unique("project", (p.id for p in plan.projects))
    _assert_unique("phase", (p.id for p in plan.phases))
    _assert_unique("holiday", (h.id for h in plan.holidays))
    _assert_unique("event", (e.id for e in plan.events))

    warnings: list[str] = []
    for idx, holiday in enumerate(plan.holidays):
        warnings.extend(validate_holiday(holiday, plan.holidays[:idx]))

    projects = {p.id: p for p in plan.projects}
    for project in plan.projects:
        validate_project(project)
    for phase in plan.phases:
        project = projects.get(phase.project_id)
        if project is None:
            raise PlanValidationError(f"phase '{phase.id}' references unknown project '{phase.project_id}'")
        validate_phase(phase, project)
    for project in plan.projects:
        validate_phase_budget(project, plan.phases)

    for event in plan.events:
        if event.project_id is not None and event.project_id not in projects:
            warnings.append(f"event '{event.id}' references unknown project '{event.project_id}'")
        if event.duration is None and event.end_time <= event.start_time:
            warnings.append(f"event '{event.id}' ends before it starts and is ignored")

    for warning in warnings:
        logger.warning(warning)
    return warnings


def _assert_unique(kind: str, ids: Iterable[str]) -> None:
    seen: set[str] = set()
    for value in ids:
        if value in seen:
            raise PlanValidationError(f"duplicate {kind} id '{value}'")
        seen.add(value)


def _positive(value: float | None) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value) and value > 0
