from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass
from typing import Any

import yaml

from .models import (
    LAST_WEEK,
    SECOND_LAST_WEEK,
    WEEKDAY_NAMES,
    CalendarEvent,
    Holiday,
    Phase,
    Plan,
    Project,
    RecurringConfig,
    WorkingDaySettings,
    WorkSlot,
)
from .validation import PlanValidationError, validate_plan

logger = logging.getLogger(__name__)

_WEEK_ALIASES = {"last": LAST_WEEK, "second_last": SECOND_LAST_WEEK, "second-to-last": SECOND_LAST_WEEK}
_EVENT_TYPES = ("planned", "completed", "tracked")


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like phases[0].recurring."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


def load_plan(path: str) -> Plan:
    """Load and validate a Plan from a YAML file at the given path."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return plan_from_dict(raw)


def plan_from_dict(data: Any) -> Plan:
    """Build a Plan from already decoded YAML data, validating references and ranges."""
    plan = _parse_plan(data, _Path())
    validate_plan(plan)
    return plan


def _parse_plan(data: Any, path: _Path) -> Plan:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"settings", "holidays", "projects", "phases", "events"}, path)

    settings_raw = data.get("settings")
    if not isinstance(settings_raw, dict):
        raise PlanValidationError(f"{path}: missing required mapping 'settings'")
    settings = _parse_settings(settings_raw, path.child("settings"))

    holidays = [_parse_holiday(item, p) for item, p in _iter_list(data, "holidays", path)]
    projects = [_parse_project(item, p) for item, p in _iter_list(data, "projects", path, required=True)]
    phases = [_parse_phase(item, p) for item, p in _iter_list(data, "phases", path)]
    events = [_parse_event(item, p) for item, p in _iter_list(data, "events", path)]

    logger.debug(
        "parsed plan: %d projects, %d phases, %d events, %d holidays",
        len(projects),
        len(phases),
        len(events),
        len(holidays),
    )
    return Plan(settings=settings, holidays=holidays, projects=projects, phases=phases, events=events)


def _iter_list(data: dict[str, Any], key: str, path: _Path, required: bool = False) -> list[tuple[Any, _Path]]:
    raw = data.get(key)
    if raw is None:
        if required:
            raise PlanValidationError(f"{path}: missing required field '{key}'")
        return []
    if not isinstance(raw, list):
        raise PlanValidationError(f"{path.child(key)}: expected list")
    return [(item, path.child(f"{key}[{idx}]")) for idx, item in enumerate(raw)]


def _parse_settings(data: dict[str, Any], path: _Path) -> WorkingDaySettings:
    _assert_allowed_keys(data, {"work_hours"}, path)
    hours_raw = _require_value(data, "work_hours", path)
    hours_path = path.child("work_hours")
    if not isinstance(hours_raw, dict):
        raise PlanValidationError(f"{hours_path}: expected mapping of weekday to hours or slots")
    _assert_allowed_keys(hours_raw, set(WEEKDAY_NAMES), hours_path)

    weekly: dict[str, tuple[WorkSlot, ...]] = {}
    for name in WEEKDAY_NAMES:
        weekly[name] = _parse_slots(hours_raw.get(name), hours_path.child(name))
    return WorkingDaySettings(weekly_work_hours=weekly)


def _parse_slots(value: Any, path: _Path) -> tuple[WorkSlot, ...]:
    if value is None:
        return ()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if value < 0:
            raise PlanValidationError(f"{path}: hours cannot be negative")
        if value == 0:
            return ()
        return WorkingDaySettings.uniform({"monday": value}).weekly_work_hours["monday"]
    if not isinstance(value, list):
        raise PlanValidationError(f"{path}: expected number of hours or list of slots")

    slots: list[WorkSlot] = []
    for idx, slot_raw in enumerate(value):
        slot_path = path.child(f"[{idx}]")
        if not isinstance(slot_raw, dict):
            raise PlanValidationError(f"{slot_path}: expected mapping for slot")
        _assert_allowed_keys(slot_raw, {"start", "end", "hours"}, slot_path)
        hours = _require_number(slot_raw, "hours", slot_path)
        if hours < 0:
            raise PlanValidationError(f"{slot_path.child('hours')}: hours cannot be negative")
        slots.append(
            WorkSlot(
                start_time=_require_str(slot_raw, "start", slot_path),
                end_time=_require_str(slot_raw, "end", slot_path),
                duration_hours=float(hours),
            )
        )
    return tuple(slots)


def _parse_holiday(data: Any, path: _Path) -> Holiday:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for holiday")
    _assert_allowed_keys(data, {"id", "name", "start_date", "end_date"}, path)
    start = _parse_date(_require_value(data, "start_date", path), path.child("start_date"))
    end = _parse_date(data.get("end_date", start), path.child("end_date"))
    return Holiday(
        id=_require_id(data, path),
        start_date=start,
        end_date=end,
        name=_require_str(data, "name", path),
    )


def _parse_project(data: Any, path: _Path) -> Project:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for project")
    _assert_allowed_keys(
        data,
        {"id", "name", "start_date", "end_date", "estimated_hours", "continuous", "group", "row"},
        path,
    )
    continuous = _optional_bool(data, "continuous", path)
    start = _parse_date(_require_value(data, "start_date", path), path.child("start_date"))
    if continuous and "end_date" not in data:
        end = start
    else:
        end = _parse_date(_require_value(data, "end_date", path), path.child("end_date"))
    return Project(
        id=_require_id(data, path),
        start_date=start,
        end_date=end,
        estimated_hours=float(_require_number(data, "estimated_hours", path)),
        continuous=continuous,
        row_id=_optional_str(data, "row", path),
        group_id=_optional_str(data, "group", path),
        name=_optional_str(data, "name", path) or "",
    )


def _parse_phase(data: Any, path: _Path) -> Phase:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for phase")
    _assert_allowed_keys(data, {"id", "project", "name", "start_date", "end_date", "hours", "recurring"}, path)

    start = None
    if data.get("start_date") is not None:
        start = _parse_date(data["start_date"], path.child("start_date"))
    recurring = None
    if data.get("recurring") is not None:
        recurring = _parse_recurring(data["recurring"], path.child("recurring"))

    return Phase(
        id=_require_id(data, path),
        project_id=_require_str(data, "project", path),
        end_date=_parse_date(_require_value(data, "end_date", path), path.child("end_date")),
        time_allocation_hours=float(_require_number(data, "hours", path)),
        start_date=start,
        is_recurring=recurring is not None,
        recurring_config=recurring,
        name=_optional_str(data, "name", path) or "",
    )


def _parse_recurring(data: Any, path: _Path) -> RecurringConfig:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for recurrence")
    _assert_allowed_keys(
        data,
        {"type", "interval", "day_of_week", "pattern", "date", "week_of_month"},
        path,
    )
    rec_type = _require_str(data, "type", path)
    if rec_type not in ("daily", "weekly", "monthly"):
        raise PlanValidationError(f"{path.child('type')}: expected one of daily, weekly, monthly")

    interval = data.get("interval", 1)
    if not isinstance(interval, int) or isinstance(interval, bool):
        raise PlanValidationError(f"{path.child('interval')}: expected integer")

    day_of_week = _optional_int(data, "day_of_week", path)
    week_of_month = data.get("week_of_month")
    if isinstance(week_of_month, str):
        if week_of_month not in _WEEK_ALIASES:
            raise PlanValidationError(f"{path.child('week_of_month')}: expected 1-5, 'last' or 'second_last'")
        week_of_month = _WEEK_ALIASES[week_of_month]
    elif week_of_month is not None and (not isinstance(week_of_month, int) or isinstance(week_of_month, bool)):
        raise PlanValidationError(f"{path.child('week_of_month')}: expected integer or 'last'")

    pattern = _optional_str(data, "pattern", path)
    if pattern is None and rec_type == "monthly":
        pattern = "dayOfWeek" if week_of_month is not None else "date"

    return RecurringConfig(
        type=rec_type,
        interval=interval,
        weekly_day_of_week=day_of_week if rec_type == "weekly" else None,
        monthly_pattern=pattern if rec_type == "monthly" else None,
        monthly_date=_optional_int(data, "date", path),
        monthly_week_of_month=week_of_month,
        monthly_day_of_week=day_of_week if rec_type == "monthly" else None,
    )


def _parse_event(data: Any, path: _Path) -> CalendarEvent:
    if not isinstance(data, dict):
        raise PlanValidationError(f"{path}: expected mapping for event")
    _assert_allowed_keys(
        data,
        {"id", "project", "phase", "start", "end", "type", "duration", "completed"},
        path,
    )
    event_type = data.get("type", "planned")
    if event_type not in _EVENT_TYPES:
        raise PlanValidationError(f"{path.child('type')}: expected one of {', '.join(_EVENT_TYPES)}")
    duration = None
    if data.get("duration") is not None:
        duration = float(_require_number(data, "duration", path))

    return CalendarEvent(
        id=_require_id(data, path),
        start_time=_parse_datetime(_require_value(data, "start", path), path.child("start")),
        end_time=_parse_datetime(_require_value(data, "end", path), path.child("end")),
        type=event_type,
        duration=duration,
        project_id=_optional_str(data, "project", path),
        phase_id=_optional_str(data, "phase", path),
        completed=_optional_bool(data, "completed", path),
    )


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise PlanValidationError(f"{path}: unexpected fields {extras}")


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise PlanValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise PlanValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_id(data: dict[str, Any], path: _Path) -> str:
    value = _require_value(data, "id", path)
    # YAML reads bare numeric ids as int.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return _require_str(data, "id", path)


def _require_number(data: dict[str, Any], key: str, path: _Path) -> float:
    value = _require_value(data, key, path)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise PlanValidationError(f"{path.child(key)}: expected number")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise PlanValidationError(f"{path.child(key)}: expected string")
    return value


def _optional_int(data: dict[str, Any], key: str, path: _Path) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        raise PlanValidationError(f"{path.child(key)}: expected integer")
    return value


def _optional_bool(data: dict[str, Any], key: str, path: _Path) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise PlanValidationError(f"{path.child(key)}: expected true or false")
    return value


def _parse_date(value: Any, path: _Path) -> _dt.date:
    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if not isinstance(value, str):
        raise PlanValidationError(f"{path}: expected YYYY-MM-DD date")
    try:
        return _dt.date.fromisoformat(value)
    except ValueError as exc:
        raise PlanValidationError(f"{path}: expected YYYY-MM-DD date") from exc


def _parse_datetime(value: Any, path: _Path) -> _dt.datetime:
    if isinstance(value, _dt.datetime):
        return value
    if not isinstance(value, str):
        raise PlanValidationError(f"{path}: expected ISO timestamp like 2025-01-02T09:00")
    try:
        return _dt.datetime.fromisoformat(value)
    except ValueError as exc:
        raise PlanValidationError(f"{path}: expected ISO timestamp like 2025-01-02T09:00") from exc
