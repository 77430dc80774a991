from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal


EventType = Literal["planned", "completed", "tracked"]
"""Calendar event kinds: scheduled work, work marked done, and time logged by a tracker."""

RecurrenceType = Literal["daily", "weekly", "monthly"]
MonthlyPattern = Literal["date", "dayOfWeek"]

EstimateSource = Literal["event", "milestone-allocation"]
"""Origin of a DayEstimate: committed event hours or an auto-estimate spread over free days."""

DragAction = Literal["move", "resize-start-date", "resize-end-date"]

WEEKDAY_NAMES: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
"""Weekday keys of WorkingDaySettings, indexed by ``date.weekday()``."""

LAST_WEEK = -1
SECOND_LAST_WEEK = -2


@dataclass(frozen=True)
class WorkSlot:
    """A block of working time inside a day, e.g. 09:00-13:00 worth 4 hours."""

    start_time: str
    end_time: str
    duration_hours: float


@dataclass
class WorkingDaySettings:
    """Weekly work-hour template keyed by lowercase weekday name."""

    weekly_work_hours: dict[str, tuple[WorkSlot, ...]] = field(default_factory=dict)

    def slots_for(self, day: date) -> tuple[WorkSlot, ...]:
        """Slots configured for the weekday of ``day``; missing weekdays have none."""
        return tuple(self.weekly_work_hours.get(WEEKDAY_NAMES[day.weekday()], ()))

    def cache_key(self) -> tuple[float, ...]:
        """Hashable fingerprint: total hours per weekday, Monday first."""
        return tuple(
            sum(slot.duration_hours for slot in self.weekly_work_hours.get(name, ()))
            for name in WEEKDAY_NAMES
        )

    @classmethod
    def uniform(cls, hours_by_weekday: dict[str, float]) -> "WorkingDaySettings":
        """Build settings with one 09:00-based slot per weekday from plain hour totals."""
        weekly: dict[str, tuple[WorkSlot, ...]] = {}
        for name in WEEKDAY_NAMES:
            hours = hours_by_weekday.get(name, 0)
            if hours > 0:
                end_hour = min(9 + int(hours), 24)
                weekly[name] = (WorkSlot("09:00", f"{end_hour:02d}:00", float(hours)),)
            else:
                weekly[name] = ()
        return cls(weekly_work_hours=weekly)


@dataclass(frozen=True)
class Holiday:
    """Inclusive range of days on which nobody works."""

    id: str
    start_date: date
    end_date: date
    name: str = ""

    def __post_init__(self) -> None:
        # Bounds are whole days; a datetime is cut to midnight.
        for name in ("start_date", "end_date"):
            value = getattr(self, name)
            if isinstance(value, datetime):
                object.__setattr__(self, name, value.date())

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    @property
    def duration_days(self) -> int:
        """Number of calendar days in the holiday, both ends included."""
        return (self.end_date - self.start_date).days + 1


@dataclass
class Project:
    """A project bar: date range, hour budget and the timeline row it sits on."""

    id: str
    start_date: date
    end_date: date
    estimated_hours: float
    continuous: bool = False
    row_id: str | None = None
    group_id: str | None = None
    name: str = ""


@dataclass(frozen=True)
class RecurringConfig:
    """
    Repetition rule of a recurring phase.

    Weekday numbers run 0=Sunday .. 6=Saturday. ``monthly_week_of_month`` is an
    ordinal (1..5) or a from-the-end marker (LAST_WEEK, SECOND_LAST_WEEK).
    """

    type: RecurrenceType
    interval: int = 1
    weekly_day_of_week: int | None = None
    monthly_pattern: MonthlyPattern | None = None
    monthly_date: int | None = None
    monthly_week_of_month: int | None = None
    monthly_day_of_week: int | None = None


@dataclass
class Phase:
    """
    A sub-allocation (milestone) of a project's hour budget.

    Fixed phases cover ``start_date``..``end_date``; when ``start_date`` is
    missing the window starts the day after the previous phase ends. For
    recurring phases ``end_date`` anchors the pattern and
    ``time_allocation_hours`` is the budget of each occurrence.
    """

    id: str
    project_id: str
    end_date: date
    time_allocation_hours: float
    start_date: date | None = None
    is_recurring: bool = False
    recurring_config: RecurringConfig | None = None
    name: str = ""


@dataclass(frozen=True)
class CalendarEvent:
    """A planned, completed or tracked block of time, optionally tied to a project."""

    id: str
    start_time: datetime
    end_time: datetime
    type: EventType = "planned"
    duration: float | None = None
    project_id: str | None = None
    phase_id: str | None = None
    completed: bool = False

    @property
    def day(self) -> date:
        """Local calendar day the event belongs to (the day it starts on)."""
        return self.start_time.date()


@dataclass(frozen=True)
class DayEstimate:
    """Hours attributed to a project on a single day."""

    date: date
    hours: float
    project_id: str
    source: EstimateSource
    phase_id: str | None = None
    is_planned_event: bool = False
    is_completed_event: bool = False


@dataclass
class DragState:
    """Transient state of one drag or resize gesture."""

    original_start: date
    original_end: date
    candidate_start: date
    candidate_end: date
    action: DragAction
    last_days_delta: int = 0

    @property
    def start_delta_days(self) -> int:
        return (self.candidate_start - self.original_start).days

    @property
    def end_delta_days(self) -> int:
        return (self.candidate_end - self.original_end).days

    @property
    def is_displaced(self) -> bool:
        """True when either edge moved away from where the gesture began."""
        return self.start_delta_days != 0 or self.end_delta_days != 0


@dataclass
class Plan:
    """Everything needed to compute day estimates: settings plus the entities."""

    settings: WorkingDaySettings
    holidays: list[Holiday] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    phases: list[Phase] = field(default_factory=list)
    events: list[CalendarEvent] = field(default_factory=list)

    def project(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def phases_for(self, project_id: str) -> list[Phase]:
        return [phase for phase in self.phases if phase.project_id == project_id]
