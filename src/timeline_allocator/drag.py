from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Callable, Iterable, Literal, Sequence

from .models import DayEstimate, DragAction, DragState, Holiday, Project
from .throttle import DEFAULT_INTERVAL_SECONDS, CoalescingThrottle
from .timeline_rows import MIN_PROJECT_GAP_DAYS, assign_row_ids

logger = logging.getLogger(__name__)

ViewMode = Literal["days", "weeks"]
GestureStatus = Literal["idle", "dragging", "committing", "cancelled"]

DAYS_MODE_COLUMN_WIDTH = 40
"""Pixels per day column in days mode."""

WEEKS_MODE_COLUMN_WIDTH = 77
"""Pixels per week column in weeks mode (11 px per day)."""

HOLIDAY_GAP_DAYS = 0


class GestureInProgressError(Exception):
    """Raised when a gesture begins while another one is still active."""


class DragCommitError(Exception):
    """Raised when persisting the result of a gesture fails."""


@dataclass(frozen=True)
class Bar:
    """Date range drawn on the timeline together with the row it occupies."""

    id: str
    start_date: date
    end_date: date
    row_id: str | None = None

    @classmethod
    def from_project(cls, project: Project) -> "Bar":
        return cls(project.id, project.start_date, project.end_date, project.row_id)

    @classmethod
    def from_holiday(cls, holiday: Holiday) -> "Bar":
        return cls(holiday.id, holiday.start_date, holiday.end_date)


def pixels_to_days(delta_px: float, mode: ViewMode = "days") -> int:
    """Whole days represented by a horizontal pointer displacement (half rounds up)."""
    if mode == "weeks":
        per_day = WEEKS_MODE_COLUMN_WIDTH / 7
    else:
        per_day = DAYS_MODE_COLUMN_WIDTH
    return math.floor(delta_px / per_day + 0.5)


def shift_dates(start: date, end: date, days: int) -> tuple[date, date]:
    delta = timedelta(days=days)
    return start + delta, end + delta


def committed_bounds(project_id: str, estimates: Iterable[DayEstimate]) -> tuple[date, date] | None:
    """Earliest and latest day holding planned or completed event hours of the project."""
    days = [
        e.date
        for e in estimates
        if e.project_id == project_id
        and e.source == "event"
        and (e.is_planned_event or e.is_completed_event)
    ]
    if not days:
        return None
    return min(days), max(days)


def clamp_to_committed_work(
    action: DragAction, start: date, end: date, bounds: tuple[date, date] | None
) -> tuple[date, date]:
    """
    Keep a resized range around all committed work and non-inverted.

    The start edge may not move past the first committed day, nor the end
    edge before the last one. Moves are not bounded by committed work.
    """

    if bounds is not None and action == "resize-start-date":
        start = min(start, bounds[0])
    elif bounds is not None and action == "resize-end-date":
        end = max(end, bounds[1])
    if action == "resize-start-date":
        start = min(start, end)
    elif action == "resize-end-date":
        end = max(end, start)
    return start, end


def row_neighbors(bar: Bar, bars: Iterable[Bar]) -> list[Bar]:
    """Other bars on the same row; bars without a row have no neighbors."""
    if bar.row_id is None:
        return []
    return [other for other in bars if other.id != bar.id and other.row_id == bar.row_id]


def snap_to_neighbors(
    state: DragState,
    neighbors: Iterable[Bar],
    gap_days: int,
) -> tuple[date, date]:
    """
    Pull the candidate range back to keep ``gap_days`` empty days to neighbors.

    Only the nearest neighbor in the direction of movement is considered: a
    bar whose end is at or before the original start when moving or resizing
    left, one whose start is at or after the original end when moving right.
    A conflicting edge snaps to ``gap_days + 1`` days from that neighbor.
    """

    start, end = state.candidate_start, state.candidate_end
    neighbors = list(neighbors)
    left = [n for n in neighbors if n.end_date <= state.original_start]
    right = [n for n in neighbors if n.start_date >= state.original_end]
    required = timedelta(days=gap_days + 1)

    moving_left = state.action in ("move", "resize-start-date") and start < state.original_start
    moving_right = state.action in ("move", "resize-end-date") and end > state.original_end

    if moving_left and left:
        nearest_end = max(n.end_date for n in left)
        if start - nearest_end < required:
            snapped = nearest_end + required
            if state.action == "move":
                end += snapped - start
            start = snapped
    elif moving_right and right:
        nearest_start = min(n.start_date for n in right)
        if nearest_start - end < required:
            snapped = nearest_start - required
            if state.action == "move":
                start -= end - snapped
            end = snapped

    if state.action == "resize-start-date":
        start = min(start, end)
    elif state.action == "resize-end-date":
        end = max(end, start)
    return start, end


def overlapping_holidays(holiday: Holiday, holidays: Iterable[Holiday]) -> list[Holiday]:
    """Other holidays sharing at least one day with ``holiday``."""
    return [
        other
        for other in holidays
        if other.id != holiday.id and holiday.start_date <= other.end_date and other.start_date <= holiday.end_date
    ]


class DragSession:
    """
    One bar being moved or resized: idle -> dragging -> committing | cancelled -> idle.

    Pointer moves only update in-memory state and previews; ``release``
    performs at most one ``update_entity(id, partial_update)`` call, and only
    when the bar actually moved. Subclasses decide the neighbors, the gap and
    any bounds.
    """

    gap_days = 0

    def __init__(
        self,
        bars: Sequence[Bar],
        update_entity: Callable[[str, dict[str, date]], Any],
        *,
        mode: ViewMode = "days",
        on_preview: Callable[[DragState], Any] | None = None,
        throttle_interval: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.bars = list(bars)
        self.mode = mode
        self._update_entity = update_entity
        self._on_preview = on_preview
        self._throttle: CoalescingThrottle[DragState] = CoalescingThrottle(
            self._deliver_preview, interval=throttle_interval, clock=clock
        )
        self.status: GestureStatus = "idle"
        self.state: DragState | None = None
        self.bar: Bar | None = None
        self._origin_x = 0.0

    @property
    def should_commit(self) -> bool:
        """True while dragging with a candidate range that differs from the original."""
        return self.status == "dragging" and self.state is not None and self.state.is_displaced

    def begin(self, bar_id: str, action: DragAction, pointer_x: float = 0.0) -> DragState:
        if self.status != "idle":
            raise GestureInProgressError(f"cannot start {action} on '{bar_id}': a gesture is already {self.status}")
        bar = next((b for b in self.bars if b.id == bar_id), None)
        if bar is None:
            raise ValueError(f"unknown bar '{bar_id}'")

        self.bar = bar
        self._origin_x = pointer_x
        self.state = DragState(
            original_start=bar.start_date,
            original_end=bar.end_date,
            candidate_start=bar.start_date,
            candidate_end=bar.end_date,
            action=action,
        )
        self.status = "dragging"
        logger.debug("begin %s on %s", action, bar_id)
        return self.state

    def move_to(self, pointer_x: float) -> DragState | None:
        """Pointer position update; ignored unless a gesture is in progress."""
        if self.status != "dragging":
            return None
        return self.move_by_days(pixels_to_days(pointer_x - self._origin_x, self.mode))

    def move_by_days(self, days: int) -> DragState | None:
        if self.status != "dragging" or self.state is None:
            return None

        state = self.state
        try:
            if state.action == "move":
                start, end = shift_dates(state.original_start, state.original_end, days)
            elif state.action == "resize-start-date":
                start, end = state.original_start + timedelta(days=days), state.original_end
            else:
                start, end = state.original_start, state.original_end + timedelta(days=days)

            start, end = self._apply_bounds(self.bar, state.action, start, end)
            candidate = replace(state, candidate_start=start, candidate_end=end, last_days_delta=days)
            start, end = snap_to_neighbors(candidate, self._neighbors(self.bar), self.gap_days)
        except OverflowError:
            logger.debug("ignoring move of %d days outside the supported date range", days)
            return state
        candidate = replace(candidate, candidate_start=start, candidate_end=end)

        changed = (candidate.candidate_start, candidate.candidate_end) != (state.candidate_start, state.candidate_end)
        self.state = candidate
        if changed:
            self._throttle.push(replace(candidate))
        return candidate

    def poll_preview(self) -> bool:
        """Deliver a throttled preview whose interval has elapsed; call from the UI timer."""
        if self.status != "dragging":
            return False
        return self._throttle.poll()

    def release(self) -> dict[str, date] | None:
        """
        Finish the gesture and persist it.

        Returns the partial update that was written, or None when nothing moved.
        State is reset even when ``update_entity`` fails; the failure is raised
        as DragCommitError.
        """

        if self.status != "dragging" or self.state is None or self.bar is None:
            return None

        state, bar = self.state, self.bar
        self.status = "committing"
        try:
            self._throttle.flush()
            if not state.is_displaced:
                return None
            partial = self._partial_update(state)
            try:
                self._update_entity(bar.id, partial)
            except Exception as exc:
                raise DragCommitError(f"could not save '{bar.id}': {exc}") from exc
            logger.debug("committed %s on %s: %s", state.action, bar.id, partial)
            self._after_commit(bar, state)
            return partial
        finally:
            self._reset()

    def cancel(self) -> None:
        if self.status != "dragging":
            return
        self.status = "cancelled"
        self._throttle.discard()
        logger.debug("cancelled gesture on %s", self.bar.id if self.bar else None)
        self._reset()

    def _partial_update(self, state: DragState) -> dict[str, date]:
        if state.action == "resize-start-date":
            return {"start_date": state.candidate_start}
        if state.action == "resize-end-date":
            return {"end_date": state.candidate_end}
        return {"start_date": state.candidate_start, "end_date": state.candidate_end}

    def _after_commit(self, bar: Bar, state: DragState) -> None:
        moved = replace(bar, start_date=state.candidate_start, end_date=state.candidate_end)
        self.bars = [moved if b.id == bar.id else b for b in self.bars]

    def _apply_bounds(self, bar: Bar, action: DragAction, start: date, end: date) -> tuple[date, date]:
        return clamp_to_committed_work(action, start, end, None)

    def _neighbors(self, bar: Bar) -> list[Bar]:
        return []

    def _deliver_preview(self, state: DragState) -> None:
        if self._on_preview is not None:
            self._on_preview(state)

    def _reset(self) -> None:
        self.state = None
        self.bar = None
        self._origin_x = 0.0
        self.status = "idle"


class ProjectBarDrag(DragSession):
    """
    Project bars: resizes stay around committed work, rows keep a one day gap.

    Projects without a ``row_id`` are packed into rows with ``assign_row_ids``
    before the gesture, so collisions only involve bars sharing a visual row.
    """

    gap_days = MIN_PROJECT_GAP_DAYS

    def __init__(
        self,
        projects: Sequence[Project],
        estimates: Iterable[DayEstimate],
        update_entity: Callable[[str, dict[str, date]], Any],
        **kwargs: Any,
    ) -> None:
        projects = list(projects)
        unplaced = [p for p in projects if p.row_id is None]
        if unplaced:
            placed = {p.id: p for p in assign_row_ids(unplaced, self.gap_days)}
            projects = [placed.get(p.id, p) for p in projects]
        super().__init__([Bar.from_project(p) for p in projects], update_entity, **kwargs)
        self.estimates = list(estimates)

    def _apply_bounds(self, bar: Bar, action: DragAction, start: date, end: date) -> tuple[date, date]:
        return clamp_to_committed_work(action, start, end, committed_bounds(bar.id, self.estimates))

    def _neighbors(self, bar: Bar) -> list[Bar]:
        return row_neighbors(bar, self.bars)


class HolidayBarDrag(DragSession):
    """Holiday bars: every other holiday is a neighbor and touching ranges are allowed."""

    gap_days = HOLIDAY_GAP_DAYS

    def __init__(
        self,
        holidays: Sequence[Holiday],
        update_entity: Callable[[str, dict[str, date]], Any],
        **kwargs: Any,
    ) -> None:
        super().__init__([Bar.from_holiday(h) for h in holidays], update_entity, **kwargs)

    def _neighbors(self, bar: Bar) -> list[Bar]:
        return [b for b in self.bars if b.id != bar.id]
