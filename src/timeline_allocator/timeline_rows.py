from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterable

from .models import Project

MIN_PROJECT_GAP_DAYS = 1
"""Empty days required between two projects sharing a row."""

UNGROUPED = "ungrouped"


@dataclass
class TimelineRow:
    """A visual row of one group, holding non-conflicting projects in start order."""

    order: int
    group_id: str
    row_id: str
    project_ids: list[str] = field(default_factory=list)
    last_end: date | None = None


def _visible(project: Project, window: tuple[date, date] | None) -> bool:
    if window is None:
        return True
    if project.start_date > window[1]:
        return False
    return project.continuous or project.end_date >= window[0]


def arrange_rows(
    projects: Iterable[Project],
    min_gap_days: int = MIN_PROJECT_GAP_DAYS,
    window: tuple[date, date] | None = None,
) -> list[TimelineRow]:
    """
    Pack projects of each group into as few rows as possible.

    Projects are placed greedily by start date (then name) on the first row
    whose last project ended more than ``min_gap_days`` days earlier. A
    continuous project occupies its row for good. Groups keep the order in
    which they first appear; rows are numbered across groups.
    """

    by_group: dict[str, list[Project]] = {}
    for project in projects:
        if not _visible(project, window):
            continue
        by_group.setdefault(project.group_id or UNGROUPED, []).append(project)

    rows: list[TimelineRow] = []
    for group_id, members in by_group.items():
        group_rows: list[TimelineRow] = []
        for project in sorted(members, key=lambda p: (p.start_date, p.name, p.id)):
            row = next((r for r in group_rows if _fits(r, project, min_gap_days)), None)
            if row is None:
                row = TimelineRow(
                    order=len(rows) + len(group_rows),
                    group_id=group_id,
                    row_id=f"{group_id}-row-{len(group_rows) + 1}",
                )
                group_rows.append(row)
            row.project_ids.append(project.id)
            row.last_end = date.max if project.continuous else project.end_date
        rows.extend(group_rows)
    return rows


def _fits(row: TimelineRow, project: Project, min_gap_days: int) -> bool:
    if row.last_end is None:
        return True
    if row.last_end == date.max:
        return False
    return (project.start_date - row.last_end).days > min_gap_days


def assign_row_ids(
    projects: Iterable[Project],
    min_gap_days: int = MIN_PROJECT_GAP_DAYS,
    window: tuple[date, date] | None = None,
) -> list[Project]:
    """Copies of the projects with ``row_id`` set from ``arrange_rows``; hidden projects are dropped."""
    projects = list(projects)
    row_of = {pid: row.row_id for row in arrange_rows(projects, min_gap_days, window) for pid in row.project_ids}
    return [replace(p, row_id=row_of[p.id]) for p in projects if p.id in row_of]
