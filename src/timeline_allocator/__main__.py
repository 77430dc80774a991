from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path

import yaml

from .allocation import plan_day_estimates, total_hours
from .models import DayEstimate, Plan
from .parse_plan import load_plan
from .timeline_rows import TimelineRow, arrange_rows
from .validation import PlanValidationError
from .working_day_cache import WorkingDayCache


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Day-by-day hour estimates for timeline projects",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("plan", help="Path to plan YAML")
    parser.add_argument(
        "--project",
        dest="projects",
        action="append",
        help="Only report this project id (repeatable)",
    )
    parser.add_argument("--today", type=_parse_date, help="Skip auto-estimates before this date (YYYY-MM-DD)")
    parser.add_argument(
        "--viewport-end",
        type=_parse_date,
        help="Last day considered for continuous projects (YYYY-MM-DD)",
    )
    parser.add_argument("--format", choices=("table", "yaml", "rows"), default="table", help="Output format")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug details to stderr")
    return parser


def _estimate_record(estimate: DayEstimate) -> dict:
    record = {
        "date": estimate.date,
        "project": estimate.project_id,
        "source": estimate.source,
        "hours": round(estimate.hours, 4),
    }
    if estimate.phase_id is not None:
        record["phase"] = estimate.phase_id
    if estimate.source == "event":
        record["planned"] = estimate.is_planned_event
        record["completed"] = estimate.is_completed_event
    return record


def _format_table(plan: Plan, estimates: dict[str, list[DayEstimate]]) -> str:
    lines: list[str] = []
    for project_id, rows in estimates.items():
        project = plan.project(project_id)
        title = project.name if project is not None and project.name else project_id
        lines.append(f"{title} ({project_id}): {total_hours(rows):.2f}h over {len(rows)} days")
        for row in rows:
            phase = row.phase_id or "-"
            lines.append(f"  {row.date.isoformat()}  {row.hours:7.2f}h  {row.source:<20}  {phase}")
    return "\n".join(lines)


def _format_rows(rows: list[TimelineRow]) -> str:
    return "\n".join(f"{row.order:>3}  {row.row_id:<24}  {', '.join(row.project_ids)}" for row in rows)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    plan_path = Path(args.plan)

    try:
        plan = load_plan(str(plan_path))
    except (yaml.YAMLError, PlanValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: plan file not found: {plan_path}", file=sys.stderr)
        return 1
    except Exception as exc:  # Unexpected
        print(f"Unexpected error while loading plan: {exc}", file=sys.stderr)
        return 1

    if args.projects:
        unknown = sorted(set(args.projects) - {p.id for p in plan.projects})
        if unknown:
            print(f"Error: unknown project ids {unknown}", file=sys.stderr)
            return 2

    if args.format == "rows":
        projects = [p for p in plan.projects if not args.projects or p.id in args.projects]
        print(_format_rows(arrange_rows(projects)))
        return 0

    try:
        estimates = plan_day_estimates(
            plan,
            project_ids=args.projects,
            today=args.today,
            viewport_end=args.viewport_end,
            cache=WorkingDayCache(),
        )
    except Exception as exc:
        print(f"Unexpected error while allocating: {exc}", file=sys.stderr)
        return 1

    if args.format == "yaml":
        payload = {pid: [_estimate_record(e) for e in rows] for pid, rows in estimates.items()}
        print(yaml.safe_dump(payload, sort_keys=False), end="")
    else:
        print(_format_table(plan, estimates))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
