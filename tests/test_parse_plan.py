import datetime as dt
import textwrap

import pytest

from timeline_allocator.models import LAST_WEEK
from timeline_allocator.parse_plan import load_plan, plan_from_dict
from timeline_allocator.validation import PlanValidationError

PLAN_YAML = """
settings:
  work_hours:
    monday: 8
    tuesday:
      - {start: "09:00", end: "12:00", hours: 3}
      - {start: "13:00", end: "17:00", hours: 4}
    wednesday: 8
    thursday: 8
    friday: 8
holidays:
  - id: ny
    name: New Year
    start_date: 2025-01-01
projects:
  - id: site
    name: Website
    start_date: 2025-01-01
    end_date: 2025-01-31
    estimated_hours: 40
    group: clients
  - id: ops
    start_date: 2025-01-01
    estimated_hours: 0
    continuous: true
phases:
  - id: design
    project: site
    end_date: 2025-01-10
    hours: 12
  - id: review
    project: ops
    end_date: 2025-01-31
    hours: 2
    recurring:
      type: monthly
      week_of_month: last
      day_of_week: 5
events:
  - id: kickoff
    project: site
    start: "2025-01-02T09:00"
    end: "2025-01-02T11:30"
  - id: logged
    project: site
    start: 2025-01-03 09:00:00
    end: 2025-01-03 10:00:00
    type: tracked
"""


def _write(tmp_path, content):
    path = tmp_path / "plan.yaml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


def test_load_plan_builds_entities(tmp_path):
    plan = load_plan(str(_write(tmp_path, PLAN_YAML)))

    assert plan.settings.cache_key() == (8.0, 7.0, 8.0, 8.0, 8.0, 0.0, 0.0)
    assert plan.holidays[0].end_date == dt.date(2025, 1, 1)

    site = plan.project("site")
    assert site.group_id == "clients"
    assert site.name == "Website"
    ops = plan.project("ops")
    assert ops.continuous and ops.end_date == ops.start_date

    review = plan.phases_for("ops")[0]
    assert review.is_recurring
    assert review.recurring_config.monthly_pattern == "dayOfWeek"
    assert review.recurring_config.monthly_week_of_month == LAST_WEEK
    assert review.recurring_config.monthly_day_of_week == 5

    kickoff, logged = plan.events
    assert kickoff.start_time == dt.datetime(2025, 1, 2, 9)
    assert logged.type == "tracked"
    assert logged.start_time == dt.datetime(2025, 1, 3, 9)


def test_unknown_fields_report_their_path():
    data = {
        "settings": {"work_hours": {"monday": 8}},
        "projects": [
            {"id": "p", "start_date": "2025-01-01", "end_date": "2025-01-02", "estimated_hours": 1, "colour": "red"}
        ],
    }

    with pytest.raises(PlanValidationError, match=r"projects\[0\]: unexpected fields \['colour'\]"):
        plan_from_dict(data)


def test_bad_recurrence_fails_validation():
    data = {
        "settings": {"work_hours": {"monday": 8}},
        "projects": [{"id": "p", "start_date": "2025-01-01", "end_date": "2025-03-01", "estimated_hours": 10}],
        "phases": [
            {"id": "r", "project": "p", "end_date": "2025-01-06", "hours": 1, "recurring": {"type": "weekly"}}
        ],
    }

    with pytest.raises(PlanValidationError, match="phase 'r'"):
        plan_from_dict(data)


def test_missing_settings_and_bad_dates_are_rejected():
    with pytest.raises(PlanValidationError):
        plan_from_dict({"projects": []})
    with pytest.raises(PlanValidationError, match="start_date"):
        plan_from_dict(
            {
                "settings": {"work_hours": {}},
                "projects": [{"id": "p", "start_date": "01/02/2025", "end_date": "2025-01-02", "estimated_hours": 1}],
            }
        )


def test_negative_hours_are_rejected():
    with pytest.raises(PlanValidationError, match="friday"):
        plan_from_dict({"settings": {"work_hours": {"friday": -1}}, "projects": []})
