import datetime as dt

from timeline_allocator.models import LAST_WEEK, SECOND_LAST_WEEK, RecurringConfig
from timeline_allocator.recurrence import (
    anchor_dates,
    describe_recurrence,
    estimate_occurrence_count,
    generate_occurrences,
    has_excessive_occurrences,
    occurrence_windows,
    rrule_string,
    to_rrule,
    total_allocation,
)

SUNDAY, MONDAY, FRIDAY = 0, 1, 5


def test_weekly_anchors_start_before_the_window():
    config = RecurringConfig(type="weekly", weekly_day_of_week=SUNDAY)

    anchors = anchor_dates(config, dt.date(2025, 1, 1), dt.date(2025, 1, 5))

    assert anchors == [dt.date(2024, 12, 29), dt.date(2025, 1, 5)]
    assert occurrence_windows(config, dt.date(2025, 1, 1), dt.date(2025, 1, 5)) == [
        (dt.date(2025, 1, 1), dt.date(2025, 1, 5))
    ]


def test_monthly_date_window_starts_after_previous_anchor():
    config = RecurringConfig(type="monthly", monthly_pattern="date", monthly_date=16)

    anchors = anchor_dates(config, dt.date(2025, 12, 17), dt.date(2025, 12, 24), anchor=dt.date(2025, 12, 24))

    assert anchors == [dt.date(2025, 12, 16), dt.date(2026, 1, 16)]
    assert occurrence_windows(config, dt.date(2025, 12, 17), dt.date(2025, 12, 24)) == [
        (dt.date(2025, 12, 17), dt.date(2025, 12, 24))
    ]


def test_anchor_on_window_start_gets_its_own_period():
    config = RecurringConfig(type="weekly", weekly_day_of_week=MONDAY)

    windows = occurrence_windows(config, dt.date(2025, 1, 6), dt.date(2025, 1, 26), anchor=dt.date(2025, 1, 26))

    assert windows == [
        (dt.date(2025, 1, 6), dt.date(2025, 1, 6)),
        (dt.date(2025, 1, 7), dt.date(2025, 1, 13)),
        (dt.date(2025, 1, 14), dt.date(2025, 1, 20)),
        (dt.date(2025, 1, 21), dt.date(2025, 1, 26)),
    ]


def test_windows_tile_the_range_without_gaps():
    config = RecurringConfig(type="weekly", interval=2, weekly_day_of_week=MONDAY)
    start, end = dt.date(2025, 1, 1), dt.date(2025, 3, 31)

    windows = occurrence_windows(config, start, end)

    assert windows[0][0] == start
    assert windows[-1][1] == end
    for (_, prev_end), (next_start, _) in zip(windows, windows[1:]):
        assert next_start == prev_end + dt.timedelta(days=1)


def test_daily_interval_steps_from_anchor():
    config = RecurringConfig(type="daily", interval=3)

    occurrences = generate_occurrences(config, dt.date(2025, 1, 1), dt.date(2025, 1, 10), anchor=dt.date(2025, 1, 1))

    assert occurrences == [dt.date(2025, 1, 1), dt.date(2025, 1, 4), dt.date(2025, 1, 7), dt.date(2025, 1, 10)]


def test_monthly_date_clips_to_end_of_short_months():
    config = RecurringConfig(type="monthly", monthly_pattern="date", monthly_date=31)

    occurrences = generate_occurrences(config, dt.date(2025, 1, 1), dt.date(2025, 4, 30))

    assert occurrences == [dt.date(2025, 1, 31), dt.date(2025, 2, 28), dt.date(2025, 3, 31), dt.date(2025, 4, 30)]


def test_fifth_weekday_skips_months_without_one():
    config = RecurringConfig(
        type="monthly",
        monthly_pattern="dayOfWeek",
        monthly_week_of_month=5,
        monthly_day_of_week=FRIDAY,
    )

    occurrences = generate_occurrences(config, dt.date(2025, 1, 1), dt.date(2025, 12, 31))

    assert occurrences == [dt.date(2025, 1, 31), dt.date(2025, 5, 30), dt.date(2025, 8, 29), dt.date(2025, 10, 31)]


def test_last_and_second_to_last_weekday_of_month():
    last = RecurringConfig(
        type="monthly", monthly_pattern="dayOfWeek", monthly_week_of_month=LAST_WEEK, monthly_day_of_week=FRIDAY
    )
    second_last = RecurringConfig(
        type="monthly",
        monthly_pattern="dayOfWeek",
        monthly_week_of_month=SECOND_LAST_WEEK,
        monthly_day_of_week=FRIDAY,
    )

    assert generate_occurrences(last, dt.date(2025, 2, 1), dt.date(2025, 2, 28)) == [dt.date(2025, 2, 28)]
    assert generate_occurrences(second_last, dt.date(2025, 2, 1), dt.date(2025, 2, 28)) == [dt.date(2025, 2, 21)]


def test_monthly_pattern_that_never_matches_stays_inside_supported_dates():
    config = RecurringConfig(
        type="monthly", interval=30, monthly_pattern="dayOfWeek", monthly_week_of_month=6, monthly_day_of_week=FRIDAY
    )

    assert anchor_dates(config, dt.date(2025, 1, 1), dt.date(2025, 3, 31)) == []
    assert occurrence_windows(config, dt.date(2025, 1, 1), dt.date(2025, 3, 31)) == []


def test_open_ended_window_defaults_to_one_year():
    config = RecurringConfig(type="monthly", monthly_pattern="date", monthly_date=1)

    occurrences = generate_occurrences(config, dt.date(2025, 1, 1))

    assert occurrences[0] == dt.date(2025, 1, 1)
    assert occurrences[-1] == dt.date(2026, 1, 1)
    assert len(occurrences) == 13


def test_description_reads_naturally():
    assert describe_recurrence(RecurringConfig(type="daily")) == "Every day"
    assert describe_recurrence(RecurringConfig(type="daily", interval=3)) == "Every 3 days"
    assert (
        describe_recurrence(RecurringConfig(type="weekly", interval=2, weekly_day_of_week=MONDAY))
        == "Every 2 weeks on Monday"
    )
    assert (
        describe_recurrence(RecurringConfig(type="monthly", monthly_pattern="date", monthly_date=22))
        == "Every month on the 22nd"
    )
    assert (
        describe_recurrence(
            RecurringConfig(
                type="monthly", monthly_pattern="dayOfWeek", monthly_week_of_month=1, monthly_day_of_week=MONDAY
            )
        )
        == "Every month on the 1st Monday"
    )
    assert (
        describe_recurrence(
            RecurringConfig(
                type="monthly",
                monthly_pattern="dayOfWeek",
                monthly_week_of_month=LAST_WEEK,
                monthly_day_of_week=FRIDAY,
            )
        )
        == "Every month on the last Friday"
    )


def test_rrule_export_matches_pattern():
    weekly = RecurringConfig(type="weekly", interval=2, weekly_day_of_week=MONDAY)
    text = rrule_string(weekly, dt.date(2025, 1, 6), dt.date(2025, 3, 31))

    assert "FREQ=WEEKLY" in text
    assert "INTERVAL=2" in text
    assert "BYDAY=MO" in text
    assert "UNTIL=" in text
    assert list(to_rrule(weekly, dt.date(2025, 1, 6), dt.date(2025, 3, 31)))[:2] == [
        dt.datetime(2025, 1, 6),
        dt.datetime(2025, 1, 20),
    ]

    first_monday = RecurringConfig(
        type="monthly", monthly_pattern="dayOfWeek", monthly_week_of_month=1, monthly_day_of_week=MONDAY
    )
    assert list(to_rrule(first_monday, dt.date(2025, 1, 1), dt.date(2025, 3, 31))) == [
        dt.datetime(2025, 1, 6),
        dt.datetime(2025, 2, 3),
        dt.datetime(2025, 3, 3),
    ]


def test_open_ended_rrule_has_no_until():
    daily = RecurringConfig(type="daily")

    assert "UNTIL" not in rrule_string(daily, dt.date(2025, 1, 1))


def test_occurrence_estimates_and_totals():
    weekly = RecurringConfig(type="weekly", weekly_day_of_week=SUNDAY)

    assert estimate_occurrence_count(weekly, 30) == 4
    assert estimate_occurrence_count(RecurringConfig(type="monthly", monthly_date=1), 90) == 3
    assert total_allocation(weekly, dt.date(2025, 1, 1), dt.date(2025, 1, 5), 5.0) == 5.0
    assert has_excessive_occurrences(RecurringConfig(type="daily"), dt.date(2025, 1, 1), dt.date(2025, 3, 1))
    assert not has_excessive_occurrences(weekly, dt.date(2025, 1, 1), dt.date(2025, 3, 1))
