from datetime import date, datetime

import pytest

from schedule_reminders.core.errors import DataError, ParseError
from schedule_reminders.services.recurrence import (
    expand,
    occurrences_for_day,
    occurrences_for_week,
    summarize,
    upcoming_occurrences,
)


def _dates(result):
    return [o.date for o in result.occurrences]


def test_weekly_days_of_week(make_schedule):
    d = make_schedule(
        isRecurring=True,
        recurrencePattern="weekly",
        recurrenceDaysOfWeek=[1, 3],
        recurrenceStartDate="2024-01-01",
        recurrenceEndDate="2024-01-31",
    )
    result = expand([d], "2024-01-01", "2024-01-31")
    assert _dates(result) == [
        "2024-01-01", "2024-01-03",
        "2024-01-08", "2024-01-10",
        "2024-01-15", "2024-01-17",
        "2024-01-22", "2024-01-24",
        "2024-01-29", "2024-01-31",
    ]
    assert result.errors == []


def test_end_to_end_weekly_scenario(make_schedule):
    d = make_schedule(
        id="s1",
        isRecurring=True,
        recurrencePattern="weekly",
        recurrenceDaysOfWeek=[1],
        recurrenceStartDate="2024-01-01",
        recurrenceEndDate="2024-01-22",
        timeStart="08:00",
        timeEnd="09:00",
    )
    result = expand([d], "2024-01-01", "2024-01-31")
    assert _dates(result) == ["2024-01-01", "2024-01-08", "2024-01-15", "2024-01-22"]
    assert [o.id for o in result.occurrences] == [
        "s1-2024-01-01", "s1-2024-01-08", "s1-2024-01-15", "s1-2024-01-22",
    ]
    assert all(o.source_id == "s1" for o in result.occurrences)


def test_monthly_on_the_31st_skips_short_months(make_schedule):
    d = make_schedule(
        isRecurring=True,
        recurrencePattern="monthly",
        recurrenceStartDate="2024-01-31",
    )
    assert _dates(expand([d], "2024-02-01", "2024-02-29")) == []
    assert _dates(expand([d], "2024-01-01", "2024-05-31")) == ["2024-01-31", "2024-03-31", "2024-05-31"]


def test_weekly_without_days_uses_start_weekday(make_schedule):
    d = make_schedule(
        isRecurring=True,
        recurrencePattern="weekly",
        recurrenceStartDate="2024-01-03",  # Wednesday
    )
    assert _dates(expand([d], "2024-01-01", "2024-01-20")) == ["2024-01-03", "2024-01-10", "2024-01-17"]


def test_persisted_date_is_ignored_for_recurring(make_schedule):
    d = make_schedule(
        date="2023-06-01",
        isRecurring=True,
        recurrencePattern="daily",
        recurrenceStartDate="2024-01-05",
        recurrenceEndDate="2024-01-06",
    )
    assert _dates(expand([d], "2023-06-01", "2024-01-31")) == ["2024-01-05", "2024-01-06"]


def test_open_ended_recurrence_is_capped_at_window(make_schedule):
    d = make_schedule(isRecurring=True, recurrencePattern="daily", recurrenceStartDate="2024-01-01")
    result = expand([d], "2024-01-10", "2024-01-12")
    assert _dates(result) == ["2024-01-10", "2024-01-11", "2024-01-12"]


def test_window_containment_and_idempotence(make_schedule):
    defs = [
        make_schedule(id="a", isRecurring=True, recurrencePattern="daily", recurrenceStartDate="2023-12-01"),
        make_schedule(id="b", date="2024-01-15"),
        make_schedule(id="c", date="2024-03-01"),
    ]
    first = expand(defs, date(2024, 1, 14), date(2024, 1, 16))
    second = expand(defs, date(2024, 1, 14), date(2024, 1, 16))
    assert first == second
    assert all("2024-01-14" <= o.date <= "2024-01-16" for o in first.occurrences)
    assert "c" not in {o.source_id for o in first.occurrences}


def test_single_schedule_keeps_its_id(make_schedule):
    d = make_schedule(id="one-off", date="2024-01-10")
    result = expand([d], "2024-01-10", "2024-01-10")
    assert [o.id for o in result.occurrences] == ["one-off"]
    assert result.occurrences[0].is_recurring is False


def test_datetime_bounds_cover_whole_days(make_schedule):
    d = make_schedule(date="2024-01-10", timeStart="07:00")
    result = expand([d], datetime(2024, 1, 10, 15, 0), datetime(2024, 1, 10, 15, 0))
    assert _dates(result) == ["2024-01-10"]


def test_sorted_by_date_then_start_time(make_schedule):
    defs = [
        make_schedule(id="late", date="2024-01-10", timeStart="14:00"),
        make_schedule(id="early", date="2024-01-10", timeStart="8:30"),
        make_schedule(id="prev", date="2024-01-09", timeStart="23:00"),
    ]
    result = expand(defs, "2024-01-01", "2024-01-31")
    assert [o.source_id for o in result.occurrences] == ["prev", "early", "late"]


def test_bad_bounds_are_isolated(make_schedule):
    good = make_schedule(id="good", date="2024-01-10")
    unparsable = make_schedule(
        id="bad-start", isRecurring=True, recurrencePattern="daily", recurrenceStartDate="2024-02-30",
    )
    inverted = make_schedule(
        id="inverted",
        isRecurring=True,
        recurrencePattern="daily",
        recurrenceStartDate="2024-01-20",
        recurrenceEndDate="2024-01-10",
    )
    result = expand([unparsable, good, inverted], "2024-01-01", "2024-01-31")
    assert [o.id for o in result.occurrences] == ["good"]
    errors = {e.schedule_id: e.error for e in result.errors}
    assert set(errors) == {"bad-start", "inverted"}
    assert all(isinstance(err, DataError) for err in errors.values())
    assert isinstance(errors["bad-start"].__cause__, ParseError)


def test_malformed_time_is_reported(make_schedule):
    d = make_schedule(id="t", timeStart="9am")
    result = expand([d], "2024-01-01", "2024-01-31")
    assert result.occurrences == []
    assert isinstance(result.errors[0].error, ParseError)


def test_inverted_window_raises(make_schedule):
    with pytest.raises(DataError):
        expand([make_schedule()], "2024-02-01", "2024-01-01")


def test_listing_windows(make_schedule):
    defs = [
        make_schedule(id="daily", isRecurring=True, recurrencePattern="daily", recurrenceStartDate="2024-01-01"),
        make_schedule(id="once", date="2024-01-12"),
        make_schedule(id="later", date="2024-04-20"),
    ]
    today = occurrences_for_day(defs, "2024-01-10")
    assert [o.id for o in today.occurrences] == ["daily-2024-01-10"]

    week = occurrences_for_week(defs, "2024-01-10")  # Sun 7th .. Sat 13th
    assert len([o for o in week.occurrences if o.source_id == "daily"]) == 7
    assert "once" in {o.id for o in week.occurrences}

    upcoming = upcoming_occurrences(defs, "2024-01-10")
    assert upcoming.occurrences[-1].date == "2024-04-09"  # today + 90 days
    assert "later" not in {o.id for o in upcoming.occurrences}
    assert "later" in {o.id for o in upcoming_occurrences(defs, "2024-01-10", days=120).occurrences}


def test_summarize_counts(make_schedule):
    defs = [
        make_schedule(id="daily", isRecurring=True, recurrencePattern="daily", recurrenceStartDate="2024-01-01"),
        make_schedule(id="once", date="2024-01-12", reminderEnabled=False),
        make_schedule(id="broken", date="2024-01-10", timeStart="noon"),
    ]
    stats, errors = summarize(defs, "2024-01-10")
    assert stats.total == 3
    assert stats.today == 1
    assert stats.week == 8
    assert stats.recurring == 1
    assert stats.reminders == 2
    assert [e.schedule_id for e in errors] == ["broken"]


def test_malformed_end_time_is_reported(make_schedule):
    good = make_schedule(id="good")
    bad = make_schedule(id="bad-end", timeEnd="25:99")
    result = expand([bad, good], "2024-01-01", "2024-01-31")
    assert [o.id for o in result.occurrences] == ["good"]
    assert [e.schedule_id for e in result.errors] == ["bad-end"]
    assert isinstance(result.errors[0].error, ParseError)
