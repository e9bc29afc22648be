# schedule_reminders/services/recurrence.py
"""
Expands stored schedule definitions into concrete occurrences for a window.

The walk is day by day on purpose: a monthly schedule anchored on the 31st
must simply not match in shorter months (no rollover to the 28th/30th or to
the next month). Keep that behaviour if this is ever optimised.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Tuple, Union

from schedule_reminders.core.calendar_math import (
    DateLike,
    add_days,
    day_of_week,
    is_this_week,
    iter_days,
    parse_date,
    parse_time,
    same_calendar_day,
    to_minutes,
    week_bounds,
)
from schedule_reminders.core.errors import BatchError, DataError, ParseError, ScheduleError
from schedule_reminders.core.settings import DEFAULT_LISTING_WINDOW_DAYS
from schedule_reminders.schemas.schedules import Occurrence, RecurringSchedule, SingleSchedule

logger = logging.getLogger(__name__)

Definition = Union[SingleSchedule, RecurringSchedule]


@dataclass
class ExpansionResult:
    occurrences: List[Occurrence] = field(default_factory=list)
    errors: List[BatchError] = field(default_factory=list)


def matches_pattern(definition: RecurringSchedule, cursor: date, anchor: date) -> bool:
    pattern = definition.recurrence_pattern
    if pattern == "daily":
        return True
    if pattern == "weekly":
        if definition.recurrence_days_of_week:
            return day_of_week(cursor) in definition.recurrence_days_of_week
        # no day set: repeat on the anchor's weekday
        return day_of_week(cursor) == day_of_week(anchor)
    if pattern == "monthly":
        return cursor.day == anchor.day
    return False


def recurrence_bounds(definition: RecurringSchedule) -> Tuple[date, Optional[date]]:
    """(start, end-or-None) of a recurring definition; DataError if unusable."""
    try:
        start = parse_date(definition.recurrence_start_date)
        end = parse_date(definition.recurrence_end_date) if definition.recurrence_end_date else None
    except ParseError as e:
        raise DataError(f"Invalid recurrence bounds: {e.message}", schedule_id=definition.id) from e
    if end is not None and end < start:
        raise DataError(
            f"recurrence_end_date {definition.recurrence_end_date} is before "
            f"recurrence_start_date {definition.recurrence_start_date}",
            schedule_id=definition.id,
        )
    return start, end


def _expand_one(definition: Definition, first: date, last: date) -> List[Occurrence]:
    parse_time(definition.time_start)
    parse_time(definition.time_end)

    if not definition.is_recurring:
        day = parse_date(definition.date)
        if first <= day <= last:
            return [Occurrence.from_definition(definition, day)]
        return []

    # the persisted `date` is ignored here; only the recurrence fields count
    anchor, end = recurrence_bounds(definition)
    effective_end = end or last  # open-ended: capped at the caller's window
    lo = max(first, anchor)
    hi = min(last, effective_end)
    return [
        Occurrence.from_definition(definition, cursor)
        for cursor in iter_days(lo, hi)
        if matches_pattern(definition, cursor, anchor)
    ]


def expand(definitions: Iterable[Definition], window_start: DateLike, window_end: DateLike) -> ExpansionResult:
    """
    Materialize every occurrence inside the inclusive window [window_start, window_end].

    Bounds are compared as whole days (a datetime bound counts from 00:00 of its
    day to 23:59:59.999 of its day). A definition that cannot be expanded is
    skipped and reported in `errors`; the rest of the batch is still processed.
    Result is sorted by (date, time_start).
    """
    first = parse_date(window_start)
    last = parse_date(window_end)
    if first > last:
        raise DataError(f"Window start {first.isoformat()} is after window end {last.isoformat()}")

    result = ExpansionResult()
    for definition in definitions:
        try:
            result.occurrences.extend(_expand_one(definition, first, last))
        except ScheduleError as e:
            if e.schedule_id is None:
                e.schedule_id = definition.id
            logger.warning("Skipping schedule %s during expansion: %s", definition.id, e.message)
            result.errors.append(BatchError(schedule_id=definition.id, error=e))

    result.occurrences.sort(key=lambda o: (o.date, to_minutes(o.time_start), o.id))
    return result


# ===========================
# Listing windows
# ===========================

def occurrences_for_day(definitions: Iterable[Definition], day: DateLike) -> ExpansionResult:
    return expand(definitions, day, day)


def occurrences_for_week(definitions: Iterable[Definition], today: DateLike) -> ExpansionResult:
    start, end = week_bounds(today)
    return expand(definitions, start, end)


def upcoming_occurrences(
    definitions: Iterable[Definition],
    today: DateLike,
    days: int = DEFAULT_LISTING_WINDOW_DAYS,
) -> ExpansionResult:
    return expand(definitions, today, add_days(today, days))


@dataclass
class ScheduleStats:
    total: int = 0
    today: int = 0
    week: int = 0
    recurring: int = 0
    reminders: int = 0


def summarize(definitions: Iterable[Definition], today: DateLike) -> Tuple[ScheduleStats, List[BatchError]]:
    defs = list(definitions)
    # today always lies inside its own Sunday..Saturday week
    week = occurrences_for_week(defs, today)

    stats = ScheduleStats(
        total=len(defs),
        today=sum(1 for o in week.occurrences if same_calendar_day(o.date, today)),
        week=sum(1 for o in week.occurrences if is_this_week(o.date, today)),
        recurring=sum(1 for d in defs if d.is_recurring),
        reminders=sum(1 for d in defs if d.reminder_enabled and d.reminder_minutes_before),
    )
    return stats, week.errors
