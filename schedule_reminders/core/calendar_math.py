# schedule_reminders/core/calendar_math.py
"""
Pure date/time helpers shared by the expander, the planner and the listings.

Day-of-week numbering follows the stored schedules: 0 = Sunday ... 6 = Saturday
(Python's own ``date.weekday()`` is 0 = Monday, so never mix the two).
Dates are always read from their own fields; only elapsed-time arithmetic on
aware instants goes through UTC.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Iterator, Optional, Tuple, Union

from schedule_reminders.core.errors import ParseError

DateLike = Union[date, datetime, str]
TimeLike = Union[time, str]

MINUTES_PER_DAY = 24 * 60

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


# ===========
# Parsing
# ===========
def parse_date(value: DateLike) -> date:
    """
    Accepts 'YYYY-MM-DD' (a trailing 'THH:MM...' is ignored), a date or a datetime.
    A datetime keeps its own local calendar day.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ParseError(f"Expected an ISO date, got {type(value).__name__}")
    m = _DATE_RE.match(value.strip())
    if not m:
        raise ParseError(f"Invalid date '{value}', expected YYYY-MM-DD")
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError as e:
        raise ParseError(f"Invalid date '{value}': {e}") from e


def parse_time(value: TimeLike) -> time:
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise ParseError(f"Expected a HH:MM time, got {type(value).__name__}")
    m = _TIME_RE.match(value.strip())
    if not m:
        raise ParseError(f"Invalid time '{value}', expected HH:MM")
    try:
        return time(int(m.group(1)), int(m.group(2)), int(m.group(3) or 0))
    except ValueError as e:
        raise ParseError(f"Invalid time '{value}': {e}") from e


def to_minutes(value: TimeLike) -> int:
    t = parse_time(value)
    return t.hour * 60 + t.minute


# ===========
# Day arithmetic
# ===========
def day_of_week(value: DateLike) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (parse_date(value).weekday() + 1) % 7


def add_days(value: DateLike, n: int) -> date:
    return parse_date(value) + timedelta(days=n)


def add_months(value: Union[date, datetime], n: int):
    """Calendar month shift; the day is clamped to the target month's length."""
    total = value.month - 1 + n
    year = value.year + total // 12
    month = total % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def same_calendar_day(a: DateLike, b: DateLike) -> bool:
    return parse_date(a) == parse_date(b)


def iter_days(start: DateLike, end: DateLike) -> Iterator[date]:
    cursor = parse_date(start)
    last = parse_date(end)
    while cursor <= last:
        yield cursor
        cursor += timedelta(days=1)


def week_bounds(today: DateLike) -> Tuple[date, date]:
    """Sunday..Saturday week containing `today`."""
    d = parse_date(today)
    start = d - timedelta(days=day_of_week(d))
    return start, start + timedelta(days=6)


def is_this_week(value: DateLike, today: DateLike) -> bool:
    start, end = week_bounds(today)
    return start <= parse_date(value) <= end


def next_date_for_days(days: Iterable[int], base: DateLike) -> date:
    """Earliest date on/after `base` whose weekday is in `days` (base itself if days is empty)."""
    d = parse_date(base)
    wanted = list(days)
    if not wanted:
        return d
    current = day_of_week(d)
    return d + timedelta(days=min((dow - current) % 7 for dow in wanted))


# ===========
# Durations / instants
# ===========
def duration_minutes(time_start: TimeLike, time_end: TimeLike) -> int:
    """
    Equal times mean "no duration" (0), not a 24h event.
    An end before the start wraps through midnight.
    """
    start = to_minutes(time_start)
    end = to_minutes(time_end)
    if start == end:
        return 0
    if end > start:
        return end - start
    return (MINUTES_PER_DAY - start) + end


def combine(day: DateLike, at: TimeLike, tz: Optional[tzinfo] = None) -> datetime:
    return datetime.combine(parse_date(day), parse_time(at), tzinfo=tz)


def shift_minutes(instant: datetime, minutes: int) -> datetime:
    """
    Move an instant by elapsed minutes. Aware values go through UTC so a DST
    switch in between is counted; the result is back in the original zone.
    """
    if instant.tzinfo is None:
        return instant + timedelta(minutes=minutes)
    utc = instant.astimezone(timezone.utc) + timedelta(minutes=minutes)
    return utc.astimezone(instant.tzinfo)


def seconds_between(earlier: datetime, later: datetime) -> float:
    """Elapsed seconds on the real clock (same-zone subtraction ignores DST)."""
    return later.timestamp() - earlier.timestamp()


# ===========
# Formatting
# ===========
def format_local_date(value: DateLike) -> str:
    """'YYYY-MM-DD' from the value's own fields (an aware datetime is NOT shifted to UTC)."""
    d = parse_date(value)
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"
