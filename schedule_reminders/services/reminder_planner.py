# schedule_reminders/services/reminder_planner.py

import logging
from datetime import date, datetime
from typing import List, Optional

from schedule_reminders.core.calendar_math import (
    add_months,
    combine,
    format_local_date,
    parse_date,
    parse_time,
    seconds_between,
    shift_minutes,
)
from schedule_reminders.core.errors import PlanningError, ScheduleError
from schedule_reminders.core.settings import DEFAULT_HORIZON_MONTHS
from schedule_reminders.schemas.reminders import FireTime
from schedule_reminders.services.recurrence import Definition, expand

logger = logging.getLogger(__name__)


def default_horizon(reference_now: datetime, months: int = DEFAULT_HORIZON_MONTHS) -> datetime:
    return add_months(reference_now, months)


def _fire_time(definition: Definition, day: date, reference_now: datetime) -> FireTime:
    # Occurrences live in the same zone as "now" (naive now -> naive local instants)
    starts_at = combine(day, definition.time_start, tz=reference_now.tzinfo)
    minutes = definition.reminder_minutes_before
    return FireTime(
        schedule_id=definition.id,
        occurrence_date=format_local_date(day),
        starts_at=starts_at,
        fire_at=shift_minutes(starts_at, -minutes),
        title=definition.title,
        time_start=definition.time_start,
        location=definition.location,
        minutes_before=minutes,
    )


def plan_fire_times(
    definition: Definition,
    reference_now: datetime,
    horizon_end: Optional[datetime] = None,
) -> List[FireTime]:
    """
    Absolute reminder instants for a definition, strictly after `reference_now`,
    ascending.

    - reminders disabled / no offset -> []
    - single schedule -> at most one fire time (date + time_start - offset)
    - recurring -> one per occurrence in [today, horizon_end]; horizon_end
      defaults to 3 months after `reference_now` so open-ended recurrences
      never plan an unbounded number of reminders.

    The default horizon applies even when `recurrence_end_date` is set: later
    occurrences are not returned and must be planned again once the horizon
    has moved (the worker's periodic refresh does this). Pass `horizon_end`
    explicitly to plan further ahead.

    "After" is decided on the real clock, so a DST switch between now and
    the fire time never shifts a reminder by an hour.

    Any parse/data problem is raised as PlanningError (caller decides isolation).
    """
    if not definition.reminder_enabled or not definition.reminder_minutes_before:
        return []

    try:
        parse_time(definition.time_end)
        if not definition.is_recurring:
            planned = [_fire_time(definition, parse_date(definition.date), reference_now)]
        else:
            horizon = horizon_end or default_horizon(reference_now)
            today = reference_now.date()
            if parse_date(horizon) < today:
                return []
            result = expand([definition], today, horizon)
            if result.errors:
                raise result.errors[0].error
            planned = [_fire_time(definition, parse_date(occ.date), reference_now) for occ in result.occurrences]
    except PlanningError:
        raise
    except ScheduleError as e:
        raise PlanningError(f"Cannot plan reminders: {e.message}", schedule_id=definition.id) from e

    upcoming = sorted(
        (ft for ft in planned if seconds_between(reference_now, ft.fire_at) > 0),
        key=lambda ft: ft.fire_at.timestamp(),
    )
    logger.debug(
        "Planned %d/%d reminder(s) for schedule %s", len(upcoming), len(planned), definition.id
    )
    return upcoming
