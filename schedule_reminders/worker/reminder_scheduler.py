# schedule_reminders/worker/reminder_scheduler.py
"""
Live registry of armed reminder timers.

One instance per host scope (e.g. one per running session / worker process).
Everything runs on one event loop thread: arming, cancelling and the timer
callbacks never interleave. Cancel-vs-fire safety comes from two rules:
  1. a timer is always cancelled before its registry entry is dropped;
  2. a firing callback acts only if its own entry is still in the registry.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from schedule_reminders.core.calendar_math import seconds_between
from schedule_reminders.core.errors import BatchError, ScheduleError
from schedule_reminders.core.settings import DEFAULT_HORIZON_MONTHS
from schedule_reminders.schemas.reminders import FireTime, ReminderState
from schedule_reminders.services.notifications import NotificationSink, dedupe_tag, render_reminder
from schedule_reminders.services.recurrence import Definition
from schedule_reminders.services.reminder_planner import default_horizon, plan_fire_times

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
# (delay_seconds, callback) -> handle exposing cancel()
TimerFactory = Callable[[float, Callable[[], None]], Any]
Planner = Callable[[Definition, datetime, Optional[datetime]], List[FireTime]]


def asyncio_timer(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    """Default timer: must be called from inside the running event loop."""
    return asyncio.get_running_loop().call_later(delay, callback)


@dataclass
class ScheduledReminder:
    key: str
    schedule_id: str
    occurrence_date: str
    fire_at: datetime
    fire_time: FireTime = field(repr=False)
    timer: Any = field(default=None, repr=False)
    state: ReminderState = ReminderState.PLANNED


@dataclass
class ScheduleReport:
    armed: int = 0
    cancelled: int = 0
    errors: List[BatchError] = field(default_factory=list)


class ReminderScheduler:
    def __init__(
        self,
        sink: NotificationSink,
        *,
        clock: Optional[Clock] = None,
        timer_factory: Optional[TimerFactory] = None,
        horizon_months: int = DEFAULT_HORIZON_MONTHS,
        planner: Planner = plan_fire_times,
    ) -> None:
        self._sink = sink
        self._clock = clock or datetime.now
        self._timer_factory = timer_factory or asyncio_timer
        self._horizon_months = horizon_months
        self._planner = planner
        self._live: Dict[str, ScheduledReminder] = {}
        # async sink deliveries still running; the loop only keeps weak refs to tasks
        self._deliveries: Set["asyncio.Future"] = set()

    def __len__(self) -> int:
        return len(self._live)

    # ===========
    # Arming
    # ===========
    def schedule_for_definition(self, definition: Definition) -> int:
        """
        Re-arm every reminder of one definition. Previous timers for the same id
        are cancelled first, even when the new plan is empty or fails.
        Raises PlanningError for a malformed definition.
        """
        self.cancel(definition.id)

        now = self._clock()
        fire_times = self._planner(definition, now, default_horizon(now, self._horizon_months))
        for ft in sorted(fire_times, key=lambda f: f.fire_at.timestamp()):
            self._arm(ft, now)

        if fire_times:
            logger.info("Armed %d reminder(s) for '%s' (%s)", len(fire_times), definition.title, definition.id)
        return len(fire_times)

    def schedule_for_all(self, definitions: Iterable[Definition]) -> ScheduleReport:
        """
        Bring the registry in line with the current schedule set. Ids that are
        no longer in the set lose their timers; one bad definition never blocks
        the others.
        """
        defs = list(definitions)
        report = ScheduleReport()

        current_ids = {d.id for d in defs}
        for schedule_id in {r.schedule_id for r in self._live.values()} - current_ids:
            report.cancelled += self.cancel(schedule_id)

        for definition in defs:
            try:
                report.armed += self.schedule_for_definition(definition)
            except ScheduleError as e:
                logger.warning("Could not schedule reminders for %s: %s", definition.id, e.message)
                report.errors.append(BatchError(schedule_id=definition.id, error=e))
        return report

    def _arm(self, fire_time: FireTime, now: datetime) -> None:
        key = fire_time.key
        existing = self._live.get(key)
        if existing is not None:
            self._release(existing, ReminderState.CANCELLED)

        reminder = ScheduledReminder(
            key=key,
            schedule_id=fire_time.schedule_id,
            occurrence_date=fire_time.occurrence_date,
            fire_at=fire_time.fire_at,
            fire_time=fire_time,
        )
        # registered before the timer exists so an immediate fire still finds it
        self._live[key] = reminder
        delay = max(0.0, seconds_between(now, fire_time.fire_at))
        reminder.timer = self._timer_factory(delay, lambda: self._fire(reminder))
        if reminder.state is ReminderState.PLANNED:
            reminder.state = ReminderState.ARMED
        logger.debug("Armed %s in %.0fs", key, delay)

    # ===========
    # Cancelling
    # ===========
    def cancel(self, definition_id: str) -> int:
        matching = [r for r in self._live.values() if r.schedule_id == definition_id]
        for reminder in matching:
            self._release(reminder, ReminderState.CANCELLED)
        if matching:
            logger.info("Cancelled %d reminder(s) for schedule %s", len(matching), definition_id)
        return len(matching)

    def cancel_all(self) -> int:
        """Drops every armed timer. Deliveries already in flight are left to finish."""
        count = len(self._live)
        for reminder in list(self._live.values()):
            self._release(reminder, ReminderState.CANCELLED)
        if count:
            logger.info("Cleared all %d scheduled reminder(s)", count)
        return count

    def _release(self, reminder: ScheduledReminder, state: ReminderState) -> None:
        if reminder.timer is not None:
            reminder.timer.cancel()
            reminder.timer = None
        if self._live.get(reminder.key) is reminder:
            del self._live[reminder.key]
        reminder.state = state

    # ===========
    # Firing
    # ===========
    def _fire(self, reminder: ScheduledReminder) -> None:
        if self._live.get(reminder.key) is not reminder:
            # cancelled or replaced after this callback was queued
            return
        del self._live[reminder.key]
        reminder.timer = None
        reminder.state = ReminderState.FIRED

        ft = reminder.fire_time
        title, body = render_reminder(ft.title, ft.time_start, ft.location, ft.minutes_before)
        logger.info("Triggering reminder %s for '%s'", reminder.key, ft.title)
        try:
            result = self._sink.show(title, body, dedupe_tag(reminder.key))
        except Exception as e:
            # at most one delivery attempt; the reminder stays fired
            logger.warning("Notification sink failed for %s: %s", reminder.key, e)
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)
            task.add_done_callback(lambda t, key=reminder.key: _log_delivery_failure(t, key))

    # ===========
    # Introspection
    # ===========
    def scheduled_reminders(self, schedule_id: Optional[str] = None) -> List[ScheduledReminder]:
        items = [r for r in self._live.values() if schedule_id is None or r.schedule_id == schedule_id]
        return sorted(items, key=lambda r: (r.fire_at.timestamp(), r.key))

    @property
    def in_flight(self) -> int:
        """Async deliveries started by fired reminders and not finished yet."""
        return len(self._deliveries)


def _log_delivery_failure(task: "asyncio.Future", key: str) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Notification sink failed for %s: %s", key, exc)
