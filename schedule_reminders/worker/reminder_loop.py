# schedule_reminders/worker/reminder_loop.py
"""
Process-lifetime host for the reminder scheduler.

Every `refresh_seconds` it reloads the schedule set through the injected
loader and re-arms everything, which also rolls the planning horizon forward.
Waiting is always done on the stop event, never with a blocking sleep, so
timers keep firing between refreshes.
"""

import argparse
import asyncio
import inspect
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

from schedule_reminders.core.settings import ReminderSettings, configure_logging
from schedule_reminders.schemas.schedules import parse_schedules
from schedule_reminders.services.notifications import LoggingNotificationSink, NotificationSink
from schedule_reminders.worker.reminder_scheduler import ReminderScheduler, ScheduleReport

logger = logging.getLogger(__name__)

Loader = Callable[[], Union[Iterable[Any], Awaitable[Iterable[Any]]]]


async def refresh_once(scheduler: ReminderScheduler, load_definitions: Loader) -> ScheduleReport:
    records = load_definitions()
    if inspect.isawaitable(records):
        records = await records

    definitions, parse_errors = parse_schedules(records)
    report = scheduler.schedule_for_all(definitions)
    report.errors = parse_errors + report.errors

    for err in report.errors:
        logger.warning("[reminders] skipped schedule %s: %s", err.schedule_id or "<no id>", err.message)
    logger.info(
        "[reminders] refreshed: %d definition(s), %d armed, %d stale cancelled, %d error(s)",
        len(definitions), report.armed, report.cancelled, len(report.errors),
    )
    return report


async def run(
    load_definitions: Loader,
    sink: Optional[NotificationSink] = None,
    *,
    settings: Optional[ReminderSettings] = None,
    scheduler: Optional[ReminderScheduler] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> ReminderScheduler:
    settings = settings or ReminderSettings.from_env()
    if scheduler is None:
        scheduler = ReminderScheduler(
            sink or LoggingNotificationSink(),
            clock=settings.clock(),
            horizon_months=settings.horizon_months,
        )
    stop = stop_event or asyncio.Event()

    logger.info(
        "[reminders] running; refresh=%ss horizon=%s month(s) tz=%s",
        settings.refresh_seconds, settings.horizon_months, settings.tz_name or "local",
    )
    try:
        while not stop.is_set():
            try:
                await refresh_once(scheduler, load_definitions)
            except Exception as e:
                # a failed reload keeps the timers armed from the previous one
                logger.exception("[reminders] refresh error: %s", e)

            try:
                await asyncio.wait_for(stop.wait(), timeout=settings.refresh_seconds)
            except asyncio.TimeoutError:
                pass
    finally:
        scheduler.cancel_all()
        logger.info("[reminders] stopped")
    return scheduler


def json_file_loader(path: str) -> Loader:
    """Loader that re-reads a JSON array of schedule records on every refresh."""
    source = Path(path)

    def _load() -> List[Any]:
        with source.open(encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            raise ValueError(f"{source}: top-level JSON must be an array of schedules")
        return data

    return _load


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="schedule-reminders",
        description="Arm local reminders for the schedules in a JSON file and keep them current.",
    )
    parser.add_argument("schedules", help="Path to a JSON array of schedule records")
    args = parser.parse_args(argv)

    settings = ReminderSettings.from_env()
    configure_logging(settings.log_level)
    try:
        asyncio.run(run(json_file_loader(args.schedules), settings=settings))
    except KeyboardInterrupt:
        logger.info("[reminders] interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
