# schedule_reminders/services/notifications.py

import logging
from typing import Any, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

REMINDER_TITLE = "Schedule reminder"


class NotificationSink(Protocol):
    """
    Delivery side of a reminder (push, chat, log...). `show` may return an
    awaitable; the scheduler runs it once and never retries.
    """

    def show(self, title: str, body: str, dedupe_tag: str) -> Any:
        ...


def dedupe_tag(key: str) -> str:
    return f"schedule-reminder-{key}"


def render_reminder(
    title: str,
    time_start: str,
    location: Optional[str],
    minutes_before: int,
) -> Tuple[str, str]:
    when = "now" if not minutes_before else f"in {minutes_before} minutes"
    body = f'"{title}" starts {when} ({time_start})'
    if location:
        body += f" at {location}"
    return REMINDER_TITLE, body


class LoggingNotificationSink:
    """Writes reminders to the log; default sink when the host wires none."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._level = level

    def show(self, title: str, body: str, dedupe_tag: str) -> None:
        logger.log(self._level, "%s: %s [%s]", title, body, dedupe_tag)
