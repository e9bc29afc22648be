# schedule_reminders/core/errors.py

from dataclasses import dataclass
from typing import Optional


class ScheduleError(Exception):
    """Base error for everything the engine reports about a schedule."""

    def __init__(self, message: str, schedule_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.schedule_id = schedule_id

    def __str__(self) -> str:
        if self.schedule_id:
            return f"[{self.schedule_id}] {self.message}"
        return self.message


class ParseError(ScheduleError, ValueError):
    """Malformed date or time string."""


class DataError(ScheduleError):
    """A definition is logically inconsistent (bad bounds, bad shape)."""


class PlanningError(ScheduleError):
    """Wraps a ParseError/DataError raised while planning reminders."""


class ConfigError(ScheduleError):
    pass


@dataclass
class BatchError:
    """One failed definition inside a batch call."""
    schedule_id: Optional[str]
    error: ScheduleError

    @property
    def message(self) -> str:
        return self.error.message
