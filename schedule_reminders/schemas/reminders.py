# schedule_reminders/schemas/reminders.py

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ReminderState(str, Enum):
    PLANNED = "planned"      # planner output, not stored
    ARMED = "armed"          # live timer registered
    FIRED = "fired"          # terminal
    CANCELLED = "cancelled"  # terminal


def reminder_key(schedule_id: str, occurrence_date: str) -> str:
    return f"{schedule_id}_{occurrence_date}"


class FireTime(BaseModel):
    model_config = ConfigDict(frozen=True)

    schedule_id: str
    occurrence_date: str      # YYYY-MM-DD
    starts_at: datetime
    fire_at: datetime
    title: str
    time_start: str
    location: Optional[str] = None
    minutes_before: int

    @property
    def key(self) -> str:
        return reminder_key(self.schedule_id, self.occurrence_date)
