# schedule_reminders/core/settings.py

import logging
import os
from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from schedule_reminders.core.errors import ConfigError

# -------------------------------------------------------------------
# Defaults (overridable through the environment / .env)
# -------------------------------------------------------------------
DEFAULT_HORIZON_MONTHS = 3
DEFAULT_LISTING_WINDOW_DAYS = 90
DEFAULT_REFRESH_SECONDS = 900.0


class ReminderSettings(BaseModel):
    tz_name: Optional[str] = Field(None, description="IANA zone, e.g. 'Asia/Jakarta'. None = naive local time")
    horizon_months: int = Field(DEFAULT_HORIZON_MONTHS, ge=1)
    listing_window_days: int = Field(DEFAULT_LISTING_WINDOW_DAYS, ge=0)
    refresh_seconds: float = Field(DEFAULT_REFRESH_SECONDS, gt=0)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ReminderSettings":
        """
        Reads the environment every time it is called (not at import), so a
        worker started from a shell that exported variables late still sees them.
        """
        load_dotenv()
        try:
            return cls(
                tz_name=os.getenv("REMINDER_TZ") or None,
                horizon_months=int(os.getenv("REMINDER_HORIZON_MONTHS", str(DEFAULT_HORIZON_MONTHS))),
                listing_window_days=int(os.getenv("LISTING_WINDOW_DAYS", str(DEFAULT_LISTING_WINDOW_DAYS))),
                refresh_seconds=float(os.getenv("REMINDER_REFRESH_SECONDS", str(DEFAULT_REFRESH_SECONDS))),
                log_level=os.getenv("LOG_LEVEL", "INFO"),
            )
        except ValueError as e:
            # pydantic's ValidationError is a ValueError too
            raise ConfigError(f"Invalid reminder settings in environment: {e}") from e

    def timezone(self) -> Optional[ZoneInfo]:
        if not self.tz_name:
            return None
        try:
            return ZoneInfo(self.tz_name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigError(f"Invalid REMINDER_TZ '{self.tz_name}'. Use an IANA TZ like 'Asia/Jakarta'.") from e

    def clock(self) -> Callable[[], datetime]:
        tz = self.timezone()

        def _now() -> datetime:
            return datetime.now(tz) if tz else datetime.now()

        return _now


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
