# schedule_reminders/schemas/schedules.py

import datetime as _dt
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from schedule_reminders.core.calendar_math import duration_minutes, format_local_date
from schedule_reminders.core.errors import BatchError, DataError

# ===== Enums =====
RecurrencePattern = Literal["daily", "weekly", "monthly"]
ScheduleCategory = Literal["academic", "event", "personal", "work", "other"]
DayOfWeek = Annotated[int, Field(ge=0, le=6)]  # 0 = Sunday

CATEGORIES = ("academic", "event", "personal", "work", "other")


def _pick(data: Dict[str, Any], name: str) -> Any:
    """Read a field from a record in either snake_case or camelCase."""
    value = data.get(name)
    if value is None:
        value = data.get(to_camel(name))
    return value


# ===========================
# Definitions (persisted)
# ===========================

class _ScheduleBase(BaseModel):
    # Accepts the storage shape (snake_case) and the client shape (camelCase)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    date: str = Field(..., description="YYYY-MM-DD")
    time_start: str = Field(..., description="HH:MM")
    time_end: str = Field(..., description="HH:MM; may be before time_start when crossing midnight")
    location: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[ScheduleCategory] = None
    reminder_enabled: bool = False
    reminder_minutes_before: Optional[int] = Field(None, gt=0)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v):
        # storage hands out UUIDs / ints
        return v if v is None or isinstance(v, str) else str(v)

    @field_validator("category", mode="before")
    @classmethod
    def _known_category(cls, v):
        if v is None or v == "":
            return None
        v = str(v).lower()
        return v if v in CATEGORIES else "other"

    @field_validator("reminder_enabled", mode="before")
    @classmethod
    def _null_is_disabled(cls, v):
        return False if v is None else v

    @field_validator("reminder_minutes_before", mode="before")
    @classmethod
    def _zero_is_unset(cls, v):
        return None if v == 0 else v

    @property
    def duration_minutes(self) -> int:
        return duration_minutes(self.time_start, self.time_end)


class SingleSchedule(_ScheduleBase):
    """One-off schedule: `date` is the only occurrence."""

    @property
    def is_recurring(self) -> bool:
        return False

    @property
    def recurrence_pattern(self) -> None:
        return None

    def to_record(self) -> Dict[str, Any]:
        return {
            **self.model_dump(),
            "is_recurring": False,
            "recurrence_pattern": None,
            "recurrence_start_date": None,
            "recurrence_end_date": None,
            "recurrence_days_of_week": None,
        }


class RecurringSchedule(_ScheduleBase):
    """
    Recurring schedule. Only the recurrence_* fields drive the generated
    occurrences; `date` is the anchor shown in the raw (non-expanded) view.
    """

    recurrence_pattern: RecurrencePattern
    recurrence_start_date: str
    recurrence_end_date: Optional[str] = None
    recurrence_days_of_week: Tuple[DayOfWeek, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _default_recurrence_start(cls, data):
        if isinstance(data, dict) and not _pick(data, "recurrence_start_date"):
            fallback = _pick(data, "date")
            if fallback:
                data = {k: v for k, v in data.items() if k not in ("recurrence_start_date", "recurrenceStartDate")}
                data["recurrence_start_date"] = fallback
        return data

    @field_validator("recurrence_pattern", mode="before")
    @classmethod
    def _lower_pattern(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator("recurrence_end_date", mode="before")
    @classmethod
    def _blank_end_is_open(cls, v):
        return None if v == "" else v

    @field_validator("recurrence_days_of_week", mode="before")
    @classmethod
    def _null_days(cls, v):
        return () if v is None else v

    @field_validator("recurrence_days_of_week")
    @classmethod
    def _unique_days(cls, v):
        return tuple(sorted(set(v)))

    @property
    def is_recurring(self) -> bool:
        return True

    def to_record(self) -> Dict[str, Any]:
        record = self.model_dump()
        record["is_recurring"] = True
        record["recurrence_days_of_week"] = list(self.recurrence_days_of_week) or None
        return record


def _schedule_kind(value: Any) -> str:
    if isinstance(value, dict):
        flag = _pick(value, "is_recurring")
        pattern = _pick(value, "recurrence_pattern")
    else:
        flag = getattr(value, "is_recurring", False)
        pattern = getattr(value, "recurrence_pattern", None)
    if flag and pattern and str(pattern).lower() != "none":
        return "recurring"
    return "single"


ScheduleDefinition = Annotated[
    Union[
        Annotated[SingleSchedule, Tag("single")],
        Annotated[RecurringSchedule, Tag("recurring")],
    ],
    Discriminator(_schedule_kind),
]

_definition_adapter: TypeAdapter = TypeAdapter(ScheduleDefinition)


def _describe(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("single", "recurring"))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def parse_schedule(record: Any) -> Union[SingleSchedule, RecurringSchedule]:
    """Validate one storage/client record into a definition (DataError on bad shape)."""
    try:
        return _definition_adapter.validate_python(record)
    except ValidationError as e:
        schedule_id = _pick(record, "id") if isinstance(record, dict) else getattr(record, "id", None)
        raise DataError(
            f"Invalid schedule record: {_describe(e)}",
            schedule_id=None if schedule_id is None else str(schedule_id),
        ) from e


def parse_schedules(records: Iterable[Any]) -> Tuple[List[Union[SingleSchedule, RecurringSchedule]], List[BatchError]]:
    definitions: List[Union[SingleSchedule, RecurringSchedule]] = []
    errors: List[BatchError] = []
    for record in records:
        try:
            definitions.append(parse_schedule(record))
        except DataError as e:
            errors.append(BatchError(schedule_id=e.schedule_id, error=e))
    return definitions, errors


# ===========================
# Occurrences (derived, never persisted)
# ===========================

class Occurrence(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    source_id: str
    date: str
    title: str
    time_start: str
    time_end: str
    location: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[ScheduleCategory] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    reminder_enabled: bool = False
    reminder_minutes_before: Optional[int] = None

    @property
    def duration_minutes(self) -> int:
        return duration_minutes(self.time_start, self.time_end)

    @classmethod
    def from_definition(cls, definition: Union[SingleSchedule, RecurringSchedule], on: _dt.date) -> "Occurrence":
        iso = format_local_date(on)
        return cls(
            # "{id}-{date}" keeps virtual occurrences unique but traceable
            id=f"{definition.id}-{iso}" if definition.is_recurring else definition.id,
            source_id=definition.id,
            date=iso,
            title=definition.title,
            time_start=definition.time_start,
            time_end=definition.time_end,
            location=definition.location,
            notes=definition.notes,
            category=definition.category,
            is_recurring=definition.is_recurring,
            recurrence_pattern=definition.recurrence_pattern,
            reminder_enabled=definition.reminder_enabled,
            reminder_minutes_before=definition.reminder_minutes_before,
        )
