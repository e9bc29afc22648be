# tests/conftest.py

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List

import pytest

from schedule_reminders.schemas.schedules import parse_schedule


class ManualClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTimer:
    def __init__(self, due: datetime, delay: float, callback: Callable[[], None]):
        self.due = due
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTimers:
    """Timer factory driven by a ManualClock; nothing fires until advance()."""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.created: List[FakeTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(self.clock.now + timedelta(seconds=delay), delay, callback)
        self.created.append(timer)
        return timer

    def pending(self) -> List[FakeTimer]:
        return [t for t in self.created if not t.cancelled and not t.fired]

    def advance(self, **delta) -> None:
        target = self.clock.now + timedelta(**delta)
        for timer in sorted(self.pending(), key=lambda t: t.due):
            if timer.due > target:
                break
            self.clock.now = timer.due
            timer.fired = True
            timer.callback()
        self.clock.now = target


class RecordingSink:
    def __init__(self):
        self.calls: List[Dict[str, str]] = []

    def show(self, title: str, body: str, dedupe_tag: str) -> None:
        self.calls.append({"title": title, "body": body, "tag": dedupe_tag})


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2024, 1, 9, 12, 0))


@pytest.fixture
def timers(clock) -> FakeTimers:
    return FakeTimers(clock)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def make_schedule() -> Callable[..., Any]:
    """Builds a validated definition from camelCase overrides."""

    def _make(**overrides):
        record: Dict[str, Any] = {
            "id": "s1",
            "title": "Algorithms lecture",
            "date": "2024-01-10",
            "timeStart": "09:00",
            "timeEnd": "10:40",
            "isRecurring": False,
            "reminderEnabled": True,
            "reminderMinutesBefore": 30,
        }
        record.update(overrides)
        return parse_schedule(record)

    return _make
