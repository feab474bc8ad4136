from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from alarms.capabilities import NotificationEvent, NotificationEventKind, SystemAlarmResult
from alarms.errors import StorageError
from alarms.manager import AlarmManager
from alarms.registry import TriggerRegistry
from alarms.ringing import RingingSession
from alarms.scheduler import TriggerScheduler
from alarms.snooze import SnoozeHandler
from alarms.store import AlarmStore

# Monday
MONDAY = datetime(2025, 1, 6, 6, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now: datetime = MONDAY):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeStorage:
    def __init__(self, alarms=None):
        self.saved: List[list] = []
        self.initial = list(alarms or [])
        self.fail_load = False
        self.fail_save = False

    async def load_alarms(self):
        if self.fail_load:
            raise StorageError("disk unreadable")
        return list(self.initial)

    async def save_alarms(self, alarms):
        if self.fail_save:
            raise StorageError("disk full")
        self.saved.append(list(alarms))


class FakeNotifications:
    def __init__(self):
        self.pending: Dict[str, Dict[str, Any]] = {}
        self.scheduled: List[Dict[str, Any]] = []
        self.cancelled: List[str] = []
        self.cancel_all_calls = 0
        self.fail_schedule = False
        self.fail_cancel = False
        self.listeners = []
        self._counter = 0

    async def schedule_at(self, when, payload, title="Alarm", body=""):
        if self.fail_schedule:
            raise RuntimeError("notifications denied")
        self._counter += 1
        identifier = f"n{self._counter}"
        entry = {"id": identifier, "when": when, "payload": dict(payload), "title": title, "body": body}
        self.pending[identifier] = entry
        self.scheduled.append(entry)
        return identifier

    async def cancel(self, identifier):
        if self.fail_cancel:
            raise RuntimeError("cancel failed")
        self.cancelled.append(identifier)
        self.pending.pop(identifier, None)

    async def cancel_all(self):
        self.cancel_all_calls += 1
        self.pending.clear()

    def add_listener(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)

    def emit(self, alarm_id: str, identifier=None, kind=NotificationEventKind.FIRED) -> None:
        if kind is NotificationEventKind.FIRED and identifier is not None:
            self.pending.pop(identifier, None)
        for listener in list(self.listeners):
            listener(NotificationEvent(kind, alarm_id, identifier))


class FakeSystemAlarms:
    def __init__(self, available: bool = True, result_code: int = -1):
        self.available = available
        self.result_code = result_code
        self.raise_error = False
        self.calls: List[tuple] = []
        self.shown = 0

    def is_available(self) -> bool:
        return self.available

    async def set_alarm(self, hour, minute, weekdays, label) -> Optional[SystemAlarmResult]:
        self.calls.append((hour, minute, weekdays, label))
        if self.raise_error:
            raise RuntimeError("intent failed")
        return SystemAlarmResult(self.result_code)

    async def show_alarms(self) -> None:
        self.shown += 1


class FakeToken:
    def __init__(self, fail: bool = False):
        self.cancelled = False
        self.fail = fail

    def cancel(self) -> None:
        self.cancelled = True
        if self.fail:
            raise RuntimeError("vibrator stuck")


class FakeSounds:
    def __init__(self):
        self.calls: List[str] = []
        self.tokens: List[FakeToken] = []
        self.fail_load = False
        self.fail_stop = False
        self.fail_pulse = False
        self.fail_token_cancel = False

    async def load_looping_asset(self, path):
        self.calls.append("load")
        if self.fail_load:
            raise RuntimeError("asset missing")
        return {"path": path}

    async def play(self, handle):
        self.calls.append("play")

    async def stop(self, handle):
        self.calls.append("stop")
        if self.fail_stop:
            raise RuntimeError("device busy")

    async def unload(self, handle):
        self.calls.append("unload")

    async def pulse_haptic(self, interval_ms):
        self.calls.append(f"pulse:{interval_ms}")
        if self.fail_pulse:
            raise RuntimeError("no vibrator")
        token = FakeToken(fail=self.fail_token_cancel)
        self.tokens.append(token)
        return token


class Harness:
    def __init__(self, system_alarms=None, alarms=None, now: datetime = MONDAY):
        self.clock = Clock(now)
        self.storage = FakeStorage(alarms)
        self.notifications = FakeNotifications()
        self.system_alarms = system_alarms
        self.sounds = FakeSounds()
        self.registry = TriggerRegistry()
        self.store = AlarmStore(self.storage, tzinfo=timezone.utc)
        self.scheduler = TriggerScheduler(self.notifications, system_alarms)
        self.session = RingingSession(self.sounds, "alarm.wav", haptic_interval_ms=2000)
        self.manager = AlarmManager(
            store=self.store,
            scheduler=self.scheduler,
            registry=self.registry,
            session=self.session,
            snooze_handler=SnoozeHandler(5),
            clock=self.clock,
        )


@pytest.fixture
def harness() -> Harness:
    return Harness()


@pytest.fixture
def native_harness() -> Harness:
    return Harness(system_alarms=FakeSystemAlarms())
