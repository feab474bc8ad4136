from __future__ import annotations

import dataclasses
from datetime import datetime, timedelta
from typing import Optional

from .models import AlarmDefinition


class SnoozeHandler:
    def __init__(self, default_minutes: int = 5):
        if default_minutes < 1:
            raise ValueError("Snooze duration must be at least one minute")
        self.default_minutes = default_minutes

    def snooze(self, alarm: AlarmDefinition, now: datetime, minutes: Optional[int] = None) -> AlarmDefinition:
        """One-shot copy of ``alarm`` firing ``minutes`` after ``now``; the id is kept."""
        minutes = self.default_minutes if minutes is None else minutes
        if minutes < 1:
            raise ValueError("Snooze duration must be at least one minute")
        return dataclasses.replace(
            alarm,
            time=now + timedelta(minutes=minutes),
            days=[],
            enabled=True,
        )
