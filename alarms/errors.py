from __future__ import annotations

from typing import Optional


class AlarmError(Exception):
    """Base class for alarm engine failures."""


class NotFoundError(AlarmError, KeyError):
    def __init__(self, alarm_id: str):
        super().__init__(alarm_id)
        self.alarm_id = alarm_id

    def __str__(self) -> str:
        return f"Alarm {self.alarm_id} not found"


class StorageError(AlarmError):
    pass


class SchedulingError(AlarmError):
    def __init__(self, message: str, alarm_id: Optional[str] = None):
        super().__init__(message)
        self.alarm_id = alarm_id


class CancellationUnsupportedError(AlarmError):
    """Raised when a native system alarm has to be removed by the user.

    System alarms have no cancel primitive, so the caller should point the user
    to the platform's own alarm manager.
    """

    def __init__(self, alarm_id: str, handle=None):
        super().__init__(
            f"System alarm for {alarm_id} cannot be cancelled programmatically; "
            "disable it in the system alarm app"
        )
        self.alarm_id = alarm_id
        self.handle = handle
