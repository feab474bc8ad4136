"""Platform capability contracts consumed by the alarm engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Sequence


class NotificationEventKind(Enum):
    FIRED = "fired"
    TAPPED = "tapped"


@dataclass(frozen=True)
class NotificationEvent:
    kind: NotificationEventKind
    alarm_id: str
    identifier: Optional[str] = None


NotificationListener = Callable[[NotificationEvent], None]


class NotificationCapability(Protocol):
    async def schedule_at(
        self,
        when: datetime,
        payload: Dict[str, Any],
        title: str = "Alarm",
        body: str = "",
    ) -> str: ...

    async def cancel(self, identifier: str) -> None: ...

    async def cancel_all(self) -> None: ...

    def add_listener(self, listener: NotificationListener) -> Callable[[], None]: ...


class ResultCode(IntEnum):
    SUCCESS = -1
    CANCELED = 0
    FIRST_USER = 1


@dataclass(frozen=True)
class SystemAlarmResult:
    result_code: int
    data: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.result_code == ResultCode.SUCCESS


class SystemAlarmCapability(Protocol):
    """Platform alarm app integration. Alarms set here cannot be cancelled."""

    def is_available(self) -> bool: ...

    async def set_alarm(
        self,
        hour: int,
        minute: int,
        weekdays: Optional[Sequence[int]],
        label: str,
    ) -> Optional[SystemAlarmResult]: ...

    async def show_alarms(self) -> None: ...


class HapticToken(Protocol):
    def cancel(self) -> None: ...


class AudioHapticCapability(Protocol):
    async def load_looping_asset(self, path: Path) -> Any: ...

    async def play(self, handle: Any) -> None: ...

    async def stop(self, handle: Any) -> None: ...

    async def unload(self, handle: Any) -> None: ...

    async def pulse_haptic(self, interval_ms: int) -> HapticToken: ...
