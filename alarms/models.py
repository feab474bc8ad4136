from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List

LABEL_MAX_LENGTH = 30
WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def normalize_days(days: Iterable[int] | None) -> List[int]:
    """Deduplicate and sort weekday indices (0=Sunday..6=Saturday)."""
    if not days:
        return []
    result = set()
    for day in days:
        if isinstance(day, bool) or not isinstance(day, int):
            raise ValueError(f"Weekday must be an integer, got {day!r}")
        if not 0 <= day <= 6:
            raise ValueError(f"Weekday must be in 0..6, got {day}")
        result.add(day)
    return sorted(result)


def validate_label(label: str | None) -> str:
    label = label or ""
    if len(label) > LABEL_MAX_LENGTH:
        raise ValueError(f"Label must be at most {LABEL_MAX_LENGTH} characters")
    return label


@dataclass
class AlarmDefinition:
    id: str
    time: datetime
    label: str = ""
    days: List[int] = field(default_factory=list)
    enabled: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now().astimezone())

    @property
    def is_recurring(self) -> bool:
        return bool(self.days)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "time": self.time.isoformat(),
            "label": self.label,
            "days": list(self.days),
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AlarmDefinition":
        time_raw = data.get("time")
        created_raw = data.get("created_at") or data.get("createdAt")
        if not data.get("id") or not time_raw:
            raise ValueError("Alarm payload missing id/time fields")
        time = datetime.fromisoformat(time_raw)
        return cls(
            id=str(data["id"]),
            time=time,
            label=str(data.get("label") or ""),
            days=normalize_days(data.get("days") or []),
            enabled=bool(data.get("enabled", True)),
            created_at=datetime.fromisoformat(created_raw) if created_raw else time,
        )


@dataclass
class CreateAlarmParams:
    hours: int
    minutes: int
    label: str = ""
    days: Iterable[int] = ()
    enabled: bool = True

    def __post_init__(self) -> None:
        if not 0 <= self.hours <= 23 or not 0 <= self.minutes <= 59:
            raise ValueError(f"Invalid alarm time {self.hours}:{self.minutes:02d}")


class TriggerKind(Enum):
    NATIVE = "native"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class TriggerHandle:
    kind: TriggerKind
    value: str

    @property
    def cancellable(self) -> bool:
        return self.kind is TriggerKind.NOTIFICATION
