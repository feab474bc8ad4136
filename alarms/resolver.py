"""Next-fire computation for alarm definitions.

No I/O: callers inject ``now`` so every result is reproducible.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .models import AlarmDefinition


def sunday_weekday(moment: datetime) -> int:
    """Weekday index with 0=Sunday..6=Saturday."""
    return (moment.weekday() + 1) % 7


def _align(alarm_time: datetime, now: datetime) -> datetime:
    if alarm_time.tzinfo is None:
        return alarm_time.replace(tzinfo=now.tzinfo)
    if now.tzinfo is None:
        return alarm_time
    return alarm_time.astimezone(now.tzinfo)


def next_fire_time(alarm: AlarmDefinition, now: datetime) -> Optional[datetime]:
    if alarm.time.tzinfo is not None and now.tzinfo is None:
        now = now.replace(tzinfo=alarm.time.tzinfo)
    alarm_time = _align(alarm.time, now)

    if not alarm.days:
        return alarm_time if alarm_time > now else None

    today = sunday_weekday(now)
    time_of_day = alarm_time.time()
    still_today = time_of_day > now.time()
    days = sorted(alarm.days)

    next_day = next(
        (day for day in days if (day == today and still_today) or day > today),
        None,
    )
    if next_day is None:
        offset = days[0] - today
        if offset <= 0:
            offset += 7
    else:
        offset = next_day - today

    fire_date = now.date() + timedelta(days=offset)
    return datetime.combine(fire_date, time_of_day, tzinfo=now.tzinfo)


def sort_by_next_fire(alarms: Iterable[AlarmDefinition], now: datetime) -> List[AlarmDefinition]:
    """Order alarms by upcoming fire time; alarms that never fire again go last."""
    keyed = [(next_fire_time(alarm, now), alarm) for alarm in alarms]
    fireable = sorted((item for item in keyed if item[0] is not None), key=lambda item: item[0])
    expired = [alarm for fire_at, alarm in keyed if fire_at is None]
    return [alarm for _, alarm in fireable] + expired


def upcoming_clock_time(now: datetime, hour: int, minute: int) -> datetime:
    """Next ``hour:minute`` wall-clock instant after ``now`` (today or tomorrow)."""
    candidate = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate <= now:
        candidate = datetime.combine(now.date() + timedelta(days=1), candidate.time(), tzinfo=now.tzinfo)
    return candidate
