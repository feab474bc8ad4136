from __future__ import annotations

from datetime import datetime
from typing import Iterable

from .models import WEEKDAY_NAMES


def format_time(moment: datetime) -> str:
    """12-hour clock with AM/PM, e.g. ``7:05 AM``."""
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {suffix}"


def format_weekdays(days: Iterable[int]) -> str:
    days = sorted(set(days or []))
    if not days:
        return "One time"
    if len(days) == 7:
        return "Every day"
    return ", ".join(WEEKDAY_NAMES[day] for day in days)


def parse_weekdays(text: str) -> list:
    """Parse ``mon,wed,fri`` / ``1,3,5`` / ``daily`` into weekday indices."""
    text = (text or "").strip().lower()
    if not text or text in {"once", "one-time"}:
        return []
    if text in {"daily", "everyday", "every day"}:
        return list(range(7))
    if text == "weekdays":
        return [1, 2, 3, 4, 5]
    if text == "weekends":
        return [0, 6]
    names = {name.lower(): index for index, name in enumerate(WEEKDAY_NAMES)}
    days = []
    for part in text.replace(" ", ",").split(","):
        if not part:
            continue
        if part.isdigit():
            days.append(int(part))
        elif part[:3] in names:
            days.append(names[part[:3]])
        else:
            raise ValueError(f"Unknown weekday: {part}")
    return days
