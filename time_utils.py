from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


def resolve_timezone(name: Optional[str]):
    if name:
        try:
            return ZoneInfo(name)
        except Exception as exc:  # pragma: no cover - environment-dependent
            logger.warning("Failed to load timezone %s via zoneinfo (%s)", name, exc)
    local_tz = datetime.now().astimezone().tzinfo
    if local_tz:
        if name:
            logger.warning("Using system local timezone instead: %s", getattr(local_tz, "key", local_tz))
        return local_tz
    logger.warning("System timezone unavailable, fallback to UTC")
    return timezone.utc


def now_in_tz(tzinfo) -> datetime:
    if tzinfo:
        return datetime.now(tzinfo)
    return datetime.now().astimezone()


def format_tz_offset(tzinfo, sample: Optional[datetime] = None) -> str:
    sample = sample or now_in_tz(tzinfo)
    offset = tzinfo.utcoffset(sample) if hasattr(tzinfo, "utcoffset") else None
    if offset is None:
        return ""
    total_minutes = int(offset // timedelta(minutes=1))
    sign = "+" if total_minutes >= 0 else "-"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"
