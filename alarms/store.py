from __future__ import annotations

import dataclasses
import logging
import uuid
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Protocol, Sequence

from .errors import NotFoundError, StorageError
from .models import AlarmDefinition, CreateAlarmParams, normalize_days, validate_label
from .resolver import upcoming_clock_time

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = {"id", "created_at"}


class AlarmPersistence(Protocol):
    async def load_alarms(self) -> Sequence[AlarmDefinition]: ...

    async def save_alarms(self, alarms: Sequence[AlarmDefinition]) -> None: ...


def _generate_id() -> str:
    return f"al_{uuid.uuid4().hex}"


class AlarmStore:
    """Authoritative alarm collection with write-through persistence.

    Every mutation is saved before it returns. When the save fails the
    in-memory collection is restored and the StorageError propagates.
    The store never reorders: ``replace_all`` keeps the caller's order.
    """

    def __init__(
        self,
        storage: AlarmPersistence,
        tzinfo=None,
        id_factory: Callable[[], str] = _generate_id,
    ):
        self.storage = storage
        self.tzinfo = tzinfo or datetime.now().astimezone().tzinfo
        self._id_factory = id_factory
        self._alarms: List[AlarmDefinition] = []

    async def load(self) -> List[AlarmDefinition]:
        try:
            alarms = list(await self.storage.load_alarms())
        except StorageError as exc:
            logger.error("Failed to load alarms, starting empty: %s", exc)
            alarms = []
        self._alarms = alarms
        logger.info("Loaded %s alarms", len(self._alarms))
        return list(self._alarms)

    def list(self) -> List[AlarmDefinition]:
        return list(self._alarms)

    def get(self, alarm_id: str) -> Optional[AlarmDefinition]:
        for alarm in self._alarms:
            if alarm.id == alarm_id:
                return alarm
        return None

    async def create(self, params: CreateAlarmParams, now: Optional[datetime] = None) -> AlarmDefinition:
        now = now or datetime.now(self.tzinfo)
        alarm = AlarmDefinition(
            id=self._new_id(),
            time=upcoming_clock_time(now, params.hours, params.minutes),
            label=validate_label(params.label),
            days=normalize_days(params.days),
            enabled=params.enabled,
            created_at=now,
        )
        await self._commit(self._alarms + [alarm])
        logger.info("Created alarm %s at %s (days=%s)", alarm.id, alarm.time.strftime("%H:%M"), alarm.days)
        return alarm

    async def add(self, alarm: AlarmDefinition) -> AlarmDefinition:
        if self.get(alarm.id) is not None:
            raise ValueError(f"Alarm {alarm.id} already exists")
        alarm = dataclasses.replace(alarm, label=validate_label(alarm.label), days=normalize_days(alarm.days))
        await self._commit(self._alarms + [alarm])
        return alarm

    async def update(self, alarm_id: str, **changes) -> AlarmDefinition:
        index = self._index_of(alarm_id)
        frozen = _IMMUTABLE_FIELDS.intersection(changes)
        if frozen:
            raise ValueError(f"Cannot change {', '.join(sorted(frozen))} of an alarm")
        if "label" in changes:
            changes["label"] = validate_label(changes["label"])
        if "days" in changes:
            changes["days"] = normalize_days(changes["days"])
        updated = dataclasses.replace(self._alarms[index], **changes)
        alarms = list(self._alarms)
        alarms[index] = updated
        await self._commit(alarms)
        logger.info("Updated alarm %s (%s)", alarm_id, ", ".join(sorted(changes)) or "no changes")
        return updated

    async def delete(self, alarm_id: str) -> AlarmDefinition:
        index = self._index_of(alarm_id)
        removed = self._alarms[index]
        await self._commit(self._alarms[:index] + self._alarms[index + 1 :])
        logger.info("Deleted alarm %s", alarm_id)
        return removed

    async def replace_all(self, alarms: Iterable[AlarmDefinition]) -> None:
        alarms = list(alarms)
        ids = [a.id for a in alarms]
        if len(ids) != len(set(ids)):
            raise ValueError("Alarm ids must be unique")
        await self._commit(alarms)

    async def _commit(self, alarms: List[AlarmDefinition]) -> None:
        previous = self._alarms
        self._alarms = alarms
        try:
            await self.storage.save_alarms(list(alarms))
        except StorageError:
            self._alarms = previous
            raise

    def _index_of(self, alarm_id: str) -> int:
        for index, alarm in enumerate(self._alarms):
            if alarm.id == alarm_id:
                return index
        raise NotFoundError(alarm_id)

    def _new_id(self) -> str:
        existing = {a.id for a in self._alarms}
        alarm_id = self._id_factory()
        while alarm_id in existing:
            alarm_id = self._id_factory()
        return alarm_id
