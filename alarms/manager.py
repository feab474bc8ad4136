from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from .capabilities import NotificationEvent
from .errors import CancellationUnsupportedError, SchedulingError
from .models import AlarmDefinition, CreateAlarmParams, TriggerHandle, TriggerKind
from .registry import TriggerRegistry
from .resolver import next_fire_time, sort_by_next_fire
from .ringing import RingingSession
from .scheduler import TriggerScheduler
from .snooze import SnoozeHandler
from .store import AlarmStore

logger = logging.getLogger(__name__)


class AlarmManager:
    """Keeps stored alarms, platform triggers and the ringing session in step.

    Mutations on one alarm id must not overlap; callers serialize them.
    """

    def __init__(
        self,
        store: AlarmStore,
        scheduler: TriggerScheduler,
        registry: TriggerRegistry,
        session: RingingSession,
        snooze_handler: SnoozeHandler,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.registry = registry
        self.session = session
        self.snooze_handler = snooze_handler
        self.clock = clock or (lambda: datetime.now(store.tzinfo))
        self.session.on_snooze = self._snooze_ringing
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._event_tasks: Set[asyncio.Task] = set()
        # system alarms left in place while a snooze notification stands in for them
        self._parked_native: Dict[str, TriggerHandle] = {}

    async def start(self) -> None:
        await self.store.load()
        self._unsubscribe = self.scheduler.notifications.add_listener(self._on_notification)
        await self.reconcile()

    async def shutdown(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._event_tasks):
            task.cancel()
        await self.session.close()

    def list_alarms(self) -> List[AlarmDefinition]:
        return self.store.list()

    def get_alarm(self, alarm_id: str) -> Optional[AlarmDefinition]:
        return self.store.get(alarm_id)

    def next_fire_time(self, alarm: AlarmDefinition) -> Optional[datetime]:
        return next_fire_time(alarm, self.clock())

    async def add_alarm(self, params: CreateAlarmParams) -> AlarmDefinition:
        alarm = await self.store.create(params, now=self.clock())
        await self._resort()
        await self._apply_trigger(alarm)
        return alarm

    async def edit_alarm(self, alarm_id: str, **changes) -> AlarmDefinition:
        alarm = await self.store.update(alarm_id, **changes)
        await self._resort()
        await self._apply_trigger(alarm)
        return alarm

    async def set_enabled(self, alarm_id: str, enabled: bool) -> AlarmDefinition:
        return await self.edit_alarm(alarm_id, enabled=enabled)

    async def toggle_alarm(self, alarm_id: str) -> AlarmDefinition:
        current = self.store.get(alarm_id)
        enabled = not current.enabled if current else True
        return await self.edit_alarm(alarm_id, enabled=enabled)

    async def delete_alarm(self, alarm_id: str) -> AlarmDefinition:
        alarm = await self.store.delete(alarm_id)
        parked = self._parked_native.pop(alarm_id, None)
        handle = self.registry.remove(alarm_id)
        if handle is not None:
            await self._cancel_quietly(alarm_id, handle, surface_native=True)
        if parked is not None:
            logger.warning("System alarm for %s must be removed in the system alarm app", alarm_id)
            raise CancellationUnsupportedError(alarm_id, parked)
        return alarm

    async def handle_trigger_event(self, alarm_id: str, identifier: Optional[str] = None) -> bool:
        """Start ringing for a fired or tapped trigger.

        ``identifier`` names the delivered notification. Events for a
        notification that is no longer the registered trigger (a tap after
        the ring was dismissed, a repeat tap while ringing) are ignored.
        """
        handle = self.registry.get(alarm_id)
        if identifier is not None:
            if handle is None or handle.kind is not TriggerKind.NOTIFICATION or handle.value != identifier:
                logger.info("Ignoring stale notification %s for alarm %s", identifier, alarm_id)
                return False
        if handle is not None and handle.kind is TriggerKind.NOTIFICATION:
            self.registry.remove(alarm_id)
        alarm = self.store.get(alarm_id)
        if alarm is None:
            logger.warning("Trigger fired for unknown alarm %s", alarm_id)
            return False
        started = await self.session.start(alarm)
        if not started and alarm.enabled and alarm_id not in self.registry:
            await self._rearm(alarm, "after overlapping ring")
        return started

    async def dismiss(self) -> Optional[AlarmDefinition]:
        alarm = await self.session.dismiss()
        if alarm is None:
            return None
        stored = self.store.get(alarm.id)
        if stored is not None and stored.enabled and stored.id not in self.registry:
            await self._rearm(stored, "after dismiss")
        return alarm

    async def snooze(self, minutes: Optional[int] = None) -> Optional[AlarmDefinition]:
        if not self.session.is_ringing:
            return None
        return await self.session.snooze(self.clock(), minutes=minutes)

    async def on_foreground(self) -> None:
        """Drop every pending notification trigger; callers reconcile afterwards."""
        try:
            await self.scheduler.cancel_all_notifications()
        except Exception as exc:
            logger.error("Failed to cancel pending notifications: %s", exc)
            return
        dropped = self.registry.remove_kind(TriggerKind.NOTIFICATION)
        if dropped:
            logger.info("Dropped %s notification triggers from registry", len(dropped))

    async def reconcile(self) -> int:
        scheduled = 0
        for alarm in self.store.list():
            if not alarm.enabled or alarm.id in self.registry:
                continue
            if self._restore_native(alarm.id):
                continue
            try:
                if await self._register(alarm) is not None:
                    scheduled += 1
            except SchedulingError as exc:
                logger.error("Failed to schedule alarm %s during reconcile: %s", alarm.id, exc)
        logger.info("Reconciled triggers: %s scheduled, %s active", scheduled, len(self.registry))
        return scheduled

    async def _snooze_ringing(
        self,
        alarm: AlarmDefinition,
        now: Optional[datetime],
        minutes: Optional[int] = None,
    ) -> AlarmDefinition:
        snoozed = self.snooze_handler.snooze(alarm, now or self.clock(), minutes)
        previous = self.registry.remove(alarm.id)
        if previous is not None and previous.kind is TriggerKind.NATIVE:
            self._parked_native[alarm.id] = previous
        elif previous is not None:
            await self._cancel_quietly(alarm.id, previous)
        handle = await self.scheduler.schedule(snoozed, now or self.clock(), allow_native=False)
        if handle is not None:
            self.registry.set(alarm.id, handle)
        logger.info("Alarm %s snoozed until %s", alarm.id, snoozed.time.strftime("%H:%M"))
        return snoozed

    async def _apply_trigger(self, alarm: AlarmDefinition) -> Optional[TriggerHandle]:
        previous = self.registry.remove(alarm.id)
        native_left = False
        if previous is not None:
            native_left = not await self._cancel_quietly(alarm.id, previous)
        parked = self._parked_native.pop(alarm.id, None)
        if parked is not None:
            logger.warning("System alarm for %s must be removed in the system alarm app", alarm.id)
            previous, native_left = parked, True

        handle = None
        if alarm.enabled:
            handle = await self._register(alarm)

        if native_left:
            raise CancellationUnsupportedError(alarm.id, previous)
        return handle

    async def _register(self, alarm: AlarmDefinition) -> Optional[TriggerHandle]:
        handle = await self.scheduler.schedule(alarm, self.clock())
        if handle is not None:
            self.registry.set(alarm.id, handle)
        return handle

    async def _rearm(self, alarm: AlarmDefinition, reason: str) -> None:
        if self._restore_native(alarm.id):
            return
        try:
            await self._register(alarm)
        except SchedulingError as exc:
            logger.error("Failed to re-arm alarm %s %s: %s", alarm.id, reason, exc)

    def _restore_native(self, alarm_id: str) -> bool:
        handle = self._parked_native.pop(alarm_id, None)
        if handle is None:
            return False
        self.registry.set(alarm_id, handle)
        logger.debug("Restored system alarm trigger for %s", alarm_id)
        return True

    async def _cancel_quietly(self, alarm_id: str, handle: TriggerHandle, surface_native: bool = False) -> bool:
        """Cancel a stale trigger; returns False when a system alarm was left behind."""
        try:
            await self.scheduler.cancel(handle)
        except CancellationUnsupportedError:
            logger.warning("System alarm for %s must be removed in the system alarm app", alarm_id)
            if surface_native:
                raise
            return False
        except SchedulingError as exc:
            logger.error("Failed to cancel trigger for %s: %s", alarm_id, exc)
        return True

    async def _resort(self) -> None:
        ordered = sort_by_next_fire(self.store.list(), self.clock())
        await self.store.replace_all(ordered)

    def _on_notification(self, event: NotificationEvent) -> None:
        logger.debug("Notification %s: %s (%s)", event.kind.value, event.alarm_id, event.identifier)
        task = asyncio.get_running_loop().create_task(
            self.handle_trigger_event(event.alarm_id, event.identifier)
        )
        self._event_tasks.add(task)
        task.add_done_callback(self._event_tasks.discard)
