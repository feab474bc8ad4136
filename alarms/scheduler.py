from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from .capabilities import NotificationCapability, SystemAlarmCapability
from .errors import CancellationUnsupportedError, SchedulingError
from .models import AlarmDefinition, TriggerHandle, TriggerKind
from .resolver import next_fire_time

logger = logging.getLogger(__name__)

NOTIFICATION_BODY = "Time to wake up!"


class TriggerScheduler:
    """Realizes alarm definitions as platform triggers.

    The system alarm app is tried first when the platform offers one; a timed
    local notification is the fallback.
    """

    def __init__(
        self,
        notifications: NotificationCapability,
        system_alarms: Optional[SystemAlarmCapability] = None,
        default_label: str = "Alarm",
    ):
        self.notifications = notifications
        self.system_alarms = system_alarms
        self.default_label = default_label

    @property
    def native_available(self) -> bool:
        if self.system_alarms is None:
            return False
        try:
            return bool(self.system_alarms.is_available())
        except Exception as exc:
            logger.warning("System alarm availability check failed: %s", exc)
            return False

    async def schedule(
        self,
        alarm: AlarmDefinition,
        now: datetime,
        allow_native: bool = True,
    ) -> Optional[TriggerHandle]:
        if not alarm.enabled:
            logger.debug("Alarm %s disabled, nothing to schedule", alarm.id)
            return None
        fire_at = next_fire_time(alarm, now)
        if fire_at is None:
            logger.info("Alarm %s has no upcoming occurrence, not scheduling", alarm.id)
            return None

        if allow_native and self.native_available:
            handle = await self._schedule_native(alarm, fire_at)
            if handle is not None:
                return handle

        return await self._schedule_notification(alarm, fire_at)

    async def _schedule_native(self, alarm: AlarmDefinition, fire_at: datetime) -> Optional[TriggerHandle]:
        try:
            result = await self.system_alarms.set_alarm(
                fire_at.hour,
                fire_at.minute,
                list(alarm.days) if alarm.days else None,
                alarm.label or self.default_label,
            )
        except Exception as exc:
            logger.error("Error setting system alarm for %s, falling back to notification: %s", alarm.id, exc)
            return None
        if result is None or not result.success:
            logger.warning(
                "System alarm for %s was not set (result=%s), falling back to notification",
                alarm.id,
                getattr(result, "result_code", None),
            )
            return None
        logger.info("System alarm set for %s at %s", alarm.id, fire_at.strftime("%H:%M"))
        return TriggerHandle(TriggerKind.NATIVE, alarm.id)

    async def _schedule_notification(self, alarm: AlarmDefinition, fire_at: datetime) -> TriggerHandle:
        try:
            identifier = await self.notifications.schedule_at(
                fire_at,
                {"alarm_id": alarm.id},
                title=alarm.label or self.default_label,
                body=NOTIFICATION_BODY,
            )
        except Exception as exc:
            raise SchedulingError(f"Failed to schedule alarm {alarm.id}: {exc}", alarm_id=alarm.id) from exc
        logger.info("Notification %s scheduled for %s at %s", identifier, alarm.id, fire_at.isoformat())
        return TriggerHandle(TriggerKind.NOTIFICATION, identifier)

    async def cancel(self, handle: TriggerHandle) -> None:
        if handle.kind is TriggerKind.NATIVE:
            logger.info("System alarm %s cannot be cancelled programmatically", handle.value)
            raise CancellationUnsupportedError(handle.value, handle)
        try:
            await self.notifications.cancel(handle.value)
        except Exception as exc:
            raise SchedulingError(f"Failed to cancel notification {handle.value}: {exc}") from exc
        logger.info("Cancelled notification %s", handle.value)

    async def cancel_all_notifications(self) -> None:
        await self.notifications.cancel_all()
        logger.info("Cancelled all pending alarm notifications")

    async def show_system_alarms(self) -> bool:
        if not self.native_available:
            return False
        try:
            await self.system_alarms.show_alarms()
        except Exception as exc:
            logger.error("Error showing system alarms: %s", exc)
            return False
        return True
