from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from .capabilities import AudioHapticCapability, HapticToken
from .models import AlarmDefinition

logger = logging.getLogger(__name__)

SnoozeCallback = Callable[[AlarmDefinition, Optional[datetime], Optional[int]], Awaitable[Any]]


class RingingState(Enum):
    IDLE = "idle"
    RINGING = "ringing"


class RingingSession:
    """Looping sound and haptic pulse for the alarm currently going off.

    Only one alarm rings at a time; ``start`` while ringing is ignored.
    Stopping never raises, so dismiss and snooze always end in IDLE.
    """

    def __init__(
        self,
        sounds: AudioHapticCapability,
        sound_path: Path,
        haptic_interval_ms: int = 2000,
        on_snooze: Optional[SnoozeCallback] = None,
    ):
        self.sounds = sounds
        self.sound_path = sound_path
        self.haptic_interval_ms = max(100, haptic_interval_ms)
        self.on_snooze = on_snooze

        self._state = RingingState.IDLE
        self._alarm: Optional[AlarmDefinition] = None
        self._asset: Any = None
        self._haptics: Optional[HapticToken] = None

    @property
    def state(self) -> RingingState:
        return self._state

    @property
    def alarm(self) -> Optional[AlarmDefinition]:
        return self._alarm

    @property
    def is_ringing(self) -> bool:
        return self._state is RingingState.RINGING

    async def start(self, alarm: AlarmDefinition) -> bool:
        if self.is_ringing:
            logger.warning(
                "Alarm %s fired while %s is ringing, ignoring",
                alarm.id,
                self._alarm.id if self._alarm else "?",
            )
            return False
        self._state = RingingState.RINGING
        self._alarm = alarm
        logger.info("Alarm ringing: %s (label=%s)", alarm.id, alarm.label or "-")

        try:
            if self._asset is None:
                self._asset = await self.sounds.load_looping_asset(self.sound_path)
            await self.sounds.play(self._asset)
        except Exception as exc:
            logger.error("Failed to start alarm sound: %s", exc)

        try:
            self._haptics = await self.sounds.pulse_haptic(self.haptic_interval_ms)
        except Exception as exc:
            logger.error("Failed to start haptic pulse: %s", exc)
        return True

    async def dismiss(self) -> Optional[AlarmDefinition]:
        alarm = await self._stop()
        if alarm:
            logger.info("Alarm %s dismissed", alarm.id)
        return alarm

    async def snooze(self, now: Optional[datetime] = None, minutes: Optional[int] = None) -> Any:
        alarm = await self._stop()
        if alarm is None:
            return None
        logger.info("Alarm %s snoozed", alarm.id)
        if self.on_snooze is None:
            return alarm
        return await self.on_snooze(alarm, now, minutes)

    async def close(self) -> None:
        await self._stop()
        if self._asset is not None:
            try:
                await self.sounds.unload(self._asset)
            except Exception as exc:
                logger.debug("Failed to unload alarm sound: %s", exc)
            self._asset = None

    async def _stop(self) -> Optional[AlarmDefinition]:
        alarm = self._alarm
        self._state = RingingState.IDLE
        self._alarm = None

        if alarm is not None and self._asset is not None:
            try:
                await self.sounds.stop(self._asset)
            except Exception as exc:
                logger.error("Failed to stop alarm sound: %s", exc)

        haptics, self._haptics = self._haptics, None
        if haptics is not None:
            try:
                haptics.cancel()
            except Exception as exc:
                logger.error("Failed to stop haptic pulse: %s", exc)
        return alarm
