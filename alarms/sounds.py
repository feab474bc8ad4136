from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from audio_io import AudioClip, LoopingPlayer, create_pyaudio, ensure_alarm_sound

logger = logging.getLogger(__name__)


class HapticPulse:
    """Repeating pulse task; desktops have no vibration motor, so pulses are logged."""

    def __init__(self, interval_ms: int, on_pulse: Optional[Callable[[], None]] = None):
        self.interval = max(0.1, interval_ms / 1000.0)
        self.on_pulse = on_pulse
        self.count = 0
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    def cancel(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            self.count += 1
            if self.on_pulse:
                try:
                    self.on_pulse()
                except Exception:  # pragma: no cover - callback safety
                    logger.debug("Haptic pulse callback failed", exc_info=True)
            else:
                logger.debug("Haptic pulse #%s", self.count)
            await asyncio.sleep(self.interval)


class DesktopAlarmSounds:
    """Audio and haptic capability backed by PyAudio output."""

    def __init__(self, volume: float = 1.0, pa_factory=create_pyaudio):
        self.volume = min(1.0, max(0.0, volume))
        self._pa_factory = pa_factory
        self._pa = None

    def _audio(self):
        if self._pa is None:
            self._pa = self._pa_factory()
        return self._pa

    async def load_looping_asset(self, path: Path) -> LoopingPlayer:
        path = Path(path)
        ensure_alarm_sound(path)
        clip = AudioClip.from_wav(path, volume=self.volume)
        logger.info("Loaded alarm sound %s (rate=%s, channels=%s)", path, clip.rate, clip.channels)
        return LoopingPlayer(self._audio(), clip)

    async def play(self, handle: LoopingPlayer) -> None:
        handle.start()

    async def stop(self, handle: LoopingPlayer) -> None:
        handle.stop()

    async def unload(self, handle: LoopingPlayer) -> None:
        handle.stop()

    async def pulse_haptic(self, interval_ms: int) -> HapticPulse:
        pulse = HapticPulse(interval_ms)
        pulse.start()
        return pulse

    def close(self) -> None:
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
