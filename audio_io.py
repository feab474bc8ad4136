import logging
import math
import wave
from dataclasses import dataclass
from pathlib import Path
from threading import Event, Thread
from typing import Optional

import numpy as np
import pyaudio

logger = logging.getLogger(__name__)


def create_pyaudio() -> pyaudio.PyAudio:
    pa = pyaudio.PyAudio()
    return pa


def generate_tone(
    duration_seconds: float = 1.5,
    sample_rate: int = 24000,
    freq: float = 880.0,
    amplitude: float = 0.4,
    beep_ms: int = 250,
) -> np.ndarray:
    """Beeping sine tone as int16 samples: ``beep_ms`` on, ``beep_ms`` off."""
    t = np.arange(int(duration_seconds * sample_rate)) / sample_rate
    tone = amplitude * np.sin(2 * math.pi * freq * t)
    gate = (np.floor(t * 1000 / beep_ms) % 2 == 0).astype(np.float64)
    return (tone * gate * 32767).astype(np.int16)


def ensure_alarm_sound(path: Path, duration_seconds: float = 1.5, sample_rate: int = 24000) -> None:
    if path.exists():
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    samples = generate_tone(duration_seconds, sample_rate)
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(samples.tobytes())
    logger.info("Generated default alarm sound at %s", path)


@dataclass
class AudioClip:
    samples: np.ndarray
    rate: int
    channels: int

    @classmethod
    def from_wav(cls, path: Path, volume: float = 1.0) -> "AudioClip":
        with wave.open(str(path), "rb") as wav:
            if wav.getsampwidth() != 2:
                raise ValueError(f"Only 16-bit WAV files are supported: {path}")
            rate = wav.getframerate()
            channels = wav.getnchannels()
            frames = wav.readframes(wav.getnframes())
        samples = np.frombuffer(frames, dtype=np.int16)
        if volume < 1.0:
            samples = (samples.astype(np.float64) * max(0.0, volume)).astype(np.int16)
        return cls(samples=samples, rate=rate, channels=channels)


class LoopingPlayer:
    """Plays an AudioClip over and over until stopped."""

    def __init__(self, pa: pyaudio.PyAudio, clip: AudioClip, chunk_frames: int = 1024):
        self.pa = pa
        self.clip = clip
        self.chunk_frames = chunk_frames
        self._stop_event = Event()
        self._thread: Optional[Thread] = None

    @property
    def is_playing(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_playing:
            return
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="alarm-sound", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
        self._thread = None

    def _loop(self) -> None:  # pragma: no cover - audio device loop
        stream = self.pa.open(
            format=pyaudio.paInt16,
            channels=self.clip.channels,
            rate=self.clip.rate,
            output=True,
        )
        data = self.clip.samples.tobytes()
        step = self.chunk_frames * self.clip.channels * 2
        try:
            while not self._stop_event.is_set():
                for idx in range(0, len(data), step):
                    if self._stop_event.is_set():
                        break
                    stream.write(data[idx : idx + step])
        except OSError as exc:
            logger.error("Alarm sound output failed: %s", exc)
        finally:
            stream.stop_stream()
            stream.close()
