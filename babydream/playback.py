from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Literal, Mapping, Protocol

import numpy as np
from pydantic import BaseModel, ConfigDict

from .audio import SAMPLE_RATE, SampleBuffer
from .config import PlaybackSettings
from .errors import InputValidationError, NotFoundError, PlaybackError
from .synth import SOUND_PROFILES, SoundProfile

_LOGGER = logging.getLogger("babydream.playback")

PlaybackState = Literal["idle", "playing"]


class Voice(Protocol):
    """A looping render of one buffer on the audio sink."""

    def set_gain(self, gain: float) -> None: ...

    def stop(self) -> None: ...


class CancelHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], CancelHandle]


class PlaybackBackend(BaseModel):
    name: str
    open_voice: Callable[[SampleBuffer, float], Voice]

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


def thread_timer_scheduler(delay: float, callback: Callable[[], None]) -> CancelHandle:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class CancellationToken:
    """Marks one session's deadline as void once the session ends."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True, slots=True)
class PlaybackSession:
    """Read-only view of the active session."""

    key: str
    buffer: SampleBuffer
    gain: float
    deadline: float | None


@dataclass(slots=True, eq=False)
class _ActiveSession:
    key: str
    buffer: SampleBuffer
    voice: Voice
    gain: float
    token: CancellationToken
    deadline: float | None = None
    timer: CancelHandle | None = field(default=None)

    def view(self) -> PlaybackSession:
        return PlaybackSession(
            key=self.key,
            buffer=self.buffer,
            gain=self.gain,
            deadline=self.deadline,
        )


def clamp_gain(gain: float) -> float:
    if not math.isfinite(gain):
        raise InputValidationError(f"gain must be a finite number, got {gain!r}")
    return min(max(float(gain), 0.0), 1.0)


class PlaybackManager:
    """Owns the single active soundscape and its auto-stop deadline.

    Starting a sound always tears the previous one down first, so at most
    one voice renders at any time. All transitions hold one lock; the
    auto-stop callback runs on the scheduler's thread and checks its
    session token before acting.
    """

    def __init__(
        self,
        backend: PlaybackBackend | None = None,
        *,
        sample_rate: int = SAMPLE_RATE,
        gain: float = 0.5,
        auto_stop_minutes: float = 0.0,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: np.random.Generator | None = None,
        profiles: Mapping[str, SoundProfile] = SOUND_PROFILES,
    ) -> None:
        if sample_rate <= 0:
            raise InputValidationError(f"sample_rate must be positive, got {sample_rate}")
        self._backend = backend
        self._sample_rate = sample_rate
        self._gain = clamp_gain(gain)
        self._auto_stop_minutes = 0.0
        self.set_auto_stop_minutes(auto_stop_minutes)
        self._scheduler: Scheduler = scheduler or thread_timer_scheduler
        self._clock = clock
        self._rng = rng
        self._profiles = profiles
        self._lock = threading.RLock()
        self._session: _ActiveSession | None = None

    @classmethod
    def from_settings(
        cls,
        settings: PlaybackSettings,
        backend: PlaybackBackend | None = None,
        **kwargs: Any,
    ) -> "PlaybackManager":
        return cls(
            backend,
            sample_rate=settings.sample_rate,
            gain=settings.gain,
            auto_stop_minutes=settings.auto_stop_minutes,
            **kwargs,
        )

    @property
    def state(self) -> PlaybackState:
        return "playing" if self._session is not None else "idle"

    @property
    def current_key(self) -> str | None:
        session = self._session
        return session.key if session else None

    @property
    def session(self) -> PlaybackSession | None:
        session = self._session
        return session.view() if session else None

    @property
    def gain(self) -> float:
        return self._gain

    @property
    def auto_stop_minutes(self) -> float:
        return self._auto_stop_minutes

    def remaining_seconds(self) -> float | None:
        session = self._session
        if session is None or session.deadline is None:
            return None
        return max(session.deadline - self._clock(), 0.0)

    def start(self, key: str) -> PlaybackSession:
        profile = self._profiles.get(key)
        if profile is None:
            _LOGGER.info("Sound %r not found; playback unchanged", key)
            raise NotFoundError(f"Unknown sound: {key!r}")

        with self._lock:
            self._teardown("replaced")
            buffer = profile.generate(self._sample_rate, rng=self._rng)
            voice = self._ensure_backend().open_voice(buffer, self._gain)
            session = _ActiveSession(
                key=key,
                buffer=buffer,
                voice=voice,
                gain=self._gain,
                token=CancellationToken(),
            )
            if self._auto_stop_minutes > 0:
                delay = self._auto_stop_minutes * 60.0
                session.deadline = self._clock() + delay
                session.timer = self._scheduler(delay, partial(self._on_deadline, session.token))
            self._session = session
            _LOGGER.info(
                "Playing %s (%.1fs loop, gain %.2f, auto-stop %s)",
                profile.display_name,
                buffer.duration,
                self._gain,
                f"{self._auto_stop_minutes:g} min" if session.deadline is not None else "off",
            )
            return session.view()

    def stop(self) -> None:
        with self._lock:
            self._teardown("stopped")

    def toggle(self, key: str) -> PlaybackSession | None:
        with self._lock:
            if self._session is not None and self._session.key == key:
                self._teardown("toggled off")
                return None
            return self.start(key)

    def set_gain(self, gain: float) -> float:
        value = clamp_gain(gain)
        with self._lock:
            self._gain = value
            if self._session is not None:
                self._session.gain = value
                self._session.voice.set_gain(value)
        return value

    def set_auto_stop_minutes(self, minutes: float) -> None:
        """Applies to the next start; a running deadline is left alone."""
        if not math.isfinite(minutes) or minutes < 0:
            raise InputValidationError(f"auto-stop minutes must be >= 0, got {minutes!r}")
        self._auto_stop_minutes = float(minutes)

    def close(self) -> None:
        self.stop()

    def __enter__(self) -> "PlaybackManager":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _ensure_backend(self) -> PlaybackBackend:
        if self._backend is None:
            self._backend = resolve_backend()
        return self._backend

    def _on_deadline(self, token: CancellationToken) -> None:
        with self._lock:
            session = self._session
            if token.cancelled or session is None or session.token is not token:
                _LOGGER.debug("Ignoring stale auto-stop deadline")
                return
            self._teardown("auto-stop")

    def _teardown(self, reason: str) -> bool:
        session = self._session
        if session is None:
            return False
        self._session = None
        session.token.cancel()
        if session.timer is not None:
            session.timer.cancel()
        _LOGGER.info("Stopping %s (%s)", session.key, reason)
        session.voice.stop()
        return True


# -----------------------------------------------------------------------------
# Audio sinks
# -----------------------------------------------------------------------------


class SilentVoice:
    """Voice that renders nothing; tracks gain and stop calls."""

    def __init__(self, buffer: SampleBuffer, gain: float) -> None:
        self.buffer = buffer
        self.gain = gain
        self.stopped = False

    def set_gain(self, gain: float) -> None:
        self.gain = gain

    def stop(self) -> None:
        self.stopped = True


def silent_backend() -> PlaybackBackend:
    return PlaybackBackend(name="silent", open_voice=SilentVoice)


def resolve_backend(name: str | None = None) -> PlaybackBackend:
    if name == "silent":
        return silent_backend()
    if name not in (None, "sounddevice"):
        raise InputValidationError(f"Unknown playback backend: {name!r}")
    backend = _load_sounddevice()
    if backend is None:
        raise PlaybackError(
            "Playback requires sounddevice. Install it (or render to a file with write_wav); "
            "use the 'silent' backend for headless runs."
        )
    return backend


def _load_sounddevice() -> PlaybackBackend | None:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        return None
    sd: Any = sd_module

    class _SoundDeviceVoice:
        def __init__(self, buffer: SampleBuffer, gain: float) -> None:
            self._samples = np.asarray(buffer.samples, dtype=np.float32)
            self._position = 0
            self._gain = np.float32(gain)
            self._stream = sd.OutputStream(
                samplerate=buffer.sample_rate,
                channels=1,
                dtype="float32",
                callback=self._callback,
            )
            self._stream.start()

        def _callback(self, outdata: Any, frames: int, _time: Any, status: Any) -> None:
            if status:
                _LOGGER.debug("sounddevice status: %s", status)
            total = self._samples.size
            if total == 0:
                outdata.fill(0)
                return
            index = (self._position + np.arange(frames)) % total
            outdata[:, 0] = self._samples[index] * self._gain
            self._position = (self._position + frames) % total

        def set_gain(self, gain: float) -> None:
            self._gain = np.float32(gain)

        def stop(self) -> None:
            self._stream.stop()
            self._stream.close()

    return PlaybackBackend(name="sounddevice", open_voice=_SoundDeviceVoice)
