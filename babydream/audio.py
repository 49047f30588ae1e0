from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, cast

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InputValidationError

FloatArray = NDArray[np.float32]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float] | FloatArray

SAMPLE_RATE = 44_100


def ensure_audio_contract(
    audio: AudioNumbers,
    *,
    check_peak: bool = True,
) -> FloatArray:
    """Normalize dtype/range/shape to the audio contract."""

    mono: FloatArray = np.asarray(audio, dtype=np.float32).reshape(-1)
    if mono.size == 0:
        return mono
    mono = np.nan_to_num(mono, nan=0.0, posinf=0.0, neginf=0.0)
    if not check_peak:
        return mono
    peak = float(np.max(np.abs(mono)))
    if peak > 1.0:
        mono = mono / peak
    return mono


def validate_render_args(sample_rate: int, duration_seconds: float) -> None:
    if isinstance(sample_rate, bool) or int(sample_rate) != sample_rate or sample_rate <= 0:
        raise InputValidationError(f"sample_rate must be a positive integer, got {sample_rate!r}")
    if not math.isfinite(duration_seconds) or duration_seconds <= 0:
        raise InputValidationError(
            f"duration_seconds must be a positive number, got {duration_seconds!r}"
        )


def num_samples(sample_rate: int, duration_seconds: float) -> int:
    """Buffer length for a render request: round(sample_rate * duration)."""

    validate_render_args(sample_rate, duration_seconds)
    return int(round(sample_rate * duration_seconds))


@dataclass(frozen=True, slots=True)
class SampleBuffer:
    """Mono float buffer plus the rate it was rendered at.

    Loop seams are not smoothed: a buffer played with looping enabled may
    click at the wrap point.
    """

    samples: FloatArray
    sample_rate: int

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise InputValidationError(f"sample_rate must be positive, got {self.sample_rate}")
        self.samples.setflags(write=False)

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def duration(self) -> float:
        return self.samples.size / self.sample_rate

    @property
    def peak(self) -> float:
        if self.samples.size == 0:
            return 0.0
        return float(np.max(np.abs(self.samples)))

    def scaled(self, gain: float) -> FloatArray:
        return (self.samples * np.float32(gain)).astype(np.float32)


def write_wav(
    path: str | Path,
    audio: SampleBuffer | AudioNumbers,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write a buffer (or raw samples) to a mono float wav file."""

    target = Path(path)
    audio_obj: object = audio
    match audio_obj:
        case SampleBuffer(samples=samples, sample_rate=rate):
            data = ensure_audio_contract(samples)
            sample_rate = rate
        case np.ndarray() | list() | tuple():
            data = ensure_audio_contract(cast(AudioNumbers, audio_obj))
        case _:
            raise InputValidationError("audio must be a SampleBuffer or a sequence of samples")

    write_fn = getattr(sf, "write", None)
    assert callable(write_fn)
    write_audio = cast(Callable[..., None], write_fn)
    write_audio(target, data, sample_rate, subtype="FLOAT")
    return target
