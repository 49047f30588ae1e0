# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownArgumentType=false

"""
Architecture:

1. Primitives: noise sources, one-pole and resonant filters, beat envelopes
2. Generators: one function per soundscape, (sample_rate, seconds, rng) -> samples
3. Registry: immutable SoundProfile table keyed by sound key, plus synthesize()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Callable, Literal, TypeAlias

import numpy as np
from numpy.typing import NDArray
from scipy.signal import iirpeak, lfilter  # type: ignore[import]

from .audio import SAMPLE_RATE, FloatArray, SampleBuffer, ensure_audio_contract, num_samples
from .errors import NotFoundError

_LOGGER = logging.getLogger("babydream.synth")

SoundKey = Literal[
    "white-noise",
    "rain",
    "ocean",
    "heartbeat",
    "shush",
    "lullaby",
    "fan",
    "birds",
    "womb",
]
GeneratorFn: TypeAlias = Callable[[int, float, np.random.Generator], FloatArray]

# =============================================================================
# CONSTANTS
# =============================================================================

# Kellet pinking bank: (pole, white gain) per stage
PINK_STAGES: tuple[tuple[float, float], ...] = (
    (0.99886, 0.0555179),
    (0.99332, 0.0750759),
    (0.96900, 0.1538520),
    (0.86650, 0.3104856),
    (0.55000, 0.5329522),
    (-0.7616, -0.0168980),
)
PINK_DIRECT_GAIN = 0.5362
PINK_DELAYED_GAIN = 0.115926
PINK_OUTPUT_GAIN = 0.11

LULLABY_NOTES: tuple[float, ...] = (
    262, 294, 330, 349, 330, 294, 262, 247, 262, 294, 330, 294, 262, 247, 220,
)  # fmt: skip
LULLABY_NOTE_SECONDS = 0.6
LULLABY_DECAY = 2.5
LULLABY_AMP = 0.3

BIRD_CHIRPS = 15
BIRD_MIN_HZ = 2000.0
BIRD_SPAN_HZ = 3000.0
BIRD_VIBRATO_HZ = 20.0
BIRD_VIBRATO_DEPTH_HZ = 500.0
BIRD_AMP = 0.15


@dataclass(frozen=True, slots=True)
class BeatLobe:
    """One damped-sine thump inside a beat cycle."""

    start: float
    end: float
    freq: float
    decay: float
    amp: float


HEARTBEAT_BPM = 70.0
HEARTBEAT_LOBES: tuple[BeatLobe, ...] = (
    BeatLobe(start=0.0, end=0.08, freq=60.0, decay=30.0, amp=1.0),
    BeatLobe(start=0.15, end=0.23, freq=50.0, decay=25.0, amp=0.7),
)
WOMB_BPM = 75.0
WOMB_LOBES: tuple[BeatLobe, ...] = (
    BeatLobe(start=0.0, end=0.07, freq=40.0, decay=35.0, amp=0.3),
    BeatLobe(start=0.12, end=0.19, freq=35.0, decay=30.0, amp=0.2),
)

# =============================================================================
# PART 1: PRIMITIVES
# =============================================================================


def _time_axis(n: int, sr: int) -> NDArray[np.float64]:
    return np.arange(n, dtype=np.float64) / sr


def uniform_noise(n: int, rng: np.random.Generator) -> NDArray[np.float64]:
    """Uniform white noise in [-1, 1)."""
    return rng.uniform(-1.0, 1.0, n)


def _quantize(value: float, step: float = 1e-5) -> float:
    return round(value / step) * step


@lru_cache(maxsize=128)
def _one_pole_cached(normalized_cutoff: float) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    alpha = 1.0 - np.exp(-2.0 * np.pi * normalized_cutoff)
    return np.array([alpha]), np.array([1.0, alpha - 1.0])


@lru_cache(maxsize=128)
def _peak_cached(
    center: float, q: float, sr: int
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    coeffs = iirpeak(center, q, fs=sr)
    assert isinstance(coeffs, tuple)
    b_raw, a_raw = coeffs
    return np.asarray(b_raw, dtype=np.float64), np.asarray(a_raw, dtype=np.float64)


def one_pole_lowpass(
    signal: NDArray[np.floating], cutoff: float, sr: int = SAMPLE_RATE
) -> NDArray[np.float64]:
    """Single-pole lowpass smoothing (6 dB/oct above cutoff)."""
    normalized = min(max(cutoff / sr, 1e-5), 0.5)
    b, a = _one_pole_cached(_quantize(normalized))
    return np.asarray(lfilter(b, a, signal), dtype=np.float64)


def band_emphasis(
    signal: NDArray[np.floating], center: float, q: float, sr: int = SAMPLE_RATE
) -> NDArray[np.float64]:
    """Resonant bandpass with unity gain at the centre frequency."""
    # iirpeak needs the -3 dB band (center / q) to stay under Nyquist.
    center = min(center, 0.45 * sr * min(q, 1.0))
    b, a = _peak_cached(round(center, 1), q, sr)
    return np.asarray(lfilter(b, a, signal), dtype=np.float64)


def leaky_integrate(white: NDArray[np.floating], coeff: float) -> NDArray[np.float64]:
    """Brown noise: out[i] = (out[i-1] + coeff * white[i]) / (1 + coeff)."""
    norm = 1.0 + coeff
    return np.asarray(lfilter([coeff / norm], [1.0, -1.0 / norm], white), dtype=np.float64)


def pink_filter(white: NDArray[np.floating]) -> NDArray[np.float64]:
    """Paul Kellet's pinking approximation applied to a white source."""
    white64 = np.asarray(white, dtype=np.float64)
    out = white64 * PINK_DIRECT_GAIN
    for pole, gain in PINK_STAGES:
        out += lfilter([gain], [1.0, -pole], white64)
    # The last tap lags the source by one sample.
    if white64.size > 1:
        out[1:] += white64[:-1] * PINK_DELAYED_GAIN
    return out * PINK_OUTPUT_GAIN


def heartbeat_envelope(
    n: int, sr: int, bpm: float, lobes: Sequence[BeatLobe]
) -> NDArray[np.float64]:
    """Periodic train of damped-sine lobes, silent between lobes."""
    beat_interval = 60.0 / bpm * sr
    t = np.mod(np.arange(n, dtype=np.float64), beat_interval) / sr
    out = np.zeros(n, dtype=np.float64)
    for lobe in lobes:
        local = t - lobe.start
        mask = (local >= 0.0) & (t < lobe.end)
        tl = local[mask]
        out[mask] += lobe.amp * np.sin(2 * np.pi * lobe.freq * tl) * np.exp(-lobe.decay * tl)
    return out


# =============================================================================
# PART 2: GENERATORS
# =============================================================================


def white_noise(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    """Uniform noise softened by a 4 kHz lowpass."""
    n = num_samples(sr, duration)
    return ensure_audio_contract(one_pole_lowpass(uniform_noise(n, rng), 4000.0, sr))


def rain(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    """Brown noise pushed through a broad 1.5 kHz band."""
    n = num_samples(sr, duration)
    brown = leaky_integrate(uniform_noise(n, rng), 0.02) * 3.5
    return ensure_audio_contract(band_emphasis(brown, 1500.0, 0.5, sr))


def ocean(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    """Brown noise swelling on a 10 s sine, lowpassed at 800 Hz."""
    n = num_samples(sr, duration)
    t = _time_axis(n, sr)
    swell = np.sin(2 * np.pi * 0.1 * t) * 0.5 + 0.5
    brown = leaky_integrate(uniform_noise(n, rng), 0.02)
    return ensure_audio_contract(one_pole_lowpass(brown * swell * 4.0, 800.0, sr))


def heartbeat(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    n = num_samples(sr, duration)
    return ensure_audio_contract(heartbeat_envelope(n, sr, HEARTBEAT_BPM, HEARTBEAT_LOBES))


def shush(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    """Noise gated by a half-sine every 1.5 s, emphasised around 3 kHz."""
    n = num_samples(sr, duration)
    cycle = np.mod(_time_axis(n, sr), 1.5)
    gate = np.where(cycle < 0.8, np.sin(np.pi * cycle / 0.8), 0.0)
    noise = uniform_noise(n, rng) * gate * 0.5
    return ensure_audio_contract(band_emphasis(noise, 3000.0, 1.0, sr))


def lullaby(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    """Fixed melody of plucked sines; the tune repeats to fill the buffer."""
    n = num_samples(sr, duration)
    note_len = max(1, int(LULLABY_NOTE_SECONDS * sr))
    index = np.arange(n)
    freqs = np.asarray(LULLABY_NOTES, dtype=np.float64)[(index // note_len) % len(LULLABY_NOTES)]
    t = (index % note_len) / sr
    tone = np.sin(2 * np.pi * freqs * t) * np.exp(-LULLABY_DECAY * t) * LULLABY_AMP
    return ensure_audio_contract(tone)


def fan(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    """Pink noise lowpassed at 2 kHz."""
    n = num_samples(sr, duration)
    return ensure_audio_contract(one_pole_lowpass(pink_filter(uniform_noise(n, rng)), 2000.0, sr))


def birds(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    """Silence with randomly placed, randomly pitched chirps."""
    n = num_samples(sr, duration)
    signal = np.zeros(n, dtype=np.float64)
    latest_start = max(1, n - int(0.3 * sr))
    for _ in range(BIRD_CHIRPS):
        start = int(rng.integers(0, latest_start))
        freq = BIRD_MIN_HZ + rng.random() * BIRD_SPAN_HZ
        length = min(int((0.05 + rng.random() * 0.15) * sr), n - start)
        if length <= 0:
            continue
        i = np.arange(length)
        t = i / sr
        envelope = np.sin(np.pi * i / length)
        inst_freq = freq + np.sin(2 * np.pi * BIRD_VIBRATO_HZ * t) * BIRD_VIBRATO_DEPTH_HZ
        phase = 2 * np.pi * np.cumsum(inst_freq) / sr
        signal[start : start + length] += np.sin(phase) * envelope * BIRD_AMP
    return ensure_audio_contract(signal)


def womb(sr: int, duration: float, rng: np.random.Generator) -> FloatArray:
    """Deep brown rumble with a muffled 75 BPM heartbeat."""
    n = num_samples(sr, duration)
    rumble = leaky_integrate(uniform_noise(n, rng), 0.01) * 5.0
    beat = heartbeat_envelope(n, sr, WOMB_BPM, WOMB_LOBES)
    return ensure_audio_contract(one_pole_lowpass(rumble + beat, 300.0, sr))


# =============================================================================
# PART 3: REGISTRY
# =============================================================================


@dataclass(frozen=True, slots=True)
class SoundProfile:
    key: SoundKey
    display_name: str
    generator: GeneratorFn
    default_seconds: float

    def generate(
        self,
        sample_rate: int = SAMPLE_RATE,
        seconds: float | None = None,
        rng: np.random.Generator | None = None,
    ) -> SampleBuffer:
        duration = self.default_seconds if seconds is None else seconds
        num_samples(sample_rate, duration)
        samples = self.generator(sample_rate, duration, rng or np.random.default_rng())
        return SampleBuffer(samples=samples, sample_rate=sample_rate)


def _profile(key: SoundKey, name: str, generator: GeneratorFn, seconds: float) -> SoundProfile:
    return SoundProfile(key=key, display_name=name, generator=generator, default_seconds=seconds)


SOUND_PROFILES: Mapping[str, SoundProfile] = MappingProxyType(
    {
        "white-noise": _profile("white-noise", "White Noise", white_noise, 2.0),
        "rain": _profile("rain", "Rain", rain, 2.0),
        "ocean": _profile("ocean", "Ocean", ocean, 4.0),
        "heartbeat": _profile("heartbeat", "Heartbeat", heartbeat, 2.0),
        "shush": _profile("shush", "Shush", shush, 3.0),
        "lullaby": _profile(
            "lullaby", "Lullaby", lullaby, len(LULLABY_NOTES) * LULLABY_NOTE_SECONDS
        ),
        "fan": _profile("fan", "Fan", fan, 2.0),
        "birds": _profile("birds", "Birds", birds, 6.0),
        "womb": _profile("womb", "Womb", womb, 4.0),
    }
)


def get_profile(key: str) -> SoundProfile:
    profile = SOUND_PROFILES.get(key)
    if profile is None:
        raise NotFoundError(f"Unknown sound: {key!r}. Valid: {list(SOUND_PROFILES)}")
    return profile


def list_profiles() -> tuple[SoundProfile, ...]:
    return tuple(SOUND_PROFILES.values())


def synthesize(
    sound_key: str,
    sample_rate: int = SAMPLE_RATE,
    duration_seconds: float | None = None,
    *,
    rng: np.random.Generator | None = None,
) -> SampleBuffer:
    """Render one soundscape to a fresh buffer.

    `duration_seconds` defaults to the profile's natural loop length. Raises
    NotFoundError for unknown keys and InputValidationError for a
    non-positive sample rate or duration.
    """

    profile = get_profile(sound_key)
    buffer = profile.generate(sample_rate, duration_seconds, rng)
    _LOGGER.debug(
        "Synthesized %s: %d samples at %d Hz (peak %.3f)",
        sound_key,
        len(buffer),
        sample_rate,
        buffer.peak,
    )
    return buffer
