from __future__ import annotations

from .audio import SAMPLE_RATE, SampleBuffer, write_wav
from .config import NapConfig, PlaybackSettings, SleepEntry, parse_nap_config, parse_sleep_entries
from .errors import (
    BabyDreamError,
    InputValidationError,
    InvalidConfigError,
    NotFoundError,
    PlaybackError,
)
from .logging_utils import configure_logging as _configure_logging
from .playback import (
    PlaybackBackend,
    PlaybackManager,
    PlaybackSession,
    resolve_backend,
    silent_backend,
)
from .predictor import PredictionSnapshot, format_duration, predict
from .schedule import WakeWindowSchedule, compute_wake_windows
from .stats import SleepSummary, classify_sleep_type, summarize_sleep
from .synth import SOUND_PROFILES, SoundProfile, get_profile, list_profiles, synthesize

__all__ = [
    "SAMPLE_RATE",
    "SOUND_PROFILES",
    "BabyDreamError",
    "InputValidationError",
    "InvalidConfigError",
    "NapConfig",
    "NotFoundError",
    "PlaybackBackend",
    "PlaybackError",
    "PlaybackManager",
    "PlaybackSession",
    "PlaybackSettings",
    "PredictionSnapshot",
    "SampleBuffer",
    "SleepEntry",
    "SleepSummary",
    "SoundProfile",
    "WakeWindowSchedule",
    "classify_sleep_type",
    "compute_wake_windows",
    "format_duration",
    "get_profile",
    "list_profiles",
    "parse_nap_config",
    "parse_sleep_entries",
    "predict",
    "resolve_backend",
    "silent_backend",
    "summarize_sleep",
    "synthesize",
    "write_wav",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
