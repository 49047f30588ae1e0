from __future__ import annotations

import logging
import os
from datetime import date, datetime, time, timedelta
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator

from .audio import SAMPLE_RATE
from .errors import InputValidationError

_LOGGER = logging.getLogger("babydream.config")

SleepType = Literal["nap", "night"]

MINUTES_PER_DAY = 24 * 60

_SAMPLE_RATE_ENV = "BABYDREAM_SAMPLE_RATE"
_GAIN_ENV = "BABYDREAM_GAIN"
_AUTO_STOP_ENV = "BABYDREAM_AUTO_STOP_MINUTES"
_DATETIME: TypeAdapter[datetime] = TypeAdapter(datetime)


class NapConfig(BaseModel):
    """Per-profile nap settings read by the wake-window model and predictor."""

    naps_per_day: int = Field(default=2, ge=0)
    wake_time: time = time(7, 0)
    target_bedtime: time = time(19, 30)
    avg_nap_duration_minutes: int = Field(default=60, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


class SleepEntry(BaseModel):
    """One recorded sleep as handed over by the event store."""

    start: datetime
    end: datetime | None = None
    duration_ms: int = Field(default=0, ge=0)
    type: SleepType = "nap"

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="before")
    @classmethod
    def _derive_duration(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        if data.get("duration_ms") is not None or data.get("end") is None:
            return data
        start = _DATETIME.validate_python(data.get("start"))
        end = _DATETIME.validate_python(data.get("end"))
        derived = int((end - start).total_seconds() * 1000)
        return {**data, "duration_ms": max(derived, 0)}

    @model_validator(mode="after")
    def _check_order(self) -> "SleepEntry":
        if self.end is not None and self.end < self.start:
            raise ValueError("sleep end precedes its start")
        return self

    @property
    def finished_at(self) -> datetime:
        """End time, or start plus the recorded duration for open entries."""
        if self.end is not None:
            return self.end
        return self.start + timedelta(milliseconds=self.duration_ms)


class PlaybackSettings(BaseModel):
    sample_rate: int = Field(default=SAMPLE_RATE, gt=0)
    gain: float = Field(default=0.5, ge=0.0, le=1.0)
    auto_stop_minutes: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "PlaybackSettings":
        source = os.environ if env is None else env
        payload: dict[str, str] = {}
        for field, key in (
            ("sample_rate", _SAMPLE_RATE_ENV),
            ("gain", _GAIN_ENV),
            ("auto_stop_minutes", _AUTO_STOP_ENV),
        ):
            value = source.get(key)
            if value:
                payload[field] = value
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            _LOGGER.warning("Invalid playback settings in environment: %s", exc, exc_info=True)
            raise InputValidationError(str(exc)) from exc


def parse_nap_config(payload: Mapping[str, Any]) -> NapConfig:
    """Parse a nap settings payload, raising InputValidationError on failure."""

    try:
        return NapConfig.model_validate(payload)
    except ValidationError as exc:
        _LOGGER.warning("Failed to parse nap config: %s", exc, exc_info=True)
        raise InputValidationError(str(exc)) from exc


def parse_sleep_entries(payload: Any) -> list[SleepEntry]:
    """Parse a list of sleep entry mappings, raising InputValidationError on failure."""

    if not isinstance(payload, list):
        raise InputValidationError("sleep entries must be a list")
    try:
        return [SleepEntry.model_validate(item) for item in payload]
    except ValidationError as exc:
        _LOGGER.warning("Failed to parse sleep entries: %s", exc, exc_info=True)
        raise InputValidationError(str(exc)) from exc


def minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def at_time_on(day: date, value: time, like: datetime) -> datetime:
    """`value` on `day`, carrying the tzinfo of `like`."""
    return datetime.combine(day, value).replace(tzinfo=like.tzinfo)
