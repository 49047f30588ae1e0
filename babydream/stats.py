from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from .config import SleepEntry, SleepType
from .errors import InputValidationError

NIGHT_STARTS_AT = 19
NIGHT_ENDS_AT = 7


def classify_sleep_type(start: datetime) -> SleepType:
    """Sleeps starting 19:00-06:59 count as night sleep, the rest as naps."""
    if start.hour >= NIGHT_STARTS_AT or start.hour < NIGHT_ENDS_AT:
        return "night"
    return "nap"


@dataclass(frozen=True, slots=True)
class SleepSummary:
    days: int
    avg_sleep_ms_per_day: float
    avg_naps_per_day: float
    longest_sleep_ms: int | None
    avg_night_sleeps_per_day: float
    total_sleep_ms_today: int
    awake_since_ms: int | None


def period_start(now: datetime, days: int) -> datetime:
    day = (now - timedelta(days=days)).date()
    return datetime.combine(day, time()).replace(tzinfo=now.tzinfo)


def summarize_sleep(
    entries: Iterable[SleepEntry],
    *,
    days: int,
    now: datetime | None = None,
) -> SleepSummary:
    if days <= 0:
        raise InputValidationError(f"days must be positive, got {days}")
    if now is None:
        now = datetime.now()

    records = list(entries)
    since = period_start(now, days)
    in_period = [entry for entry in records if entry.start >= since]
    total_ms = sum(entry.duration_ms for entry in in_period)
    naps = sum(1 for entry in in_period if entry.type == "nap")
    nights = sum(1 for entry in in_period if entry.type == "night")
    longest = max((entry.duration_ms for entry in in_period), default=0)

    today_ms = sum(entry.duration_ms for entry in records if entry.start.date() == now.date())
    ended = [entry.end for entry in records if entry.end is not None and entry.end <= now]
    awake_since = int((now - max(ended)).total_seconds() * 1000) if ended else None

    return SleepSummary(
        days=days,
        avg_sleep_ms_per_day=total_ms / days,
        avg_naps_per_day=naps / days,
        longest_sleep_ms=longest or None,
        avg_night_sleeps_per_day=nights / days,
        total_sleep_ms_today=today_ms,
        awake_since_ms=awake_since,
    )
