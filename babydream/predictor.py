"""Forecasts the next nap and bedtime from the wake-window schedule."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from .config import NapConfig, SleepEntry, at_time_on
from .errors import InvalidConfigError
from .schedule import WakeWindowSchedule, compute_wake_windows

_LOGGER = logging.getLogger("babydream.predictor")

NapStatus = Literal["upcoming", "overdue", "none", "sleeping"]
BedtimeStatus = Literal["target", "estimated", "due"]


@dataclass(frozen=True, slots=True)
class PredictionSnapshot:
    next_nap_time: datetime | None
    next_nap_status: NapStatus
    next_nap_label: str
    bedtime_time: datetime
    bedtime_status: BedtimeStatus
    bedtime_label: str
    naps_done: int  # clamped to naps_per_day
    naps_recorded: int
    naps_per_day: int
    wake_window_schedule: WakeWindowSchedule
    is_currently_asleep: bool
    current_wake_window_minutes: int
    minutes_awake: int
    last_wake_time: datetime | None


def format_duration(delta: timedelta) -> str:
    """Whole minutes as '1h 5m' or '12m'."""
    total_minutes = max(int(delta.total_seconds() // 60), 0)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def target_bedtime(config: NapConfig, now: datetime) -> datetime:
    """Today's target bedtime, rolled to tomorrow when it falls before wake time."""
    today = now.date()
    bedtime = at_time_on(today, config.target_bedtime, now)
    if bedtime <= at_time_on(today, config.wake_time, now):
        bedtime += timedelta(days=1)
    return bedtime


def _ended_today(entries: Iterable[SleepEntry], now: datetime) -> list[datetime]:
    finished = (entry.finished_at for entry in entries)
    return [end for end in finished if end <= now and end.date() == now.date()]


def last_wake_time(config: NapConfig, entries: Iterable[SleepEntry], now: datetime) -> datetime:
    """Latest sleep end today, else the configured wake time (never after now).

    Open entries count as finished at start plus their recorded duration.
    """
    ended = _ended_today(entries, now)
    if ended:
        return max(ended)
    return min(at_time_on(now.date(), config.wake_time, now), now)


def todays_naps(entries: Iterable[SleepEntry], now: datetime) -> list[SleepEntry]:
    naps = [entry for entry in entries if entry.type == "nap" and entry.start.date() == now.date()]
    return sorted(naps, key=lambda entry: entry.start)


def _after_final_window(
    woke: datetime, schedule: WakeWindowSchedule, now: datetime
) -> tuple[datetime, BedtimeStatus, str]:
    bedtime = woke + timedelta(minutes=schedule.final)
    if bedtime <= now:
        return bedtime, "due", "due now"
    return bedtime, "estimated", "estimated"


def _predict_bedtime(
    config: NapConfig,
    schedule: WakeWindowSchedule,
    naps: Sequence[SleepEntry],
    records: Sequence[SleepEntry],
    now: datetime,
) -> tuple[datetime, BedtimeStatus, str]:
    if config.naps_per_day == 0:
        # Only a finished night sleep moves bedtime off the target; naps never do.
        nights = _ended_today((entry for entry in records if entry.type == "night"), now)
        if not nights:
            return target_bedtime(config, now), "target", "target"
        return _after_final_window(max(nights), schedule, now)

    if not naps:
        return target_bedtime(config, now), "target", "target"

    last_nap_end = naps[-1].finished_at
    if len(naps) >= config.naps_per_day:
        return _after_final_window(last_nap_end, schedule, now)

    cursor = last_nap_end
    for index in range(len(naps), config.naps_per_day):
        cursor += timedelta(minutes=schedule[index] + config.avg_nap_duration_minutes)
    cursor += timedelta(minutes=schedule.final)
    return cursor, "estimated", "estimated"


def predict(
    config: NapConfig,
    entries: Iterable[SleepEntry],
    in_progress: datetime | bool | None = None,
    now: datetime | None = None,
    *,
    schedule: WakeWindowSchedule | None = None,
) -> PredictionSnapshot:
    """Build a fresh forecast snapshot.

    `entries` are the caller's sleep records for today; records from other
    days are ignored when counting naps. `in_progress` is the start of a
    sleep that is still running (or simply True). An invalid config raises
    InvalidConfigError; missing history never does.
    """

    if now is None:
        now = datetime.now()
    if schedule is None:
        schedule = compute_wake_windows(config)
    if len(schedule) != config.naps_per_day + 1:
        raise InvalidConfigError(
            f"schedule has {len(schedule)} windows for {config.naps_per_day} naps per day"
        )

    records = list(entries)
    naps = todays_naps(records, now)
    naps_recorded = len(naps)
    naps_done = min(naps_recorded, config.naps_per_day)
    current_window = schedule[min(naps_recorded, len(schedule) - 1)]

    if in_progress:
        return PredictionSnapshot(
            next_nap_time=None,
            next_nap_status="sleeping",
            next_nap_label="sleeping",
            bedtime_time=target_bedtime(config, now),
            bedtime_status="target",
            bedtime_label="target",
            naps_done=naps_done,
            naps_recorded=naps_recorded,
            naps_per_day=config.naps_per_day,
            wake_window_schedule=schedule,
            is_currently_asleep=True,
            current_wake_window_minutes=current_window,
            minutes_awake=0,
            last_wake_time=None,
        )

    wake = last_wake_time(config, records, now)
    minutes_awake = max(int((now - wake).total_seconds() // 60), 0)

    next_nap: datetime | None
    nap_status: NapStatus
    if naps_recorded >= config.naps_per_day:
        next_nap, nap_status, nap_label = None, "none", "all naps done"
    else:
        next_nap = wake + timedelta(minutes=current_window)
        if next_nap >= now:
            nap_status, nap_label = "upcoming", f"in {format_duration(next_nap - now)}"
        else:
            nap_status, nap_label = "overdue", f"overdue by {format_duration(now - next_nap)}"

    bedtime, bedtime_status, bedtime_label = _predict_bedtime(
        config, schedule, naps, records, now
    )
    _LOGGER.debug(
        "Prediction at %s: %d/%d naps, awake %d min, next nap %s (%s), bedtime %s (%s)",
        now.isoformat(timespec="minutes"),
        naps_done,
        config.naps_per_day,
        minutes_awake,
        next_nap.isoformat(timespec="minutes") if next_nap else "-",
        nap_status,
        bedtime.isoformat(timespec="minutes"),
        bedtime_status,
    )
    return PredictionSnapshot(
        next_nap_time=next_nap,
        next_nap_status=nap_status,
        next_nap_label=nap_label,
        bedtime_time=bedtime,
        bedtime_status=bedtime_status,
        bedtime_label=bedtime_label,
        naps_done=naps_done,
        naps_recorded=naps_recorded,
        naps_per_day=config.naps_per_day,
        wake_window_schedule=schedule,
        is_currently_asleep=False,
        current_wake_window_minutes=current_window,
        minutes_awake=minutes_awake,
        last_wake_time=wake,
    )
