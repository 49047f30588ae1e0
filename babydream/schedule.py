from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass

from .config import MINUTES_PER_DAY, NapConfig, minutes_of_day
from .errors import InvalidConfigError

_LOGGER = logging.getLogger("babydream.schedule")

# Wake windows stretch linearly from 0.8x to 1.2x of the even split.
RAMP_START = 0.8
RAMP_SPAN = 0.4


@dataclass(frozen=True, slots=True)
class WakeWindowSchedule:
    """Ordered wake-window lengths in minutes, one more than the naps per day."""

    windows: tuple[int, ...]
    day_window_minutes: int
    total_awake_minutes: int

    def __len__(self) -> int:
        return len(self.windows)

    def __getitem__(self, index: int) -> int:
        return self.windows[index]

    def __iter__(self) -> Iterator[int]:
        return iter(self.windows)

    @property
    def final(self) -> int:
        return self.windows[-1]


def day_window_minutes(config: NapConfig) -> int:
    """Minutes from wake time to target bedtime, wrapping past midnight."""
    minutes = minutes_of_day(config.target_bedtime) - minutes_of_day(config.wake_time)
    if minutes <= 0:
        minutes += MINUTES_PER_DAY
    return minutes


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def window_scale(index: int, num_windows: int) -> float:
    if num_windows == 1:
        return 1.0
    return RAMP_START + RAMP_SPAN * index / (num_windows - 1)


def compute_wake_windows(config: NapConfig) -> WakeWindowSchedule:
    """Split the day's awake time into `naps_per_day + 1` lengthening windows.

    Raises InvalidConfigError when the naps leave no awake time at all.
    """

    day_minutes = day_window_minutes(config)
    total_nap_minutes = config.naps_per_day * config.avg_nap_duration_minutes
    total_awake = day_minutes - total_nap_minutes
    if total_awake <= 0:
        _LOGGER.warning(
            "Nap config leaves %d awake minutes (%d naps x %d min in a %d min day)",
            total_awake,
            config.naps_per_day,
            config.avg_nap_duration_minutes,
            day_minutes,
        )
        raise InvalidConfigError(
            f"{config.naps_per_day} naps of {config.avg_nap_duration_minutes} min "
            f"do not fit in a {day_minutes} min day"
        )

    num_windows = config.naps_per_day + 1
    base_window = total_awake / num_windows
    windows = tuple(
        _round_half_up(base_window * window_scale(i, num_windows)) for i in range(num_windows)
    )
    return WakeWindowSchedule(
        windows=windows,
        day_window_minutes=day_minutes,
        total_awake_minutes=total_awake,
    )
