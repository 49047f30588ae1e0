from datetime import time

import pytest

from babydream.config import NapConfig
from babydream.errors import InvalidConfigError
from babydream.schedule import compute_wake_windows, day_window_minutes, window_scale


def _config(**overrides: object) -> NapConfig:
    values: dict[str, object] = {
        "naps_per_day": 2,
        "wake_time": time(7, 0),
        "target_bedtime": time(20, 0),
        "avg_nap_duration_minutes": 90,
    }
    values.update(overrides)
    return NapConfig.model_validate(values)


def test_two_naps_fill_the_day() -> None:
    schedule = compute_wake_windows(_config())

    assert len(schedule) == 3
    assert schedule.windows == (160, 200, 240)
    assert list(schedule) == sorted(schedule)
    assert sum(schedule) + 2 * 90 == 13 * 60
    assert schedule.day_window_minutes == 780
    assert schedule.total_awake_minutes == 600
    assert schedule.final == 240


def test_no_naps_gives_one_full_day_window() -> None:
    schedule = compute_wake_windows(_config(naps_per_day=0))
    assert schedule.windows == (780,)


def test_bedtime_after_midnight_wraps() -> None:
    config = _config(target_bedtime=time(0, 30), naps_per_day=0)
    assert day_window_minutes(config) == 17 * 60 + 30
    assert compute_wake_windows(config).windows == (1050,)


def test_equal_wake_and_bedtime_means_full_day() -> None:
    config = _config(target_bedtime=time(7, 0), naps_per_day=0)
    assert day_window_minutes(config) == 1440


@pytest.mark.parametrize("naps", [1, 3, 4, 5])
def test_windows_never_shrink(naps: int) -> None:
    schedule = compute_wake_windows(_config(naps_per_day=naps, avg_nap_duration_minutes=45))
    assert len(schedule) == naps + 1
    assert all(window >= 0 for window in schedule)
    assert all(a <= b for a, b in zip(schedule, list(schedule)[1:]))


def test_scale_ramp_endpoints() -> None:
    assert window_scale(0, 1) == 1.0
    assert window_scale(0, 4) == pytest.approx(0.8)
    assert window_scale(3, 4) == pytest.approx(1.2)


def test_windows_round_to_whole_minutes() -> None:
    # 1 nap of 60 in 8h: 420 awake, base 210 -> 168 and 252
    schedule = compute_wake_windows(
        _config(naps_per_day=1, target_bedtime=time(15, 0), avg_nap_duration_minutes=60)
    )
    assert schedule.windows == (168, 252)
    # 3 naps of 30 in 12h: 630 awake, base 157.5 -> 126, 147, 168, 189
    schedule = compute_wake_windows(
        _config(naps_per_day=3, target_bedtime=time(19, 0), avg_nap_duration_minutes=30)
    )
    assert schedule.windows == (126, 147, 168, 189)


@pytest.mark.parametrize(("naps", "minutes"), [(2, 390), (2, 500), (4, 200)])
def test_naps_that_fill_the_day_are_rejected(naps: int, minutes: int) -> None:
    with pytest.raises(InvalidConfigError):
        compute_wake_windows(_config(naps_per_day=naps, avg_nap_duration_minutes=minutes))
