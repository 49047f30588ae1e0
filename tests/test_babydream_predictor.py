from dataclasses import FrozenInstanceError
from datetime import datetime, time, timedelta

import pytest

from babydream.config import NapConfig, SleepEntry
from babydream.errors import InvalidConfigError
from babydream.predictor import format_duration, predict, target_bedtime
from babydream.schedule import compute_wake_windows

DAY = datetime(2026, 3, 10)


def at(hour: int, minute: int = 0, day: datetime = DAY) -> datetime:
    return day.replace(hour=hour, minute=minute)


def nap(start: datetime, end: datetime) -> SleepEntry:
    return SleepEntry(start=start, end=end, type="nap")


@pytest.fixture
def config() -> NapConfig:
    return NapConfig(
        naps_per_day=2,
        wake_time=time(7, 0),
        target_bedtime=time(20, 0),
        avg_nap_duration_minutes=90,
    )


def test_first_window_counts_from_wake_time(config: NapConfig) -> None:
    snapshot = predict(config, [], now=at(9))

    assert snapshot.minutes_awake == 120
    assert snapshot.last_wake_time == at(7)
    assert snapshot.next_nap_time == at(7) + timedelta(minutes=160)
    assert snapshot.next_nap_status == "upcoming"
    assert snapshot.next_nap_label == "in 40m"
    assert snapshot.current_wake_window_minutes == 160
    assert snapshot.naps_done == 0
    assert snapshot.bedtime_time == at(20)
    assert snapshot.bedtime_status == "target"
    assert not snapshot.is_currently_asleep


def test_overdue_nap_still_reports_time(config: NapConfig) -> None:
    snapshot = predict(config, [], now=at(10, 55))
    assert snapshot.next_nap_time == at(9, 40)
    assert snapshot.next_nap_status == "overdue"
    assert snapshot.next_nap_label == "overdue by 1h 15m"


def test_wake_time_in_future_is_clamped_to_now(config: NapConfig) -> None:
    snapshot = predict(config, [], now=at(6, 30))
    assert snapshot.minutes_awake == 0
    assert snapshot.last_wake_time == at(6, 30)
    assert snapshot.next_nap_time == at(6, 30) + timedelta(minutes=160)


@pytest.mark.parametrize("marker", [True, datetime(2026, 3, 10, 13, 0)])
def test_sleep_in_progress_suppresses_next_nap(config: NapConfig, marker: object) -> None:
    history = [nap(at(9, 40), at(11, 0))]
    snapshot = predict(config, history, in_progress=marker, now=at(13, 30))  # type: ignore[arg-type]

    assert snapshot.is_currently_asleep
    assert snapshot.next_nap_time is None
    assert snapshot.next_nap_status == "sleeping"
    assert snapshot.bedtime_time == at(20)
    assert snapshot.bedtime_status == "target"
    assert snapshot.naps_done == 1


def test_one_nap_done_simulates_rest_of_day(config: NapConfig) -> None:
    history = [nap(at(9, 40), at(11, 10))]
    snapshot = predict(config, history, now=at(12))

    assert snapshot.naps_done == 1
    assert snapshot.last_wake_time == at(11, 10)
    assert snapshot.minutes_awake == 50
    assert snapshot.current_wake_window_minutes == 200
    assert snapshot.next_nap_time == at(14, 30)
    # 11:10 + (200 + 90) -> 16:00, + 240 final window
    assert snapshot.bedtime_time == at(20)
    assert snapshot.bedtime_status == "estimated"


def test_all_naps_done_estimates_bedtime(config: NapConfig) -> None:
    history = [nap(at(14, 30), at(15, 30)), nap(at(9, 40), at(11, 10))]
    snapshot = predict(config, history, now=at(17))

    assert snapshot.naps_done == 2
    assert snapshot.next_nap_time is None
    assert snapshot.next_nap_status == "none"
    assert snapshot.next_nap_label == "all naps done"
    assert snapshot.bedtime_time == at(19, 30)
    assert snapshot.bedtime_status == "estimated"


def test_bedtime_due_once_final_window_passes(config: NapConfig) -> None:
    history = [nap(at(9, 40), at(11, 10)), nap(at(14, 30), at(15, 30))]
    snapshot = predict(config, history, now=at(19, 45))
    assert snapshot.bedtime_status == "due"
    assert snapshot.bedtime_label == "due now"


def test_extra_naps_clamp_to_schedule(config: NapConfig) -> None:
    history = [
        nap(at(9), at(10)),
        nap(at(12), at(13)),
        nap(at(15), at(15, 30)),
    ]
    snapshot = predict(config, history, now=at(16))

    assert snapshot.naps_recorded == 3
    assert snapshot.naps_done == 2
    assert snapshot.current_wake_window_minutes == 240
    assert snapshot.next_nap_time is None
    assert snapshot.bedtime_time == at(19, 30)


def test_no_nap_schedule_counts_bedtime_from_night_wake(config: NapConfig) -> None:
    no_naps = config.model_copy(update={"naps_per_day": 0})
    night = SleepEntry(start=at(20, 0, DAY - timedelta(days=1)), end=at(6, 30), type="night")
    snapshot = predict(no_naps, [night], now=at(12))

    assert len(snapshot.wake_window_schedule) == 1
    assert snapshot.next_nap_time is None
    # 06:30 + one 780 min window
    assert snapshot.bedtime_time == at(19, 30)
    assert snapshot.bedtime_status == "estimated"
    assert snapshot.last_wake_time == at(6, 30)
    assert snapshot.minutes_awake == 330


def test_no_nap_schedule_bedtime_due_after_night_window(config: NapConfig) -> None:
    no_naps = config.model_copy(update={"naps_per_day": 0})
    night = SleepEntry(start=at(20, 0, DAY - timedelta(days=1)), end=at(6, 30), type="night")
    snapshot = predict(no_naps, [night], now=at(19, 45))
    assert snapshot.bedtime_status == "due"
    assert snapshot.bedtime_label == "due now"


def test_no_nap_schedule_ignores_recorded_naps_for_bedtime(config: NapConfig) -> None:
    no_naps = config.model_copy(update={"naps_per_day": 0})
    snapshot = predict(no_naps, [nap(at(13), at(14))], now=at(15))

    assert snapshot.naps_recorded == 1
    assert snapshot.naps_done == 0
    assert snapshot.next_nap_status == "none"
    assert snapshot.bedtime_time == at(20)
    assert snapshot.bedtime_status == "target"


def test_naps_from_other_days_are_ignored(config: NapConfig) -> None:
    yesterday = DAY - timedelta(days=1)
    history = [nap(at(10, 0, yesterday), at(11, 0, yesterday))]
    snapshot = predict(config, history, now=at(9))
    assert snapshot.naps_done == 0
    assert snapshot.last_wake_time == at(7)


def test_open_nap_entry_uses_recorded_duration(config: NapConfig) -> None:
    entry = SleepEntry(start=at(14, 30), duration_ms=60 * 60 * 1000, type="nap")
    history = [nap(at(9, 40), at(11, 10)), entry]
    snapshot = predict(config, history, now=at(16))
    assert snapshot.bedtime_time == at(19, 30)


def test_open_entry_sets_last_wake_time(config: NapConfig) -> None:
    three_naps = config.model_copy(update={"naps_per_day": 3})
    entry = SleepEntry(start=at(13), duration_ms=60 * 60 * 1000, type="nap")
    snapshot = predict(three_naps, [nap(at(9), at(10)), entry], now=at(14, 30))

    assert snapshot.last_wake_time == at(14)
    assert snapshot.minutes_awake == 30
    # windows for 3 naps of 90 min: 102, 119, 136, 153
    assert snapshot.current_wake_window_minutes == 136
    assert snapshot.next_nap_time == at(16, 16)
    assert snapshot.next_nap_status == "upcoming"


def test_invalid_config_is_reported(config: NapConfig) -> None:
    crowded = config.model_copy(update={"avg_nap_duration_minutes": 400})
    with pytest.raises(InvalidConfigError):
        predict(crowded, [], now=at(9))


def test_mismatched_schedule_is_rejected(config: NapConfig) -> None:
    other = compute_wake_windows(config.model_copy(update={"naps_per_day": 3}))
    with pytest.raises(InvalidConfigError):
        predict(config, [], now=at(9), schedule=other)


def test_snapshot_is_immutable(config: NapConfig) -> None:
    snapshot = predict(config, [], now=at(9))
    with pytest.raises(FrozenInstanceError):
        snapshot.minutes_awake = 5  # type: ignore[misc]


def test_target_bedtime_rolls_past_midnight(config: NapConfig) -> None:
    late = config.model_copy(update={"target_bedtime": time(0, 30)})
    assert target_bedtime(late, at(12)) == at(0, 30, DAY + timedelta(days=1))


@pytest.mark.parametrize(
    ("minutes", "expected"),
    [(0, "0m"), (12, "12m"), (60, "1h 0m"), (65, "1h 5m"), (-3, "0m")],
)
def test_format_duration(minutes: int, expected: str) -> None:
    assert format_duration(timedelta(minutes=minutes)) == expected
