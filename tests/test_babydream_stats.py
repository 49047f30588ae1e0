from datetime import datetime, timedelta

import pytest

from babydream.config import SleepEntry
from babydream.errors import InputValidationError
from babydream.stats import classify_sleep_type, summarize_sleep

NOW = datetime(2026, 3, 10, 12, 0)


def _entry(start: datetime, minutes: int, kind: str) -> SleepEntry:
    return SleepEntry.model_validate(
        {"start": start, "end": start + timedelta(minutes=minutes), "type": kind}
    )


@pytest.mark.parametrize(
    ("hour", "expected"),
    [(19, "night"), (23, "night"), (0, "night"), (6, "night"), (7, "nap"), (18, "nap")],
)
def test_classify_sleep_type(hour: int, expected: str) -> None:
    assert classify_sleep_type(datetime(2026, 3, 10, hour, 30)) == expected


def test_summary_averages_per_day() -> None:
    entries = [
        _entry(datetime(2026, 3, 9, 19, 30), 600, "night"),
        _entry(datetime(2026, 3, 9, 10, 0), 90, "nap"),
        _entry(datetime(2026, 3, 10, 9, 0), 60, "nap"),
        _entry(datetime(2026, 2, 1, 10, 0), 999, "nap"),
    ]
    summary = summarize_sleep(entries, days=2, now=NOW)

    assert summary.avg_sleep_ms_per_day == pytest.approx((600 + 90 + 60) * 60_000 / 2)
    assert summary.avg_naps_per_day == pytest.approx(1.0)
    assert summary.avg_night_sleeps_per_day == pytest.approx(0.5)
    assert summary.longest_sleep_ms == 600 * 60_000
    assert summary.total_sleep_ms_today == 60 * 60_000
    assert summary.awake_since_ms == 120 * 60_000


def test_summary_handles_empty_history() -> None:
    summary = summarize_sleep([], days=7, now=NOW)
    assert summary.avg_sleep_ms_per_day == 0
    assert summary.longest_sleep_ms is None
    assert summary.awake_since_ms is None


def test_summary_rejects_non_positive_period() -> None:
    with pytest.raises(InputValidationError):
        summarize_sleep([], days=0, now=NOW)
