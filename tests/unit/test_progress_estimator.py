"""Tests for the sliding-window progress estimator."""

import pytest

from qa_analytics.core.exceptions import EstimatorInvalidStateError
from qa_analytics.schemas.progress_schema import RunStatus
from qa_analytics.services.progress_estimator import (
    ProgressEstimator,
    format_duration,
    format_throughput,
)


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _estimator(**kwargs: object) -> ProgressEstimator:
    options: dict = {
        "window_seconds": 30.0,
        "window_samples": 20,
        "inactivity_seconds": 60.0,
        "clock": FakeClock(),
    }
    options.update(kwargs)
    return ProgressEstimator("run-1", **options)


class TestFormatting:
    """Human-readable duration and throughput."""

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [(0, "0s"), (42, "42s"), (42.4, "42s"), (59.6, "1m 0s"), (125, "2m 5s")],
    )
    def test_format_duration(self, seconds: float, expected: str) -> None:
        assert format_duration(seconds) == expected

    def test_negative_duration_is_zero(self) -> None:
        assert format_duration(-5) == "0s"

    @pytest.mark.parametrize(
        ("speed", "expected"),
        [(0, "0/s"), (3.0, "3/s"), (2.5, "2.5/s"), (1500, "1.5k/s"), (999.9, "999.9/s")],
    )
    def test_format_throughput(self, speed: float, expected: str) -> None:
        assert format_throughput(speed) == expected

    def test_custom_kilo_threshold(self) -> None:
        assert format_throughput(600, kilo_threshold=500) == "0.6k/s"


class TestLifecycle:
    """State transitions."""

    def test_starts_idle(self) -> None:
        estimator = _estimator()
        assert estimator.status is RunStatus.IDLE
        assert estimator.speed(0) == 0.0

    def test_first_tick_starts_running(self) -> None:
        estimator = _estimator()
        estimator.tick(1, timestamp=0)
        assert estimator.status is RunStatus.RUNNING

    def test_reaching_total_completes(self) -> None:
        estimator = _estimator(total=3)
        estimator.tick(2, timestamp=0)
        estimator.tick(1, timestamp=1)
        assert estimator.status is RunStatus.COMPLETED
        assert estimator.fraction_complete == 1.0

    def test_lowering_total_below_done_completes(self) -> None:
        estimator = _estimator(total=10)
        estimator.tick(5, timestamp=0)
        estimator.set_total(4)
        assert estimator.status is RunStatus.COMPLETED

    def test_set_total_while_idle_stays_idle(self) -> None:
        estimator = _estimator()
        estimator.set_total(0)
        assert estimator.status is RunStatus.IDLE
        assert estimator.fraction_complete == 1.0

    def test_fail_records_reason(self) -> None:
        estimator = _estimator()
        estimator.tick(timestamp=0)
        estimator.fail("provider timeout")
        assert estimator.status is RunStatus.FAILED
        assert estimator.message == "provider timeout"

    def test_cancel(self) -> None:
        estimator = _estimator()
        estimator.tick(timestamp=0)
        estimator.cancel()
        assert estimator.status is RunStatus.CANCELLED

    @pytest.mark.parametrize("finish", ["complete", "cancel", "fail"])
    def test_events_after_terminal_state_raise(self, finish: str) -> None:
        estimator = _estimator()
        estimator.tick(timestamp=0)
        getattr(estimator, finish)()
        with pytest.raises(EstimatorInvalidStateError) as exc_info:
            estimator.tick(timestamp=1)
        assert exc_info.value.event == "tick"
        assert estimator.units_done == 1


class TestDerivedValues:
    """Fraction, speed and ETA."""

    def test_worked_example(self) -> None:
        estimator = _estimator(total=10)
        estimator.tick(0, timestamp=0)
        estimator.tick(3, timestamp=1)
        estimator.tick(3, timestamp=2)

        assert estimator.fraction_complete == pytest.approx(0.6)
        assert estimator.speed(now=2) == pytest.approx(3.0)
        assert estimator.estimated_time_remaining(now=2) == pytest.approx(4 / 3)

    def test_fraction_unknown_without_total(self) -> None:
        estimator = _estimator()
        estimator.tick(5, timestamp=0)
        assert estimator.fraction_complete is None
        assert estimator.estimated_time_remaining(now=1) is None

    def test_fraction_clamped_at_zero(self) -> None:
        estimator = _estimator(total=10)
        estimator.tick(-3, timestamp=0)
        assert estimator.units_done == -3
        assert estimator.fraction_complete == 0.0

    def test_counter_not_clamped_past_total(self) -> None:
        estimator = _estimator(total=5)
        estimator.tick(8, timestamp=0)
        assert estimator.units_done == 8
        assert estimator.fraction_complete == 1.0

    def test_inactivity_zeroes_speed_and_hides_eta(self) -> None:
        estimator = _estimator(total=100, inactivity_seconds=10.0)
        estimator.tick(1, timestamp=0)
        estimator.tick(1, timestamp=1)
        assert estimator.speed(now=11) > 0
        assert estimator.speed(now=12) == 0.0
        assert estimator.estimated_time_remaining(now=12) is None

    def test_single_tick_has_no_speed(self) -> None:
        estimator = _estimator()
        estimator.tick(5, timestamp=3)
        assert estimator.speed(now=3) == 0.0

    def test_window_uses_anchor_before_cutoff(self) -> None:
        estimator = _estimator(window_seconds=10.0, window_samples=50)
        for second in range(21):
            estimator.tick(10, timestamp=second)
        assert estimator.speed(now=20) == pytest.approx(10.0)

    def test_single_tick_in_window_measures_from_anchor(self) -> None:
        estimator = _estimator(window_seconds=10.0)
        estimator.tick(10, timestamp=0)
        estimator.tick(10, timestamp=15)
        assert estimator.speed(now=16) == pytest.approx(10 / 16)

    def test_sample_count_bounds_window(self) -> None:
        estimator = _estimator(window_samples=3)
        for second in range(4):
            estimator.tick(1, timestamp=second)
        # Only (1, 2), (2, 3), (3, 4) remain.
        assert estimator.speed(now=3) == pytest.approx(1.0)

    def test_negative_progress_never_reports_negative_speed(self) -> None:
        estimator = _estimator(total=10)
        estimator.tick(5, timestamp=0)
        estimator.tick(-4, timestamp=1)
        assert estimator.speed(now=1) == 0.0
        assert estimator.estimated_time_remaining(now=1) is None

    def test_eta_never_negative(self) -> None:
        estimator = _estimator(total=10)
        estimator.tick(4, timestamp=0)
        estimator.tick(4, timestamp=1)
        estimator.set_total(None)
        estimator.set_total(9)
        assert estimator.estimated_time_remaining(now=1) >= 0


class TestSnapshot:
    def test_snapshot_uses_clock(self) -> None:
        clock = FakeClock()
        estimator = _estimator(total=10, clock=clock)
        estimator.tick(0)
        clock.now = 1
        estimator.tick(3)
        clock.now = 2
        estimator.tick(3)

        snapshot = estimator.snapshot()
        assert snapshot.run_id == "run-1"
        assert snapshot.status is RunStatus.RUNNING
        assert snapshot.units_done == 6
        assert snapshot.speed_display == "3/s"
        assert snapshot.eta_display == "1s"

    def test_completed_snapshot(self) -> None:
        estimator = _estimator()
        estimator.tick(2, timestamp=0)
        estimator.complete()
        snapshot = estimator.snapshot(now=1)
        assert snapshot.fraction_complete == 1.0
        assert snapshot.speed == 0.0
        assert snapshot.estimated_time_remaining is None
        assert snapshot.eta_display is None
