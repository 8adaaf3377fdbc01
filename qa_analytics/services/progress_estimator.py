"""Sliding-window progress, throughput and ETA for a single run."""

import time
from collections import deque
from collections.abc import Callable

from qa_analytics.core.exceptions import EstimatorInvalidStateError
from qa_analytics.schemas.progress_schema import ProgressSnapshot, RunStatus

Clock = Callable[[], float]


def format_duration(seconds: float) -> str:
    """Render a duration: whole seconds under a minute, else minutes + seconds."""
    whole = max(int(round(seconds)), 0)
    if whole < 60:
        return f"{whole}s"
    minutes, remainder = divmod(whole, 60)
    return f"{minutes}m {remainder}s"


def format_throughput(units_per_second: float, kilo_threshold: float = 1000.0) -> str:
    """Render throughput in base units, or in thousands above the threshold."""
    if units_per_second >= kilo_threshold:
        return f"{units_per_second / 1000:.1f}k/s"
    text = f"{units_per_second:.1f}"
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text}/s"


class ProgressEstimator:
    """State machine for one in-flight run.

    ``idle`` until the first tick, then ``running`` until completed
    (explicitly, or when the counter reaches a known total), failed or
    cancelled. The internal counter is never clamped; only the reported
    fraction is.
    """

    def __init__(
        self,
        run_id: str,
        *,
        window_seconds: float = 30.0,
        window_samples: int = 20,
        inactivity_seconds: float = 60.0,
        kilo_threshold: float = 1000.0,
        total: int | None = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.run_id = run_id
        self.status = RunStatus.IDLE
        self.units_done = 0
        self.total = total
        self.message: str | None = None
        self._window_seconds = window_seconds
        self._inactivity_seconds = inactivity_seconds
        self._kilo_threshold = kilo_threshold
        self._clock = clock
        self._samples: deque[tuple[float, int]] = deque(maxlen=window_samples)
        self._last_tick_at: float | None = None

    # --- events ---

    def tick(self, delta: int = 1, timestamp: float | None = None) -> None:
        """Record ``delta`` completed units (negative for a correction)."""
        self._ensure_open("tick")
        now = self._clock() if timestamp is None else timestamp
        if self.status is RunStatus.IDLE:
            self.status = RunStatus.RUNNING

        self.units_done += delta
        self._samples.append((now, self.units_done))
        self._last_tick_at = now
        self._prune(now)

        if self.total is not None and self.units_done >= self.total:
            self.status = RunStatus.COMPLETED

    def set_total(self, total: int | None) -> None:
        """Set or clear the expected number of units."""
        self._ensure_open("set_total")
        self.total = total
        if (
            total is not None
            and self.status is RunStatus.RUNNING
            and self.units_done >= total
        ):
            self.status = RunStatus.COMPLETED

    def complete(self) -> None:
        self._ensure_open("complete")
        self.status = RunStatus.COMPLETED

    def fail(self, reason: str = "") -> None:
        self._ensure_open("fail")
        self.status = RunStatus.FAILED
        self.message = reason or None

    def cancel(self) -> None:
        self._ensure_open("cancel")
        self.status = RunStatus.CANCELLED
        self.message = "cancelled"

    # --- derived values ---

    @property
    def fraction_complete(self) -> float | None:
        if self.status is RunStatus.COMPLETED:
            return 1.0
        if self.total is None:
            return None
        if self.total == 0:
            return 1.0
        return min(max(self.units_done / self.total, 0.0), 1.0)

    def speed(self, now: float | None = None) -> float:
        """Units per second over the sliding window; 0 when stalled or idle."""
        if self.status is not RunStatus.RUNNING or self._last_tick_at is None:
            return 0.0
        now = self._clock() if now is None else now
        if now - self._last_tick_at > self._inactivity_seconds:
            return 0.0

        cutoff = now - self._window_seconds
        inside = [sample for sample in self._samples if sample[0] >= cutoff]
        if not inside:
            return 0.0
        before = [sample for sample in self._samples if sample[0] < cutoff]
        base_at, base_units = before[-1] if before else inside[0]
        _, latest_units = inside[-1]

        elapsed = now - base_at
        if elapsed <= 0:
            return 0.0
        return max((latest_units - base_units) / elapsed, 0.0)

    def estimated_time_remaining(self, now: float | None = None) -> float | None:
        """Seconds left at the current speed, or None when it can't be known."""
        if self.total is None or self.status is not RunStatus.RUNNING:
            return None
        speed = self.speed(now)
        if speed <= 0:
            return None
        return max(self.total - self.units_done, 0) / speed

    def snapshot(self, now: float | None = None) -> ProgressSnapshot:
        now = self._clock() if now is None else now
        speed = self.speed(now)
        eta = self.estimated_time_remaining(now)
        return ProgressSnapshot(
            run_id=self.run_id,
            status=self.status,
            units_done=self.units_done,
            total=self.total,
            fraction_complete=self.fraction_complete,
            speed=speed,
            estimated_time_remaining=eta,
            speed_display=format_throughput(speed, self._kilo_threshold),
            eta_display=format_duration(eta) if eta is not None else None,
            message=self.message,
        )

    # --- internals ---

    def _ensure_open(self, event: str) -> None:
        if self.status.is_terminal:
            raise EstimatorInvalidStateError(self.run_id, self.status.value, event)

    def _prune(self, now: float) -> None:
        # Keep one sample older than the window as the rate baseline.
        cutoff = now - self._window_seconds
        while len(self._samples) >= 2 and self._samples[1][0] < cutoff:
            self._samples.popleft()
