"""In-process registry of live runs: estimator + broadcast channel per run."""

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from qa_analytics.core.exceptions import (
    AuthorizationError,
    EstimatorInvalidStateError,
    RunNotFoundError,
)
from qa_analytics.core.settings import ProgressConfig
from qa_analytics.schemas.progress_schema import ProgressSnapshot
from qa_analytics.services.broadcast import BroadcastChannel, Subscription
from qa_analytics.services.progress_estimator import Clock, ProgressEstimator

logger = structlog.get_logger()


@dataclass
class TrackedRun:
    """A run's estimator, its observers and who may drive it."""

    estimator: ProgressEstimator
    channel: BroadcastChannel[ProgressSnapshot]
    owner_id: str | None = None
    finished_at: float | None = None


class RunTracker:
    """Drives progress estimators from driver events and publishes snapshots.

    Events for runs in a terminal state are logged and ignored; they never
    raise to the caller and never publish. Finished runs stay queryable for
    the configured retention period and are then forgotten.
    """

    def __init__(self, config: ProgressConfig, clock: Clock = time.monotonic) -> None:
        self._config = config
        self._clock = clock
        self._runs: dict[str, TrackedRun] = {}
        self._finished: deque[tuple[float, str]] = deque()

    def start_run(
        self, run_id: str, total: int | None = None, owner_id: str | None = None
    ) -> ProgressSnapshot:
        """Register a run; re-registering a finished run starts it afresh."""
        self.evict_finished()
        existing = self._runs.get(run_id)
        if existing is not None and not existing.estimator.status.is_terminal:
            self._check_owner(existing, owner_id)
            return existing.estimator.snapshot()

        estimator = ProgressEstimator(
            run_id,
            window_seconds=self._config.window_seconds,
            window_samples=self._config.window_samples,
            inactivity_seconds=self._config.inactivity_seconds,
            kilo_threshold=self._config.kilo_threshold,
            total=total,
            clock=self._clock,
        )
        self._runs[run_id] = TrackedRun(
            estimator=estimator, channel=BroadcastChannel(), owner_id=owner_id
        )
        logger.info("Run registered", run_id=run_id, total=total)
        return estimator.snapshot()

    def tick_progress(
        self, run_id: str, delta: int = 1, owner_id: str | None = None
    ) -> ProgressSnapshot:
        run = self._get(run_id, owner_id)
        return self._apply(run, "tick", lambda: run.estimator.tick(delta))

    def set_total(
        self, run_id: str, total: int | None, owner_id: str | None = None
    ) -> ProgressSnapshot:
        run = self._get(run_id, owner_id)
        return self._apply(run, "set_total", lambda: run.estimator.set_total(total))

    def complete_run(self, run_id: str, owner_id: str | None = None) -> ProgressSnapshot:
        run = self._get(run_id, owner_id)
        return self._apply(run, "complete", run.estimator.complete)

    def fail_run(
        self, run_id: str, reason: str = "", owner_id: str | None = None
    ) -> ProgressSnapshot:
        run = self._get(run_id, owner_id)
        return self._apply(run, "fail", lambda: run.estimator.fail(reason))

    def cancel_run(self, run_id: str, owner_id: str | None = None) -> ProgressSnapshot:
        run = self._get(run_id, owner_id)
        return self._apply(run, "cancel", run.estimator.cancel)

    def snapshot(self, run_id: str, owner_id: str | None = None) -> ProgressSnapshot:
        """Current progress, recomputed now so a stalled run reports zero speed."""
        return self._get(run_id, owner_id).estimator.snapshot()

    def subscribe_progress(
        self, run_id: str, owner_id: str | None = None
    ) -> Subscription[ProgressSnapshot]:
        """Stream every snapshot published for the run from now on."""
        return self._get(run_id, owner_id).channel.subscribe()

    def discard(self, run_id: str) -> None:
        """Forget a run and end its observer streams."""
        run = self._runs.pop(run_id, None)
        if run is not None:
            run.channel.close()

    def __contains__(self, run_id: str) -> bool:
        return run_id in self._runs

    def evict_finished(self) -> int:
        """Forget runs that finished longer ago than the retention period."""
        cutoff = self._clock() - self._config.retention_seconds
        evicted = 0
        while self._finished and self._finished[0][0] <= cutoff:
            finished_at, run_id = self._finished.popleft()
            run = self._runs.get(run_id)
            # A restarted run has a new record; its old finish entry is stale.
            if run is not None and run.finished_at == finished_at:
                self.discard(run_id)
                evicted += 1
        if evicted:
            logger.info("Finished runs evicted", count=evicted)
        return evicted

    def _get(self, run_id: str, owner_id: str | None) -> TrackedRun:
        self.evict_finished()
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFoundError
        self._check_owner(run, owner_id)
        return run

    @staticmethod
    def _check_owner(run: TrackedRun, owner_id: str | None) -> None:
        if owner_id is not None and run.owner_id not in (None, owner_id):
            raise AuthorizationError(message="Not authorized to access this run")

    def _apply(
        self, run: TrackedRun, event: str, action: Callable[[], None]
    ) -> ProgressSnapshot:
        try:
            action()
        except EstimatorInvalidStateError as exc:
            logger.warning(
                "Ignoring run event",
                run_id=exc.run_id,
                status=exc.status,
                run_event=exc.event,
            )
            return run.estimator.snapshot()

        snapshot = run.estimator.snapshot()
        run.channel.publish(snapshot)
        if snapshot.status.is_terminal:
            logger.info(
                "Run finished",
                run_id=snapshot.run_id,
                status=snapshot.status.value,
                units_done=snapshot.units_done,
            )
            run.channel.close()
            run.finished_at = self._clock()
            self._finished.append((run.finished_at, snapshot.run_id))
        return snapshot
