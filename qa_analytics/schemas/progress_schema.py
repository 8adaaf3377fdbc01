"""Run progress schemas."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class RunStatus(StrEnum):
    """Lifecycle of a tracked run."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED)


class ProgressSnapshot(BaseModel):
    """Point-in-time progress of a run, as published to observers."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    status: RunStatus
    units_done: int
    total: int | None = None
    fraction_complete: float | None = None
    speed: float = 0.0
    estimated_time_remaining: float | None = None
    speed_display: str = "0/s"
    eta_display: str | None = None
    message: str | None = None


class TickRequest(BaseModel):
    """Units of work completed since the previous tick; negative for corrections."""

    units: int = 1


class SetTotalRequest(BaseModel):
    """Known total for a run; null when it becomes unknown."""

    total: int | None = Field(default=None, ge=0)


class FailRunRequest(BaseModel):
    """Reason a run failed."""

    reason: str = Field(default="", max_length=500)


class StartRunRequest(BaseModel):
    """Register a run; total may be unknown at start."""

    total: int | None = Field(default=None, ge=0)
