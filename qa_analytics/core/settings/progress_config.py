"""Progress estimator configuration."""

from pydantic import BaseModel


class ProgressConfig(BaseModel, frozen=True):
    """Sliding-window and display settings for run progress."""

    window_seconds: float
    window_samples: int
    inactivity_seconds: float
    kilo_threshold: float
    stream_heartbeat_seconds: float = 5.0
    retention_seconds: float = 300.0
