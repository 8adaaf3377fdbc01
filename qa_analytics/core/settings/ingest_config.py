"""QA record ingest configuration."""

from typing import Literal

from pydantic import BaseModel


class IngestConfig(BaseModel, frozen=True):
    """Ingest validation and retry settings."""

    token_policy: Literal["strict", "derive"]
    max_attempts: int
    backoff_initial_seconds: float
    backoff_max_seconds: float
