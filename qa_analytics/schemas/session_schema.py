"""Generation session API schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from qa_analytics.schemas.qa_schema import QARecordCreate

SessionKind = Literal["question", "answer"]


class SessionCreateRequest(BaseModel):
    """Start a new generation session."""

    id: str | None = Field(
        default=None,
        min_length=1,
        max_length=64,
        description="Caller-supplied session id; generated when omitted",
    )
    name: str = Field(min_length=1, max_length=255)
    type: SessionKind
    timestamp: str = Field(
        min_length=1,
        max_length=64,
        description="Caller-formatted creation time (ISO 8601 recommended)",
    )
    model: str = Field(min_length=1, max_length=255)
    question_provider: str | None = None
    question_model: str | None = None
    answer_provider: str | None = None
    answer_model: str | None = None
    blog_content: str | None = None
    blog_url: str | None = Field(default=None, max_length=2048)


class SessionStatisticsResponse(BaseModel):
    """Rollup for one session."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    total_questions: int = 0
    avg_accuracy: str = ""
    total_cost: str = "0.00"


class SessionResponse(BaseModel):
    """Generation session with its rollup."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    name: str
    type: SessionKind
    timestamp: str
    model: str
    question_provider: str | None = None
    question_model: str | None = None
    answer_provider: str | None = None
    answer_model: str | None = None
    blog_content: str | None = None
    blog_url: str | None = None
    total_input_tokens: int
    total_output_tokens: int
    created_at: datetime
    statistics: SessionStatisticsResponse


class SessionListResponse(BaseModel):
    """Sessions of one kind for the current user."""

    model_config = ConfigDict(frozen=True)

    sessions: list[SessionResponse]
    total_count: int


class SessionKindStatsResponse(BaseModel):
    """Aggregate numbers across a user's sessions of one kind."""

    model_config = ConfigDict(frozen=True)

    total_sessions: int
    total_questions: int
    total_cost: str
    average_questions_per_session: str


class StatisticsCheckResponse(BaseModel):
    """Result of replaying a session's records against its stored rollup."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    consistent: bool
    stored: SessionStatisticsResponse | None
    replayed: SessionStatisticsResponse


class BulkSessionRecord(SessionCreateRequest):
    """A finished session saved in one go, records included."""

    qa_data: list[QARecordCreate] = Field(default_factory=list)
    statistics: SessionStatisticsResponse | None = Field(
        default=None,
        description="Rollup computed by the caller; checked against the stored one",
    )


class BulkSaveRequest(BaseModel):
    sessions: list[BulkSessionRecord] = Field(min_length=1, max_length=100)


class BulkSaveResult(BaseModel):
    """Outcome for one session of a bulk save."""

    model_config = ConfigDict(frozen=True)

    id: str | None
    success: bool
    code: str | None = None
    error: str | None = None
    statistics_matched: bool | None = None


class BulkSaveSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    successful: int
    failed: int


class BulkSaveResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    results: list[BulkSaveResult]
    summary: BulkSaveSummary
