"""QA record ingest schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from qa_analytics.services.rollup import check_accuracy


class QARecordCreate(BaseModel):
    """One generated Q&A pair reported by the ingestion driver."""

    question: str = Field(min_length=1)
    answer: str = ""
    accuracy: str = Field(default="", max_length=64)
    sentiment: str = Field(default="", max_length=64)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int | None = Field(default=None, ge=0)
    cost: Decimal = Field(default=Decimal("0"), ge=0, max_digits=20, decimal_places=8)
    question_order: int = Field(ge=0)

    @field_validator("accuracy")
    @classmethod
    def accuracy_in_range(cls, v: str) -> str:
        return check_accuracy(v)


class QARecordResponse(BaseModel):
    """Stored QA record."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int
    session_id: str
    question: str
    answer: str
    accuracy: str
    sentiment: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost: Decimal
    question_order: int

    @field_serializer("cost")
    def serialize_cost(self, cost: Decimal) -> str:
        return f"{cost:f}"


class QARecordListResponse(BaseModel):
    """All records of a session in question_order."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    records: list[QARecordResponse]
