"""Question/answer generation session model."""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from qa_analytics.core.database import Base

SESSION_KINDS = ("question", "answer")


class GenerationSession(Base):
    """One question-generation or answer-generation run over a piece of content."""

    __tablename__ = "sessions"
    __table_args__ = (
        CheckConstraint("type IN ('question', 'answer')", name="ck_sessions_type"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    timestamp: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    model: Mapped[str] = mapped_column(String(255), nullable=False)
    question_provider: Mapped[str | None] = mapped_column(String(100), nullable=True)
    question_model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    answer_provider: Mapped[str | None] = mapped_column(String(100), nullable=True)
    answer_model: Mapped[str | None] = mapped_column(String(255), nullable=True)
    blog_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    blog_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    total_input_tokens: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    total_output_tokens: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
