"""Generated question/answer record model."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from qa_analytics.core.database import Base
from qa_analytics.models.types import ExactDecimal


class QARecord(Base):
    """One generated Q&A pair with its measured quality and cost."""

    __tablename__ = "qa_data"
    __table_args__ = (
        UniqueConstraint(
            "session_id", "question_order", name="uq_qa_data_session_id_question_order"
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False, default="")
    accuracy: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    sentiment: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost: Mapped[Decimal] = mapped_column(
        ExactDecimal(20, 8), nullable=False, default=Decimal("0")
    )
    question_order: Mapped[int] = mapped_column(Integer, nullable=False)
