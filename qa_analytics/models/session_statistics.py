"""Per-session rollup model."""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from qa_analytics.core.database import Base


class SessionStatistics(Base):
    """Cached rollup of a session's QA records; rebuildable by replay.

    ``accuracy_count`` and ``accuracy_sum`` hold the exact accumulator
    behind ``avg_accuracy`` so updates stay O(1) without re-reading records.
    """

    __tablename__ = "session_statistics"

    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True
    )
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_accuracy: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    total_cost: Mapped[str] = mapped_column(String(64), nullable=False, default="0")
    accuracy_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accuracy_sum: Mapped[str] = mapped_column(String(64), nullable=False, default="0")
