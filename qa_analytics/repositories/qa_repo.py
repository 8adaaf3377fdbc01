"""QA record and session statistics repository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from qa_analytics.models.qa_record import QARecord
from qa_analytics.models.session_statistics import SessionStatistics


class QARepository:
    """Encapsulates QA record and rollup queries for one DB session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_record(self, record: QARecord) -> QARecord:
        """Insert a QA record."""
        self._session.add(record)
        await self._session.flush()
        await self._session.refresh(record)
        return record

    async def order_exists(self, session_id: str, question_order: int) -> bool:
        """Check whether question_order is already taken in the session."""
        result = await self._session.execute(
            select(QARecord.id).where(
                QARecord.session_id == session_id,
                QARecord.question_order == question_order,
            )
        )
        return result.first() is not None

    async def find_by_session(self, session_id: str) -> list[QARecord]:
        """All records of a session in question_order."""
        result = await self._session.execute(
            select(QARecord)
            .where(QARecord.session_id == session_id)
            .order_by(QARecord.question_order.asc(), QARecord.id.asc())
        )
        return list(result.scalars().all())

    async def find_by_sessions(self, session_ids: list[str]) -> list[QARecord]:
        """Records of several sessions, grouped by session in question_order."""
        if not session_ids:
            return []
        result = await self._session.execute(
            select(QARecord)
            .where(QARecord.session_id.in_(session_ids))
            .order_by(
                QARecord.session_id.asc(),
                QARecord.question_order.asc(),
                QARecord.id.asc(),
            )
        )
        return list(result.scalars().all())

    async def find_statistics(self, session_id: str) -> SessionStatistics | None:
        """Fetch the stored rollup for a session."""
        result = await self._session.execute(
            select(SessionStatistics).where(SessionStatistics.session_id == session_id)
        )
        return result.scalar_one_or_none()

    async def save_statistics(self, session_id: str, values: dict) -> None:
        """Insert the rollup row on first use, update it afterwards."""
        existing = await self.find_statistics(session_id)
        if existing is None:
            self._session.add(SessionStatistics(session_id=session_id, **values))
            await self._session.flush()
            return
        for key, value in values.items():
            setattr(existing, key, value)
        await self._session.flush()
