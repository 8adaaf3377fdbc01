"""Generation session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from qa_analytics.models.generation_session import GenerationSession
from qa_analytics.models.session_statistics import SessionStatistics


@dataclass(frozen=True)
class SessionFilters:
    """Optional narrowing for session list queries."""

    from_date: str | None = None
    to_date: str | None = None
    provider: str | None = None
    model: str | None = None
    blog_url: str | None = None
    search: str | None = None


@dataclass(frozen=True)
class SessionWithStatistics:
    """Session row joined with its (possibly missing) rollup."""

    session: GenerationSession
    statistics: SessionStatistics | None


class GenerationSessionRepository:
    """Encapsulates generation session queries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, generation_session: GenerationSession) -> GenerationSession:
        """Insert a new generation session."""
        self._session.add(generation_session)
        await self._session.flush()
        await self._session.refresh(generation_session)
        return generation_session

    async def find_by_id(self, session_id: str) -> GenerationSession | None:
        """Find a generation session by primary key."""
        result = await self._session.execute(
            select(GenerationSession).where(GenerationSession.id == session_id)
        )
        return result.scalar_one_or_none()

    async def exists(self, session_id: str) -> bool:
        result = await self._session.execute(
            select(GenerationSession.id).where(GenerationSession.id == session_id)
        )
        return result.scalar_one_or_none() is not None

    async def find_with_statistics(
        self, session_id: str
    ) -> SessionWithStatistics | None:
        """Fetch one session together with its rollup."""
        result = await self._session.execute(
            select(GenerationSession, SessionStatistics)
            .outerjoin(
                SessionStatistics,
                SessionStatistics.session_id == GenerationSession.id,
            )
            .where(GenerationSession.id == session_id)
        )
        row = result.first()
        if row is None:
            return None
        return SessionWithStatistics(session=row[0], statistics=row[1])

    async def find_by_user_and_type(
        self,
        user_id: str,
        session_type: str,
        filters: SessionFilters | None = None,
    ) -> list[SessionWithStatistics]:
        """List a user's sessions of one kind, newest timestamp first."""
        stmt = (
            select(GenerationSession, SessionStatistics)
            .outerjoin(
                SessionStatistics,
                SessionStatistics.session_id == GenerationSession.id,
            )
            .where(
                GenerationSession.user_id == user_id,
                GenerationSession.type == session_type,
            )
        )

        if filters is not None:
            if filters.from_date:
                stmt = stmt.where(GenerationSession.timestamp >= filters.from_date)
            if filters.to_date:
                # Date-only upper bound covers the whole day.
                upper = filters.to_date
                if "T" not in upper:
                    upper = f"{upper}T23:59:59"
                stmt = stmt.where(GenerationSession.timestamp <= upper)
            if filters.provider:
                stmt = stmt.where(
                    or_(
                        GenerationSession.question_provider == filters.provider,
                        GenerationSession.answer_provider == filters.provider,
                    )
                )
            if filters.model:
                stmt = stmt.where(
                    or_(
                        GenerationSession.model == filters.model,
                        GenerationSession.question_model == filters.model,
                        GenerationSession.answer_model == filters.model,
                    )
                )
            if filters.blog_url:
                stmt = stmt.where(
                    GenerationSession.blog_url.contains(filters.blog_url)
                )
            if filters.search:
                stmt = stmt.where(
                    or_(
                        GenerationSession.name.contains(filters.search),
                        GenerationSession.blog_content.contains(filters.search),
                    )
                )

        stmt = stmt.order_by(
            GenerationSession.timestamp.desc(), GenerationSession.id.desc()
        )
        result = await self._session.execute(stmt)
        return [
            SessionWithStatistics(session=row[0], statistics=row[1]) for row in result
        ]

    async def count_by_user_and_type(self, user_id: str, session_type: str) -> int:
        result = await self._session.execute(
            select(func.count(GenerationSession.id)).where(
                GenerationSession.user_id == user_id,
                GenerationSession.type == session_type,
            )
        )
        return int(result.scalar_one())

    async def find_ids(self) -> list[str]:
        """All session ids, for reconciliation sweeps."""
        result = await self._session.execute(
            select(GenerationSession.id).order_by(GenerationSession.id)
        )
        return list(result.scalars().all())

    async def add_token_totals(
        self, session_id: str, input_tokens: int, output_tokens: int
    ) -> None:
        """Increment running token totals and touch updated_at."""
        await self._session.execute(
            update(GenerationSession)
            .where(GenerationSession.id == session_id)
            .values(
                total_input_tokens=GenerationSession.total_input_tokens + input_tokens,
                total_output_tokens=GenerationSession.total_output_tokens
                + output_tokens,
                updated_at=datetime.now(UTC),
            )
        )

    async def delete(self, session_id: str) -> bool:
        """Delete a session; its rollup and QA records cascade."""
        result = await self._session.execute(
            delete(GenerationSession).where(GenerationSession.id == session_id)
        )
        return bool(result.rowcount)
