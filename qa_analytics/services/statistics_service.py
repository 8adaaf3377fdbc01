"""Read, verify and rebuild per-session rollups."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qa_analytics.core.exceptions import AuthorizationError, SessionNotFoundError
from qa_analytics.repositories.generation_session_repo import (
    GenerationSessionRepository,
)
from qa_analytics.repositories.qa_repo import QARepository
from qa_analytics.schemas.session_schema import (
    SessionStatisticsResponse,
    StatisticsCheckResponse,
)
from qa_analytics.services.rollup import Rollup
from qa_analytics.services.session_locks import SessionLocks

logger = structlog.get_logger()


def _as_response(rollup: Rollup) -> SessionStatisticsResponse:
    return SessionStatisticsResponse(
        total_questions=rollup.total_questions,
        avg_accuracy=rollup.avg_accuracy,
        total_cost=rollup.total_cost,
    )


class StatisticsService:
    """The stored rollup is a cache; replaying the records is the source of truth."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: SessionLocks,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks

    async def get_session_statistics(
        self, session_id: str, user_id: str | None = None
    ) -> SessionStatisticsResponse:
        async with self._session_factory() as db:
            await self._check_session(db, session_id, user_id)
            stats = await QARepository(db).find_statistics(session_id)
        if stats is None:
            return SessionStatisticsResponse()
        return SessionStatisticsResponse.model_validate(stats)

    async def verify(self, session_id: str) -> StatisticsCheckResponse:
        """Compare the stored rollup with a full replay of the session's records."""
        async with self._locks.hold(session_id):
            async with self._session_factory() as db:
                await self._check_session(db, session_id)
                qa_repo = QARepository(db)
                stats = await qa_repo.find_statistics(session_id)
                replayed = Rollup.replay(await qa_repo.find_by_session(session_id))

        stored = None if stats is None else Rollup.from_row(stats)
        if stored is None:
            consistent = replayed.total_questions == 0
        else:
            consistent = stored.as_row() == replayed.as_row()

        if not consistent:
            logger.warning("Session statistics drifted", session_id=session_id)
        return StatisticsCheckResponse(
            session_id=session_id,
            consistent=consistent,
            stored=None if stored is None else _as_response(stored),
            replayed=_as_response(replayed),
        )

    async def rebuild(self, session_id: str) -> SessionStatisticsResponse:
        """Overwrite the stored rollup with the replayed one."""
        async with self._locks.hold(session_id):
            async with self._session_factory() as db, db.begin():
                await self._check_session(db, session_id)
                qa_repo = QARepository(db)
                replayed = Rollup.replay(await qa_repo.find_by_session(session_id))
                await qa_repo.save_statistics(session_id, replayed.as_row())

        logger.info(
            "Session statistics rebuilt",
            session_id=session_id,
            total_questions=replayed.total_questions,
        )
        return _as_response(replayed)

    async def list_session_ids(self) -> list[str]:
        async with self._session_factory() as db:
            return await GenerationSessionRepository(db).find_ids()

    @staticmethod
    async def _check_session(
        db: AsyncSession, session_id: str, user_id: str | None = None
    ) -> None:
        generation_session = await GenerationSessionRepository(db).find_by_id(
            session_id
        )
        if generation_session is None:
            raise SessionNotFoundError
        if user_id is not None and generation_session.user_id != user_id:
            raise AuthorizationError(message="Not authorized to access this session")
