"""Service layer for question/answer generation sessions."""

import uuid
from decimal import ROUND_HALF_UP, Decimal

import structlog

from qa_analytics.core.exceptions import (
    AuthorizationError,
    SessionAlreadyExistsError,
    SessionKindImmutableError,
    SessionNotFoundError,
)
from qa_analytics.models.generation_session import GenerationSession
from qa_analytics.repositories.generation_session_repo import (
    GenerationSessionRepository,
    SessionFilters,
    SessionWithStatistics,
)
from qa_analytics.schemas.session_schema import (
    SessionCreateRequest,
    SessionKindStatsResponse,
    SessionListResponse,
    SessionResponse,
    SessionStatisticsResponse,
)
from qa_analytics.services.rollup import format_cost, parse_cost

logger = structlog.get_logger()


def _to_response(row: SessionWithStatistics) -> SessionResponse:
    statistics = (
        SessionStatisticsResponse.model_validate(row.statistics)
        if row.statistics is not None
        else SessionStatisticsResponse()
    )
    session = row.session
    return SessionResponse(
        id=session.id,
        name=session.name,
        type=session.type,  # type: ignore[arg-type]
        timestamp=session.timestamp,
        model=session.model,
        question_provider=session.question_provider,
        question_model=session.question_model,
        answer_provider=session.answer_provider,
        answer_model=session.answer_model,
        blog_content=session.blog_content,
        blog_url=session.blog_url,
        total_input_tokens=session.total_input_tokens,
        total_output_tokens=session.total_output_tokens,
        created_at=session.created_at,
        statistics=statistics,
    )


class GenerationSessionService:
    """Generation sessions owned by the authenticated user."""

    def __init__(self, session_repo: GenerationSessionRepository, user_id: str) -> None:
        self._session_repo = session_repo
        self._user_id = user_id

    async def create(self, request: SessionCreateRequest) -> SessionResponse:
        session_id = request.id or str(uuid.uuid4())
        existing = await self._session_repo.find_by_id(session_id)
        if existing is not None:
            if existing.type != request.type:
                raise SessionKindImmutableError
            raise SessionAlreadyExistsError

        created = await self._session_repo.create(
            GenerationSession(
                id=session_id,
                user_id=self._user_id,
                name=request.name,
                type=request.type,
                timestamp=request.timestamp,
                model=request.model,
                question_provider=request.question_provider,
                question_model=request.question_model,
                answer_provider=request.answer_provider,
                answer_model=request.answer_model,
                blog_content=request.blog_content,
                blog_url=request.blog_url,
            )
        )
        logger.info(
            "Generation session created",
            session_id=created.id,
            user_id=self._user_id,
            kind=created.type,
        )
        return _to_response(SessionWithStatistics(session=created, statistics=None))

    async def get(self, session_id: str) -> SessionResponse:
        """Fetch one of the user's sessions with its rollup."""
        row = await self._session_repo.find_with_statistics(session_id)
        if row is None:
            raise SessionNotFoundError
        self._check_owner(row.session)
        return _to_response(row)

    async def list_by_type(
        self, session_type: str, filters: SessionFilters | None = None
    ) -> SessionListResponse:
        rows = await self._session_repo.find_by_user_and_type(
            self._user_id, session_type, filters
        )
        return SessionListResponse(
            sessions=[_to_response(row) for row in rows],
            total_count=len(rows),
        )

    async def delete(self, session_id: str) -> None:
        """Delete a session together with its records and rollup."""
        session = await self._session_repo.find_by_id(session_id)
        if session is None:
            raise SessionNotFoundError
        self._check_owner(session)
        await self._session_repo.delete(session_id)
        logger.info("Generation session deleted", session_id=session_id)

    async def kind_stats(self, session_type: str) -> SessionKindStatsResponse:
        """Totals across the user's sessions of one kind."""
        rows = await self._session_repo.find_by_user_and_type(
            self._user_id, session_type
        )
        total_questions = 0
        cost_units = 0
        for row in rows:
            if row.statistics is None:
                continue
            total_questions += row.statistics.total_questions
            cost_units += parse_cost(row.statistics.total_cost)

        average = Decimal(0)
        if rows:
            average = Decimal(total_questions) / Decimal(len(rows))
        return SessionKindStatsResponse(
            total_sessions=len(rows),
            total_questions=total_questions,
            total_cost=format_cost(cost_units),
            average_questions_per_session=str(
                average.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            ),
        )

    def _check_owner(self, session: GenerationSession) -> None:
        if session.user_id != self._user_id:
            raise AuthorizationError(message="Not authorized to access this session")
