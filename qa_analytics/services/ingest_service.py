"""QA record ingest: validation, one atomic write, rollup update."""

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from qa_analytics.core.exceptions import (
    AuthorizationError,
    DuplicateOrderError,
    PersistenceFailureError,
    SessionNotFoundError,
    TokenMismatchError,
)
from qa_analytics.core.settings import IngestConfig
from qa_analytics.models.qa_record import QARecord
from qa_analytics.repositories.generation_session_repo import (
    GenerationSessionRepository,
)
from qa_analytics.repositories.qa_repo import QARepository
from qa_analytics.schemas.qa_schema import (
    QARecordCreate,
    QARecordListResponse,
    QARecordResponse,
)
from qa_analytics.services.rollup import Rollup
from qa_analytics.services.session_locks import SessionLocks

logger = structlog.get_logger()


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, SQLAlchemyError) and not isinstance(exc, IntegrityError)


def resolve_total_tokens(record: QARecordCreate, policy: str) -> int:
    """Return the total_tokens to store, enforcing input + output == total."""
    expected = record.input_tokens + record.output_tokens
    if record.total_tokens is None or record.total_tokens == expected:
        return expected
    if policy == "derive":
        logger.info(
            "Replacing mismatched total_tokens",
            question_order=record.question_order,
            supplied=record.total_tokens,
            derived=expected,
        )
        return expected
    raise TokenMismatchError(expected=expected, actual=record.total_tokens)


class QAIngestService:
    """Appends QA records to sessions, one serialized transaction per session."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: IngestConfig,
        locks: SessionLocks,
    ) -> None:
        self._session_factory = session_factory
        self._config = config
        self._locks = locks

    async def ingest_qa(
        self,
        session_id: str,
        record: QARecordCreate,
        user_id: str | None = None,
    ) -> QARecordResponse:
        """Validate and store one record; the rollup and token totals move with it."""
        total_tokens = resolve_total_tokens(record, self._config.token_policy)

        async with self._locks.hold(session_id):
            try:
                async for attempt in AsyncRetrying(
                    retry=retry_if_exception(_is_transient),
                    stop=stop_after_attempt(self._config.max_attempts),
                    wait=wait_exponential(
                        multiplier=self._config.backoff_initial_seconds,
                        max=self._config.backoff_max_seconds,
                    )
                    + wait_random(0, self._config.backoff_initial_seconds),
                    before_sleep=lambda retry_state: logger.warning(
                        "Retrying QA ingest",
                        session_id=session_id,
                        attempt=retry_state.attempt_number,
                    ),
                    reraise=True,
                ):
                    with attempt:
                        stored = await self._write(
                            session_id, record, total_tokens, user_id
                        )
            except IntegrityError as exc:
                raise await self._explain_conflict(session_id, record) from exc
            except SQLAlchemyError as exc:
                failure = PersistenceFailureError()
                logger.error(
                    "QA ingest failed",
                    session_id=session_id,
                    question_order=record.question_order,
                    correlation_id=failure.correlation_id,
                    error=str(exc),
                )
                raise failure from exc

        logger.info(
            "QA record ingested",
            session_id=session_id,
            question_order=record.question_order,
            record_id=stored.id,
        )
        return stored

    async def list_records(
        self, session_id: str, user_id: str | None = None
    ) -> QARecordListResponse:
        """All records of a session in question_order."""
        async with self._session_factory() as db:
            generation_session = await GenerationSessionRepository(db).find_by_id(
                session_id
            )
            if generation_session is None:
                raise SessionNotFoundError
            if user_id is not None and generation_session.user_id != user_id:
                raise AuthorizationError(message="Not authorized to read this session")
            records = await QARepository(db).find_by_session(session_id)
        return QARecordListResponse(
            session_id=session_id,
            records=[QARecordResponse.model_validate(record) for record in records],
        )

    async def _write(
        self,
        session_id: str,
        record: QARecordCreate,
        total_tokens: int,
        user_id: str | None,
    ) -> QARecordResponse:
        async with self._session_factory() as db, db.begin():
            sessions = GenerationSessionRepository(db)
            qa_repo = QARepository(db)

            generation_session = await sessions.find_by_id(session_id)
            if generation_session is None:
                raise SessionNotFoundError
            if user_id is not None and generation_session.user_id != user_id:
                raise AuthorizationError(message="Not authorized to write to this session")
            if await qa_repo.order_exists(session_id, record.question_order):
                raise DuplicateOrderError(record.question_order)

            created = await qa_repo.create_record(
                QARecord(
                    session_id=session_id,
                    question=record.question,
                    answer=record.answer,
                    accuracy=record.accuracy,
                    sentiment=record.sentiment,
                    input_tokens=record.input_tokens,
                    output_tokens=record.output_tokens,
                    total_tokens=total_tokens,
                    cost=record.cost,
                    question_order=record.question_order,
                )
            )

            stats = await qa_repo.find_statistics(session_id)
            if stats is None:
                # First record, or a rollup lost before it was written: rebuild by replay.
                rollup = Rollup.replay(await qa_repo.find_by_session(session_id))
            else:
                rollup = Rollup.from_row(stats)
                rollup.apply(record.accuracy, record.cost)
            await qa_repo.save_statistics(session_id, rollup.as_row())

            await sessions.add_token_totals(
                session_id, record.input_tokens, record.output_tokens
            )
            return QARecordResponse.model_validate(created)

    async def _explain_conflict(
        self, session_id: str, record: QARecordCreate
    ) -> Exception:
        """Map a constraint violation raised by the database to a caller error."""
        async with self._session_factory() as db:
            if not await GenerationSessionRepository(db).exists(session_id):
                return SessionNotFoundError()
        return DuplicateOrderError(record.question_order)
