"""Bulk session save and CSV export."""

import csv
import io
from collections import defaultdict
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qa_analytics.core.exceptions import AppException, NothingToExportError
from qa_analytics.repositories.generation_session_repo import (
    GenerationSessionRepository,
)
from qa_analytics.repositories.qa_repo import QARepository
from qa_analytics.schemas.session_schema import (
    BulkSaveRequest,
    BulkSaveResponse,
    BulkSaveResult,
    BulkSaveSummary,
    BulkSessionRecord,
    SessionStatisticsResponse,
)
from qa_analytics.services.generation_session_service import (
    GenerationSessionService,
)
from qa_analytics.services.ingest_service import QAIngestService
from qa_analytics.services.rollup import parse_cost

logger = structlog.get_logger()

CSV_HEADER = (
    "Session ID",
    "Name",
    "Type",
    "Timestamp",
    "Model",
    "Question Provider",
    "Question Model",
    "Answer Provider",
    "Answer Model",
    "Blog URL",
    "Total Questions",
    "Total Cost",
    "Question Order",
    "Question",
    "Answer",
    "Accuracy",
    "Sentiment",
    "Input Tokens",
    "Output Tokens",
    "Total Tokens",
    "Cost",
)


def same_statistics(
    supplied: SessionStatisticsResponse, stored: SessionStatisticsResponse
) -> bool:
    """Compare two rollups by value, ignoring how the numbers are written."""
    if supplied.total_questions != stored.total_questions:
        return False
    try:
        if parse_cost(supplied.total_cost) != parse_cost(stored.total_cost):
            return False
        if not supplied.avg_accuracy or not stored.avg_accuracy:
            return supplied.avg_accuracy == stored.avg_accuracy
        return Decimal(supplied.avg_accuracy) == Decimal(stored.avg_accuracy)
    except (ArithmeticError, ValueError):
        return False


class SessionTransferService:
    """Moves whole sessions in and out for the authenticated user.

    A bulk save creates every session through the regular session service
    and feeds its records through the ingest path one by one, so ordering,
    token and rollup rules hold exactly as for live ingest. A session that
    fails part way is deleted again; the other sessions are unaffected.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ingest: QAIngestService,
        user_id: str,
    ) -> None:
        self._session_factory = session_factory
        self._ingest = ingest
        self._user_id = user_id

    async def save_bulk(self, request: BulkSaveRequest) -> BulkSaveResponse:
        results = [await self._save_one(record) for record in request.sessions]
        successful = sum(1 for result in results if result.success)
        logger.info(
            "Bulk session save finished",
            user_id=self._user_id,
            total=len(results),
            successful=successful,
        )
        return BulkSaveResponse(
            results=results,
            summary=BulkSaveSummary(
                total=len(results),
                successful=successful,
                failed=len(results) - successful,
            ),
        )

    async def export_csv(self, session_type: str) -> str:
        """One CSV row per QA record across the user's sessions of a kind."""
        async with self._session_factory() as db:
            rows = await GenerationSessionRepository(db).find_by_user_and_type(
                self._user_id, session_type
            )
            if not rows:
                raise NothingToExportError
            records = await QARepository(db).find_by_sessions(
                [row.session.id for row in rows]
            )

        by_session = defaultdict(list)
        for record in records:
            by_session[record.session_id].append(record)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(CSV_HEADER)
        for row in rows:
            session = row.session
            statistics = row.statistics
            for record in by_session[session.id]:
                writer.writerow(
                    (
                        session.id,
                        session.name,
                        session.type,
                        session.timestamp,
                        session.model,
                        session.question_provider or "",
                        session.question_model or "",
                        session.answer_provider or "",
                        session.answer_model or "",
                        session.blog_url or "",
                        statistics.total_questions if statistics else 0,
                        statistics.total_cost if statistics else "0.00",
                        record.question_order,
                        record.question,
                        record.answer,
                        record.accuracy,
                        record.sentiment,
                        record.input_tokens,
                        record.output_tokens,
                        record.total_tokens,
                        f"{record.cost:f}",
                    )
                )
        logger.info(
            "Sessions exported",
            user_id=self._user_id,
            kind=session_type,
            sessions=len(rows),
            records=len(records),
        )
        return buffer.getvalue()

    async def _save_one(self, record: BulkSessionRecord) -> BulkSaveResult:
        try:
            async with self._session_factory() as db:
                created = await GenerationSessionService(
                    GenerationSessionRepository(db), self._user_id
                ).create(record)
                await db.commit()
        except AppException as exc:
            return BulkSaveResult(
                id=record.id, success=False, code=exc.code, error=exc.message
            )

        try:
            for qa in record.qa_data:
                await self._ingest.ingest_qa(created.id, qa, user_id=self._user_id)
        except AppException as exc:
            await self._discard(created.id)
            logger.warning(
                "Bulk session rolled back",
                session_id=created.id,
                code=exc.code,
            )
            return BulkSaveResult(
                id=created.id, success=False, code=exc.code, error=exc.message
            )

        matched = None
        if record.statistics is not None:
            stored = await self._stored_statistics(created.id)
            matched = same_statistics(record.statistics, stored)
            if not matched:
                logger.warning(
                    "Supplied statistics differ from the stored rollup",
                    session_id=created.id,
                    supplied=record.statistics.model_dump(),
                    stored=stored.model_dump(),
                )
        return BulkSaveResult(id=created.id, success=True, statistics_matched=matched)

    async def _stored_statistics(self, session_id: str) -> SessionStatisticsResponse:
        async with self._session_factory() as db:
            stats = await QARepository(db).find_statistics(session_id)
        if stats is None:
            return SessionStatisticsResponse()
        return SessionStatisticsResponse.model_validate(stats)

    async def _discard(self, session_id: str) -> None:
        async with self._session_factory() as db:
            await GenerationSessionRepository(db).delete(session_id)
            await db.commit()
