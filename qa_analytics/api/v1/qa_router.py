"""QA record ingest and session statistics API router."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from qa_analytics.dependencies import (
    CurrentUser,
    get_ingest_service,
    get_statistics_service,
    require_role,
)
from qa_analytics.schemas.qa_schema import (
    QARecordCreate,
    QARecordListResponse,
    QARecordResponse,
)
from qa_analytics.schemas.response_schema import ApiResponse, success_response
from qa_analytics.schemas.session_schema import (
    SessionStatisticsResponse,
    StatisticsCheckResponse,
)
from qa_analytics.services.ingest_service import QAIngestService
from qa_analytics.services.statistics_service import StatisticsService

router = APIRouter(prefix="/api/v1/sessions", tags=["qa"])

IngestServiceDep = Annotated[QAIngestService, Depends(get_ingest_service)]
StatisticsServiceDep = Annotated[StatisticsService, Depends(get_statistics_service)]
MemberDep = Annotated[CurrentUser, Depends(require_role("user", "admin"))]
AdminDep = Annotated[CurrentUser, Depends(require_role("admin"))]


@router.post(
    "/{session_id}/qa",
    response_model=ApiResponse[QARecordResponse],
    status_code=status.HTTP_201_CREATED,
)
async def ingest_qa(
    session_id: str,
    body: QARecordCreate,
    service: IngestServiceDep,
    current_user: MemberDep,
) -> dict:
    """Append one generated Q&A pair to a session."""
    result = await service.ingest_qa(session_id, body, user_id=current_user.id)
    return success_response(result, status=201)


@router.get("/{session_id}/qa", response_model=ApiResponse[QARecordListResponse])
async def list_qa(
    session_id: str,
    service: IngestServiceDep,
    current_user: MemberDep,
) -> dict:
    """List a session's Q&A records in question order."""
    result = await service.list_records(session_id, user_id=current_user.id)
    return success_response(result)


@router.get(
    "/{session_id}/statistics",
    response_model=ApiResponse[SessionStatisticsResponse],
)
async def get_statistics(
    session_id: str,
    service: StatisticsServiceDep,
    current_user: MemberDep,
) -> dict:
    result = await service.get_session_statistics(session_id, user_id=current_user.id)
    return success_response(result)


@router.get(
    "/{session_id}/statistics/verify",
    response_model=ApiResponse[StatisticsCheckResponse],
)
async def verify_statistics(
    session_id: str,
    service: StatisticsServiceDep,
    _: AdminDep,
) -> dict:
    """Replay the session's records and compare with the stored rollup."""
    result = await service.verify(session_id)
    return success_response(result)


@router.post(
    "/{session_id}/statistics/rebuild",
    response_model=ApiResponse[SessionStatisticsResponse],
)
async def rebuild_statistics(
    session_id: str,
    service: StatisticsServiceDep,
    _: AdminDep,
) -> dict:
    """Overwrite the stored rollup with one replayed from the records."""
    result = await service.rebuild(session_id)
    return success_response(result, message="Statistics rebuilt")
