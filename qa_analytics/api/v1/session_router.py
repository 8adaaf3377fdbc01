"""Generation session API router."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from qa_analytics.dependencies import (
    get_generation_session_service,
    get_session_transfer_service,
    require_role,
)
from qa_analytics.repositories.generation_session_repo import SessionFilters
from qa_analytics.schemas.response_schema import ApiResponse, success_response
from qa_analytics.schemas.session_schema import (
    BulkSaveRequest,
    BulkSaveResponse,
    SessionCreateRequest,
    SessionKind,
    SessionKindStatsResponse,
    SessionListResponse,
    SessionResponse,
)
from qa_analytics.services.generation_session_service import (
    GenerationSessionService,
)
from qa_analytics.services.session_transfer_service import SessionTransferService

router = APIRouter(
    prefix="/api/v1/sessions",
    tags=["sessions"],
    dependencies=[Depends(require_role("user", "admin"))],
)

SessionServiceDep = Annotated[
    GenerationSessionService, Depends(get_generation_session_service)
]
TransferServiceDep = Annotated[
    SessionTransferService, Depends(get_session_transfer_service)
]


@router.post(
    "",
    response_model=ApiResponse[SessionResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    body: SessionCreateRequest,
    service: SessionServiceDep,
) -> dict:
    """Start a new question or answer generation session."""
    result = await service.create(body)
    return success_response(result, status=201)


@router.get("", response_model=ApiResponse[SessionListResponse])
async def list_sessions(
    service: SessionServiceDep,
    session_type: SessionKind = Query(alias="type"),
    from_date: str | None = Query(default=None, alias="fromDate"),
    to_date: str | None = Query(default=None, alias="toDate"),
    provider: str | None = Query(default=None),
    model: str | None = Query(default=None),
    blog_url: str | None = Query(default=None, alias="blogUrl"),
    search: str | None = Query(default=None),
) -> dict:
    """List the current user's sessions of one kind, newest first."""
    filters = SessionFilters(
        from_date=from_date,
        to_date=to_date,
        provider=provider,
        model=model,
        blog_url=blog_url,
        search=search,
    )
    result = await service.list_by_type(session_type, filters)
    return success_response(result)


@router.get("/stats/{session_type}", response_model=ApiResponse[SessionKindStatsResponse])
async def session_kind_stats(
    session_type: SessionKind,
    service: SessionServiceDep,
) -> dict:
    """Totals across the current user's sessions of one kind."""
    result = await service.kind_stats(session_type)
    return success_response(result)


@router.post("/bulk", response_model=ApiResponse[BulkSaveResponse])
async def bulk_save_sessions(
    body: BulkSaveRequest,
    service: TransferServiceDep,
) -> dict:
    """Save finished sessions with their records; each succeeds or fails alone."""
    result = await service.save_bulk(body)
    return success_response(result)


@router.get("/export/{session_type}/csv", response_class=Response)
async def export_sessions_csv(
    session_type: SessionKind,
    service: TransferServiceDep,
) -> Response:
    content = await service.export_csv(session_type)
    filename = f"{session_type}-sessions-{datetime.now(UTC).date().isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{session_id}", response_model=ApiResponse[SessionResponse])
async def get_session(
    session_id: str,
    service: SessionServiceDep,
) -> dict:
    result = await service.get(session_id)
    return success_response(result)


@router.delete("/{session_id}", response_model=ApiResponse[None])
async def delete_session(
    session_id: str,
    service: SessionServiceDep,
) -> dict:
    """Delete a session with its QA records and statistics."""
    await service.delete(session_id)
    return success_response(None, message="Session deleted")
