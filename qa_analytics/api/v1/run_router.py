"""Live run progress API router."""

import asyncio
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from qa_analytics.core.config import settings
from qa_analytics.dependencies import CurrentUser, get_run_tracker, require_role
from qa_analytics.schemas.progress_schema import (
    FailRunRequest,
    ProgressSnapshot,
    SetTotalRequest,
    StartRunRequest,
    TickRequest,
)
from qa_analytics.schemas.response_schema import ApiResponse, success_response
from qa_analytics.services.broadcast import Subscription
from qa_analytics.services.run_tracker import RunTracker

router = APIRouter(prefix="/api/v1/runs", tags=["runs"])

RunTrackerDep = Annotated[RunTracker, Depends(get_run_tracker)]
MemberDep = Annotated[CurrentUser, Depends(require_role("user", "admin"))]


@router.post("/{run_id}", response_model=ApiResponse[ProgressSnapshot])
async def start_run(
    run_id: str,
    body: StartRunRequest,
    tracker: RunTrackerDep,
    current_user: MemberDep,
) -> dict:
    """Register a run before its first tick."""
    result = tracker.start_run(run_id, total=body.total, owner_id=current_user.id)
    return success_response(result)


@router.post("/{run_id}/ticks", response_model=ApiResponse[ProgressSnapshot])
async def tick(
    run_id: str,
    body: TickRequest,
    tracker: RunTrackerDep,
    current_user: MemberDep,
) -> dict:
    result = tracker.tick_progress(run_id, body.units, owner_id=current_user.id)
    return success_response(result)


@router.put("/{run_id}/total", response_model=ApiResponse[ProgressSnapshot])
async def set_total(
    run_id: str,
    body: SetTotalRequest,
    tracker: RunTrackerDep,
    current_user: MemberDep,
) -> dict:
    result = tracker.set_total(run_id, body.total, owner_id=current_user.id)
    return success_response(result)


@router.post("/{run_id}/complete", response_model=ApiResponse[ProgressSnapshot])
async def complete(
    run_id: str,
    tracker: RunTrackerDep,
    current_user: MemberDep,
) -> dict:
    result = tracker.complete_run(run_id, owner_id=current_user.id)
    return success_response(result)


@router.post("/{run_id}/fail", response_model=ApiResponse[ProgressSnapshot])
async def fail(
    run_id: str,
    body: FailRunRequest,
    tracker: RunTrackerDep,
    current_user: MemberDep,
) -> dict:
    result = tracker.fail_run(run_id, body.reason, owner_id=current_user.id)
    return success_response(result)


@router.post("/{run_id}/cancel", response_model=ApiResponse[ProgressSnapshot])
async def cancel(
    run_id: str,
    tracker: RunTrackerDep,
    current_user: MemberDep,
) -> dict:
    """Stop the run; records already ingested are kept."""
    result = tracker.cancel_run(run_id, owner_id=current_user.id)
    return success_response(result)


@router.get("/{run_id}", response_model=ApiResponse[ProgressSnapshot])
async def get_progress(
    run_id: str,
    tracker: RunTrackerDep,
    current_user: MemberDep,
) -> dict:
    result = tracker.snapshot(run_id, owner_id=current_user.id)
    return success_response(result)


def _format_event(snapshot: ProgressSnapshot) -> str:
    return f"data: {snapshot.model_dump_json()}\n\n"


async def progress_events(
    tracker: RunTracker,
    run_id: str,
    subscription: Subscription[ProgressSnapshot],
    heartbeat_seconds: float,
) -> AsyncGenerator[str, None]:
    """Yield the current snapshot, then every published one until the run ends.

    When no tick arrives within the heartbeat interval the snapshot is
    recomputed, so observers see speed drop to zero on a stalled run.
    """
    async with subscription:
        snapshot: ProgressSnapshot | None = tracker.snapshot(run_id)
        while snapshot is not None:
            yield _format_event(snapshot)
            if snapshot.status.is_terminal:
                return
            try:
                snapshot = await asyncio.wait_for(
                    subscription.get(), timeout=heartbeat_seconds
                )
            except TimeoutError:
                snapshot = tracker.snapshot(run_id) if run_id in tracker else None


@router.get("/{run_id}/stream")
async def stream_progress(
    run_id: str,
    tracker: RunTrackerDep,
    current_user: MemberDep,
) -> StreamingResponse:
    """Stream run progress as Server-Sent Events."""
    subscription = tracker.subscribe_progress(run_id, owner_id=current_user.id)
    return StreamingResponse(
        progress_events(
            tracker,
            run_id,
            subscription,
            settings.progress.stream_heartbeat_seconds,
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
