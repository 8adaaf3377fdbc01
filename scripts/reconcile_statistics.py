"""Replay every session's QA records and compare with the stored statistics.

Usage:
    python -m scripts.reconcile_statistics            # report drift
    python -m scripts.reconcile_statistics --fix      # rebuild drifted rollups
    python -m scripts.reconcile_statistics --session-id abc --fix
"""

import argparse
import asyncio

import structlog

from qa_analytics.core.database import async_session_factory, engine
from qa_analytics.core.logging_config import configure_logging
from qa_analytics.services.session_locks import SessionLocks
from qa_analytics.services.statistics_service import StatisticsService

logger = structlog.get_logger()


async def reconcile(session_ids: list[str] | None, fix: bool) -> int:
    """Return the number of sessions whose stored rollup drifted."""
    service = StatisticsService(async_session_factory, SessionLocks())
    if not session_ids:
        session_ids = await service.list_session_ids()

    drifted = 0
    for session_id in session_ids:
        check = await service.verify(session_id)
        if check.consistent:
            continue
        drifted += 1
        logger.warning(
            "Statistics mismatch",
            session_id=session_id,
            stored=check.stored.model_dump() if check.stored else None,
            replayed=check.replayed.model_dump(),
        )
        if fix:
            await service.rebuild(session_id)

    logger.info(
        "Reconciliation finished",
        checked=len(session_ids),
        drifted=drifted,
        fixed=drifted if fix else 0,
    )
    await engine.dispose()
    return drifted


def main() -> None:
    parser = argparse.ArgumentParser(description="Reconcile session statistics")
    parser.add_argument(
        "--session-id",
        action="append",
        dest="session_ids",
        help="Only check this session; repeat for several",
    )
    parser.add_argument(
        "--fix", action="store_true", help="Rebuild rollups that drifted"
    )
    args = parser.parse_args()

    configure_logging()
    drifted = asyncio.run(reconcile(args.session_ids, args.fix))
    raise SystemExit(1 if drifted and not args.fix else 0)


if __name__ == "__main__":
    main()
