"""Delete auth sessions whose refresh window has closed.

Usage:
    python -m scripts.sweep_auth_sessions                  # sweep once
    python -m scripts.sweep_auth_sessions --interval 3600  # sweep hourly
"""

import argparse
import asyncio

import redis.asyncio as redis
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qa_analytics.core.database import async_session_factory, engine
from qa_analytics.core.logging_config import configure_logging
from qa_analytics.core.redis import close_redis, init_redis
from qa_analytics.repositories.auth_session_repo import AuthSessionRepository
from qa_analytics.repositories.user_repo import UserRepository
from qa_analytics.services.token_service import TokenService
from qa_analytics.services.user_service import UserService

logger = structlog.get_logger()


async def sweep(
    session_factory: async_sessionmaker[AsyncSession],
    redis_client: redis.Redis,  # type: ignore[type-arg]
) -> int:
    """Return the number of expired auth sessions removed."""
    async with session_factory() as session:
        service = UserService(
            user_repo=UserRepository(session),
            auth_session_repo=AuthSessionRepository(session),
            token_service=TokenService(redis_client),
            session=session,
        )
        return await service.sweep_expired()


async def run(interval: float | None) -> None:
    redis_client = await init_redis()
    try:
        while True:
            removed = await sweep(async_session_factory, redis_client)
            logger.info("Auth session sweep finished", removed=removed)
            if interval is None:
                break
            await asyncio.sleep(interval)
    finally:
        await close_redis()
        await engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Sweep expired auth sessions")
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Keep running and sweep every INTERVAL seconds",
    )
    args = parser.parse_args()

    configure_logging()
    asyncio.run(run(args.interval))


if __name__ == "__main__":
    main()
