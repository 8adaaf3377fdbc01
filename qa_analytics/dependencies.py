"""Global dependencies for the application."""

from collections.abc import Callable
from functools import lru_cache

from fastapi import Depends, Request
from fastapi.security import HTTPBearer
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qa_analytics.core.config import settings
from qa_analytics.core.database import get_async_session, get_session_factory
from qa_analytics.core.exceptions import AuthenticationError, AuthorizationError
from qa_analytics.core.redis import get_redis
from qa_analytics.repositories.auth_session_repo import AuthSessionRepository
from qa_analytics.repositories.generation_session_repo import (
    GenerationSessionRepository,
)
from qa_analytics.repositories.user_repo import UserRepository
from qa_analytics.services.generation_session_service import (
    GenerationSessionService,
)
from qa_analytics.services.ingest_service import QAIngestService
from qa_analytics.services.run_tracker import RunTracker
from qa_analytics.services.session_locks import SessionLocks
from qa_analytics.services.session_transfer_service import SessionTransferService
from qa_analytics.services.statistics_service import StatisticsService
from qa_analytics.services.token_service import TokenService
from qa_analytics.services.user_service import UserService

bearer_scheme = HTTPBearer(auto_error=False)


# --- Process-wide singletons ---


@lru_cache
def get_session_locks() -> SessionLocks:
    """Per-session ingest locks shared by every request in this process."""
    return SessionLocks()


@lru_cache
def get_run_tracker() -> RunTracker:
    """Registry of live progress runs."""
    return RunTracker(settings.progress)


# --- Auth dependencies ---


class CurrentUser(BaseModel):
    """Authenticated user extracted from request state."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    roles: list[str]
    session_id: str


def get_token_service() -> TokenService:
    """Get TokenService backed by the active Redis client."""
    return TokenService(get_redis())


def get_user_repository(
    session: AsyncSession = Depends(get_async_session),
) -> UserRepository:
    """Get UserRepository bound to the current session."""
    return UserRepository(session)


def get_auth_session_repository(
    session: AsyncSession = Depends(get_async_session),
) -> AuthSessionRepository:
    return AuthSessionRepository(session)


def get_generation_session_repository(
    session: AsyncSession = Depends(get_async_session),
) -> GenerationSessionRepository:
    """Get GenerationSessionRepository bound to the current session."""
    return GenerationSessionRepository(session)


def get_user_service(
    user_repo: UserRepository = Depends(get_user_repository),
    auth_session_repo: AuthSessionRepository = Depends(get_auth_session_repository),
    token_service: TokenService = Depends(get_token_service),
    session: AsyncSession = Depends(get_async_session),
) -> UserService:
    """Get UserService with all dependencies."""
    return UserService(
        user_repo=user_repo,
        auth_session_repo=auth_session_repo,
        token_service=token_service,
        session=session,
    )


def get_current_user(request: Request) -> CurrentUser:
    """Extract the authenticated user from middleware-populated state."""
    state = getattr(request, "state", None)
    user_id = getattr(state, "user_id", None) if state else None
    if user_id is None:
        raise AuthenticationError(message="Not authenticated")
    return CurrentUser(
        id=state.user_id,
        email=state.email,
        roles=state.roles,
        session_id=state.session_id,
    )


def require_role(*allowed_roles: str) -> Callable[..., CurrentUser]:
    """Dependency factory that enforces role-based access control."""

    def _check(
        current_user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if not set(current_user.roles) & set(allowed_roles):
            raise AuthorizationError(
                message=f"Roles {current_user.roles} are not permitted"
            )
        return current_user

    return _check


# --- Domain services ---


def get_generation_session_service(
    session_repo: GenerationSessionRepository = Depends(
        get_generation_session_repository
    ),
    current_user: CurrentUser = Depends(get_current_user),
) -> GenerationSessionService:
    """Get GenerationSessionService for the authenticated user."""
    return GenerationSessionService(session_repo=session_repo, user_id=current_user.id)


def get_ingest_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> QAIngestService:
    return QAIngestService(
        session_factory=session_factory,
        config=settings.ingest,
        locks=get_session_locks(),
    )


def get_statistics_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> StatisticsService:
    return StatisticsService(session_factory=session_factory, locks=get_session_locks())


def get_session_transfer_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    ingest: QAIngestService = Depends(get_ingest_service),
    current_user: CurrentUser = Depends(get_current_user),
) -> SessionTransferService:
    """Get SessionTransferService for the authenticated user."""
    return SessionTransferService(
        session_factory=session_factory, ingest=ingest, user_id=current_user.id
    )
