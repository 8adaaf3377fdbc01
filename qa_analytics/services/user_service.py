"""Users and their refresh-token backed auth sessions."""

from datetime import UTC, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from qa_analytics.core.config import settings
from qa_analytics.core.exceptions import (
    AuthenticationError,
    InvalidTokenError,
    UserNotFoundError,
)
from qa_analytics.core.security import verify_password
from qa_analytics.models.user import User
from qa_analytics.repositories.auth_session_repo import AuthSessionRepository
from qa_analytics.repositories.user_repo import UserRepository
from qa_analytics.schemas.auth_schema import (
    LoginRequest,
    MessageResponse,
    TokenResponse,
)
from qa_analytics.services.token_service import TokenService

logger = structlog.get_logger()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class UserService:
    """Orchestrates login bookkeeping, token rotation, and account lifecycle."""

    def __init__(
        self,
        user_repo: UserRepository,
        auth_session_repo: AuthSessionRepository,
        token_service: TokenService,
        session: AsyncSession,
    ) -> None:
        self._user_repo = user_repo
        self._auth_session_repo = auth_session_repo
        self._token_service = token_service
        self._session = session

    async def record_login(
        self,
        email: str,
        name: str,
        user_id: str | None = None,
        display_name: str | None = None,
        tenant_id: str | None = None,
    ) -> TokenResponse:
        """Register an identity-provider login: upsert the user, open an auth session."""
        user = await self._user_repo.find_by_email(email)
        if user is None:
            user = await self._user_repo.create(
                email=email,
                name=name,
                display_name=display_name,
                user_id=user_id,
                tenant_id=tenant_id,
            )
            logger.info("User created on first login", user_id=user.id)
        elif not user.is_active:
            raise AuthenticationError(message="Account is disabled")

        return await self._open_session(user)

    async def login(self, request: LoginRequest) -> TokenResponse:
        """Authenticate with a local password credential."""
        user = await self._user_repo.find_by_email(request.email)
        if user is None or user.password is None:
            raise AuthenticationError(message="Invalid email or password")
        if not await verify_password(request.password, user.password):
            raise AuthenticationError(message="Invalid email or password")
        if not user.is_active:
            raise AuthenticationError(message="Account is disabled")
        return await self._open_session(user)

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Rotate a refresh token: the old auth session is replaced by a new one."""
        if not await self._token_service.acquire_refresh_lock(refresh_token):
            raise InvalidTokenError

        try:
            auth_session = await self._auth_session_repo.find_by_refresh_token(
                refresh_token
            )
            if auth_session is None:
                raise InvalidTokenError
            if _as_utc(auth_session.expires_at) <= datetime.now(UTC):
                await self._auth_session_repo.delete_by_id(auth_session.id)
                await self._session.commit()
                raise InvalidTokenError

            user = await self._user_repo.find_by_id(auth_session.user_id)
            if user is None or not user.is_active:
                raise AuthenticationError(message="Account is disabled")

            await self._auth_session_repo.delete_by_id(auth_session.id)
            await self._token_service.revoke_session(
                auth_session.id, auth_session.expires_at
            )
            return await self._open_session(user, touch_login=False)
        finally:
            await self._token_service.release_refresh_lock(refresh_token)

    async def logout(
        self, user_id: str, session_id: str, refresh_token: str | None = None
    ) -> MessageResponse:
        """Invalidate the caller's auth session (and a given refresh token)."""
        targets = []
        for auth_session in await self._auth_session_repo.find_by_user(user_id):
            if auth_session.id == session_id or (
                refresh_token is not None
                and auth_session.refresh_token == refresh_token
            ):
                targets.append(auth_session)

        for auth_session in targets:
            await self._auth_session_repo.delete_by_id(auth_session.id)
            await self._token_service.revoke_session(
                auth_session.id, auth_session.expires_at
            )
        await self._session.commit()

        logger.info("User logged out", user_id=user_id, revoked=len(targets))
        return MessageResponse(message="Successfully logged out")

    async def sweep_expired(self) -> int:
        """Delete auth sessions past their expiry."""
        removed = await self._auth_session_repo.delete_expired(datetime.now(UTC))
        await self._session.commit()
        if removed:
            logger.info("Expired auth sessions removed", count=removed)
        return removed

    async def get_user(self, user_id: str) -> User:
        user = await self._user_repo.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError
        return user

    async def deactivate(self, user_id: str) -> User:
        """Soft-deactivate a user and revoke all of their auth sessions."""
        user = await self.get_user(user_id)
        await self._user_repo.set_active(user_id, False)
        for auth_session in await self._auth_session_repo.find_by_user(user_id):
            await self._auth_session_repo.delete_by_id(auth_session.id)
            await self._token_service.revoke_session(
                auth_session.id, auth_session.expires_at
            )
        await self._session.commit()
        logger.info("User deactivated", user_id=user_id)
        return user

    async def set_roles(self, user_id: str, roles: list[str]) -> User:
        user = await self.get_user(user_id)
        await self._user_repo.set_roles(user_id, roles)
        await self._session.commit()
        logger.info("User roles changed", user_id=user_id, roles=roles)
        return user

    async def delete(self, user_id: str) -> None:
        """Hard-delete a user with all owned sessions, records and auth sessions."""
        auth_sessions = await self._auth_session_repo.find_by_user(user_id)
        if not await self._user_repo.delete(user_id):
            raise UserNotFoundError
        for auth_session in auth_sessions:
            await self._token_service.revoke_session(
                auth_session.id, auth_session.expires_at
            )
        await self._session.commit()
        logger.info("User deleted", user_id=user_id)

    async def _open_session(self, user: User, touch_login: bool = True) -> TokenResponse:
        refresh_token, expires_at = self._token_service.create_refresh_token()
        auth_session = await self._auth_session_repo.create(
            user_id=user.id, refresh_token=refresh_token, expires_at=expires_at
        )
        if touch_login:
            await self._user_repo.touch_last_login(user.id, datetime.now(UTC))
        await self._session.commit()

        logger.info("Auth session opened", user_id=user.id, session_id=auth_session.id)
        return TokenResponse(
            access_token=self._token_service.create_access_token(
                user_id=user.id,
                email=user.email,
                roles=list(user.roles),
                session_id=auth_session.id,
            ),
            refresh_token=refresh_token,
            expires_in=settings.auth.access_token_expire_minutes * 60,
        )
