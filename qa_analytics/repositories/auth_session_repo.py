"""Auth session (refresh token) repository."""

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from qa_analytics.models.auth_session import AuthSession


class AuthSessionRepository:
    """Encapsulates refresh-token session queries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self, user_id: str, refresh_token: str, expires_at: datetime
    ) -> AuthSession:
        """Persist a newly issued refresh token."""
        auth_session = AuthSession(
            id=str(uuid.uuid4()),
            user_id=user_id,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        self._session.add(auth_session)
        await self._session.flush()
        await self._session.refresh(auth_session)
        return auth_session

    async def find_by_refresh_token(self, refresh_token: str) -> AuthSession | None:
        """Find the auth session that issued a refresh token."""
        result = await self._session.execute(
            select(AuthSession).where(AuthSession.refresh_token == refresh_token)
        )
        return result.scalar_one_or_none()

    async def find_by_user(self, user_id: str) -> list[AuthSession]:
        """All auth sessions of a user, newest first."""
        result = await self._session.execute(
            select(AuthSession)
            .where(AuthSession.user_id == user_id)
            .order_by(AuthSession.created_at.desc())
        )
        return list(result.scalars().all())

    async def delete_by_id(self, auth_session_id: str) -> None:
        """Invalidate one auth session."""
        await self._session.execute(
            delete(AuthSession).where(AuthSession.id == auth_session_id)
        )

    async def find_expired(self, now: datetime) -> list[AuthSession]:
        """Auth sessions whose refresh token has expired."""
        result = await self._session.execute(
            select(AuthSession).where(AuthSession.expires_at <= now)
        )
        return list(result.scalars().all())

    async def delete_expired(self, now: datetime) -> int:
        """Remove expired auth sessions, returning how many were removed."""
        result = await self._session.execute(
            delete(AuthSession).where(AuthSession.expires_at <= now)
        )
        return int(result.rowcount or 0)
