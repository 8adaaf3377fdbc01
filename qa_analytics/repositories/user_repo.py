"""User repository for database operations."""

import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from qa_analytics.models.user import User


class UserRepository:
    """Encapsulates user-related database queries."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        """Find a user by email address."""
        result = await self._session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: str) -> User | None:
        """Find a user by primary key."""
        result = await self._session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def create(
        self,
        email: str,
        name: str,
        display_name: str | None = None,
        user_id: str | None = None,
        password: str | None = None,
        tenant_id: str | None = None,
        roles: list[str] | None = None,
    ) -> User:
        """Create a new user record."""
        user = User(
            id=user_id or str(uuid.uuid4()),
            email=email,
            name=name,
            display_name=display_name or name,
            password=password,
            tenant_id=tenant_id,
            roles=roles or ["user"],
            is_active=True,
        )
        self._session.add(user)
        await self._session.flush()
        await self._session.refresh(user)
        return user

    async def touch_last_login(self, user_id: str, at: datetime) -> None:
        """Record a successful login time."""
        await self._session.execute(
            update(User).where(User.id == user_id).values(last_login_at=at)
        )

    async def set_active(self, user_id: str, is_active: bool) -> None:
        """Soft-(de)activate a user."""
        await self._session.execute(
            update(User).where(User.id == user_id).values(is_active=is_active)
        )

    async def set_roles(self, user_id: str, roles: list[str]) -> None:
        """Replace the user's role set."""
        await self._session.execute(
            update(User).where(User.id == user_id).values(roles=roles)
        )

    async def delete(self, user_id: str) -> bool:
        """Hard-delete a user; owned rows go with it via ON DELETE CASCADE."""
        result = await self._session.execute(delete(User).where(User.id == user_id))
        return bool(result.rowcount)
