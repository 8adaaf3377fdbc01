"""JWT access tokens, opaque refresh tokens, and auth-session revocation."""

import secrets
import uuid
from datetime import UTC, datetime, timedelta

import jwt
import redis.asyncio as redis
from pydantic import ValidationError

from qa_analytics.core.config import settings
from qa_analytics.core.exceptions import (
    InvalidTokenError,
    TokenExpiredError,
)
from qa_analytics.schemas.auth_schema import IdentityClaims, TokenPayload

REVOKED_SESSION_PREFIX = "revoked_session:"
REFRESH_LOCK_PREFIX = "refresh_lock:"


class TokenService:
    """Mint and validate tokens; track revoked auth sessions in Redis."""

    def __init__(self, redis_client: redis.Redis) -> None:  # type: ignore[type-arg]
        self._redis = redis_client
        self._secret = settings.auth.secret_key.get_secret_value()
        self._algorithm = settings.auth.algorithm

    def create_access_token(
        self, user_id: str, email: str, roles: list[str], session_id: str
    ) -> str:
        """Create a signed JWT access token bound to an auth session."""
        now = datetime.now(UTC)
        expire = now + timedelta(minutes=settings.auth.access_token_expire_minutes)
        payload = {
            "sub": user_id,
            "sid": session_id,
            "email": email,
            "roles": roles,
            "type": "access",
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": expire,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    @staticmethod
    def create_refresh_token() -> tuple[str, datetime]:
        """Create an opaque refresh token and its expiry."""
        expires_at = datetime.now(UTC) + timedelta(
            days=settings.auth.refresh_token_expire_days
        )
        return secrets.token_urlsafe(48), expires_at

    def decode_token(self, token: str) -> TokenPayload:
        """Decode and validate a JWT access token."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError from e

        try:
            return TokenPayload(
                sub=payload["sub"],
                sid=payload["sid"],
                email=payload["email"],
                roles=payload["roles"],
                type=payload["type"],
                jti=payload["jti"],
                exp=payload["exp"],
            )
        except KeyError as e:
            raise InvalidTokenError from e

    def decode_identity_token(self, token: str) -> IdentityClaims:
        """Validate an identity assertion signed by the identity provider."""
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError from e
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError from e

        if payload.get("type") != "identity":
            raise InvalidTokenError
        try:
            return IdentityClaims(
                sub=payload["sub"],
                email=payload.get("email", ""),
                name=payload.get("name", ""),
                display_name=payload.get("display_name"),
                tenant_id=payload.get("tid"),
            )
        except ValidationError as e:
            raise InvalidTokenError from e

    # --- Revocation ---

    async def revoke_session(self, session_id: str, expires_at: datetime) -> None:
        """Reject access tokens of an auth session until it would have expired."""
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        ttl = int((expires_at - datetime.now(UTC)).total_seconds())
        if ttl > 0:
            await self._redis.setex(f"{REVOKED_SESSION_PREFIX}{session_id}", ttl, "1")

    async def is_session_revoked(self, session_id: str) -> bool:
        """Check if an auth session has been revoked."""
        result = await self._redis.get(f"{REVOKED_SESSION_PREFIX}{session_id}")
        return result is not None

    # --- Refresh lock (prevent concurrent rotation) ---

    async def acquire_refresh_lock(self, refresh_token: str) -> bool:
        """Acquire a short lock so a refresh token is rotated only once."""
        key = f"{REFRESH_LOCK_PREFIX}{refresh_token}"
        return bool(await self._redis.set(key, "1", ex=10, nx=True))

    async def release_refresh_lock(self, refresh_token: str) -> None:
        """Release the refresh lock."""
        await self._redis.delete(f"{REFRESH_LOCK_PREFIX}{refresh_token}")
