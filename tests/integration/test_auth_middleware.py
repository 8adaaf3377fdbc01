"""Integration tests for AuthMiddleware."""

import time

import fakeredis.aioredis
import jwt as pyjwt
from httpx import AsyncClient

from qa_analytics.core.config import settings
from tests.conftest import make_auth_headers


class TestPublicPaths:
    """Public paths are accessible without auth."""

    async def test_health_check(self, async_client: AsyncClient) -> None:
        resp = await async_client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["data"] == {"status": "healthy"}

    async def test_root(self, async_client: AsyncClient) -> None:
        resp = await async_client.get("/")
        assert resp.status_code == 200

    async def test_docs(self, async_client: AsyncClient) -> None:
        resp = await async_client.get("/docs")
        assert resp.status_code == 200


class TestProtectedPaths:
    """Protected paths require a valid, unrevoked access token."""

    async def test_without_token(self, async_client: AsyncClient) -> None:
        resp = await async_client.get("/api/v1/sessions", params={"type": "question"})
        assert resp.status_code == 401
        data = resp.json()
        assert data["status"] == 401
        assert data["code"] == "MISSING_TOKEN"

    async def test_with_invalid_token(self, async_client: AsyncClient) -> None:
        resp = await async_client.get(
            "/api/v1/sessions",
            params={"type": "question"},
            headers={"Authorization": "Bearer invalid.token.here"},
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_TOKEN"

    async def test_with_expired_token(self, async_client: AsyncClient) -> None:
        token = pyjwt.encode(
            {
                "sub": "user-1",
                "sid": "s",
                "email": "a@b.com",
                "roles": ["user"],
                "type": "access",
                "jti": "j",
                "exp": int(time.time()) - 5,
            },
            settings.auth.secret_key.get_secret_value(),
            algorithm=settings.auth.algorithm,
        )
        resp = await async_client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "TOKEN_EXPIRED"

    async def test_token_without_session_id(self, async_client: AsyncClient) -> None:
        token = pyjwt.encode(
            {"sub": "user-1", "type": "access", "exp": int(time.time()) + 60},
            settings.auth.secret_key.get_secret_value(),
            algorithm=settings.auth.algorithm,
        )
        resp = await async_client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == "INVALID_TOKEN"

    async def test_revoked_session(
        self,
        authed_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
    ) -> None:
        await fake_redis.setex("revoked_session:auth-session-1", 60, "1")
        resp = await authed_client.get("/api/auth/me")
        assert resp.status_code == 401
        assert resp.json()["code"] == "TOKEN_REVOKED"

    async def test_with_valid_token(self, authed_client: AsyncClient) -> None:
        resp = await authed_client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == "user-1"

    async def test_role_guard(
        self,
        async_client: AsyncClient,
        fake_redis: fakeredis.aioredis.FakeRedis,
    ) -> None:
        headers = make_auth_headers(fake_redis, roles=("viewer",))
        resp = await async_client.get(
            "/api/v1/sessions", params={"type": "question"}, headers=headers
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "AUTHORIZATION_ERROR"
