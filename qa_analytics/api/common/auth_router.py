"""Authentication endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from qa_analytics.core.config import settings
from qa_analytics.core.rate_limit import limiter
from qa_analytics.dependencies import (
    CurrentUser,
    get_current_user,
    get_token_service,
    get_user_service,
)
from qa_analytics.schemas.auth_schema import (
    IdentityLoginRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    RefreshRequest,
    TokenResponse,
    UserResponse,
)
from qa_analytics.schemas.response_schema import ApiResponse, success_response
from qa_analytics.services.token_service import TokenService
from qa_analytics.services.user_service import UserService

router = APIRouter(prefix="/api/auth", tags=["auth"])

UserServiceDep = Annotated[UserService, Depends(get_user_service)]
TokenServiceDep = Annotated[TokenService, Depends(get_token_service)]


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(
    body: LoginRequest,
    user_service: UserServiceDep,
) -> dict:
    """Authenticate with a local credential and receive tokens."""
    result = await user_service.login(body)
    return success_response(result)


@router.post("/identity-login", response_model=ApiResponse[TokenResponse])
async def identity_login(
    body: IdentityLoginRequest,
    token_service: TokenServiceDep,
    user_service: UserServiceDep,
) -> dict:
    """Exchange an identity provider assertion for tokens.

    The user is created on first authentication.
    """
    claims = token_service.decode_identity_token(body.identity_token)
    result = await user_service.record_login(
        email=claims.email,
        name=claims.name,
        user_id=claims.sub,
        display_name=claims.display_name,
        tenant_id=claims.tenant_id,
    )
    return success_response(result)


@router.post("/refresh", response_model=ApiResponse[TokenResponse])
@limiter.limit(settings.auth.refresh_rate_limit)
async def refresh(
    request: Request,
    body: RefreshRequest,
    user_service: UserServiceDep,
) -> dict:
    """Rotate a refresh token and receive a new token pair."""
    result = await user_service.refresh(body.refresh_token)
    return success_response(result)


@router.post("/logout", response_model=ApiResponse[MessageResponse])
async def logout(
    body: LogoutRequest,
    user_service: UserServiceDep,
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    """Revoke the caller's auth session."""
    result = await user_service.logout(
        user_id=current_user.id,
        session_id=current_user.session_id,
        refresh_token=body.refresh_token,
    )
    return success_response(result)


@router.get("/me", response_model=ApiResponse[UserResponse])
async def me(
    user_service: UserServiceDep,
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    """Return the authenticated user."""
    user = await user_service.get_user(current_user.id)
    return success_response(UserResponse.model_validate(user))
