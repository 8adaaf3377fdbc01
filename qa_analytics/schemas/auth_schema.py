"""Authentication request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class LoginRequest(BaseModel):
    """Local credential login request."""

    email: EmailStr = Field(description="User email address")
    password: str = Field(description="User password")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class IdentityLoginRequest(BaseModel):
    """Login with an identity assertion issued by the identity provider."""

    identity_token: str = Field(description="Signed identity assertion")


class RefreshRequest(BaseModel):
    """Token refresh request."""

    refresh_token: str = Field(description="Refresh token")


class LogoutRequest(BaseModel):
    """Logout request."""

    refresh_token: str | None = Field(
        default=None, description="Refresh token to invalidate"
    )


class TokenResponse(BaseModel):
    """Token pair response."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token TTL in seconds")


class UserResponse(BaseModel):
    """Public user representation."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    email: str
    name: str
    display_name: str
    roles: list[str]
    tenant_id: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime


class UpdateRolesRequest(BaseModel):
    """Replace a user's roles."""

    roles: list[str] = Field(min_length=1)

    @field_validator("roles")
    @classmethod
    def dedupe_roles(cls, v: list[str]) -> list[str]:
        return sorted({role.strip() for role in v if role.strip()})


class MessageResponse(BaseModel):
    """Simple message response."""

    model_config = ConfigDict(frozen=True)

    message: str


class IdentityClaims(BaseModel):
    """Identity asserted by the identity provider."""

    model_config = ConfigDict(frozen=True)

    sub: str = Field(min_length=1)
    email: EmailStr
    name: str = Field(min_length=1)
    display_name: str | None = None
    tenant_id: str | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class TokenPayload(BaseModel):
    """Decoded JWT payload."""

    model_config = ConfigDict(frozen=True)

    sub: str
    sid: str
    email: str
    roles: list[str]
    type: str
    jti: str
    exp: int
