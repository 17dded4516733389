"""
API request and response models for UserGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Field names on the wire are camelCase and are part of the contract. Request
models do NOT enforce length rules: AuthService validates fields in a fixed
order with field-level messages, and a Pydantic 422 would pre-empt that.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models import Profile, TokenPair

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    username: str = ""
    email: str = ""
    password: str = Field(default="", repr=False)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = ""
    password: str = Field(default="", repr=False)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    accessToken: str
    accessTokenExpiresIn: int
    refreshToken: str
    refreshTokenExpiresIn: int
    tokenType: str = "Bearer"

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(
            accessToken=pair.access_token,
            accessTokenExpiresIn=pair.access_token_expires_in,
            refreshToken=pair.refresh_token,
            refreshTokenExpiresIn=pair.refresh_token_expires_in,
            tokenType=pair.token_type,
        )


class ProfileResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            id=profile.id,
            username=profile.username,
            email=profile.email,
            createdAt=profile.created_at,
            updatedAt=profile.updated_at,
        )


class ErrorDetail(BaseModel):
    """Structured error information for all non-2xx responses."""

    code: str
    message: str
    field: Optional[str] = None
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope. All API errors use this shape."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    status: str
    version: str
    components: dict[str, str]
