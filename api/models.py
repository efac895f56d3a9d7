"""
API request and response models for imagegate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two through the from_* factory classmethods below,
never by spreading a domain object into a response -- AccountSummary simply
has no field a password hash could land in.

Separation of concerns: domain models = domain truth; api/ models = API contract.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from auth.models import Account
from catalog.models import DEFAULT_SIZE, DEFAULT_STYLE, SIZES, STYLES, Artifact

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_PASSWORD_RULE = "Password must contain at least one uppercase letter, one lowercase letter, and one number."


def _check_password_strength(value: str) -> str:
    if not (re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value)):
        raise ValueError(_PASSWORD_RULE)
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


# Built from catalog.models so /options and request validation share one list.
StyleEnum = Enum("StyleEnum", {style: style for style in STYLES}, type=str)
SizeEnum = Enum("SizeEnum", {size: size for size in SIZES}, type=str)


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/auth/signup."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class SigninRequest(BaseModel):
    """Request body for POST /api/auth/signin."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


# ---------------------------------------------------------------------------
# Auth / users -- response models
# ---------------------------------------------------------------------------


class AccountSummary(BaseModel):
    """Public view of an account. The only shape an Account leaves the API in."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    name: str
    subscription_tier: str
    image_count: int
    created_at: str
    updated_at: str
    last_login: Optional[str] = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountSummary":
        return cls(
            user_id=account.id,
            email=account.email,
            name=account.name,
            subscription_tier=account.tier,
            image_count=account.artifact_count,
            created_at=account.created_at,
            updated_at=account.updated_at,
            last_login=account.last_login,
        )


class AuthResponse(BaseModel):
    """Response for signup and signin: the account plus a fresh session token."""

    model_config = ConfigDict(frozen=True)

    user: AccountSummary
    token: str
    token_type: str = "bearer"
    expires_in: int


class UsageStats(BaseModel):
    """Response for GET /api/users/stats."""

    model_config = ConfigDict(frozen=True)

    total_images: int
    remaining_images: int
    subscription_tier: str
    subscription_limit: int
    account_created: str
    last_login: Optional[str] = None


# ---------------------------------------------------------------------------
# Users -- request models
# ---------------------------------------------------------------------------


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/users/profile. All fields optional.

    Wire names are camelCase (currentPassword, newPassword) for compatibility
    with existing clients; snake_case is accepted too.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    current_password: Optional[str] = Field(default=None, alias="currentPassword", min_length=1, max_length=128)
    new_password: Optional[str] = Field(default=None, alias="newPassword", min_length=6, max_length=128)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_strength(value) if value is not None else value


class AccountDeleteRequest(BaseModel):
    """Request body for DELETE /api/users/account."""

    password: str = Field(min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


class GenerateRequest(BaseModel):
    """Request body for POST /api/images/generate."""

    model_config = ConfigDict(str_strip_whitespace=True)

    prompt: str = Field(min_length=3, max_length=1000)
    style: StyleEnum = StyleEnum(DEFAULT_STYLE)
    size: SizeEnum = SizeEnum(DEFAULT_SIZE)


class ArtifactResponse(BaseModel):
    """One generated image as returned to its owner."""

    model_config = ConfigDict(frozen=True)

    image_id: str
    prompt: str
    style: str
    size: str
    url: Optional[str]
    status: str
    progress: int
    created_at: str

    @classmethod
    def from_artifact(cls, artifact: Artifact) -> "ArtifactResponse":
        return cls(
            image_id=artifact.id,
            prompt=artifact.prompt,
            style=artifact.style,
            size=artifact.size,
            url=artifact.result_url,
            status=artifact.status,
            progress=artifact.progress,
            created_at=artifact.created_at,
        )


class ArtifactPage(BaseModel):
    """Response for GET /api/images/my-images. next_cursor is null on the last page."""

    model_config = ConfigDict(frozen=True)

    images: list[ArtifactResponse]
    next_cursor: Optional[str] = None
    count: int


class ArtifactStatusResponse(BaseModel):
    """Response for GET /api/images/{image_id}/status."""

    model_config = ConfigDict(frozen=True)

    image_id: str
    status: str
    progress: int
    created_at: str


class GenerationOptions(BaseModel):
    """Response for GET /api/images/options.

    remaining_images is only filled in when the caller is authenticated.
    """

    model_config = ConfigDict(frozen=True)

    styles: list[str]
    sizes: list[str]
    tier_limits: dict[str, int]
    subscription_tier: Optional[str] = None
    remaining_images: Optional[int] = None


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class FieldError(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: list[FieldError] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
