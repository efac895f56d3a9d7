"""
core/errors.py -- Closed error taxonomy shared by every imagegate component.

Each component raises one of these classes at its boundary; store-layer and
crypto-library exceptions are translated into these classes where they are
caught, never matched by string further up. api/main.py renders any GatewayError into the standard error
envelope using status_code and code, so adding a route never needs a new
exception handler.

Layer rule: no imports from api/, auth/, catalog/, or storage/.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class GatewayError(Exception):
    """Base class for all errors that map to an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        detail: Optional[str] = None,
        fields: Optional[list[dict[str, str]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.detail = detail
        self.fields = fields or []


class ValidationError(GatewayError):
    """Malformed or out-of-range input (400)."""

    status_code = 400
    code = "validation_error"

    @classmethod
    def for_field(cls, field: str, message: str, code: Optional[str] = None) -> "ValidationError":
        return cls(message, code=code, fields=[{"field": field, "message": message}])


class AuthReason(str, Enum):
    MISSING = "missing_credential"
    MALFORMED = "malformed_token"
    EXPIRED = "token_expired"
    INVALID_SIGNATURE = "invalid_signature"
    UNKNOWN_SUBJECT = "unknown_subject"
    INVALID_CREDENTIALS = "invalid_credentials"
    DEACTIVATED = "account_deactivated"


_AUTH_MESSAGES: dict[AuthReason, str] = {
    AuthReason.MISSING: "Access token required.",
    AuthReason.MALFORMED: "The provided token is malformed.",
    AuthReason.EXPIRED: "Your session has expired. Please sign in again.",
    AuthReason.INVALID_SIGNATURE: "The provided token is invalid.",
    AuthReason.UNKNOWN_SUBJECT: "User not found or token is invalid.",
    AuthReason.INVALID_CREDENTIALS: "Invalid email or password.",
    AuthReason.DEACTIVATED: "Account is deactivated. Please contact support.",
}


class AuthError(GatewayError):
    """Authentication failed (401). The reason selects code and message."""

    status_code = 401

    def __init__(self, reason: AuthReason, message: Optional[str] = None) -> None:
        super().__init__(message or _AUTH_MESSAGES[reason], code=reason.value)
        self.reason = reason


class ForbiddenError(GatewayError):
    """The caller is authenticated but does not own the resource (403)."""

    status_code = 403
    code = "forbidden"


class QuotaExceededError(GatewayError):
    """The account's tier ceiling has been reached (403)."""

    status_code = 403
    code = "quota_exceeded"

    def __init__(self, tier: str, limit: int) -> None:
        super().__init__(
            f"You've reached your {tier} tier limit of {limit} images. Please upgrade your subscription."
        )
        self.tier = tier
        self.limit = limit


class NotFoundError(GatewayError):
    status_code = 404
    code = "not_found"


class ConflictError(GatewayError):
    """Duplicate key or failed write condition (409)."""

    status_code = 409
    code = "conflict"


class InternalError(GatewayError):
    """Opaque server-side failure (500). The message is never shown to clients."""

    status_code = 500
    code = "internal_error"
