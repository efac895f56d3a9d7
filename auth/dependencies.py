"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

One credential type is accepted: Authorization: Bearer <token>.

get_current_identity() is the fail-closed guard: any missing, malformed,
expired or forged credential, or a token whose subject no longer exists,
raises AuthError (401).

try_get_current_identity() is the fail-open variant for routes that work
with or without a caller. It runs the same steps and converts AuthError --
and only AuthError -- into None. Anything else (store unavailable, a bug)
still propagates to the generic handler and is logged there.

Neither guard re-checks Account.is_active: tokens issued before a
deactivation stay usable until they expire. Sign-in refuses deactivated
accounts, so no new tokens are minted for them.

Both guards attach the result to request.state.identity.

Layer rule: no imports from catalog/ or storage/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request

from auth.models import Identity
from auth.store import CredentialStore
from auth.tokens import TokenService
from core.errors import AuthError, AuthReason

logger = logging.getLogger("imagegate.auth")

_BEARER_PREFIX = "bearer "


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if header[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = header[len(_BEARER_PREFIX) :].strip()
    return token or None


def _resolve_identity(request: Request) -> Identity:
    token = _bearer_token(request)
    if token is None:
        raise AuthError(AuthReason.MISSING)

    tokens: TokenService = request.app.state.tokens
    credentials: CredentialStore = request.app.state.credentials

    claims = tokens.verify(token)
    account = credentials.find_by_id(claims.subject_id)
    if account is None:
        raise AuthError(AuthReason.UNKNOWN_SUBJECT)
    return Identity(subject_id=claims.subject_id, email=claims.email, account=account)


def get_current_identity(request: Request) -> Identity:
    """Require authentication. Raises AuthError (401) if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(identity: Identity = Depends(get_current_identity)): ...
    """
    identity = _resolve_identity(request)
    request.state.identity = identity
    return identity


def try_get_current_identity(request: Request) -> Optional[Identity]:
    """Authenticate if possible. Returns None instead of raising on AuthError."""
    try:
        identity = _resolve_identity(request)
    except AuthError as exc:
        logger.debug("Optional auth fell through: %s", exc.reason.value)
        request.state.identity = None
        return None
    request.state.identity = identity
    return identity
