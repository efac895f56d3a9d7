"""
auth/tokens.py -- Signed, time-bounded session tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub (account id), email, iat and exp as integer epoch seconds. The
       token is the whole session -- nothing is stored server-side.

  Verification: failures are raised as AuthError with a specific reason
       rather than collapsed to None, so the guard can tell a client its
       session expired instead of simply "unauthorized":
         MALFORMED          -- not a decodable JWT, or sub/email/exp missing
         INVALID_SIGNATURE  -- signature or algorithm check failed
         EXPIRED            -- exp at or before the current time
       The signature is checked before expiry, so a forged token is never
       reported as merely expired.

  Clock: expiry is evaluated against an injectable clock instead of jose's
       built-in exp check, which keeps issue() and verify() on the same time
       source and lets tests move time without sleeping.

Layer rule: no imports from api/, catalog/, or storage/.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from auth.models import SessionClaims
from core.errors import AuthError, AuthReason

_ALGORITHM = "HS256"
DEFAULT_LIFETIME_SECONDS = 7 * 24 * 3600


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies session tokens. Stateless; safe to share."""

    def __init__(
        self,
        secret_key: str,
        lifetime_seconds: int = DEFAULT_LIFETIME_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._secret_key = secret_key
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock or _utcnow

    def issue(self, subject_id: str, email: str) -> str:
        """Encode a signed token for the given account."""
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": subject_id,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + self.lifetime_seconds,
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> SessionClaims:
        """Decode and verify a token, returning its claims.

        Raises AuthError(MALFORMED | INVALID_SIGNATURE | EXPIRED).
        """
        try:
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise AuthError(AuthReason.MALFORMED) from exc

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise AuthError(AuthReason.INVALID_SIGNATURE) from exc

        subject_id = payload.get("sub")
        email = payload.get("email")
        exp = payload.get("exp")
        if not isinstance(subject_id, str) or not isinstance(email, str) or not isinstance(exp, int):
            raise AuthError(AuthReason.MALFORMED)

        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
        if expires_at <= self._clock():
            raise AuthError(AuthReason.EXPIRED)

        iat = payload.get("iat")
        issued_at = (
            datetime.fromtimestamp(iat, tz=timezone.utc)
            if isinstance(iat, int)
            else expires_at - timedelta(seconds=self.lifetime_seconds)
        )
        return SessionClaims(subject_id=subject_id, email=email, issued_at=issued_at, expires_at=expires_at)
