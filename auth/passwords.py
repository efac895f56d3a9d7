"""
auth/passwords.py -- bcrypt password hashing on a dedicated worker pool.

Security design decisions:
  Passwords: bcrypt used directly (no passlib wrapper). Inputs are truncated
       to bcrypt's 72-byte limit before hashing; the API layer caps password
       length well below anything that matters.

  Worker pool: bcrypt is deliberately slow and CPU-bound. Every hash and
       verify runs on a ThreadPoolExecutor owned by PasswordHasher, sized by
       HASH_WORKERS independently of the request threadpool, so a burst of
       sign-ins cannot starve unrelated requests. Each call is bounded by
       HASH_TIMEOUT_SECONDS; a timeout surfaces as InternalError.

  Timing equalization: authenticate() always runs exactly one bcrypt
       comparison, against a dummy hash when the email is unknown, so response
       time does not reveal whether an account exists.

Layer rule: no imports from api/, catalog/, or storage/.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import TYPE_CHECKING

import bcrypt

from core.errors import AuthError, AuthReason, InternalError

if TYPE_CHECKING:
    from auth.models import Account
    from auth.store import CredentialStore

logger = logging.getLogger("imagegate.auth")

_BCRYPT_MAX_BYTES = 72


def _hash(plain: str, rounds: int) -> str:
    return bcrypt.hashpw(plain.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def _check(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


class PasswordHasher:
    """bcrypt hashing and verification executed on a bounded pool.

    Usage:
        hasher = PasswordHasher(rounds=12, max_workers=4)
        hashed = hasher.hash("Secret123")
        hasher.verify("Secret123", hashed)   # True
        hasher.close()
    """

    def __init__(self, rounds: int = 12, max_workers: int = 4, timeout: float = 10.0) -> None:
        self.rounds = rounds
        self.timeout = timeout
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="bcrypt")
        # Computed once so the first unknown-email sign-in is not measurably
        # slower than later ones.
        self._dummy_hash = self.hash("imagegate_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password."""
        return self._run(_hash, plain, self.rounds)

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash."""
        return self._run(_check, plain, hashed)

    def authenticate(self, store: CredentialStore, email: str, password: str) -> Account:
        """Resolve an email/password pair to an active Account.

        The password is checked before the active flag, so a deactivated
        account is only reported as such to a caller who knows its password.

        Raises AuthError(INVALID_CREDENTIALS) for an unknown email or a wrong
        password and AuthError(DEACTIVATED) for a soft-deleted account.
        """
        account = store.find_by_email(email)
        if account is None:
            # Equalize timing -- do NOT return early before running bcrypt.
            self.verify(password, self._dummy_hash)
            raise AuthError(AuthReason.INVALID_CREDENTIALS)
        if not self.verify(password, account.password_hash):
            raise AuthError(AuthReason.INVALID_CREDENTIALS)
        if not account.is_active:
            raise AuthError(AuthReason.DEACTIVATED)
        return account

    def _run(self, fn, *args):
        future = self._pool.submit(fn, *args)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout as exc:
            future.cancel()
            logger.error("Password hashing exceeded %.1fs", self.timeout)
            raise InternalError("Password hashing timed out.") from exc

    def close(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)
