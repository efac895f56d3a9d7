"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in catalog/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/, catalog/, or storage/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

TIERS: tuple[str, ...] = ("free", "premium", "pro")
DEFAULT_TIER = "free"


@dataclass
class Account:
    """A registered user.

    email is stored lower-cased and stripped; the store normalizes on both
    write and lookup so "A@x.com" and "a@x.com" are the same account.

    password_hash must never leave the auth layer. API responses are built by
    api.models.AccountSummary.from_account(), which has no field for it.

    artifact_count is only changed through CredentialStore.adjust_count(),
    which keeps it non-negative and below the tier ceiling.
    """

    email: str
    name: str
    password_hash: str
    id: str = ""
    tier: str = DEFAULT_TIER  # "free" | "premium" | "pro"
    artifact_count: int = 0
    is_active: bool = True
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""
    last_login: Optional[str] = None


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried by a verified session token. Never persisted."""

    subject_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class Identity:
    """The verified caller, attached to request.state.identity by the guards."""

    subject_id: str
    email: str
    account: Account
