"""
catalog/quota.py -- Tier-based ceilings on how many artifacts an account holds.

The counter lives on the account row (Account.artifact_count). Reservation
is delegated to CredentialStore.adjust_count() with the ceiling table, which
turns "count < ceiling, then count + 1" into one conditional UPDATE. Two
requests racing for the last slot cannot both win: the loser's UPDATE matches
no row and nothing is written.
"""

from __future__ import annotations

import logging

from auth.models import DEFAULT_TIER, Account
from auth.store import CredentialStore
from core.errors import ConflictError, QuotaExceededError

logger = logging.getLogger("imagegate.catalog")

TIER_LIMITS: dict[str, int] = {
    "free": 10,
    "premium": 100,
    "pro": 1000,
}


class QuotaGate:
    def __init__(self, credentials: CredentialStore, limits: dict[str, int] = TIER_LIMITS) -> None:
        self.credentials = credentials
        self.limits = limits

    def limit_for(self, tier: str) -> int:
        """Return the artifact ceiling for tier. Unknown tiers get the free limit."""
        return self.limits.get(tier, self.limits[DEFAULT_TIER])

    def remaining(self, account: Account) -> int:
        return max(0, self.limit_for(account.tier) - account.artifact_count)

    def check_and_reserve(self, account: Account) -> Account:
        """Claim one slot for account, returning the updated record.

        Raises QuotaExceededError, with no side effects, when the account is
        already at or above its tier's ceiling. NotFoundError propagates from
        the store if the account vanished.
        """
        try:
            return self.credentials.adjust_count(account.id, +1, ceilings=self.limits)
        except ConflictError:
            limit = self.limit_for(account.tier)
            logger.info("Quota exceeded for account %s (tier=%s, limit=%d)", account.id, account.tier, limit)
            raise QuotaExceededError(account.tier, limit) from None

    def release(self, account_id: str) -> Account:
        """Give back one slot. The counter never drops below zero."""
        return self.credentials.adjust_count(account_id, -1)
