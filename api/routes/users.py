"""
api/routes/users.py -- Profile, usage and account lifecycle for the caller.

Routes:
  GET    /api/users/profile   -- fresh account summary
  PUT    /api/users/profile   -- change name and/or password
  GET    /api/users/stats     -- usage against the tier ceiling
  DELETE /api/users/account   -- soft delete (deactivate) after password check

Password changes require the current password; both "missing" and
"incorrect" are 400s on the currentPassword field. Deleting an account only
deactivates it: the row, its artifacts and their blobs are kept, and sign-in
is refused from then on.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from api.models import AccountDeleteRequest, AccountSummary, MessageResponse, ProfileUpdate, UsageStats
from auth.dependencies import get_current_identity
from auth.models import Account, Identity
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from catalog.quota import QuotaGate
from core.errors import NotFoundError, ValidationError

logger = logging.getLogger("imagegate.auth")

router = APIRouter(prefix="/users", dependencies=[Depends(get_current_identity)])


def _fresh_account(request: Request, identity: Identity) -> Account:
    credentials: CredentialStore = request.app.state.credentials
    account = credentials.find_by_id(identity.subject_id)
    if account is None:
        raise NotFoundError("User not found.")
    return account


@router.get("/profile", response_model=AccountSummary)
def get_profile(request: Request, identity: Identity = Depends(get_current_identity)) -> AccountSummary:
    return AccountSummary.from_account(_fresh_account(request, identity))


@router.put("/profile", response_model=AccountSummary)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
) -> AccountSummary:
    """Update the caller's display name and/or password."""
    credentials: CredentialStore = request.app.state.credentials
    hasher: PasswordHasher = request.app.state.hasher
    account = _fresh_account(request, identity)

    patch: dict = {}
    if body.name and body.name != account.name:
        patch["name"] = body.name

    if body.new_password:
        if not body.current_password:
            raise ValidationError.for_field(
                "currentPassword", "Current password is required to change password.", code="missing_current_password"
            )
        if not hasher.verify(body.current_password, account.password_hash):
            raise ValidationError.for_field(
                "currentPassword", "Current password is incorrect.", code="incorrect_password"
            )
        patch["password_hash"] = hasher.hash(body.new_password)

    updated = credentials.update_profile(account.id, **patch)
    if "password_hash" in patch:
        logger.info("Password changed for account %s", account.id)
    return AccountSummary.from_account(updated)


@router.get("/stats", response_model=UsageStats)
def get_stats(request: Request, identity: Identity = Depends(get_current_identity)) -> UsageStats:
    quota: QuotaGate = request.app.state.quota
    account = _fresh_account(request, identity)
    return UsageStats(
        total_images=account.artifact_count,
        remaining_images=quota.remaining(account),
        subscription_tier=account.tier,
        subscription_limit=quota.limit_for(account.tier),
        account_created=account.created_at,
        last_login=account.last_login,
    )


@router.delete("/account", response_model=MessageResponse)
def delete_account(
    request: Request,
    body: AccountDeleteRequest,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    """Deactivate the caller's account after re-checking their password."""
    credentials: CredentialStore = request.app.state.credentials
    hasher: PasswordHasher = request.app.state.hasher
    account = _fresh_account(request, identity)

    if not hasher.verify(body.password, account.password_hash):
        raise ValidationError.for_field("password", "Password is incorrect.", code="incorrect_password")

    credentials.set_active(account.id, False)
    logger.info("Account %s deactivated by owner", account.id)
    return MessageResponse(message="Account deactivated successfully.")
