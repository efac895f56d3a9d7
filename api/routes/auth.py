"""
api/routes/auth.py -- Sign-up, sign-in and token verification endpoints.

Routes:
  POST /api/auth/signup   -- create account; returns summary + token (201)
  POST /api/auth/signin   -- password login; returns summary + token
  GET  /api/auth/verify   -- confirm a bearer token and return the account

Security:
  signup and signin are rate-limited per client address (AUTH_RATE_LIMIT).
  PasswordHasher.authenticate() provides timing equalization -- use it,
  never inline find_by_email() + verify().
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import AccountSummary, AuthResponse, SigninRequest, SignupRequest
from auth.dependencies import get_current_identity
from auth.models import Account, Identity
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenService
from core.errors import AuthError, ConflictError

logger = logging.getLogger("imagegate.auth")

router = APIRouter(prefix="/auth")


def _auth_response(request: Request, response: Response, account: Account) -> AuthResponse:
    tokens: TokenService = request.app.state.tokens
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        user=AccountSummary.from_account(account),
        token=tokens.issue(account.id, account.email),
        expires_in=tokens.lifetime_seconds,
    )


@router.post("/signup", response_model=AuthResponse, status_code=201)
@limiter.limit(AUTH_RATE_LIMIT)
def signup(request: Request, response: Response, body: SignupRequest) -> AuthResponse:
    """Register a new free-tier account and sign it in.

    Returns 409 if the (normalized) email is already registered. The duplicate
    check runs before hashing so a rejected signup does not pay bcrypt's cost.
    """
    credentials: CredentialStore = request.app.state.credentials
    hasher: PasswordHasher = request.app.state.hasher

    if credentials.find_by_email(body.email) is not None:
        raise ConflictError("User with this email already exists.")

    account = credentials.create(body.email, body.name, hasher.hash(body.password))
    logger.info("Account created: %s", account.id)
    return _auth_response(request, response, account)


@router.post("/signin", response_model=AuthResponse)
@limiter.limit(AUTH_RATE_LIMIT)
def signin(request: Request, response: Response, body: SigninRequest) -> AuthResponse:
    """Authenticate with email and password.

    Unknown email and wrong password share one error so the response does not
    reveal which accounts exist. A deactivated account is reported as such,
    but only after its password was verified.
    """
    credentials: CredentialStore = request.app.state.credentials
    hasher: PasswordHasher = request.app.state.hasher

    try:
        account = hasher.authenticate(credentials, body.email, body.password)
    except AuthError as exc:
        logger.info("Sign-in rejected (%s)", exc.reason.value)
        raise

    account = credentials.record_login(account.id)
    return _auth_response(request, response, account)


@router.get("/verify", response_model=AccountSummary)
def verify(identity: Identity = Depends(get_current_identity)) -> AccountSummary:
    """Return the account behind a valid bearer token."""
    return AccountSummary.from_account(identity.account)
