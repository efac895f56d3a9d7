"""
api/main.py -- FastAPI application entry point for imagegate.

Exposes account, session, quota and image-catalog operations over HTTP.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for allowed browser origins
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter

Lifespan builds every component once and hangs it on app.state; route
handlers read their collaborators from there and never construct them.
Shutdown closes them in reverse order.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, FieldError, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.images import router as images_router
from api.routes.users import router as users_router
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenService
from catalog.producer import PlaceholderProducer
from catalog.quota import QuotaGate
from catalog.store import ResourceCatalog
from core.config import get_settings
from core.errors import AuthError, GatewayError
from storage.blobs import LocalBlobStore

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("imagegate.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the component graph on startup and tear it down on shutdown.

    Startup order follows the dependency edges:
      1. CredentialStore and LocalBlobStore depend on nothing.
      2. QuotaGate wraps the credential store's counter.
      3. ResourceCatalog needs the blob store and the quota gate.
      4. The producer writes through the blob store.
    """
    settings = get_settings()
    logger.info("imagegate API starting up")

    app.state.credentials = CredentialStore(settings.database_url, timeout=settings.store_timeout_seconds)
    app.state.blobs = LocalBlobStore(settings.blob_root, base_url=settings.blob_base_url)
    app.state.hasher = PasswordHasher(
        rounds=settings.bcrypt_rounds,
        max_workers=settings.hash_workers,
        timeout=settings.hash_timeout_seconds,
    )
    app.state.tokens = TokenService(settings.secret_key, lifetime_seconds=settings.token_expire_seconds)
    app.state.quota = QuotaGate(app.state.credentials)
    app.state.catalog = ResourceCatalog(
        settings.database_url,
        app.state.blobs,
        app.state.quota,
        timeout=settings.store_timeout_seconds,
        blob_delete_attempts=settings.blob_delete_attempts,
    )
    app.state.producer = PlaceholderProducer(app.state.blobs)
    logger.info("Stores initialized (blobs at %s)", settings.blob_root)

    yield

    app.state.catalog.close()
    app.state.hasher.close()
    app.state.credentials.close()
    logger.info("imagegate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="imagegate API",
    description="Accounts, bearer sessions and quota-gated image generation.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(users_router, prefix="/api", tags=["Users"])
app.include_router(images_router, prefix="/api", tags=["Images"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _envelope(status_code: int, code: str, message: str, detail=None, fields=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=ErrorDetail(code=code, message=message, detail=detail, fields=fields or [])
        ).model_dump(),
    )


@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render any domain error. 5xx messages are replaced before they leave."""
    if exc.status_code >= 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
        return _envelope(exc.status_code, exc.code, "An unexpected error occurred.")

    response = _envelope(
        exc.status_code,
        exc.code,
        exc.message,
        detail=exc.detail,
        fields=[FieldError(**f) for f in exc.fields],
    )
    if isinstance(exc, AuthError):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a Retry-After header when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _envelope(429, "rate_limited", "Too many requests.", detail=str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with one entry per offending field.

    The location prefix ("body", "query", ...) is dropped so clients see the
    field name they sent.
    """
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "header")]
        fields.append(FieldError(field=".".join(loc) or "request", message=err.get("msg", "Invalid value.")))
    return _envelope(400, "validation_error", "Request validation failed.", fields=fields)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404 on unknown paths, 405, ...)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _envelope(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The traceback goes to the log only; the client receives a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No auth and no rate limit -- load balancers poll it.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and a database probe."""
    db_ok = request.app.state.credentials.ping()
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=API_VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "unavailable"},
    )
