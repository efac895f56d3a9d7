"""
tests/conftest.py -- Shared test fixtures for imagegate integration tests.

This module provides:
  - _make_test_components(): isolated in-memory stores + a temp blob root
  - _patch_lifespan(): wires those components into app.state, bypassing real startup
  - api_client: module-scoped TestClient over the real app and routes
  - signup: factory fixture that registers a fresh account and returns its token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment must be set before any imagegate import: get_settings() is
cached on first call, and api/limiter.py reads it at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

# CRITICAL: set before any core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenService
from catalog.producer import PlaceholderProducer
from catalog.quota import QuotaGate
from catalog.store import ResourceCatalog
from core.config import get_settings
from storage.blobs import LocalBlobStore

TEST_PASSWORD = "Secret123"


# ---------------------------------------------------------------------------
# Component helpers
# ---------------------------------------------------------------------------


def _make_test_components(db_suffix: str, blob_root: Path) -> dict:
    """Create an isolated component graph for one test module.

    Both stores share one named in-memory database, the same way production
    points both at DATABASE_URL.
    """
    db_url = f"sqlite:///file:test_imagegate_{db_suffix}?mode=memory&cache=shared&uri=true"
    credentials = CredentialStore(db_url)
    blobs = LocalBlobStore(blob_root, base_url="/blobs")
    quota = QuotaGate(credentials)
    return {
        "credentials": credentials,
        "blobs": blobs,
        "hasher": PasswordHasher(rounds=4, max_workers=2),
        "tokens": TokenService(get_settings().secret_key, lifetime_seconds=3600),
        "quota": quota,
        "catalog": ResourceCatalog(db_url, blobs, quota),
        "producer": PlaceholderProducer(blobs),
    }


def _patch_lifespan(components: dict):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        for name, component in components.items():
            setattr(app.state, name, component)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request, tmp_path_factory) -> Generator[TestClient, None, None]:
    """Yield a TestClient whose app.state holds isolated test components.

    One database per test module: the suffix is the module name, so modules
    never see each other's accounts.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    components = _make_test_components(suffix, tmp_path_factory.mktemp(f"blobs_{suffix}"))
    app.router.lifespan_context = _patch_lifespan(components)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    components["catalog"].close()
    components["hasher"].close()
    components["credentials"].close()


@pytest.fixture
def signup(api_client: TestClient) -> Callable[..., tuple[str, dict]]:
    """Return a helper that registers a unique account.

    The helper returns (token, user) where user is the account summary from
    the signup response.
    """

    def _signup(name: str = "Test User", password: str = TEST_PASSWORD, email: Optional[str] = None):
        email = email or f"user-{uuid.uuid4().hex[:12]}@example.com"
        resp = api_client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["token"], body["user"]

    return _signup
