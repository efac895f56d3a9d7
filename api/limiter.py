"""
api/limiter.py -- The one slowapi Limiter for the whole app.

api/main.py registers it on app.state for SlowAPIMiddleware; api/routes/auth.py
decorates signup and signin with AUTH_RATE_LIMIT. Both must hold the same
object, since counters live in the instance's in-memory storage.

RATE_LIMIT_ENABLED=false turns every limit into a no-op (the test suite signs
up dozens of accounts from one client address).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

_settings = get_settings()

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", enabled=_settings.rate_limit_enabled)

AUTH_RATE_LIMIT = _settings.auth_rate_limit
