"""
core/config.py -- imagegate settings, read once from the environment.

Every tunable lives on Settings; other modules call get_settings() and never
read os.environ themselves. pydantic-settings maps field names to upper-case
env vars (token_expire_seconds -> TOKEN_EXPIRE_SECONDS), loads an optional
.env file and coerces types, so a bad value fails at startup rather than on
the first request that needs it.

SECRET_KEY policy:
  DEBUG=true  -- a random key is generated if none is set; tokens die with
                 the process.
  otherwise   -- startup fails without SECRET_KEY.
  always      -- keys under 32 characters are refused. HS256 tokens are only
                 as strong as the key behind them.

Layer rule: core/ may not import from api/, auth/, catalog/, or storage/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("imagegate.config")

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Runtime configuration. Every field has a default except SECRET_KEY outside DEBUG."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ------------------------------------------------------------------
    # Mode and signing
    # ------------------------------------------------------------------

    debug: bool = False
    secret_key: str = ""  # "" = unset; resolved by _resolve_secret_key
    token_expire_seconds: int = Field(default=7 * 24 * 3600, gt=0)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = f"sqlite:///{_DATA_DIR / 'imagegate.db'}"
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    blob_root: Path = _DATA_DIR / "blobs"
    blob_base_url: str = "/blobs"
    blob_delete_attempts: int = Field(default=2, ge=1, le=5)

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=16)
    hash_workers: int = Field(default=4, ge=1)
    hash_timeout_seconds: float = Field(default=10.0, gt=0)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    auth_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    @model_validator(mode="after")
    def _resolve_secret_key(self) -> "Settings":
        if not self.secret_key:
            if not self.debug:
                raise ValueError("SECRET_KEY must be set unless DEBUG=true.")
            self.secret_key = secrets.token_hex(32)
            logger.warning("No SECRET_KEY configured; generated a temporary one. Tokens will not survive a restart.")
        if len(self.secret_key) < _MIN_SECRET_LENGTH:
            raise ValueError(f"SECRET_KEY must be at least {_MIN_SECRET_LENGTH} characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build Settings on first call and return the same instance afterwards.

    Tests that change the environment must call get_settings.cache_clear().
    """
    return Settings()
