"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as catalog/store.py).
CredentialStore is the repository; _row_to_account is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  UNIQUE(email) is enforced by the schema. create() looks the email up first
  so the common case returns a clean ConflictError, and also maps the
  IntegrityError from a concurrent insert to the same ConflictError.

Counters:
  adjust_count() is a single conditional UPDATE. The floor (never below zero)
  and the optional tier ceiling are both evaluated inside the statement from
  the row's current values, so concurrent adjustments cannot overshoot.

Layer rule: no imports from api/, catalog/, or storage/.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from typing import Optional

from sqlalchemy import Boolean, Column, Integer, MetaData, String, Table, Text, case, text, true
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.models import DEFAULT_TIER, TIERS, Account
from core.database import create_store_engine, now_iso
from core.errors import ConflictError, NotFoundError

logger = logging.getLogger("imagegate.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("tier", String(20), nullable=False, server_default=DEFAULT_TIER),
    Column("artifact_count", Integer, nullable=False, server_default="0"),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
    Column("last_login", String(40)),
)

# Columns update_profile() may touch. Anything else is a programming error.
_PROFILE_FIELDS = frozenset({"name", "password_hash", "tier"})


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Account records.

    Usage:
        store = CredentialStore("sqlite:///:memory:")
        account = store.create("ada@example.com", "Ada", hashed)
        store.adjust_count(account.id, +1, ceilings={"free": 10})
        store.close()
    """

    def __init__(self, db_url: str, timeout: float = 5.0) -> None:
        self.engine: Engine = create_store_engine(db_url, timeout=timeout)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                return conn.execute(text("SELECT 1")).scalar() == 1
        except SQLAlchemyError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    # ------------------------------------------------------------------
    # Creation and lookup
    # ------------------------------------------------------------------

    def create(self, email: str, name: str, password_hash: str) -> Account:
        """Insert a new free-tier account and return it.

        Raises ConflictError if an account with the normalized email exists,
        whether detected by the pre-insert lookup or by the unique index when a
        concurrent signup wins the race.
        """
        email = normalize_email(email)
        if self.find_by_email(email) is not None:
            raise ConflictError("User with this email already exists.")
        now = now_iso()
        account_id = str(uuid.uuid4())
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _accounts.insert().values(
                        id=account_id,
                        email=email,
                        name=name,
                        password_hash=password_hash,
                        tier=DEFAULT_TIER,
                        artifact_count=0,
                        is_active=True,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError("User with this email already exists.") from exc
        return Account(
            id=account_id,
            email=email,
            name=name,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )

    def find_by_email(self, email: str) -> Optional[Account]:
        """Look up an account by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_id(self, account_id: str) -> Optional[Account]:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_profile(self, account_id: str, **patch) -> Account:
        """Update mutable profile fields and return the fresh record.

        Accepted fields: name, password_hash, tier. An empty patch still
        refreshes updated_at.
        """
        unknown = set(patch) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {sorted(unknown)!r}")
        if "tier" in patch and patch["tier"] not in TIERS:
            raise ValueError(f"Unknown tier: {patch['tier']!r}")
        return self._update(account_id, **patch)

    def set_active(self, account_id: str, active: bool) -> Account:
        """Activate or soft-delete an account. Rows are never removed."""
        return self._update(account_id, is_active=active)

    def record_login(self, account_id: str) -> Account:
        """Stamp last_login after a successful sign-in."""
        return self._update(account_id, last_login=now_iso())

    def adjust_count(
        self,
        account_id: str,
        delta: int,
        ceilings: Optional[Mapping[str, int]] = None,
    ) -> Account:
        """Atomically add delta to artifact_count and return the fresh record.

        The result is floored at zero. When ceilings (tier -> limit) is given,
        the update only applies while artifact_count + delta stays at or below
        the ceiling for the row's current tier; tiers missing from the table
        use the free tier's limit. The check and the write are one statement.

        Raises NotFoundError if the account does not exist and ConflictError
        (code "ceiling_reached") if the ceiling condition rejected the update.
        """
        new_count = _accounts.c.artifact_count + delta
        stmt = (
            _accounts.update()
            .where(_accounts.c.id == account_id)
            .values(
                artifact_count=case((new_count < 0, 0), else_=new_count),
                updated_at=now_iso(),
            )
        )
        if ceilings:
            default_limit = ceilings.get(DEFAULT_TIER, min(ceilings.values()))
            ceiling = case(
                *[(_accounts.c.tier == tier, limit) for tier, limit in ceilings.items()],
                else_=default_limit,
            )
            stmt = stmt.where(new_count <= ceiling)

        with self.engine.connect() as conn:
            result = conn.execute(stmt)
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
            conn.commit()
        if row is None:
            raise NotFoundError("User not found.")
        if result.rowcount == 0:
            raise ConflictError("Counter ceiling reached.", code="ceiling_reached")
        return _row_to_account(row)

    def _update(self, account_id: str, **fields) -> Account:
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**fields))
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
            conn.commit()
        if result.rowcount == 0 or row is None:
            raise NotFoundError("User not found.")
        return _row_to_account(row)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        tier=row.tier or DEFAULT_TIER,
        artifact_count=row.artifact_count or 0,
        is_active=bool(row.is_active),
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_login=row.last_login,
    )
