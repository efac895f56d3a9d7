"""
catalog/store.py -- SQLAlchemy-backed catalog of generated artifacts.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. ResourceCatalog is the repository;
_row_to_artifact is the mapper. Route handlers never touch SQL directly.

Pagination:
  list_by_owner() is keyset-paginated on (created_at DESC, id DESC). The
  cursor encodes the key of the last item returned, and the next page asks
  for rows strictly "older" than that key. New inserts always sort ahead of
  any cursor already handed out, so a walk in progress never repeats or
  skips a row that existed when it started. The cursor is url-safe base64 of
  JSON and is opaque to clients.

Deletion:
  delete_by_id() checks ownership, then releases the blob best-effort (a
  bounded number of attempts, failures logged and swallowed -- an orphaned
  blob is cheaper than a delete the user cannot complete), removes the row,
  and returns the quota slot.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from typing import Optional

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, and_, func, or_, select
from sqlalchemy.engine import Engine

from catalog.models import (
    DEFAULT_SIZE,
    DEFAULT_STYLE,
    STATUS_COMPLETED,
    STATUS_PENDING,
    TERMINAL_STATUSES,
    Artifact,
    Page,
)
from catalog.quota import QuotaGate
from core.database import create_store_engine, now_iso
from core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from storage.blobs import BlobStore

logger = logging.getLogger("imagegate.catalog")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_artifacts = Table(
    "artifacts",
    metadata,
    Column("id", String(40), primary_key=True),
    Column("owner_id", String(36), nullable=False),
    Column("prompt", Text, nullable=False),
    Column("style", String(20), nullable=False, server_default=DEFAULT_STYLE),
    Column("size", String(20), nullable=False, server_default=DEFAULT_SIZE),
    Column("status", String(20), nullable=False, server_default=STATUS_PENDING),
    Column("progress", Integer, nullable=False, server_default="0"),
    Column("result_url", Text),
    Column("blob_key", String(255)),
    Column("created_at", String(40), nullable=False),
    Column("updated_at", String(40), nullable=False),
    Index("ix_artifacts_owner_created", "owner_id", "created_at", "id"),
)


# ---------------------------------------------------------------------------
# Cursor helpers
# ---------------------------------------------------------------------------


def encode_cursor(artifact: Artifact) -> str:
    raw = json.dumps([artifact.created_at, artifact.id], separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[str, str]:
    """Return the (created_at, id) key encoded in cursor.

    Raises ValidationError (code "invalid_cursor") for anything that did not
    come out of encode_cursor().
    """
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        created_at, artifact_id = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (ValueError, TypeError, UnicodeError, binascii.Error) as exc:
        raise ValidationError.for_field("cursor", "Invalid pagination cursor.", code="invalid_cursor") from exc
    if not isinstance(created_at, str) or not isinstance(artifact_id, str):
        raise ValidationError.for_field("cursor", "Invalid pagination cursor.", code="invalid_cursor")
    return created_at, artifact_id


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ResourceCatalog:
    """Repository for Artifact records plus the owner-facing delete flow.

    Usage:
        catalog = ResourceCatalog("sqlite:///:memory:", blobs, quota)
        artifact = catalog.create(owner_id, "a red fox", "realistic", "512x512")
        page = catalog.list_by_owner(owner_id, page_size=20)
        catalog.delete_by_id(artifact.id, owner_id)
        catalog.close()
    """

    def __init__(
        self,
        db_url: str,
        blobs: BlobStore,
        quota: QuotaGate,
        timeout: float = 5.0,
        blob_delete_attempts: int = 2,
    ) -> None:
        self.engine: Engine = create_store_engine(db_url, timeout=timeout)
        self.blobs = blobs
        self.quota = quota
        self.blob_delete_attempts = blob_delete_attempts
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    @staticmethod
    def new_artifact_id() -> str:
        return f"img_{uuid.uuid4().hex}"

    def create(
        self,
        owner_id: str,
        prompt: str,
        style: str = DEFAULT_STYLE,
        size: str = DEFAULT_SIZE,
        result_url: Optional[str] = None,
        blob_key: Optional[str] = None,
        status: str = STATUS_COMPLETED,
        progress: int = 100,
        artifact_id: Optional[str] = None,
    ) -> Artifact:
        """Insert artifact metadata and return the stored record.

        Quota is NOT touched here; callers reserve a slot with
        QuotaGate.check_and_reserve() first and release it if this raises.
        """
        now = now_iso()
        artifact = Artifact(
            id=artifact_id or self.new_artifact_id(),
            owner_id=owner_id,
            prompt=prompt,
            style=style,
            size=size,
            status=status,
            progress=progress,
            result_url=result_url,
            blob_key=blob_key,
            created_at=now,
            updated_at=now,
        )
        with self.engine.connect() as conn:
            conn.execute(
                _artifacts.insert().values(
                    id=artifact.id,
                    owner_id=artifact.owner_id,
                    prompt=artifact.prompt,
                    style=artifact.style,
                    size=artifact.size,
                    status=artifact.status,
                    progress=artifact.progress,
                    result_url=artifact.result_url,
                    blob_key=artifact.blob_key,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return artifact

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_by_owner(self, owner_id: str, page_size: int, cursor: Optional[str] = None) -> Page:
        """Return one page of owner_id's artifacts, newest first."""
        if page_size < 1:
            raise ValidationError.for_field("limit", "Page size must be at least 1.")
        stmt = _artifacts.select().where(_artifacts.c.owner_id == owner_id)
        if cursor:
            created_at, artifact_id = decode_cursor(cursor)
            stmt = stmt.where(
                or_(
                    _artifacts.c.created_at < created_at,
                    and_(_artifacts.c.created_at == created_at, _artifacts.c.id < artifact_id),
                )
            )
        # One extra row tells us whether another page exists without a COUNT.
        stmt = stmt.order_by(_artifacts.c.created_at.desc(), _artifacts.c.id.desc()).limit(page_size + 1)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        items = [_row_to_artifact(r) for r in rows[:page_size]]
        next_cursor = encode_cursor(items[-1]) if len(rows) > page_size else None
        return Page(items=items, next_cursor=next_cursor)

    def count_by_owner(self, owner_id: str) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_artifacts).where(_artifacts.c.owner_id == owner_id)
            ).scalar()
        return result or 0

    def get_by_id(self, artifact_id: str) -> Artifact:
        """Fetch one artifact. Performs no authorization -- callers compare owner_id."""
        with self.engine.connect() as conn:
            row = conn.execute(_artifacts.select().where(_artifacts.c.id == artifact_id)).fetchone()
        if row is None:
            raise NotFoundError("Image not found.")
        return _row_to_artifact(row)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_status(
        self,
        artifact_id: str,
        status: str,
        result_url: Optional[str] = None,
        progress: Optional[int] = None,
        blob_key: Optional[str] = None,
    ) -> Artifact:
        """Advance a pending artifact.

        Allowed: pending -> pending (progress update), pending -> completed,
        pending -> failed. The update is conditional on the row still being
        pending, so two producers settling the same artifact cannot both win.

        Raises NotFoundError if missing and ConflictError if already terminal.
        """
        if status not in TERMINAL_STATUSES and status != STATUS_PENDING:
            raise ValueError(f"Unknown artifact status: {status!r}")
        values: dict = {"status": status, "updated_at": now_iso()}
        if status == STATUS_COMPLETED:
            values["progress"] = 100
        elif progress is not None:
            values["progress"] = max(0, min(100, progress))
        if result_url is not None:
            values["result_url"] = result_url
        if blob_key is not None:
            values["blob_key"] = blob_key

        with self.engine.connect() as conn:
            result = conn.execute(
                _artifacts.update()
                .where((_artifacts.c.id == artifact_id) & (_artifacts.c.status == STATUS_PENDING))
                .values(**values)
            )
            row = conn.execute(_artifacts.select().where(_artifacts.c.id == artifact_id)).fetchone()
            conn.commit()
        if row is None:
            raise NotFoundError("Image not found.")
        if result.rowcount == 0:
            raise ConflictError(f"Image is already {row.status}.")
        return _row_to_artifact(row)

    def delete_by_id(self, artifact_id: str, owner_id: str) -> None:
        """Delete an artifact on behalf of its owner.

        Raises NotFoundError or ForbiddenError before anything is touched.
        """
        artifact = self.get_by_id(artifact_id)
        if artifact.owner_id != owner_id:
            raise ForbiddenError("Access denied. You can only delete your own images.")

        if artifact.blob_key:
            self._release_blob(artifact.blob_key)

        with self.engine.connect() as conn:
            result = conn.execute(
                _artifacts.delete().where((_artifacts.c.id == artifact_id) & (_artifacts.c.owner_id == owner_id))
            )
            conn.commit()
        if result.rowcount == 0:
            # A concurrent delete got there first and already released the slot.
            raise NotFoundError("Image not found.")

        self.quota.release(owner_id)
        logger.info("Deleted artifact %s for account %s", artifact_id, owner_id)

    def _release_blob(self, key: str) -> bool:
        for attempt in range(1, self.blob_delete_attempts + 1):
            try:
                self.blobs.delete(key)
                return True
            except Exception:
                logger.warning(
                    "Blob delete failed for %s (attempt %d/%d)",
                    key,
                    attempt,
                    self.blob_delete_attempts,
                    exc_info=True,
                )
        logger.error("Giving up on blob %s; it is now orphaned", key)
        return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_artifact(row) -> Artifact:
    return Artifact(
        id=row.id,
        owner_id=row.owner_id,
        prompt=row.prompt,
        style=row.style,
        size=row.size,
        status=row.status,
        progress=row.progress or 0,
        result_url=row.result_url,
        blob_key=row.blob_key,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
