"""
catalog/models.py -- Domain dataclasses for the artifact catalog.

These are pure data containers with zero logic. Ownership checks, quota
accounting and status transitions live in catalog/store.py and
catalog/quota.py.
"""

from dataclasses import dataclass, field
from typing import Optional

STYLES: tuple[str, ...] = ("realistic", "artistic", "cartoon", "anime", "cyberpunk", "vintage")
SIZES: tuple[str, ...] = ("512x512", "1024x1024", "1024x768", "768x1024")
DEFAULT_STYLE = "realistic"
DEFAULT_SIZE = "1024x1024"

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_FAILED})


@dataclass
class Artifact:
    """A generated image owned by one account.

    owner_id references auth Account.id for lookup only; nothing cascades.

    result_url and blob_key stay None while a producer is still working
    (status "pending"). Once status is "completed" or "failed" the record is
    frozen until the owner deletes it.
    """

    id: str
    owner_id: str
    prompt: str
    style: str = DEFAULT_STYLE
    size: str = DEFAULT_SIZE
    status: str = STATUS_PENDING  # "pending" | "completed" | "failed"
    progress: int = 0  # 0-100
    result_url: Optional[str] = None
    blob_key: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""


@dataclass
class Page:
    """One page of a cursor walk. next_cursor is None on the last page."""

    items: list[Artifact] = field(default_factory=list)
    next_cursor: Optional[str] = None
