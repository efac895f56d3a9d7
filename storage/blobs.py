"""
storage/blobs.py -- Binary object store for generated images.

The rest of the system only needs put-by-key and delete-by-key, so the
interface is a Protocol and callers never see where bytes live. LocalBlobStore
keeps objects as files under a root directory; a cloud bucket adapter only has
to implement the same three methods.

Keys are restricted to [A-Za-z0-9._-] and may not start with a dot, so a key
can never escape the root directory.

Usage:
    blobs = LocalBlobStore(Path("data/blobs"), base_url="/blobs")
    url = blobs.put("img_ab12.svg", data, "image/svg+xml")
    blobs.delete("img_ab12.svg")    # missing keys are a no-op
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("imagegate.storage")

_KEY_RE = re.compile(r"^[A-Za-z0-9_-][A-Za-z0-9._-]{0,199}$")


class BlobStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> str: ...

    def delete(self, key: str) -> None: ...

    def url_for(self, key: str) -> str: ...


class LocalBlobStore:
    def __init__(self, root: Path, base_url: str = "/blobs") -> None:
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self.root / key

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Write data under key, replacing any existing object. Returns its URL.

        content_type is accepted for interface parity with bucket stores; the
        filesystem has nowhere to keep it.
        """
        path = self._path(key)
        tmp = path.with_name(f"{path.name}.part")
        tmp.write_bytes(data)
        tmp.replace(path)
        logger.debug("Stored blob %s (%d bytes, %s)", key, len(data), content_type)
        return self.url_for(key)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{key}"
