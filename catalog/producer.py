"""
catalog/producer.py -- The image generation backend, seen from the catalog.

Generation itself is an external concern. The catalog only needs a result:
either a finished object in the blob store ("completed") or an
acknowledgement that work is under way ("pending", with progress) that a
later callback settles through ResourceCatalog.update_status().

PlaceholderProducer is the backend used until a real model is wired in. It
renders an SVG card of the requested size carrying the prompt, stores it, and
completes synchronously.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Optional, Protocol

from catalog.models import STATUS_COMPLETED
from storage.blobs import BlobStore


@dataclass(frozen=True)
class Production:
    status: str
    progress: int
    blob_key: Optional[str] = None
    result_url: Optional[str] = None


class ArtifactProducer(Protocol):
    def produce(self, artifact_id: str, prompt: str, style: str, size: str) -> Production: ...


_SVG_TEMPLATE = (
    '<svg xmlns="http://www.w3.org/2000/svg" width="{w}" height="{h}" viewBox="0 0 {w} {h}">'
    '<rect width="100%" height="100%" fill="#1f2933"/>'
    '<text x="50%" y="45%" fill="#e4e7eb" font-family="sans-serif" font-size="{fs}" '
    'text-anchor="middle">{style}</text>'
    '<text x="50%" y="55%" fill="#9aa5b1" font-family="sans-serif" font-size="{fs2}" '
    'text-anchor="middle">{prompt}</text>'
    "</svg>"
)


def render_placeholder(prompt: str, style: str, size: str) -> bytes:
    """Render an SVG placeholder for a WIDTHxHEIGHT size string."""
    width, height = (int(part) for part in size.split("x", 1))
    caption = prompt if len(prompt) <= 60 else prompt[:57] + "..."
    svg = _SVG_TEMPLATE.format(
        w=width,
        h=height,
        fs=max(16, width // 16),
        fs2=max(12, width // 40),
        style=html.escape(style),
        prompt=html.escape(caption),
    )
    return svg.encode("utf-8")


class PlaceholderProducer:
    def __init__(self, blobs: BlobStore) -> None:
        self.blobs = blobs

    def produce(self, artifact_id: str, prompt: str, style: str, size: str) -> Production:
        key = f"{artifact_id}.svg"
        url = self.blobs.put(key, render_placeholder(prompt, style, size), "image/svg+xml")
        return Production(status=STATUS_COMPLETED, progress=100, blob_key=key, result_url=url)
