"""
api/routes/images.py -- Quota-gated image generation and the owner's catalog.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /api/images/generate            -- reserve quota, produce, store (201)
  GET    /api/images/my-images           -- cursor-paginated list, newest first
  GET    /api/images/options             -- styles, sizes, limits (auth optional)
  GET    /api/images/{image_id}          -- one image (owner only)
  GET    /api/images/{image_id}/status   -- status + progress (owner only)
  DELETE /api/images/{image_id}          -- delete image, release quota slot

Creation order:
  1. QuotaGate.check_and_reserve() -- one conditional UPDATE; 403 if full.
  2. ArtifactProducer.produce()    -- opaque backend, may finish or stay pending.
  3. ResourceCatalog.create()      -- metadata row.
  If 2 or 3 raises, the slot reserved in 1 is released before re-raising.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import (
    ArtifactPage,
    ArtifactResponse,
    ArtifactStatusResponse,
    GenerateRequest,
    GenerationOptions,
    MessageResponse,
)
from auth.dependencies import get_current_identity, try_get_current_identity
from auth.models import Identity
from catalog.models import SIZES, STYLES, Artifact
from catalog.producer import ArtifactProducer
from catalog.quota import QuotaGate
from catalog.store import ResourceCatalog
from core.errors import ForbiddenError

logger = logging.getLogger("imagegate.catalog")

router = APIRouter(prefix="/images")


def _owned(catalog: ResourceCatalog, image_id: str, identity: Identity) -> Artifact:
    artifact = catalog.get_by_id(image_id)
    if artifact.owner_id != identity.subject_id:
        raise ForbiddenError("Access denied. You can only view your own images.")
    return artifact


@router.post("/generate", response_model=ArtifactResponse, status_code=201)
def generate_image(
    request: Request,
    body: GenerateRequest,
    identity: Identity = Depends(get_current_identity),
) -> ArtifactResponse:
    """Generate an image for the caller, counted against their tier quota."""
    quota: QuotaGate = request.app.state.quota
    catalog: ResourceCatalog = request.app.state.catalog
    producer: ArtifactProducer = request.app.state.producer

    quota.check_and_reserve(identity.account)
    artifact_id = catalog.new_artifact_id()
    try:
        production = producer.produce(artifact_id, body.prompt, body.style.value, body.size.value)
        artifact = catalog.create(
            identity.subject_id,
            body.prompt,
            body.style.value,
            body.size.value,
            result_url=production.result_url,
            blob_key=production.blob_key,
            status=production.status,
            progress=production.progress,
            artifact_id=artifact_id,
        )
    except Exception:
        logger.warning("Generation failed for account %s; releasing reserved slot", identity.subject_id)
        quota.release(identity.subject_id)
        raise

    logger.info("Artifact %s created for account %s (%s)", artifact.id, identity.subject_id, artifact.status)
    return ArtifactResponse.from_artifact(artifact)


@router.get("/my-images", response_model=ArtifactPage)
def list_my_images(
    request: Request,
    limit: int = Query(default=20, ge=1, le=100),
    cursor: Optional[str] = Query(default=None, max_length=512),
    identity: Identity = Depends(get_current_identity),
) -> ArtifactPage:
    """Return one page of the caller's images, newest first."""
    catalog: ResourceCatalog = request.app.state.catalog
    page = catalog.list_by_owner(identity.subject_id, page_size=limit, cursor=cursor)
    images = [ArtifactResponse.from_artifact(a) for a in page.items]
    return ArtifactPage(images=images, next_cursor=page.next_cursor, count=len(images))


@router.get("/options", response_model=GenerationOptions)
def generation_options(
    request: Request,
    identity: Optional[Identity] = Depends(try_get_current_identity),
) -> GenerationOptions:
    """List the accepted styles and sizes; include the caller's headroom if signed in."""
    quota: QuotaGate = request.app.state.quota
    options = GenerationOptions(
        styles=list(STYLES),
        sizes=list(SIZES),
        tier_limits=dict(quota.limits),
    )
    if identity is None:
        return options
    return options.model_copy(
        update={
            "subscription_tier": identity.account.tier,
            "remaining_images": quota.remaining(identity.account),
        }
    )


@router.get("/{image_id}", response_model=ArtifactResponse)
def get_image(
    request: Request,
    image_id: str,
    identity: Identity = Depends(get_current_identity),
) -> ArtifactResponse:
    catalog: ResourceCatalog = request.app.state.catalog
    return ArtifactResponse.from_artifact(_owned(catalog, image_id, identity))


@router.get("/{image_id}/status", response_model=ArtifactStatusResponse)
def get_image_status(
    request: Request,
    image_id: str,
    identity: Identity = Depends(get_current_identity),
) -> ArtifactStatusResponse:
    catalog: ResourceCatalog = request.app.state.catalog
    artifact = _owned(catalog, image_id, identity)
    return ArtifactStatusResponse(
        image_id=artifact.id,
        status=artifact.status,
        progress=artifact.progress,
        created_at=artifact.created_at,
    )


@router.delete("/{image_id}", response_model=MessageResponse)
def delete_image(
    request: Request,
    image_id: str,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    """Delete one of the caller's images and give the quota slot back.

    Blob removal is best-effort; the image disappears from the catalog even if
    the object store is unavailable.
    """
    catalog: ResourceCatalog = request.app.state.catalog
    catalog.delete_by_id(image_id, identity.subject_id)
    return MessageResponse(message="Image deleted successfully.")
