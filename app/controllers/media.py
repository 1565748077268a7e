"""Endpoint storing inspection photos."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from app.config.settings import settings
from app.controllers.dependencies import CurrentPrincipalDep, decode_base64_payload
from app.services import storage
from app.views import UploadImageRequest, UploadImageResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["media"])

_ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}


@router.post("/upload-image", response_model=UploadImageResponse)
async def upload_image(
    payload: UploadImageRequest,
    principal: CurrentPrincipalDep,
) -> UploadImageResponse:
    """Store the normalized photo and return its public URL."""

    content_type = payload.content_type.lower()
    if content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported image type: {payload.content_type}",
        )

    image_bytes = decode_base64_payload(payload.image_base64, "imageBase64")
    if len(image_bytes) > settings.media.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Image exceeds the maximum upload size.",
        )

    try:
        object_key, url = await storage.upload_inspection_image(
            principal.user_id,
            image_bytes,
            content_type=content_type,
        )
    except storage.StorageError as exc:
        logger.error("Image upload failed user=%s: %s", principal.user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        ) from exc

    logger.info("Image uploaded user=%s key=%s bytes=%s", principal.user_id, object_key, len(image_bytes))
    return UploadImageResponse(imageUrl=url)


__all__ = ["router"]
