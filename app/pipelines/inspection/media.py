"""Image normalization stage of the inspection workflow.

Turns a camera capture, library pick or dropped file into a JPEG capped at
``MediaConfig.max_width`` pixels wide, plus a ``data:`` URI the UI can show
without another round-trip.
"""

from __future__ import annotations

import base64
import io
import logging
import mimetypes

from fastapi.concurrency import run_in_threadpool
from PIL import Image, ImageOps, UnidentifiedImageError

from app.config.settings import MediaConfig, settings

from .errors import ImageProcessingError
from .types import ImageAsset, ImageOrigin, ImageSource

logger = logging.getLogger("app.pipelines.inspection")


def _resolve_content_type(source: ImageSource) -> str | None:
    if source.content_type:
        return source.content_type
    if source.filename:
        guessed, _ = mimetypes.guess_type(source.filename)
        return guessed
    return None


class MediaNormalizer:
    """Decode, orient, downscale and re-encode raw images."""

    def __init__(self, config: MediaConfig | None = None) -> None:
        self._config = config or settings.media

    async def normalize(self, source: ImageSource) -> ImageAsset:
        """Return a bounded-size asset or raise ``ImageProcessingError``."""

        if not source.data:
            raise ImageProcessingError("The selected image is empty.")

        if source.origin is ImageOrigin.DROP:
            content_type = _resolve_content_type(source)
            if content_type is not None and not content_type.startswith("image/"):
                raise ImageProcessingError(
                    "Invalid file type. Please drop an image file."
                )

        asset = await run_in_threadpool(self._normalize_sync, source.data)
        logger.info(
            "Image normalized origin=%s size=%sx%s bytes=%s",
            source.origin.value,
            asset.width,
            asset.height,
            len(asset.data),
        )
        return asset

    def _normalize_sync(self, raw: bytes) -> ImageAsset:
        try:
            with Image.open(io.BytesIO(raw)) as img:
                img.load()
                oriented = ImageOps.exif_transpose(img)
                if oriented.mode not in ("RGB", "L"):
                    oriented = oriented.convert("RGB")

                max_width = self._config.max_width
                if oriented.width > max_width:
                    height = max(1, round(oriented.height * max_width / oriented.width))
                    oriented = oriented.resize(
                        (max_width, height), Image.Resampling.LANCZOS
                    )

                buffer = io.BytesIO()
                oriented.save(
                    buffer,
                    format="JPEG",
                    quality=self._config.jpeg_quality,
                    optimize=True,
                )
                width, height = oriented.size
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise ImageProcessingError(f"Could not process the image: {exc}") from exc

        data = buffer.getvalue()
        encoded = base64.b64encode(data).decode("ascii")
        return ImageAsset(
            data=data,
            display_ref=f"data:image/jpeg;base64,{encoded}",
            width=width,
            height=height,
        )


__all__ = ["MediaNormalizer"]
