"""S3 storage helpers for inspection photos."""

from __future__ import annotations

from typing import Tuple
from uuid import uuid4

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from app.config.settings import settings
from app.services.aws import create_boto3_client


class StorageError(RuntimeError):
    """Raised when S3 asset persistence fails."""


_s3_client = create_boto3_client("s3", region_name=settings.s3.region, read_timeout=30)

_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


def _object_url(bucket: str, key: str) -> str:
    region = settings.s3.region
    if region == "us-east-1":
        return f"https://{bucket}.s3.amazonaws.com/{key}"
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def _safe_segment(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in value) or "anonymous"


async def upload_inspection_image(
    user_id: str,
    image_bytes: bytes,
    *,
    content_type: str = "image/jpeg",
) -> Tuple[str, str]:
    """Upload an inspection photo to S3 and return (object_key, public_url)."""

    if not image_bytes:
        raise StorageError("Image payload for upload was empty.")
    bucket = settings.s3.bucket_name
    if not bucket:
        raise StorageError("S3 bucket name is not configured.")

    extension = _EXTENSIONS.get(content_type, "jpg")
    object_key = f"inspections/{_safe_segment(user_id)}/image-{uuid4().hex}.{extension}"
    try:
        await run_in_threadpool(
            _s3_client.put_object,
            Bucket=bucket,
            Key=object_key,
            Body=image_bytes,
            ContentType=content_type,
        )
    except (BotoCoreError, ClientError) as exc:
        raise StorageError(f"Failed to upload inspection image: {exc}") from exc

    return object_key, _object_url(bucket, object_key)


__all__ = ["upload_inspection_image", "StorageError"]
