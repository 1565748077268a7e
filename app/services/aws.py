"""Shared boto3 client construction for Bedrock and S3."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config

from app.config.settings import settings

# Bedrock image prompts can take well over the botocore default read timeout.
_DEFAULT_READ_TIMEOUT = 120


def create_boto3_client(
    service_name: str,
    *,
    region_name: str | None = None,
    aws_access_key_id: str | None = None,
    aws_secret_access_key: str | None = None,
    read_timeout: int = _DEFAULT_READ_TIMEOUT,
    max_attempts: int = 3,
) -> Any:
    """Build a client, preferring explicit keys over the S3 keys in settings.

    With neither set, boto3 falls back to its default credential chain.
    """

    client_kwargs: dict[str, Any] = {
        "region_name": region_name or settings.s3.region,
        "config": Config(
            read_timeout=read_timeout,
            retries={"max_attempts": max_attempts, "mode": "standard"},
        ),
    }
    if aws_access_key_id and aws_secret_access_key:
        client_kwargs["aws_access_key_id"] = aws_access_key_id
        client_kwargs["aws_secret_access_key"] = aws_secret_access_key
    elif settings.s3.access_key and settings.s3.secret_key:
        client_kwargs["aws_access_key_id"] = settings.s3.access_key
        client_kwargs["aws_secret_access_key"] = settings.s3.secret_key
    return boto3.client(service_name, **client_kwargs)


__all__ = ["create_boto3_client"]
