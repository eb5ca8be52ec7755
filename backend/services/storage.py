"""
Object storage client for generated and uploaded files.

Only presigned download URLs are needed here; upload transport is handled
elsewhere. Works with AWS S3 or any S3-compatible endpoint (set
S3_ENDPOINT_URL).
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a presigned URL cannot be produced."""


class ObjectStorage:
    """Thin wrapper over a boto3 S3 client bound to one bucket."""

    def __init__(self, bucket: str, client: Any) -> None:
        self.bucket = bucket
        self._client = client

    @classmethod
    def from_settings(cls) -> ObjectStorage:
        client = boto3.client(
            "s3",
            region_name=settings.S3_REGION,
            endpoint_url=settings.S3_ENDPOINT_URL or None,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
            config=Config(signature_version="s3v4"),
        )
        return cls(settings.S3_BUCKET, client)

    async def get_presigned_url(self, object_key: str, ttl_seconds: int, file_name: Optional[str] = None) -> str:
        """
        Return a time-limited GET URL for ``object_key``.

        Signing is local (no network round trip), so this does not block the loop.
        """
        params: dict[str, str] = {"Bucket": self.bucket, "Key": object_key}
        if file_name:
            params["ResponseContentDisposition"] = f'attachment; filename="{file_name}"'
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params=params,
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("[Storage] Failed to presign %s: %s", object_key, e)
            raise StorageError(f"Could not create download URL: {e}") from e
