"""Audio Files API - S3 storage gateway.

Presigned PUT/GET URLs and HEAD-based metadata lookups against one bucket.
TTL bounds are enforced by callers, not here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.errors import UpstreamError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

    from app.config import Settings

logger = logging.getLogger(__name__)

# Error codes botocore reports for a HEAD on a missing key
NOT_FOUND_ERROR_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


@dataclass(frozen=True)
class ObjectMetadata:
    """Object metadata as reported by the store. Not owned by this system."""

    size: int | None
    content_type: str | None
    last_modified: datetime | None


def create_s3_client(settings: Settings) -> S3Client:
    """Create a boto3 S3 client from settings.

    A custom endpoint (MinIO, R2, ...) switches to path-style addressing.
    Static credentials are used when supplied; otherwise boto3's default
    credential chain applies.
    """
    s3_config = {"addressing_style": "path"} if settings.s3_endpoint else {}
    return boto3.client(
        "s3",
        region_name=settings.s3_region,
        endpoint_url=settings.s3_endpoint,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        config=Config(signature_version="s3v4", s3=s3_config),
    )


class StorageGateway:
    """Wraps an S3 client for one bucket."""

    def __init__(self, s3_client: S3Client, bucket: str):
        self.s3_client = s3_client
        self.bucket = bucket

    def create_upload_url(self, file_key: str, content_type: str, ttl_seconds: int) -> str:
        """Presign a single PUT of `file_key` with the declared content type.

        The object need not exist yet.
        """
        return self._presign(
            "put_object",
            {"Bucket": self.bucket, "Key": file_key, "ContentType": content_type},
            ttl_seconds,
        )

    def create_playback_url(self, file_key: str, ttl_seconds: int) -> str:
        """Presign a single GET of `file_key`."""
        return self._presign("get_object", {"Bucket": self.bucket, "Key": file_key}, ttl_seconds)

    def get_metadata(self, file_key: str) -> ObjectMetadata | None:
        """Return size, content type and last-modified time, or None if absent.

        Raises:
            UpstreamError: Any store failure other than not-found.
        """
        try:
            response = self.s3_client.head_object(Bucket=self.bucket, Key=file_key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in NOT_FOUND_ERROR_CODES:
                return None
            logger.error("HEAD %s failed: %s", file_key, e)
            raise UpstreamError("Object store", str(e)) from e
        except BotoCoreError as e:
            logger.error("HEAD %s failed: %s", file_key, e)
            raise UpstreamError("Object store", str(e)) from e

        return ObjectMetadata(
            size=response.get("ContentLength"),
            content_type=response.get("ContentType"),
            last_modified=response.get("LastModified"),
        )

    def _presign(self, operation: str, params: dict, ttl_seconds: int) -> str:
        try:
            return self.s3_client.generate_presigned_url(
                ClientMethod=operation,
                Params=params,
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Presigning %s for %s failed: %s", operation, params.get("Key"), e)
            raise UpstreamError("Object store", str(e)) from e
