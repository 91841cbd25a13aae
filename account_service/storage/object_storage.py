"""S3-compatible object storage used for direct uploads."""

from __future__ import annotations

import logging
import uuid
from typing import Any
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..domain.errors import UploadFailedError

logger = logging.getLogger(__name__)


class S3ObjectStorage:
    """Upload files to a single bucket and describe where they landed."""

    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        key_prefix: str = "",
        public_base_url: str | None = None,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._key_prefix = key_prefix
        self._public_base_url = public_base_url

    @classmethod
    def from_settings(cls, settings) -> "S3ObjectStorage":
        """Build a boto3 client honouring the configured region, endpoint and timeouts."""
        config = Config(
            region_name=settings.s3_region,
            connect_timeout=settings.s3_timeout_seconds,
            read_timeout=settings.s3_timeout_seconds,
            retries={"max_attempts": 3, "mode": "standard"},
        )
        client = boto3.session.Session().client(
            "s3",
            endpoint_url=settings.s3_endpoint_url or None,
            config=config,
        )
        return cls(
            client,
            bucket=settings.s3_bucket,
            key_prefix=settings.s3_key_prefix,
            public_base_url=settings.s3_endpoint_url or None,
        )

    def upload(self, data: bytes, filename: str, content_type: str | None) -> dict[str, Any]:
        """Store ``data`` and return metadata to be recorded on the account.

        Raises
        ------
        UploadFailedError
            When the storage API rejects the request or cannot be reached.
        """
        key = f"{self._key_prefix}{uuid.uuid4().hex}-{filename}"
        try:
            response = self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type or "application/octet-stream",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("upload of %s to bucket %s failed: %s", key, self._bucket, exc)
            raise UploadFailedError() from exc
        return {
            "Location": self._location(key),
            "Bucket": self._bucket,
            "Key": key,
            "ETag": response.get("ETag"),
            "originalname": filename,
            "mimetype": content_type,
            "size": len(data),
        }

    def _location(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{self._bucket}/{quote(key)}"
        return f"https://{self._bucket}.s3.amazonaws.com/{quote(key)}"
