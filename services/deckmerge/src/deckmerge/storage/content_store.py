"""Content-addressed image cache backed by an S3-compatible bucket."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from common.config import Settings
from common.logging import get_logger

from ..errors import ContentStoreWriteError
from ..models.cached_asset import CachedAsset

LOGGER = get_logger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


def create_s3_client(settings: Settings) -> Any:
    """Build a path-style S3 client from service settings."""

    return boto3.client(
        "s3",
        endpoint_url=settings.aws_endpoint_url,
        region_name=settings.aws_default_region,
        aws_access_key_id=settings.aws_access_key_id,
        aws_secret_access_key=settings.aws_secret_access_key,
        config=Config(s3={"addressing_style": "path"}),
    )


def _is_not_found(error: ClientError) -> bool:
    details = error.response.get("Error", {})
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return details.get("Code") in _NOT_FOUND_CODES or status == 404


class ContentStore:
    """Get/put image assets under ``prefix + id``.

    Read failures other than a missing key propagate unchanged. Write failures
    are raised as :class:`ContentStoreWriteError` so callers can tell them apart.
    """

    def __init__(
        self,
        client: Any,
        bucket: str,
        prefix: str = "cache/",
        cache_control: Optional[str] = None,
    ) -> None:
        self._client = client
        self._bucket = bucket
        self._prefix = prefix
        self._cache_control = cache_control

    @classmethod
    def from_settings(cls, settings: Settings, client: Any = None) -> "ContentStore":
        return cls(
            client or create_s3_client(settings),
            bucket=settings.aws_s3_bucket_name,
            prefix=settings.cache_prefix,
            cache_control=settings.cache_control,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    def key_for(self, asset_id: str) -> str:
        return f"{self._prefix}{asset_id}"

    async def get(self, asset_id: str) -> Optional[CachedAsset]:
        return await asyncio.to_thread(self._get_sync, asset_id)

    async def put(self, asset: CachedAsset) -> None:
        await asyncio.to_thread(self._put_sync, asset)

    async def ping(self) -> None:
        await asyncio.to_thread(self._client.head_bucket, Bucket=self._bucket)

    def _get_sync(self, asset_id: str) -> Optional[CachedAsset]:
        key = self.key_for(asset_id)
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if _is_not_found(exc):
                return None
            raise

        body = response["Body"]
        try:
            data = body.read()
        finally:
            body.close()

        return CachedAsset.from_storage(
            asset_id,
            data,
            response.get("ContentType") or "application/octet-stream",
            metadata=response.get("Metadata") or {},
            last_modified=response.get("LastModified"),
        )

    def _put_sync(self, asset: CachedAsset) -> None:
        key = self.key_for(asset.id)
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": key,
            "Body": asset.data,
            "ContentType": asset.content_type,
            "ContentLength": asset.bytes,
            "Metadata": asset.to_metadata(),
        }
        if self._cache_control:
            params["CacheControl"] = self._cache_control

        try:
            self._client.put_object(**params)
        except (ClientError, BotoCoreError) as exc:
            LOGGER.error("store.put_failed", key=key, bucket=self._bucket, error=str(exc))
            raise ContentStoreWriteError(f"Failed to write {key} to {self._bucket}") from exc

        LOGGER.debug("store.put", key=key, bytes=asset.bytes)


__all__ = ["ContentStore", "create_s3_client"]
