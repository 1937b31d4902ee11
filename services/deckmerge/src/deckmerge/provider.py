"""Resolve card descriptors to image bytes via cache-or-fetch."""

from __future__ import annotations

from common.logging import get_logger

from .errors import (
    ContentStoreWriteError,
    ImageFetchError,
    ImageProvisionError,
    ProvisionErrorCode,
)
from .fetcher import ImageFetcher
from .models.cached_asset import (
    UNKNOWN_SOURCE_URL,
    CachedAsset,
    ImageDescriptor,
    ProvidedImage,
)
from .storage.content_store import ContentStore

LOGGER = get_logger(__name__)


class ImageProvider:
    """Check the content store first, otherwise download and persist.

    A fresh download is only returned after it has been written to the store;
    a failed write aborts with ``merge.image_cache_failed``.
    """

    def __init__(self, store: ContentStore, fetcher: ImageFetcher, max_bytes: int) -> None:
        self._store = store
        self._fetcher = fetcher
        self._max_bytes = max_bytes

    async def get_image(self, descriptor: ImageDescriptor) -> ProvidedImage:
        log = LOGGER.bind(image_id=descriptor.id, image_uri=descriptor.image_uri)
        try:
            return await self._resolve(descriptor, log)
        except ImageProvisionError as exc:
            log.warning("image.provision_failed", code=exc.code.value, status=exc.status, error=str(exc))
            raise
        except ImageFetchError as exc:
            log.warning("image.fetch_failed", status=exc.status, error=str(exc))
            raise ImageProvisionError(
                str(exc),
                status=exc.status or 502,
                code=ProvisionErrorCode.FETCH_FAILED,
            ) from exc
        except Exception as exc:
            log.error("image.provision_error", error_type=type(exc).__name__, error=str(exc))
            raise ImageProvisionError(
                f"Failed to resolve image {descriptor.id} from {descriptor.image_uri}",
                code=ProvisionErrorCode.PROVISION_FAILED,
            ) from exc

    async def _resolve(self, descriptor: ImageDescriptor, log) -> ProvidedImage:
        cached = await self._store.get(descriptor.id)
        if cached is not None:
            self._ensure_within_size(cached)
            log.debug("image.cache_hit", bytes=cached.bytes, source_url=cached.source_url)
            source_url = (
                descriptor.image_uri
                if cached.source_url == UNKNOWN_SOURCE_URL
                else cached.source_url
            )
            return ProvidedImage.from_asset(cached, was_cached=True, source_url=source_url)

        remote = await self._fetcher.fetch(descriptor.image_uri)
        asset = CachedAsset.from_fetched(descriptor.id, remote)
        self._ensure_within_size(asset)
        log.debug("image.fetched", bytes=asset.bytes, content_type=asset.content_type, resolved_url=remote.url)

        try:
            await self._store.put(asset)
        except ContentStoreWriteError as exc:
            log.error("image.cache_write_failed", error=str(exc))
            raise ImageProvisionError(
                f"Failed to persist image {descriptor.id} in cache",
                code=ProvisionErrorCode.CACHE_FAILED,
            ) from exc

        return ProvidedImage.from_asset(asset, was_cached=False)

    def _ensure_within_size(self, asset: CachedAsset) -> None:
        if asset.bytes > self._max_bytes:
            raise ImageProvisionError(
                f"Image {asset.id} exceeds maximum allowed size ({asset.bytes} > {self._max_bytes})",
                status=413,
                code=ProvisionErrorCode.TOO_LARGE,
            )


__all__ = ["ImageProvider"]
