# noqa: D104
"""Tests for cache-or-fetch image provisioning."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from deckmerge.errors import (
    ContentStoreWriteError,
    ImageFetchError,
    ImageProvisionError,
    ProvisionErrorCode,
)
from deckmerge.fetcher import ImageFetcher
from deckmerge.models.cached_asset import (
    UNKNOWN_SOURCE_URL,
    CachedAsset,
    FetchedImage,
    ImageDescriptor,
)
from deckmerge.provider import ImageProvider
from deckmerge.storage.content_store import ContentStore

URL = "https://cards.example.com/a.png"
DESCRIPTOR = ImageDescriptor(id="card-1", image_uri=URL)


@pytest.fixture
def store(settings, s3_client) -> ContentStore:
    return ContentStore.from_settings(settings, client=s3_client)


def _provider(store: ContentStore, client, max_bytes: int = 64 * 1024) -> ImageProvider:
    return ImageProvider(store, ImageFetcher(client, max_bytes=max_bytes, timeout=1.0), max_bytes=max_bytes)


class TestCacheHits:
    @pytest.mark.asyncio
    async def test_cached_entry_skips_network(self, store, s3_client, remote, png_factory) -> None:
        png = png_factory()
        asset = CachedAsset.from_fetched("card-1", FetchedImage(buffer=png, content_type="image/png", url=URL))
        s3_client.seed("cache/card-1", png, metadata=asset.to_metadata())

        async with remote.client() as client:
            image = await _provider(store, client).get_image(DESCRIPTOR)

        assert image.was_cached is True
        assert image.data == png
        assert image.checksum == asset.checksum
        assert remote.requests == []
        assert s3_client.put_calls == []

    @pytest.mark.asyncio
    async def test_unknown_source_replaced_by_descriptor(self, store, s3_client, remote) -> None:
        s3_client.seed("cache/card-1", b"legacy")
        async with remote.client() as client:
            image = await _provider(store, client).get_image(DESCRIPTOR)
        assert image.source_url == URL
        assert image.source_url != UNKNOWN_SOURCE_URL

    @pytest.mark.asyncio
    async def test_oversized_cached_entry_rejected(self, store, s3_client, remote) -> None:
        s3_client.seed("cache/card-1", b"x" * 200)
        async with remote.client() as client:
            with pytest.raises(ImageProvisionError) as excinfo:
                await _provider(store, client, max_bytes=100).get_image(DESCRIPTOR)
        assert excinfo.value.status == 413
        assert excinfo.value.code is ProvisionErrorCode.TOO_LARGE
        assert remote.requests == []


class TestCacheMisses:
    @pytest.mark.asyncio
    async def test_fetch_persists_then_hits(self, store, s3_client, remote, png_factory) -> None:
        remote.add(URL, png_factory())
        async with remote.client() as client:
            provider = _provider(store, client)
            first = await provider.get_image(DESCRIPTOR)
            second = await provider.get_image(DESCRIPTOR)

        assert first.was_cached is False
        assert second.was_cached is True
        assert first.checksum == second.checksum
        assert len(s3_client.put_calls) == 1
        assert remote.requests == [URL]

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_status(self, store, s3_client, remote) -> None:
        remote.add(URL, b"gone", status=404, content_type="text/plain")
        async with remote.client() as client:
            with pytest.raises(ImageProvisionError) as excinfo:
                await _provider(store, client).get_image(DESCRIPTOR)
        assert excinfo.value.code is ProvisionErrorCode.FETCH_FAILED
        assert excinfo.value.status == 404
        assert excinfo.value.source == "image_fetch"
        assert s3_client.put_calls == []

    @pytest.mark.asyncio
    async def test_fetch_failure_without_status_defaults_to_502(self, store) -> None:
        fetcher = MagicMock(spec=ImageFetcher)
        fetcher.fetch = AsyncMock(side_effect=ImageFetchError("bad content-type"))
        provider = ImageProvider(store, fetcher, max_bytes=1024)
        with pytest.raises(ImageProvisionError) as excinfo:
            await provider.get_image(DESCRIPTOR)
        assert excinfo.value.status == 502
        assert isinstance(excinfo.value.__cause__, ImageFetchError)

    @pytest.mark.asyncio
    async def test_cache_write_failure_aborts(self, store, s3_client, remote, png_factory) -> None:
        s3_client.put_error = ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "PutObject")
        remote.add(URL, png_factory())
        async with remote.client() as client:
            with pytest.raises(ImageProvisionError) as excinfo:
                await _provider(store, client).get_image(DESCRIPTOR)
        assert excinfo.value.code is ProvisionErrorCode.CACHE_FAILED
        assert excinfo.value.status == 502
        assert excinfo.value.source == "image_cache"
        assert isinstance(excinfo.value.__cause__, ContentStoreWriteError)

    @pytest.mark.asyncio
    async def test_unexpected_store_error_wrapped(self, store, s3_client, remote) -> None:
        s3_client.get_error = ClientError({"Error": {"Code": "InternalError", "Message": "x"}}, "GetObject")
        async with remote.client() as client:
            with pytest.raises(ImageProvisionError) as excinfo:
                await _provider(store, client).get_image(DESCRIPTOR)
        assert excinfo.value.code is ProvisionErrorCode.PROVISION_FAILED
        assert excinfo.value.status == 502
        assert isinstance(excinfo.value.__cause__, ClientError)
