# noqa: D104
"""Tests for cached assets and the S3-backed content store."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from botocore.exceptions import ClientError

from deckmerge.errors import ContentStoreWriteError
from deckmerge.models.cached_asset import (
    UNKNOWN_SOURCE_URL,
    CachedAsset,
    FetchedImage,
    compute_checksum,
)
from deckmerge.storage.content_store import ContentStore


@pytest.fixture
def store(settings, s3_client) -> ContentStore:
    return ContentStore.from_settings(settings, client=s3_client)


class TestCachedAsset:
    def test_from_fetched(self) -> None:
        asset = CachedAsset.from_fetched(
            "abc", FetchedImage(buffer=b"payload", content_type="image/png", url="https://x.example/a.png")
        )
        assert asset.bytes == 7
        assert asset.checksum == compute_checksum(b"payload")
        assert asset.source_url == "https://x.example/a.png"
        assert asset.cached_at.tzinfo is not None

    def test_from_storage_reads_metadata_case_insensitively(self) -> None:
        asset = CachedAsset.from_storage(
            "abc",
            b"data",
            "image/png",
            metadata={
                "Merge-Source-Url": "https://x.example/a.png",
                "MERGE-CHECKSUM": "stored-checksum",
                "merge-cached-at": "2024-01-02T03:04:05+00:00",
            },
        )
        assert asset.source_url == "https://x.example/a.png"
        assert asset.checksum == "stored-checksum"
        assert asset.cached_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_from_storage_synthesizes_missing_metadata(self) -> None:
        modified = datetime(2023, 5, 6, tzinfo=timezone.utc)
        asset = CachedAsset.from_storage("abc", b"data", "image/png", metadata={}, last_modified=modified)
        assert asset.checksum == compute_checksum(b"data")
        assert asset.cached_at == modified
        assert asset.source_url == UNKNOWN_SOURCE_URL


class TestContentStore:
    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, store: ContentStore, s3_client) -> None:
        assert await store.get("missing") is None
        assert s3_client.get_calls == ["cache/missing"]

    @pytest.mark.asyncio
    async def test_put_then_get(self, store: ContentStore, s3_client, settings) -> None:
        asset = CachedAsset.from_fetched(
            "card-1", FetchedImage(buffer=b"\x89PNG", content_type="image/png", url="https://x.example/1.png")
        )
        await store.put(asset)

        call = s3_client.put_calls[0]
        assert call["Bucket"] == "test-bucket"
        assert call["Key"] == "cache/card-1"
        assert call["ContentLength"] == 4
        assert call["CacheControl"] == settings.cache_control
        assert call["Metadata"]["merge-checksum"] == asset.checksum

        loaded = await store.get("card-1")
        assert loaded is not None
        assert loaded.data == b"\x89PNG"
        assert loaded.checksum == asset.checksum
        assert loaded.source_url == "https://x.example/1.png"

    @pytest.mark.asyncio
    async def test_put_failure_raises_write_error(self, store: ContentStore, s3_client) -> None:
        s3_client.put_error = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        asset = CachedAsset.from_fetched(
            "card-1", FetchedImage(buffer=b"x", content_type="image/png", url="https://x.example/1.png")
        )
        with pytest.raises(ContentStoreWriteError):
            await store.put(asset)

    @pytest.mark.asyncio
    async def test_read_errors_propagate(self, store: ContentStore, s3_client) -> None:
        s3_client.get_error = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "GetObject"
        )
        with pytest.raises(ClientError):
            await store.get("card-1")

    @pytest.mark.asyncio
    async def test_missing_content_type_defaults(self, store: ContentStore, s3_client) -> None:
        s3_client.seed("cache/raw", b"bytes", content_type=None)
        loaded = await store.get("raw")
        assert loaded is not None
        assert loaded.content_type == "application/octet-stream"
