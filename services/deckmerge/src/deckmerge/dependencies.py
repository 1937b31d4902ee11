"""Dependency wiring for the deck merge service."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from fastapi import Request

from common.config import Settings
from common.http import create_http_client

from .composer import GridComposer
from .fetcher import ImageFetcher
from .provider import ImageProvider
from .service import MergeService
from .storage.content_store import ContentStore, create_s3_client


def build_content_store(settings: Settings, s3_client: Any = None) -> ContentStore:
    return ContentStore.from_settings(settings, client=s3_client or create_s3_client(settings))


def build_merge_service(
    settings: Settings,
    s3_client: Any = None,
    http_client: Optional[httpx.AsyncClient] = None,
    store: Optional[ContentStore] = None,
) -> MergeService:
    """Assemble the store, fetcher, provider and composer into a service.

    Pass ``store`` to share one content store (and its S3 client) with other
    consumers such as the health check.
    """

    store = store or build_content_store(settings, s3_client)
    fetcher = ImageFetcher(
        http_client or create_http_client(timeout=settings.fetch_timeout_seconds),
        max_bytes=settings.max_image_bytes,
        timeout=settings.fetch_timeout_seconds,
    )
    provider = ImageProvider(store, fetcher, max_bytes=settings.max_image_bytes)
    return MergeService(settings, provider, GridComposer(settings))


def get_merge_service(request: Request) -> MergeService:
    return request.app.state.merge_service


def get_content_store(request: Request) -> ContentStore:
    return request.app.state.content_store


__all__ = [
    "build_content_store",
    "build_merge_service",
    "get_content_store",
    "get_merge_service",
]
