# noqa: D104
"""Pytest fixtures for deck merge tests."""

from __future__ import annotations

import asyncio
import io
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

import httpx
import pytest
from botocore.exceptions import ClientError
from PIL import Image

from common.config import Settings


def _client_error(code: str, status: int, operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client calls the store makes."""

    def __init__(self) -> None:
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.put_calls: List[Dict[str, Any]] = []
        self.get_calls: List[str] = []
        self.put_error: Optional[Exception] = None
        self.get_error: Optional[Exception] = None
        self.head_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:  # noqa: N803
        with self._lock:
            self.get_calls.append(Key)
            if self.get_error is not None:
                raise self.get_error
            stored = self.objects.get(Key)
        if stored is None:
            raise _client_error("NoSuchKey", 404, "GetObject")
        return {
            "Body": io.BytesIO(stored["Body"]),
            "ContentType": stored.get("ContentType"),
            "Metadata": dict(stored.get("Metadata") or {}),
            "LastModified": stored.get("LastModified"),
        }

    def put_object(self, **params: Any) -> Dict[str, Any]:
        with self._lock:
            self.put_calls.append(params)
            if self.put_error is not None:
                raise self.put_error
            self.objects[params["Key"]] = {
                **params,
                "LastModified": datetime.now(timezone.utc),
            }
        return {"ETag": '"fake"'}

    def head_bucket(self, Bucket: str) -> Dict[str, Any]:  # noqa: N803
        if self.head_error is not None:
            raise self.head_error
        return {}

    def seed(
        self,
        key: str,
        body: bytes,
        content_type: str = "image/png",
        metadata: Optional[Dict[str, str]] = None,
        last_modified: Optional[datetime] = None,
    ) -> None:
        self.objects[key] = {
            "Body": body,
            "ContentType": content_type,
            "Metadata": metadata or {},
            "LastModified": last_modified,
        }


class RemoteImages:
    """Routes for an ``httpx.MockTransport`` serving canned image responses."""

    def __init__(self) -> None:
        self.routes: Dict[str, Tuple[int, bytes, Dict[str, str], float]] = {}
        self.requests: List[str] = []

    def add(
        self,
        url: str,
        body: bytes = b"",
        *,
        status: int = 200,
        content_type: Optional[str] = "image/png",
        headers: Optional[Dict[str, str]] = None,
        delay: float = 0.0,
    ) -> None:
        merged = dict(headers or {})
        if content_type is not None:
            merged.setdefault("content-type", content_type)
        self.routes[url] = (status, body, merged, delay)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url not in self.routes:
            return httpx.Response(404, content=b"missing")
        status, body, headers, delay = self.routes[url]
        if delay:
            await asyncio.sleep(delay)
        return httpx.Response(status, content=body, headers=headers)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), follow_redirects=True)


def make_image_bytes(
    width: int = 4,
    height: int = 6,
    color: Tuple[int, ...] = (255, 0, 0, 255),
    fmt: str = "PNG",
) -> bytes:
    mode = "RGB" if fmt == "JPEG" else "RGBA"
    image = Image.new(mode, (width, height), color[:3] if mode == "RGB" else color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_cards(count: int, base_url: str = "https://cards.example.com") -> List[Dict[str, str]]:
    cards = []
    for index in range(count):
        card_id = str(uuid4())
        cards.append({"id": card_id, "imageUri": f"{base_url}/{index}.png"})
    return cards


@pytest.fixture
def settings() -> Settings:
    """Settings with tiny tiles so compositing stays fast."""
    return Settings(
        _env_file=None,
        aws_s3_bucket_name="test-bucket",
        tile_width=8,
        tile_height=12,
        fetch_concurrency=5,
        max_image_bytes=64 * 1024,
        fetch_timeout_ms=2000,
    )


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def remote() -> RemoteImages:
    return RemoteImages()


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    return make_image_bytes


@pytest.fixture
def jpeg_factory() -> Callable[..., bytes]:
    def factory(width: int = 4, height: int = 6, color: Tuple[int, ...] = (0, 0, 255)) -> bytes:
        return make_image_bytes(width, height, color, fmt="JPEG")

    return factory
