"""Remote image downloads with size and time limits."""

from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from common.logging import get_logger

from .errors import ImageFetchError
from .models.cached_asset import FetchedImage

LOGGER = get_logger(__name__)

SUPPORTED_SCHEMES = frozenset({"http", "https"})
TIMEOUT_STATUS = 408


class _DownloadTooLarge(Exception):
    def __init__(self, transferred: int) -> None:
        super().__init__(transferred)
        self.transferred = transferred


def _parse_content_type(raw: Optional[str]) -> str:
    if not raw:
        return ""
    return raw.split(";", 1)[0].strip().lower()


def _parse_content_length(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


class ImageFetcher:
    """Download images over http(s) with a byte cap and a per-call timeout.

    The client is shared across calls and owned by the caller. Every failure is
    raised as :class:`ImageFetchError`; timeouts carry status 408 and non-2xx
    responses carry the remote status code.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_bytes: int,
        timeout: float,
    ) -> None:
        self._client = client
        self._max_bytes = max_bytes
        self._timeout = timeout

    async def fetch(self, uri: str) -> FetchedImage:
        try:
            url = httpx.URL(uri)
        except (httpx.InvalidURL, TypeError) as exc:
            raise ImageFetchError(f"Invalid imageUri provided: {uri}") from exc

        if url.scheme not in SUPPORTED_SCHEMES:
            raise ImageFetchError(f"Unsupported protocol for imageUri: {url.scheme or 'none'}:")

        LOGGER.debug("fetch.start", url=str(url), timeout_s=self._timeout)
        try:
            image = await asyncio.wait_for(self._download(url), timeout=self._timeout)
        except ImageFetchError:
            raise
        except _DownloadTooLarge as exc:
            LOGGER.warning(
                "fetch.size_exceeded",
                url=str(url),
                transferred=exc.transferred,
                limit=self._max_bytes,
            )
            raise ImageFetchError(
                f"Image at {url} exceeds maximum allowed size "
                f"({exc.transferred} > {self._max_bytes})"
            ) from exc
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            LOGGER.warning("fetch.timeout", url=str(url), timeout_s=self._timeout)
            raise ImageFetchError(f"Timed out fetching image: {url}", TIMEOUT_STATUS) from exc
        except httpx.HTTPError as exc:
            reason = f" ({exc})" if str(exc) else ""
            LOGGER.warning("fetch.request_error", url=str(url), error_type=type(exc).__name__, error=str(exc))
            raise ImageFetchError(f"Failed to fetch image: {url}{reason}") from exc

        LOGGER.debug(
            "fetch.done",
            url=image.url,
            bytes=image.bytes,
            content_type=image.content_type,
        )
        return image

    async def _download(self, url: httpx.URL) -> FetchedImage:
        async with self._client.stream("GET", url) as response:
            final_url = str(response.url)
            if not 200 <= response.status_code < 300:
                LOGGER.warning("fetch.bad_status", url=final_url, status=response.status_code)
                raise ImageFetchError(
                    f"Remote server responded with {response.status_code} for {url}",
                    response.status_code,
                )

            raw_type = response.headers.get("content-type")
            content_type = _parse_content_type(raw_type)
            if not content_type.startswith("image/"):
                raise ImageFetchError(
                    f"Unsupported content-type for {url}: {raw_type or 'unknown'}"
                )

            declared = _parse_content_length(response.headers.get("content-length"))
            if declared is not None and declared > self._max_bytes:
                raise ImageFetchError(
                    f"Image at {url} exceeds maximum allowed size "
                    f"({declared} > {self._max_bytes})"
                )

            buffer = bytearray()
            async for chunk in response.aiter_bytes():
                buffer.extend(chunk)
                if len(buffer) > self._max_bytes:
                    raise _DownloadTooLarge(len(buffer))

        return FetchedImage(buffer=bytes(buffer), content_type=content_type, url=final_url)


__all__ = ["ImageFetcher", "SUPPORTED_SCHEMES", "TIMEOUT_STATUS"]
