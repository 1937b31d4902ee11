"""Standard HTTP client helpers for outbound requests."""

from __future__ import annotations

from typing import Dict, Optional

import httpx

USER_AGENT = "deck-merge/1.0"


def _build_headers(extra: Optional[Dict[str, str]]) -> Dict[str, str]:
    headers: Dict[str, str] = {"User-Agent": USER_AGENT, "Accept": "image/*"}
    if extra:
        headers.update(extra)
    return headers


def create_http_client(
    timeout: float = 30.0,
    headers: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build the process-wide async client used for remote image downloads.

    Redirects are followed; callers own the client and must ``aclose`` it.
    """

    return httpx.AsyncClient(
        timeout=timeout,
        headers=_build_headers(headers),
        follow_redirects=True,
        transport=transport,
    )


__all__ = ["USER_AGENT", "create_http_client"]
