"""Merge orchestration: parse, provision, place, compose, package."""

from __future__ import annotations

import asyncio
import time
from typing import Any, List, Optional, Tuple

from common.config import OutputFormat, Settings
from common.logging import get_logger

from . import metrics
from .composer import GridComposer
from .concurrency import map_concurrently
from .errors import (
    CompositionError,
    ImageProvisionError,
    MergeRequestValidationError,
    ProvisionErrorCode,
)
from .models.cached_asset import CachedAsset, FetchedImage, ImageDescriptor, ProvidedImage
from .models.merge_request import MergeCard, MergeRequest, parse_merge_request
from .models.merge_result import (
    GridMetadata,
    MergeMetadata,
    MergeResult,
    OutputMetadata,
    TileMetadata,
)
from .provider import ImageProvider

LOGGER = get_logger(__name__)

HIDDEN_IMAGE_ID = "hidden-image"
HIDDEN_IMAGE_SOURCE = "inline://hidden-image"


def _format_for(content_type: str) -> OutputFormat:
    return "png" if content_type == "image/png" else "jpeg"


class MergeService:
    """Turn a deck payload into a single merged sheet.

    All-or-nothing: the first provisioning failure aborts the merge and no
    partial composite is ever produced.
    """

    def __init__(
        self,
        settings: Settings,
        provider: ImageProvider,
        composer: GridComposer,
        concurrency: Optional[int] = None,
    ) -> None:
        self._settings = settings
        self._provider = provider
        self._composer = composer
        self._concurrency = concurrency or settings.fetch_concurrency

    async def merge_deck(self, payload: Any) -> MergeResult:
        try:
            request = parse_merge_request(payload)
        except MergeRequestValidationError as exc:
            LOGGER.info("merge.validation_failed", issues=exc.issues)
            metrics.record_merge("invalid")
            raise
        return await self.execute_merge(request)

    async def execute_merge(self, request: MergeRequest) -> MergeResult:
        started = time.perf_counter()
        log = LOGGER.bind(cards=len(request.cards), hidden_image=request.hidden_image is not None)
        try:
            result = await self._run(request, started)
        except MergeRequestValidationError as exc:
            log.info("merge.validation_failed", issues=exc.issues)
            metrics.record_merge("invalid")
            raise
        except ImageProvisionError as exc:
            if exc.code is ProvisionErrorCode.FETCH_FAILED:
                metrics.DOWNLOAD_FAILURES.inc()
            log.warning(
                "merge.provision_failed",
                code=exc.code.value,
                status=exc.http_status,
                error=str(exc),
            )
            metrics.record_merge("provision_failed")
            raise
        except Exception:
            metrics.record_merge("error")
            raise

        metrics.record_merge("success")
        log.info(
            "merge.completed",
            cached=len(result.metadata.cached),
            downloaded=len(result.metadata.downloaded),
            duration_ms=result.metadata.duration_ms,
            bytes=len(result.buffer),
        )
        return result

    async def _run(self, request: MergeRequest, started: float) -> MergeResult:
        grid = request.grid
        reserved = 1 if request.hidden_image is not None else 0
        available = grid.slots - reserved
        if len(request.cards) > available:
            raise MergeRequestValidationError.single(
                f"Too many cards: {len(request.cards)} exceeds the {available} available grid slots",
                ["cards"],
                code="too_big",
            )

        hidden_tile = await self._prepare_hidden_image(request)

        provided = await map_concurrently(request.cards, self._concurrency, self._provision_card)

        slots: List[Optional[bytes]] = [None] * grid.slots
        cached: List[str] = []
        downloaded: List[str] = []
        for card, image in zip(request.cards, provided):
            slots[card.index] = image.data
            (cached if image.was_cached else downloaded).append(card.id)

        if hidden_tile is not None:
            slots[grid.slots - 1] = hidden_tile.data
            downloaded.append(hidden_tile.id)

        compose_started = time.perf_counter()
        composite = await asyncio.to_thread(self._composer.compose_grid, slots, grid)
        metrics.COMPOSE_DURATION.observe(time.perf_counter() - compose_started)

        content_type = f"image/{composite.format}"
        metadata = MergeMetadata(
            total_requested=len(cached) + len(downloaded),
            grid=GridMetadata(rows=grid.rows, columns=grid.columns),
            tile=TileMetadata(width=composite.tile_width, height=composite.tile_height),
            output=OutputMetadata(
                width=composite.width,
                height=composite.height,
                format=composite.format,
                content_type=content_type,
            ),
            cached=cached,
            downloaded=downloaded,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            failures=[],
        )
        return MergeResult(buffer=composite.buffer, content_type=content_type, metadata=metadata)

    async def _prepare_hidden_image(self, request: MergeRequest) -> Optional[ProvidedImage]:
        hidden = request.hidden_image
        if hidden is None:
            return None

        fmt = _format_for(hidden.content_type)
        try:
            data = await asyncio.to_thread(self._composer.normalize_image, hidden.data, fmt)
        except CompositionError as exc:
            raise MergeRequestValidationError.single(
                "hiddenImage could not be decoded as an image",
                ["hiddenImage"],
                code="invalid_image",
            ) from exc

        asset = CachedAsset.from_fetched(
            HIDDEN_IMAGE_ID,
            FetchedImage(buffer=data, content_type=f"image/{fmt}", url=HIDDEN_IMAGE_SOURCE),
        )
        return ProvidedImage.from_asset(asset, was_cached=False)

    async def _provision_card(self, card: MergeCard, _index: int) -> ProvidedImage:
        started = time.perf_counter()
        try:
            image = await self._provider.get_image(
                ImageDescriptor(id=card.id, image_uri=card.image_uri)
            )
        except Exception:
            metrics.record_provision("failed", time.perf_counter() - started)
            raise
        metrics.record_provision("cache" if image.was_cached else "remote", time.perf_counter() - started)
        return image


def summarize_payload(payload: Any) -> Tuple[str, dict]:
    """Describe a raw payload for logging without echoing its contents."""

    if isinstance(payload, list):
        first = payload[0].get("id") if payload and isinstance(payload[0], dict) else None
        return "array", {"card_count": len(payload), "first_id": first}
    if isinstance(payload, dict):
        cards = payload.get("cards")
        count = len(cards) if isinstance(cards, list) else None
        first = cards[0].get("id") if count and isinstance(cards[0], dict) else None
        summary: dict = {"card_count": count, "first_id": first}
        hidden = payload.get("hiddenImage")
        if isinstance(hidden, str):
            summary["hidden_image_mime"] = hidden[5 : hidden.find(";")] if hidden.startswith("data:") else None
            summary["hidden_image_length"] = len(hidden)
        return "object", summary
    return type(payload).__name__, {}


__all__ = ["HIDDEN_IMAGE_ID", "HIDDEN_IMAGE_SOURCE", "MergeService", "summarize_payload"]
