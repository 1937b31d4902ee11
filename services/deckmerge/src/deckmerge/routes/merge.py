"""Deck merge endpoint."""

from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from common.logging import get_logger

from ..dependencies import get_merge_service
from ..models.merge_result import (
    METADATA_ENCODING,
    METADATA_ENCODING_HEADER,
    METADATA_HEADER,
    encode_metadata_header,
)
from ..service import MergeService, summarize_payload

LOGGER = get_logger(__name__)

router = APIRouter(tags=["merge"])


@router.post("/merge")
async def merge_deck(
    request: Request,
    service: MergeService = Depends(get_merge_service),
) -> Response:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        LOGGER.info("merge.invalid_json")
        return JSONResponse(status_code=400, content={"message": "Invalid JSON payload"})

    shape, summary = summarize_payload(payload)
    LOGGER.info("merge.received", shape=shape, **summary)

    result = await service.merge_deck(payload)
    fmt = result.metadata.output.format
    return Response(
        content=result.buffer,
        media_type=result.content_type,
        headers={
            "Cache-Control": "no-store",
            "Content-Disposition": f'inline; filename="tts-merge.{fmt}"',
            METADATA_HEADER: encode_metadata_header(result.metadata),
            METADATA_ENCODING_HEADER: METADATA_ENCODING,
        },
    )


__all__ = ["router"]
