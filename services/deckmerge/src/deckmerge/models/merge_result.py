"""Merge output and its provenance metadata."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import List, Optional

from common.config import OutputFormat
from common.schemas import CamelModel

METADATA_HEADER = "X-Merge-Metadata"
METADATA_ENCODING_HEADER = "X-Merge-Metadata-Encoding"
METADATA_ENCODING = "base64url"


class GridMetadata(CamelModel):
    rows: int
    columns: int


class TileMetadata(CamelModel):
    width: int
    height: int


class OutputMetadata(CamelModel):
    width: int
    height: int
    format: OutputFormat
    content_type: str


class MergeFailure(CamelModel):
    id: str
    reason: str
    status: Optional[int] = None


class MergeMetadata(CamelModel):
    total_requested: int
    grid: GridMetadata
    tile: TileMetadata
    output: OutputMetadata
    cached: List[str]
    downloaded: List[str]
    duration_ms: float
    failures: List[MergeFailure] = []


@dataclass(frozen=True, slots=True)
class MergeResult:
    buffer: bytes
    content_type: str
    metadata: MergeMetadata


def encode_metadata_header(metadata: MergeMetadata) -> str:
    """Serialise metadata as unpadded base64url JSON for a response header."""

    raw = json.dumps(metadata.dump_json_payload(), separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_metadata_header(value: str) -> MergeMetadata:
    padded = value + "=" * (-len(value) % 4)
    payload = json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"))
    return MergeMetadata.model_validate(payload)


__all__ = [
    "GridMetadata",
    "METADATA_ENCODING",
    "METADATA_ENCODING_HEADER",
    "METADATA_HEADER",
    "MergeFailure",
    "MergeMetadata",
    "MergeResult",
    "OutputMetadata",
    "TileMetadata",
    "decode_metadata_header",
    "encode_metadata_header",
]
