"""Binary image assets and their provenance."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

UNKNOWN_SOURCE_URL = "cache://unknown"


class CacheMetadataKeys:
    SOURCE_URL = "merge-source-url"
    CHECKSUM = "merge-checksum"
    CACHED_AT = "merge-cached-at"


def compute_checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _metadata_value(metadata: Mapping[str, str], key: str) -> Optional[str]:
    value = metadata.get(key)
    if value is None:
        wanted = key.lower()
        value = next((v for k, v in metadata.items() if k.lower() == wanted), None)
    return value or None


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True, slots=True)
class ImageDescriptor:
    """Reference to a single card image."""

    id: str
    image_uri: str


@dataclass(frozen=True, slots=True)
class FetchedImage:
    """Raw result of a successful remote download."""

    buffer: bytes
    content_type: str
    url: str

    @property
    def bytes(self) -> int:
        return len(self.buffer)


@dataclass(frozen=True, slots=True)
class CachedAsset:
    """Image payload plus provenance.

    ``bytes`` is derived from ``data`` so it always matches the payload length.
    """

    id: str
    data: bytes
    content_type: str
    checksum: str
    cached_at: datetime
    source_url: str

    @property
    def bytes(self) -> int:
        return len(self.data)

    @classmethod
    def from_storage(
        cls,
        asset_id: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Mapping[str, str]] = None,
        last_modified: Optional[datetime] = None,
    ) -> "CachedAsset":
        """Rebuild an asset read back from the content store.

        Missing metadata (objects written by older writers) is synthesised: the
        checksum is recomputed and ``cached_at`` falls back to the object's
        last-modified time.
        """

        metadata = metadata or {}
        checksum = _metadata_value(metadata, CacheMetadataKeys.CHECKSUM) or compute_checksum(data)
        cached_at = (
            _parse_timestamp(_metadata_value(metadata, CacheMetadataKeys.CACHED_AT))
            or last_modified
            or _utcnow()
        )
        source_url = _metadata_value(metadata, CacheMetadataKeys.SOURCE_URL) or UNKNOWN_SOURCE_URL
        return cls(
            id=asset_id,
            data=data,
            content_type=content_type,
            checksum=checksum,
            cached_at=cached_at,
            source_url=source_url,
        )

    @classmethod
    def from_fetched(cls, asset_id: str, image: FetchedImage) -> "CachedAsset":
        return cls(
            id=asset_id,
            data=image.buffer,
            content_type=image.content_type,
            checksum=compute_checksum(image.buffer),
            cached_at=_utcnow(),
            source_url=image.url,
        )

    def to_metadata(self) -> dict[str, str]:
        return {
            CacheMetadataKeys.SOURCE_URL: self.source_url,
            CacheMetadataKeys.CHECKSUM: self.checksum,
            CacheMetadataKeys.CACHED_AT: self.cached_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ProvidedImage(CachedAsset):
    """Asset handed to the compositor, tagged with where it came from."""

    was_cached: bool = False

    @classmethod
    def from_asset(
        cls, asset: CachedAsset, *, was_cached: bool, source_url: Optional[str] = None
    ) -> "ProvidedImage":
        return cls(
            id=asset.id,
            data=asset.data,
            content_type=asset.content_type,
            checksum=asset.checksum,
            cached_at=asset.cached_at,
            source_url=source_url or asset.source_url,
            was_cached=was_cached,
        )


__all__ = [
    "CacheMetadataKeys",
    "CachedAsset",
    "FetchedImage",
    "ImageDescriptor",
    "ProvidedImage",
    "UNKNOWN_SOURCE_URL",
    "compute_checksum",
]
