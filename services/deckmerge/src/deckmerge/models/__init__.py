"""Request, asset and result models for the merge service."""

from .cached_asset import (
    CacheMetadataKeys,
    CachedAsset,
    FetchedImage,
    ImageDescriptor,
    ProvidedImage,
    UNKNOWN_SOURCE_URL,
    compute_checksum,
)
from .merge_request import (
    DEFAULT_GRID,
    GRID_COLUMNS,
    GRID_ROWS,
    MAX_CARDS,
    MAX_CARDS_WITH_HIDDEN_IMAGE,
    GridShape,
    HiddenImage,
    MergeCard,
    MergeRequest,
    decode_hidden_image,
    parse_merge_request,
)
from .merge_result import (
    MergeMetadata,
    MergeResult,
    decode_metadata_header,
    encode_metadata_header,
)

__all__ = [
    "CacheMetadataKeys",
    "CachedAsset",
    "DEFAULT_GRID",
    "FetchedImage",
    "GRID_COLUMNS",
    "GRID_ROWS",
    "GridShape",
    "HiddenImage",
    "ImageDescriptor",
    "MAX_CARDS",
    "MAX_CARDS_WITH_HIDDEN_IMAGE",
    "MergeCard",
    "MergeMetadata",
    "MergeRequest",
    "MergeResult",
    "ProvidedImage",
    "UNKNOWN_SOURCE_URL",
    "compute_checksum",
    "decode_hidden_image",
    "decode_metadata_header",
    "encode_metadata_header",
    "parse_merge_request",
]
