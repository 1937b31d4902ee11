"""Merge card images into a single Tabletop Simulator deck sheet."""

from .errors import (
    CompositionError,
    ImageFetchError,
    ImageProvisionError,
    MergeRequestValidationError,
    ProvisionErrorCode,
)
from .service import MergeService

__all__ = [
    "CompositionError",
    "ImageFetchError",
    "ImageProvisionError",
    "MergeRequestValidationError",
    "MergeService",
    "ProvisionErrorCode",
]
