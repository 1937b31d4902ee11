"""Exception taxonomy for the merge pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

ValidationIssue = Dict[str, Any]

REQUEST_INVALID_CODE = "merge.request_invalid"


class ProvisionErrorCode(str, Enum):
    """Machine-readable provisioning failure causes."""

    FETCH_FAILED = "merge.image_fetch_failed"
    TOO_LARGE = "merge.image_too_large"
    CACHE_FAILED = "merge.image_cache_failed"
    PROVISION_FAILED = "merge.image_provision_failed"


class MergeRequestValidationError(ValueError):
    """Raised when a merge payload does not satisfy the request schema."""

    def __init__(self, issues: Sequence[ValidationIssue]) -> None:
        super().__init__("Merge request validation failed")
        self.issues: List[ValidationIssue] = list(issues)

    @classmethod
    def single(cls, message: str, path: Sequence[Any], code: str = "custom") -> "MergeRequestValidationError":
        return cls([{"code": code, "message": message, "path": list(path)}])


class ImageFetchError(RuntimeError):
    """Raised when a remote image cannot be downloaded.

    ``status`` carries an HTTP-like status for pass-through when one is known.
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class ContentStoreWriteError(RuntimeError):
    """Raised when an asset cannot be persisted to the content store."""


class ImageProvisionError(RuntimeError):
    """Raised when a card image cannot be resolved from cache or network."""

    def __init__(
        self,
        message: str,
        *,
        status: int = 502,
        code: ProvisionErrorCode = ProvisionErrorCode.PROVISION_FAILED,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code

    @property
    def source(self) -> str:
        if self.code is ProvisionErrorCode.CACHE_FAILED:
            return "image_cache"
        return "image_fetch"

    @property
    def http_status(self) -> int:
        if 400 <= self.status <= 599:
            return self.status
        return 502


class CompositionError(RuntimeError):
    """Raised when the grid canvas cannot be rendered."""


__all__ = [
    "CompositionError",
    "ContentStoreWriteError",
    "ImageFetchError",
    "ImageProvisionError",
    "MergeRequestValidationError",
    "ProvisionErrorCode",
    "REQUEST_INVALID_CODE",
    "ValidationIssue",
]
