"""Service configuration management using Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OutputFormat = Literal["png", "jpeg"]

DEFAULT_CACHE_PREFIX = "cache/"
DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024
DEFAULT_FETCH_TIMEOUT_MS = 15_000
DEFAULT_FETCH_CONCURRENCY = 5
MAX_FETCH_CONCURRENCY = 16
DEFAULT_MERGE_OUTPUT_FORMAT: OutputFormat = "png"
DEFAULT_PORT = 3000

_FORMAT_ALIASES = {"png": "png", "jpeg": "jpeg", "jpg": "jpeg"}


class Settings(BaseSettings):
    """Configuration for the deck merge service.

    Environment variables map onto fields case-insensitively. The object is built
    once at process start and handed to each component explicitly.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    service_name: str = "deck-merge"
    log_level: str = "INFO"
    port: int = Field(DEFAULT_PORT, ge=1, le=65535)

    # S3-compatible content store
    aws_endpoint_url: Optional[str] = None
    aws_default_region: str = "us-east-1"
    aws_s3_bucket_name: str
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    cache_prefix: str = DEFAULT_CACHE_PREFIX
    cache_control: str = "public, max-age=7776000, immutable"

    # Remote fetches
    max_image_bytes: int = Field(DEFAULT_MAX_IMAGE_BYTES, gt=0)
    fetch_timeout_ms: int = Field(DEFAULT_FETCH_TIMEOUT_MS, gt=0)
    fetch_concurrency: int = Field(
        DEFAULT_FETCH_CONCURRENCY, ge=1, le=MAX_FETCH_CONCURRENCY
    )

    # Composition
    merge_output_format: OutputFormat = DEFAULT_MERGE_OUTPUT_FORMAT
    tile_width: int = Field(409, gt=0)
    tile_height: int = Field(585, gt=0)

    @field_validator("aws_s3_bucket_name", "aws_default_region")
    @classmethod
    def _require_value(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("aws_endpoint_url", "aws_access_key_id", "aws_secret_access_key")
    @classmethod
    def _blank_as_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("cache_prefix")
    @classmethod
    def _trim_prefix(cls, value: str) -> str:
        return value.strip()

    @field_validator("merge_output_format", mode="before")
    @classmethod
    def _normalize_format(cls, value: object) -> object:
        if isinstance(value, str):
            normalized = value.strip().lower()
            return _FORMAT_ALIASES.get(normalized, normalized)
        return value

    @property
    def fetch_timeout_seconds(self) -> float:
        return self.fetch_timeout_ms / 1000

    @property
    def output_content_type(self) -> str:
        return f"image/{self.merge_output_format}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache configuration for the current process."""

    return Settings()  # type: ignore[call-arg]


__all__ = [
    "DEFAULT_CACHE_PREFIX",
    "DEFAULT_FETCH_CONCURRENCY",
    "DEFAULT_FETCH_TIMEOUT_MS",
    "DEFAULT_MAX_IMAGE_BYTES",
    "DEFAULT_MERGE_OUTPUT_FORMAT",
    "DEFAULT_PORT",
    "MAX_FETCH_CONCURRENCY",
    "OutputFormat",
    "Settings",
    "get_settings",
]
