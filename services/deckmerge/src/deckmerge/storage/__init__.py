"""Durable storage for fetched card images."""

from .content_store import ContentStore, create_s3_client

__all__ = ["ContentStore", "create_s3_client"]
