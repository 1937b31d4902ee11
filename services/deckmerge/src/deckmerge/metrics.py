"""Prometheus metrics for the deck merge service."""

from __future__ import annotations

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

router = APIRouter(tags=["metrics"])

FETCH_DURATION = Histogram(
    "deckmerge_fetch_duration_seconds",
    "Time to provision one card image, by outcome",
    labelnames=("outcome",),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 15, 30),
)

CACHE_HITS = Counter(
    "deckmerge_cache_hits_total",
    "Card images served from the content store",
)

CACHE_MISSES = Counter(
    "deckmerge_cache_misses_total",
    "Card images downloaded from their source",
)

DOWNLOAD_FAILURES = Counter(
    "deckmerge_download_failures_total",
    "Card images whose remote download failed",
)

COMPOSE_DURATION = Histogram(
    "deckmerge_compose_duration_seconds",
    "Time spent rendering and encoding the merged sheet",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

MERGES = Counter(
    "deckmerge_merges_total",
    "Merge requests by result",
    labelnames=("result",),
)


def record_provision(outcome: str, seconds: float) -> None:
    FETCH_DURATION.labels(outcome=outcome).observe(seconds)
    if outcome == "cache":
        CACHE_HITS.inc()
    elif outcome == "remote":
        CACHE_MISSES.inc()


def record_merge(result: str) -> None:
    MERGES.labels(result=result).inc()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "CACHE_HITS",
    "CACHE_MISSES",
    "COMPOSE_DURATION",
    "DOWNLOAD_FAILURES",
    "FETCH_DURATION",
    "MERGES",
    "record_merge",
    "record_provision",
    "router",
]
