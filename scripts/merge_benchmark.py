#!/usr/bin/env python3
"""
Benchmark the merge pipeline end-to-end against in-memory doubles.

Remote image hosts are served by an ``httpx.MockTransport`` and the S3 bucket by
a dict-backed client, so no network or credentials are needed. Every iteration
starts with an empty cache, so each run measures the full download path.

Usage:
  python scripts/merge_benchmark.py                    # 3 iterations, 70 cards
  python scripts/merge_benchmark.py --iterations 5 --cards 40 --format jpeg
"""

from __future__ import annotations

import argparse
import asyncio
import io
import sys
import time
from typing import Any, Dict, List
from uuid import uuid4

import httpx
from botocore.exceptions import ClientError
from PIL import Image

from common.config import Settings
from common.logging import configure_logging
from deckmerge.dependencies import build_merge_service


class MemoryS3Client:
    def __init__(self) -> None:
        self.objects: Dict[str, Dict[str, Any]] = {}

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:  # noqa: N803
        stored = self.objects.get(Key)
        if stored is None:
            raise ClientError({"Error": {"Code": "NoSuchKey", "Message": Key}}, "GetObject")
        return {
            "Body": io.BytesIO(stored["Body"]),
            "ContentType": stored["ContentType"],
            "Metadata": stored["Metadata"],
        }

    def put_object(self, **params: Any) -> Dict[str, Any]:
        self.objects[params["Key"]] = params
        return {}

    def head_bucket(self, Bucket: str) -> Dict[str, Any]:  # noqa: N803
        return {}


def _card_image(index: int) -> bytes:
    color = ((index * 31) % 255, (index * 47) % 255, (index * 13) % 255, 255)
    buffer = io.BytesIO()
    Image.new("RGBA", (128, 180), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _build_deck(count: int) -> tuple[List[Dict[str, str]], Dict[str, bytes]]:
    cards: List[Dict[str, str]] = []
    bodies: Dict[str, bytes] = {}
    for index in range(count):
        uri = f"https://benchmark.local/{index}.png"
        cards.append({"id": str(uuid4()), "imageUri": uri})
        bodies[uri] = _card_image(index)
    return cards, bodies


async def run_iteration(settings: Settings, cards: List[Dict[str, str]], bodies: Dict[str, bytes]) -> Dict[str, float]:
    def handler(request: httpx.Request) -> httpx.Response:
        body = bodies.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body, headers={"content-type": "image/png"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = build_merge_service(settings, s3_client=MemoryS3Client(), http_client=client)
        started = time.perf_counter()
        result = await service.merge_deck(cards)
        wall_ms = (time.perf_counter() - started) * 1000

    return {
        "wall_ms": wall_ms,
        "merge_ms": result.metadata.duration_ms,
        "cached": len(result.metadata.cached),
        "downloaded": len(result.metadata.downloaded),
    }


async def main_async(args: argparse.Namespace) -> None:
    settings = Settings(
        _env_file=None,
        aws_s3_bucket_name="benchmark",
        merge_output_format=args.format,
        fetch_concurrency=args.concurrency,
    )
    runs = []
    for iteration in range(args.iterations):
        cards, bodies = _build_deck(args.cards)
        stats = await run_iteration(settings, cards, bodies)
        runs.append(stats)
        print(
            f"run {iteration + 1}: wall={stats['wall_ms']:.2f}ms, merge={stats['merge_ms']:.2f}ms, "
            f"cached={stats['cached']}, downloaded={stats['downloaded']}"
        )

    average = sum(run["wall_ms"] for run in runs) / len(runs)
    print(f"\naverage wall duration: {average:.2f}ms over {len(runs)} runs (cards={args.cards})")


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark deck merges")
    parser.add_argument("--iterations", type=int, default=3)
    parser.add_argument("--cards", type=int, default=70)
    parser.add_argument("--format", choices=("png", "jpeg"), default="png")
    parser.add_argument("--concurrency", type=int, default=5)
    args = parser.parse_args()
    if args.iterations < 1:
        parser.error("--iterations must be at least 1")

    configure_logging("WARNING")
    asyncio.run(main_async(args))
    return 0


if __name__ == "__main__":
    sys.exit(main())
