# noqa: D104
"""Tests for the bounded concurrent mapper."""

from __future__ import annotations

import asyncio

import pytest

from deckmerge.concurrency import map_concurrently


class TestMapConcurrently:
    @pytest.mark.asyncio
    async def test_preserves_input_order(self) -> None:
        async def work(item: int, index: int) -> int:
            await asyncio.sleep(0.001 * (10 - item))
            return item * 10

        assert await map_concurrently(list(range(10)), 4, work) == [i * 10 for i in range(10)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 3, 5])
    async def test_never_exceeds_limit(self, limit: int) -> None:
        in_flight = 0
        peak = 0

        async def work(item: int, index: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.002)
            in_flight -= 1
            return item

        await map_concurrently(list(range(20)), limit, work)
        assert peak == limit

    @pytest.mark.asyncio
    async def test_each_index_claimed_once(self) -> None:
        seen = []

        async def work(item: str, index: int) -> str:
            seen.append(index)
            await asyncio.sleep(0)
            return item

        await map_concurrently(["a", "b", "c", "d", "e"], 2, work)
        assert sorted(seen) == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_empty_input(self) -> None:
        async def work(item, index):
            raise AssertionError("should not be called")

        assert await map_concurrently([], 3, work) == []

    @pytest.mark.asyncio
    async def test_first_failure_aborts_remaining(self) -> None:
        started = []

        async def work(item: int, index: int) -> int:
            started.append(item)
            if item == 1:
                raise RuntimeError("boom")
            await asyncio.sleep(0.01)
            return item

        with pytest.raises(RuntimeError, match="boom"):
            await map_concurrently(list(range(10)), 2, work)
        assert len(started) < 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -1])
    async def test_rejects_invalid_limit(self, limit: int) -> None:
        async def work(item, index):
            return item

        with pytest.raises(ValueError):
            await map_concurrently([1], limit, work)
