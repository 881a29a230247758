# tests/unit/pipeline/test_single_flight.py — v1
"""Tests for pipeline/single_flight.py."""

from __future__ import annotations

import asyncio

import pytest

from stockscan.pipeline.single_flight import SingleFlight


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_joiners_share_result(self):
        flight = SingleFlight()
        gate = asyncio.Event()
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            await gate.wait()
            return "done"

        leader = asyncio.create_task(flight.run("k", work))
        await asyncio.sleep(0)
        assert flight.in_flight("k")
        joiner = asyncio.create_task(flight.run("k", work))
        await asyncio.sleep(0)
        gate.set()

        assert await asyncio.gather(leader, joiner) == ["done", "done"]
        assert calls == 1
        assert not flight.in_flight("k")

    @pytest.mark.asyncio
    async def test_failure_reaches_every_caller(self):
        flight = SingleFlight()
        gate = asyncio.Event()

        async def work():
            await gate.wait()
            raise ValueError("boom")

        leader = asyncio.create_task(flight.run("k", work))
        await asyncio.sleep(0)
        joiner = asyncio.create_task(flight.run("k", work))
        await asyncio.sleep(0)
        gate.set()

        results = await asyncio.gather(leader, joiner, return_exceptions=True)
        assert all(isinstance(r, ValueError) for r in results)
        assert not flight.in_flight("k")

    @pytest.mark.asyncio
    async def test_distinct_keys_run_independently(self):
        flight = SingleFlight()

        async def work(value):
            await asyncio.sleep(0)
            return value

        results = await asyncio.gather(
            flight.run("a", lambda: work(1)),
            flight.run("b", lambda: work(2)),
        )
        assert results == [1, 2]

    @pytest.mark.asyncio
    async def test_key_forgotten_after_completion(self):
        flight = SingleFlight()
        calls = 0

        async def work():
            nonlocal calls
            calls += 1
            return calls

        assert await flight.run("k", work) == 1
        assert await flight.run("k", work) == 2
