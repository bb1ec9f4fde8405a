"""
Tests for the progress estimator.
"""

import asyncio
import logging

from dubstudio.progress import ProgressEstimator, estimated_percent


def test_curve_is_monotonic_and_bounded():
    values = [estimated_percent(t / 10, 2.0) for t in range(200)]

    assert values[0] == 0.0
    assert all(b >= a for a, b in zip(values, values[1:]))
    assert max(values) < 99.0
    assert 90.0 < estimated_percent(2.0, 2.0) < 99.0


def test_estimator_ticks_then_stops():
    ticks = []

    async def scenario():
        estimator = ProgressEstimator(ticks.append, estimated_seconds=0.2, interval=0.01)
        async with estimator:
            await asyncio.sleep(0.15)
            assert estimator.running
        assert not estimator.running
        count = len(ticks)
        await asyncio.sleep(0.05)
        return count

    count = asyncio.run(scenario())

    assert count > 0
    assert len(ticks) == count
    assert all(b > a for a, b in zip(ticks, ticks[1:]))
    assert all(0 < t < 100 for t in ticks)


def test_estimator_stops_on_error():
    ticks = []

    async def scenario():
        estimator = ProgressEstimator(ticks.append, estimated_seconds=1.0, interval=0.01)
        try:
            async with estimator:
                await asyncio.sleep(0.03)
                raise RuntimeError("step failed")
        except RuntimeError:
            pass
        return estimator.running, [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]

    running, leftover = asyncio.run(scenario())

    assert running is False
    assert leftover == []


def test_failing_callback_keeps_ticker_alive(caplog):
    ticks = []

    def on_tick(value):
        ticks.append(value)
        if len(ticks) == 1:
            raise ValueError("state store unavailable")

    async def scenario():
        estimator = ProgressEstimator(on_tick, estimated_seconds=1.0, interval=0.01)
        async with estimator:
            await asyncio.sleep(0.1)
            running = estimator.running
        return running

    with caplog.at_level(logging.WARNING, logger="dubstudio"):
        running = asyncio.run(scenario())

    assert running is True
    assert len(ticks) > 1
    assert "state store unavailable" in caplog.text
