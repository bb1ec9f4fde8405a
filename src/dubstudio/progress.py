"""
Simulated progress for steps whose completion time is unknown up front.
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable

logger = logging.getLogger("dubstudio")

ProgressCallback = Callable[[float], None]


def estimated_percent(elapsed: float, estimated: float, ceiling: float = 99.0) -> float:
    """Asymptotic curve: ~94% at ``elapsed == estimated``, never reaches ``ceiling``."""
    if estimated <= 0:
        return ceiling
    return ceiling * (1.0 - math.exp(-3.0 * elapsed / estimated))


class ProgressEstimator:
    """
    Ticks a step-progress callback in the background while a step is awaited.

    Use as an async context manager; the ticking task is cancelled and awaited
    on exit whatever the outcome of the step::

        async with ProgressEstimator(on_tick, estimated_seconds=12.0):
            result = await provider.transcribe(...)
    """

    def __init__(
        self,
        on_tick: ProgressCallback,
        estimated_seconds: float,
        interval: float = 0.2,
        ceiling: float = 99.0,
    ) -> None:
        self.on_tick = on_tick
        self.estimated_seconds = max(estimated_seconds, interval)
        self.interval = interval
        self.ceiling = ceiling
        self.current = 0.0
        self._task: asyncio.Task | None = None

    async def _run(self) -> None:
        started = time.monotonic()
        while True:
            await asyncio.sleep(self.interval)
            value = estimated_percent(
                time.monotonic() - started, self.estimated_seconds, self.ceiling
            )
            if value > self.current:
                self.current = value
                try:
                    self.on_tick(value)
                except Exception as e:
                    logger.warning(f"Progress callback failed at {value:.1f}%: {e}")

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def __aenter__(self) -> "ProgressEstimator":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
