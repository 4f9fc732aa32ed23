"""Best-effort throughput pacing."""

from __future__ import annotations

import asyncio
import logging

logger = logging.getLogger(__name__)


class ThroughputPacer:
    """Caps emission at roughly ``throughput`` messages per ``interval``.

    A ticker task fires once per interval and raises a single pending-tick
    flag. Ticks that arrive while nobody is waiting collapse into that one
    flag, so the pacer never emits faster than the target in steady state but
    does not catch up after a stall either. ``throughput == 0`` disables
    pacing entirely.

    Use as an async context manager so the ticker is started and stopped with
    the send loop::

        async with ThroughputPacer(1000) as pacer:
            async for message in stream:
                await client.send_async(message)
                await pacer.pace()
    """

    def __init__(self, throughput: int, interval: float = 1.0):
        if throughput < 0:
            raise ValueError("throughput must not be negative")
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.throughput = throughput
        self.interval = interval
        self.emitted = 0
        self._tick = asyncio.Event()
        self._ticker: asyncio.Task | None = None

    @property
    def enabled(self) -> bool:
        return self.throughput > 0

    async def __aenter__(self) -> ThroughputPacer:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def start(self) -> None:
        if self.enabled and self._ticker is None:
            self._ticker = asyncio.create_task(self._run_ticker())

    async def stop(self) -> None:
        if self._ticker is None:
            return
        self._ticker.cancel()
        try:
            await self._ticker
        except asyncio.CancelledError:
            pass
        self._ticker = None

    async def _run_ticker(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            self._tick.set()
            next_tick += self.interval
            # Missed deadlines are dropped, not replayed.
            now = loop.time()
            if next_tick <= now:
                next_tick = now + self.interval

    async def wait_for_tick(self) -> None:
        """Block until the next tick. Returns at once if pacing is disabled."""
        if not self.enabled:
            return
        await self._tick.wait()
        self._tick.clear()

    async def pace(self) -> None:
        """Account for one emitted message, waiting after every full window."""
        if not self.enabled:
            return
        self.emitted += 1
        if self.emitted % self.throughput == 0:
            logger.debug("Pacer reached %d messages, waiting for next tick", self.emitted)
            await self.wait_for_tick()
