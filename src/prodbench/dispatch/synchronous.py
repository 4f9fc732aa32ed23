"""Synchronous dispatch: the load split across concurrent blocking senders."""

from __future__ import annotations

import logging
import time

from prodbench.dispatch.base import BaseDispatcher, run_until_first_failure
from prodbench.dispatch.pacer import ThroughputPacer
from prodbench.dispatch.plan import DispatchPlan
from prodbench.dispatch.result import DispatchResult
from prodbench.generators.stream import MessageStream

logger = logging.getLogger(__name__)


class SyncDispatcher(BaseDispatcher):
    """Runs one worker per plan chunk, each awaiting every send's round trip.

    Workers share the client but each has its own stream and, when throughput
    is set, its own pacer, so the aggregate rate grows with the worker count.
    """

    async def _run_worker(self, index: int, stream: MessageStream) -> int:
        sent = 0
        async with ThroughputPacer(self.config.throughput, self.pacer_interval) as pacer:
            # With pacing on, each message is sent `throughput` times per tick.
            repeats = pacer.throughput if pacer.enabled else 1
            async for message in stream:
                for _ in range(repeats):
                    await self.client.send_sync(message)
                    sent += 1
                await pacer.wait_for_tick()
        logger.debug("Worker %d finished after %d sends", index, sent)
        return sent

    async def dispatch(self) -> DispatchResult:
        config = self.config
        started = time.monotonic()
        plan = DispatchPlan(load=config.message_load, workers=config.workers)
        streams = [
            self.generator.generate(config.topic, config.partition, chunk)
            for chunk in plan.chunks
        ]
        try:
            counts = await run_until_first_failure(
                *(self._run_worker(i, stream) for i, stream in enumerate(streams))
            )
        finally:
            for stream in streams:
                await stream.abandon()

        return DispatchResult(
            messages_sent=sum(counts),
            deliveries_observed=sum(counts),
            duration_seconds=time.monotonic() - started,
            sent_per_worker=counts,
        )
