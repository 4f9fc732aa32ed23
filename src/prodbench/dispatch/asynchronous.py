"""Asynchronous dispatch: one sender, one background delivery collector."""

from __future__ import annotations

import logging
import time

from prodbench.dispatch.base import BaseDispatcher, run_until_first_failure
from prodbench.dispatch.pacer import ThroughputPacer
from prodbench.dispatch.result import DispatchResult
from prodbench.errors import DeliveryError
from prodbench.generators.stream import MessageStream

logger = logging.getLogger(__name__)


class AsyncDispatcher(BaseDispatcher):
    """Pushes the whole load through ``send_async``.

    A collector awaits one delivery report per message. The dispatch only
    completes once all ``message_load`` reports have been seen, and the first
    failed report aborts it.
    """

    async def _send_all(self, stream: MessageStream) -> int:
        sent = 0
        async with ThroughputPacer(self.config.throughput, self.pacer_interval) as pacer:
            async for message in stream:
                await self.client.send_async(message)
                sent += 1
                await pacer.pace()
        logger.debug("All %d messages handed to the producer", sent)
        return sent

    async def _collect_deliveries(self, expected: int) -> int:
        for _ in range(expected):
            report = await self.client.next_delivery()
            if not report.ok:
                raise DeliveryError(report.error)
        return expected

    async def dispatch(self) -> DispatchResult:
        config = self.config
        started = time.monotonic()
        stream = self.generator.generate(config.topic, config.partition, config.message_load)
        try:
            sent, observed = await run_until_first_failure(
                self._send_all(stream),
                self._collect_deliveries(config.message_load),
            )
        finally:
            await stream.abandon()

        return DispatchResult(
            messages_sent=sent,
            deliveries_observed=observed,
            duration_seconds=time.monotonic() - started,
        )
