"""Top-level benchmark run: reporter, generator, dispatch, final metrics."""

from __future__ import annotations

import logging

from rich.console import Console

from prodbench.dispatch.asynchronous import AsyncDispatcher
from prodbench.dispatch.base import BaseDispatcher
from prodbench.dispatch.result import DispatchResult
from prodbench.dispatch.synchronous import SyncDispatcher
from prodbench.generators.message import MessageGenerator, create_message_generator
from prodbench.kafka.client import ProducerClient
from prodbench.metrics.reporter import MetricsReporter
from prodbench.models.config import BenchmarkConfig, DispatchMode

logger = logging.getLogger(__name__)


class BenchmarkRunner:
    """Runs one benchmark against an already built producer client.

    The reporter prints while the dispatch is in progress. Once the dispatch
    has accounted for every message, the final metrics line is printed and
    the client is closed. Any ``BenchmarkError`` propagates to the caller
    without a final line.
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        client: ProducerClient,
        console: Console | None = None,
        pacer_interval: float = 1.0,
    ):
        self.config = config
        self.client = client
        self.pacer_interval = pacer_interval
        self.reporter = MetricsReporter(
            registry=client.metrics,
            message_size=config.message_size,
            interval=config.reporting_interval_seconds,
            console=console,
        )

    def create_dispatcher(self, generator: MessageGenerator) -> BaseDispatcher:
        dispatcher_cls = SyncDispatcher if self.config.mode == DispatchMode.SYNC else AsyncDispatcher
        return dispatcher_cls(
            config=self.config,
            client=self.client,
            generator=generator,
            pacer_interval=self.pacer_interval,
        )

    async def run(self) -> DispatchResult:
        async with self.reporter:
            generator = create_message_generator(self.config)
            dispatcher = self.create_dispatcher(generator)
            logger.debug(
                "Dispatching %d messages to %s in %s mode",
                self.config.message_load,
                self.config.topic,
                self.config.mode.value,
            )
            result = await dispatcher.dispatch()

        self.reporter.print_metrics()
        await self.client.close()
        return result
