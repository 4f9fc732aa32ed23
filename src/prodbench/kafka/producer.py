"""ProducerClient backed by confluent-kafka (librdkafka)."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any

from confluent_kafka import KafkaException, Producer

from prodbench.errors import ConfigurationError, DeliveryError
from prodbench.kafka.client import ProducerClient
from prodbench.metrics.registry import MetricsRegistry
from prodbench.models.config import ClusterConfig, ProducerConfig
from prodbench.models.message import DeliveryReport, OutboundMessage
from prodbench.runtime import run_blocking

logger = logging.getLogger(__name__)


def _call_in_loop(loop: asyncio.AbstractEventLoop, callback, *args) -> None:
    # Reports that arrive after the loop is gone have nobody left to read them.
    if loop.is_closed():
        logger.debug("Event loop closed, dropping delivery report")
        return
    loop.call_soon_threadsafe(callback, *args)


class KafkaProducerClient(ProducerClient):
    """Kafka producer with delivery reports handed back to the event loop.

    librdkafka only runs delivery callbacks from ``poll``, so a daemon thread
    polls for as long as the client is open. Callbacks record metrics on that
    thread and then pass the report to the loop with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        cluster: ClusterConfig,
        config: ProducerConfig,
        registry: MetricsRegistry | None = None,
        verbose: bool = False,
        poll_interval: float = 0.1,
        close_timeout: float = 30.0,
    ):
        super().__init__(registry)
        client_config: dict[str, Any] = {
            **cluster.to_client_config(),
            **config.to_client_config(),
        }
        if verbose:
            client_config["debug"] = "broker,topic,msg"
            client_config["logger"] = logging.getLogger("prodbench.librdkafka")

        try:
            self._producer = Producer(client_config)
        except KafkaException as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        self.poll_interval = poll_interval
        self.close_timeout = close_timeout
        self._deliveries: asyncio.Queue[DeliveryReport] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._poller = threading.Thread(
            target=self._poll_loop, name="producer-client-poll", daemon=True
        )

    def _ensure_polling(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
            self._poller.start()
        return self._loop

    def _poll_loop(self) -> None:
        while not self.should_stop:
            self._producer.poll(self.poll_interval)

    def _report(self, message: OutboundMessage, started: float, err, msg) -> DeliveryReport:
        latency_ms = (time.monotonic() - started) * 1000
        self._on_delivered(message, latency_ms, err)
        if err is not None:
            return DeliveryReport(message=message, error=str(err))
        return DeliveryReport(message=message, partition=msg.partition(), offset=msg.offset())

    async def _produce(self, message: OutboundMessage, on_delivery) -> None:
        kwargs: dict[str, Any] = {}
        if message.partition >= 0:
            kwargs["partition"] = message.partition

        self._on_send(message)
        while True:
            try:
                self._producer.produce(
                    message.topic, value=message.payload, on_delivery=on_delivery, **kwargs
                )
                return
            except BufferError:
                # Local queue is full, give the poller time to drain it.
                await asyncio.sleep(self.poll_interval / 10)
            except KafkaException as e:
                self._on_delivered(message, 0.0, e)
                raise DeliveryError(f"Failed to send message: {e}") from e

    async def send_async(self, message: OutboundMessage) -> None:
        loop = self._ensure_polling()
        started = time.monotonic()

        def on_delivery(err, msg):
            report = self._report(message, started, err, msg)
            _call_in_loop(loop, self._deliveries.put_nowait, report)

        await self._produce(message, on_delivery)

    async def next_delivery(self) -> DeliveryReport:
        return await self._deliveries.get()

    async def send_sync(self, message: OutboundMessage) -> tuple[int, int]:
        loop = self._ensure_polling()
        started = time.monotonic()
        future: asyncio.Future[DeliveryReport] = loop.create_future()

        def resolve(report: DeliveryReport) -> None:
            if not future.done():
                future.set_result(report)

        def on_delivery(err, msg):
            _call_in_loop(loop, resolve, self._report(message, started, err, msg))

        await self._produce(message, on_delivery)
        report = await future
        if not report.ok:
            raise DeliveryError(f"Failed to send message: {report.error}")
        return report.partition, report.offset

    async def abort(self) -> None:
        self.stop()
        if self._poller.is_alive():
            await run_blocking(self._poller.join)
        logger.debug("Producer client aborted")

    async def close(self) -> None:
        await self.abort()
        remaining = await run_blocking(self._producer.flush, self.close_timeout)
        if remaining:
            raise DeliveryError(
                f"Failed to close producer: {remaining} messages were not delivered"
            )
        logger.debug("Producer client closed")
