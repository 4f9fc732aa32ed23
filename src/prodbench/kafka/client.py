"""Interface between the dispatch engine and a Kafka producer."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

from prodbench.metrics.registry import (
    OUTGOING_BYTE_RATE,
    RECORD_SEND_RATE,
    REQUEST_LATENCY,
    REQUESTS_IN_FLIGHT,
    Counter,
    Histogram,
    Meter,
    MetricsRegistry,
)
from prodbench.models.message import DeliveryReport, OutboundMessage


class ProducerClient(ABC):
    """Producer used by the dispatchers, safe for concurrent callers.

    Every message accepted by ``send_async`` yields exactly one
    ``DeliveryReport`` from ``next_delivery``. ``send_sync`` is a full round
    trip that raises ``DeliveryError`` on failure. Implementations record
    their traffic in ``metrics`` through ``_on_send``/``_on_delivered``.
    """

    def __init__(self, registry: MetricsRegistry | None = None) -> None:
        self.metrics = registry if registry is not None else MetricsRegistry()
        self._stop_event = threading.Event()

    def stop(self) -> None:
        """Signal background work of the client to stop."""
        self._stop_event.set()

    async def abort(self) -> None:
        """Stop the client without waiting for outstanding messages."""
        self.stop()

    @property
    def should_stop(self) -> bool:
        return self._stop_event.is_set()

    @abstractmethod
    async def send_async(self, message: OutboundMessage) -> None:
        """Hand a message over for delivery without waiting for the result."""
        ...

    @abstractmethod
    async def next_delivery(self) -> DeliveryReport:
        """Wait for the next report of an asynchronous send."""
        ...

    @abstractmethod
    async def send_sync(self, message: OutboundMessage) -> tuple[int, int]:
        """Deliver a message and return its ``(partition, offset)``."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Flush outstanding messages and release the client."""
        ...

    def _on_send(self, message: OutboundMessage) -> None:
        self.metrics.get_or_register(REQUESTS_IN_FLIGHT, Counter).inc()

    def _on_delivered(
        self, message: OutboundMessage, latency_ms: float, error: object | None = None
    ) -> None:
        self.metrics.get_or_register(REQUESTS_IN_FLIGHT, Counter).dec()
        if error is not None:
            return
        self.metrics.get_or_register(RECORD_SEND_RATE, Meter).mark()
        self.metrics.get_or_register(OUTGOING_BYTE_RATE, Meter).mark(len(message.payload))
        self.metrics.get_or_register(REQUEST_LATENCY, Histogram).update(latency_ms)
