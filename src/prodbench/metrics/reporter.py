"""Periodic reporting of producer client metrics."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from rich.console import Console

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

logger = logging.getLogger(__name__)

LATENCY_PERCENTILES = (0.5, 0.75, 0.95, 0.99, 0.999)
MIB = 1024 * 1024


@dataclass(frozen=True)
class MetricsSnapshot:
    """Point-in-time view of the four metrics the report line needs."""

    records_sent: int
    record_send_rate: float
    outgoing_byte_rate: float
    latency_mean: float
    latency_stddev: float
    latency_percentiles: tuple[float, ...]
    requests_in_flight: int

    @classmethod
    def capture(cls, registry: MetricsRegistry) -> MetricsSnapshot | None:
        """Read the registry, or return None while any metric is still unregistered."""
        send_rate = registry.get(RECORD_SEND_RATE)
        latency = registry.get(REQUEST_LATENCY)
        byte_rate = registry.get(OUTGOING_BYTE_RATE)
        in_flight = registry.get(REQUESTS_IN_FLIGHT)
        if not (
            isinstance(send_rate, Meter)
            and isinstance(latency, Histogram)
            and isinstance(byte_rate, Meter)
            and isinstance(in_flight, Counter)
        ):
            return None

        sends = send_rate.snapshot()
        latencies = latency.snapshot()
        return cls(
            records_sent=sends.count,
            record_send_rate=sends.rate_mean,
            outgoing_byte_rate=byte_rate.snapshot().rate_mean,
            latency_mean=latencies.mean,
            latency_stddev=latencies.stddev,
            latency_percentiles=tuple(latencies.percentiles(LATENCY_PERCENTILES)),
            requests_in_flight=in_flight.count(),
        )

    def render(self, message_size: int) -> str:
        # Ingress assumes every record is message_size bytes, even for file payloads.
        ingress = self.record_send_rate * message_size / MIB
        egress = self.outgoing_byte_rate / MIB
        p50, p75, p95, p99, p999 = self.latency_percentiles
        return (
            f"{self.records_sent} records sent, {self.record_send_rate:.1f} records/sec "
            f"({ingress:.2f} MiB/sec ingress, {egress:.2f} MiB/sec egress), "
            f"{self.latency_mean:.1f} ms avg latency, {self.latency_stddev:.1f} ms stddev, "
            f"{p50:.1f} ms 50th, {p75:.1f} ms 75th, {p95:.1f} ms 95th, "
            f"{p99:.1f} ms 99th, {p999:.1f} ms 99.9th, "
            f"{self.requests_in_flight} total req. in flight"
        )


class MetricsReporter:
    """Prints a metrics line every ``interval`` seconds while a run is going."""

    def __init__(
        self,
        registry: MetricsRegistry,
        message_size: int,
        interval: float = 5.0,
        console: Console | None = None,
    ):
        self.registry = registry
        self.message_size = message_size
        self.interval = interval
        self._console = console or Console()
        self._task: asyncio.Task | None = None
        self.lines_printed = 0

    def print_metrics(self) -> bool:
        """Print one line. Returns False if the metrics are not registered yet."""
        snapshot = MetricsSnapshot.capture(self.registry)
        if snapshot is None:
            logger.debug("Skipping metrics report, producer metrics not registered yet")
            return False
        self._console.print(
            snapshot.render(self.message_size), markup=False, highlight=False, soft_wrap=True
        )
        self.lines_printed += 1
        return True

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.print_metrics()

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def __aenter__(self) -> MetricsReporter:
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
