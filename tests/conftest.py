"""Shared fixtures: an in-memory producer client and report capture."""

from __future__ import annotations

import asyncio
import io
import threading
import time

import pytest
from rich.console import Console

from prodbench.errors import DeliveryError
from prodbench.kafka.client import ProducerClient
from prodbench.models.config import BenchmarkConfig, ClusterConfig
from prodbench.models.message import DeliveryReport, OutboundMessage


class FakeProducerClient(ProducerClient):
    """Producer client that acknowledges everything in memory.

    ``fail_on`` makes the send with that zero-based index fail. With
    ``hold_deliveries`` async reports are kept back until ``release`` is
    called, to observe what the dispatcher does while messages are in flight.
    """

    def __init__(self, fail_on: int | None = None, hold_deliveries: bool = False):
        super().__init__()
        self.fail_on = fail_on
        self.hold_deliveries = hold_deliveries
        self.sent: list[OutboundMessage] = []
        self.deliveries_taken = 0
        self.deliveries_at_close: int | None = None
        self.closed = False
        self.aborted = False
        self._held: list[DeliveryReport] = []
        self._deliveries: asyncio.Queue[DeliveryReport] = asyncio.Queue()

    def _accept(self, message: OutboundMessage) -> DeliveryReport:
        self._on_send(message)
        index = len(self.sent)
        self.sent.append(message)
        error = "broker unavailable" if index == self.fail_on else None
        self._on_delivered(message, latency_ms=1.0 + index % 5, error=error)
        return DeliveryReport(message=message, partition=0, offset=index, error=error)

    async def send_async(self, message: OutboundMessage) -> None:
        report = self._accept(message)
        if self.hold_deliveries:
            self._held.append(report)
        else:
            self._deliveries.put_nowait(report)

    def release(self) -> None:
        for report in self._held:
            self._deliveries.put_nowait(report)
        self._held.clear()

    async def next_delivery(self) -> DeliveryReport:
        report = await self._deliveries.get()
        self.deliveries_taken += 1
        return report

    async def send_sync(self, message: OutboundMessage) -> tuple[int, int]:
        await asyncio.sleep(0)
        report = self._accept(message)
        if not report.ok:
            raise DeliveryError(f"Failed to send message: {report.error}")
        return report.partition, report.offset

    async def close(self) -> None:
        self.closed = True
        self.deliveries_at_close = self.deliveries_taken

    async def abort(self) -> None:
        await super().abort()
        self.aborted = True


class FakeKafkaMessage:
    def __init__(self, topic: str, partition: int, offset: int):
        self._topic = topic
        self._partition = partition
        self._offset = offset

    def topic(self) -> str:
        return self._topic

    def partition(self) -> int:
        return self._partition

    def offset(self) -> int:
        return self._offset


class FakeKafkaProducer:
    """Stand-in for ``confluent_kafka.Producer``.

    ``produce`` queues messages and ``poll``/``flush`` run their delivery
    callbacks, the way librdkafka does. ``buffer_full`` is the number of
    ``produce`` calls rejected with ``BufferError`` before one is accepted,
    ``produce_error`` is raised from every ``produce`` call, ``fail_on`` fails
    the delivery with that zero-based index and ``leftover`` is what ``flush``
    reports as still queued.
    """

    def __init__(self, config: dict, fail_on: int | None = None):
        self.config = config
        self.fail_on = fail_on
        self.buffer_full = 0
        self.produce_error: Exception | None = None
        self.leftover = 0
        self.produce_calls = 0
        self.produced: list[tuple[str, int, bytes]] = []
        self.flush_timeouts: list[float] = []
        self._pending: list[tuple[int, str, int, object]] = []
        self._lock = threading.Lock()

    def produce(self, topic, value=None, on_delivery=None, partition=-1):
        self.produce_calls += 1
        if self.produce_error is not None:
            raise self.produce_error
        if self.buffer_full:
            self.buffer_full -= 1
            raise BufferError("Local: Queue full")
        with self._lock:
            index = len(self.produced)
            self.produced.append((topic, partition, value))
            self._pending.append((index, topic, partition, on_delivery))

    def poll(self, timeout=None) -> int:
        with self._lock:
            pending, self._pending = self._pending, []
        if not pending:
            time.sleep(min(timeout or 0, 0.005))
        for index, topic, partition, on_delivery in pending:
            if index == self.fail_on:
                on_delivery("Local: Message timed out", None)
            else:
                on_delivery(None, FakeKafkaMessage(topic, max(partition, 0), index))
        return len(pending)

    def flush(self, timeout=None) -> int:
        self.flush_timeouts.append(timeout)
        if self.leftover:
            return self.leftover
        self.poll(0)
        return 0


@pytest.fixture
def fake_client():
    return FakeProducerClient()


@pytest.fixture
def make_config():
    def _make(**overrides) -> BenchmarkConfig:
        settings = {
            "topic": "perf",
            "message_load": 100,
            "message_size": 16,
            "cluster": ClusterConfig(bootstrap_servers="localhost:9092"),
        }
        settings.update(overrides)
        return BenchmarkConfig(**settings)

    return _make


@pytest.fixture
def report_console():
    """Console writing to a buffer; read it back with ``console.file.getvalue()``."""
    return Console(file=io.StringIO(), width=400, color_system=None)


@pytest.fixture
def record_file(tmp_path):
    def _write(content: bytes, name: str = "records.txt"):
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def kafka_producers(monkeypatch):
    """Replace librdkafka with ``FakeKafkaProducer``; yields the instances created."""
    created: list[FakeKafkaProducer] = []

    def factory(config):
        producer = FakeKafkaProducer(config)
        created.append(producer)
        return producer

    monkeypatch.setattr("prodbench.kafka.producer.Producer", factory)
    return created
