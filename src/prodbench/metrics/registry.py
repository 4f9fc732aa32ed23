"""Named meters, histograms and counters maintained by the producer client.

The producer client updates these from its delivery callbacks, which run on
the client's polling thread, so every metric guards its state with a lock.
"""

from __future__ import annotations

import heapq
import itertools
import math
import random
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

RECORD_SEND_RATE = "record-send-rate"
REQUEST_LATENCY = "request-latency-in-ms"
OUTGOING_BYTE_RATE = "outgoing-byte-rate"
REQUESTS_IN_FLIGHT = "requests-in-flight"

DEFAULT_RESERVOIR_SIZE = 1028
DEFAULT_ALPHA = 0.015
RESCALE_THRESHOLD_SECONDS = 3600.0

Clock = Callable[[], float]


@dataclass(frozen=True)
class MeterSnapshot:
    count: int
    rate_mean: float


@dataclass(frozen=True)
class HistogramSnapshot:
    count: int
    values: tuple[float, ...] = field(repr=False)

    @property
    def mean(self) -> float:
        if not self.values:
            return 0.0
        return sum(self.values) / len(self.values)

    @property
    def stddev(self) -> float:
        if not self.values:
            return 0.0
        mean = self.mean
        return math.sqrt(sum((v - mean) ** 2 for v in self.values) / len(self.values))

    def percentiles(self, ps: Sequence[float]) -> list[float]:
        """Interpolated percentiles of the sample, ``ps`` given as fractions."""
        values = sorted(self.values)
        n = len(values)
        result = []
        for p in ps:
            if n == 0:
                result.append(0.0)
                continue
            pos = p * (n + 1)
            if pos < 1:
                result.append(float(values[0]))
            elif pos >= n:
                result.append(float(values[-1]))
            else:
                lower = values[int(pos) - 1]
                upper = values[int(pos)]
                result.append(lower + (pos - math.floor(pos)) * (upper - lower))
        return result


class Meter:
    """Counts events and reports their mean rate since creation."""

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._start = clock()
        self._count = 0
        self._lock = threading.Lock()

    def mark(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def snapshot(self) -> MeterSnapshot:
        with self._lock:
            count = self._count
        elapsed = self._clock() - self._start
        rate = count / elapsed if elapsed > 0 else 0.0
        return MeterSnapshot(count=count, rate_mean=rate)


class Histogram:
    """Distribution of values kept in an exponentially decaying sample.

    Each value gets a priority that grows with its arrival time, and the
    reservoir keeps the highest priorities, so recent values are favoured.
    Priorities are rescaled against a new landmark every hour to keep them
    finite.
    """

    def __init__(
        self,
        reservoir_size: int = DEFAULT_RESERVOIR_SIZE,
        alpha: float = DEFAULT_ALPHA,
        clock: Clock = time.monotonic,
        seed: int | None = None,
    ):
        self._reservoir_size = reservoir_size
        self._alpha = alpha
        self._clock = clock
        self._random = random.Random(seed)
        self._lock = threading.Lock()
        self._sample: list[tuple[float, int, float]] = []
        self._sequence = itertools.count()
        self._count = 0
        self._landmark = clock()
        self._next_rescale = self._landmark + RESCALE_THRESHOLD_SECONDS

    def update(self, value: float) -> None:
        now = self._clock()
        with self._lock:
            if now > self._next_rescale:
                self._rescale(now)
            self._count += 1
            # 1 - random() lies in (0, 1]
            priority = math.exp(self._alpha * (now - self._landmark)) / (1.0 - self._random.random())
            item = (priority, next(self._sequence), value)
            if len(self._sample) < self._reservoir_size:
                heapq.heappush(self._sample, item)
            elif priority > self._sample[0][0]:
                heapq.heapreplace(self._sample, item)

    def _rescale(self, now: float) -> None:
        factor = math.exp(-self._alpha * (now - self._landmark))
        self._sample = [(p * factor, seq, v) for p, seq, v in self._sample]
        heapq.heapify(self._sample)
        self._landmark = now
        self._next_rescale = now + RESCALE_THRESHOLD_SECONDS

    def snapshot(self) -> HistogramSnapshot:
        with self._lock:
            values = tuple(v for _, _, v in self._sample)
            return HistogramSnapshot(count=self._count, values=values)


class Counter:
    def __init__(self):
        self._count = 0
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    def count(self) -> int:
        with self._lock:
            return self._count


Metric = Meter | Histogram | Counter
MetricT = TypeVar("MetricT", Meter, Histogram, Counter)


class MetricsRegistry:
    """Metrics by name. Metrics appear on first use, not up front."""

    def __init__(self):
        self._metrics: dict[str, Metric] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Metric | None:
        with self._lock:
            return self._metrics.get(name)

    def get_or_register(self, name: str, factory: Callable[[], MetricT]) -> MetricT:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = factory()
                self._metrics[name] = metric
            return metric  # type: ignore[return-value]

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._metrics)
