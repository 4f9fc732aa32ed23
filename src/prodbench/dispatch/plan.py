"""Splitting a message load across synchronous workers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DispatchPlan:
    """Per-worker chunk sizes for ``load`` messages over ``workers`` workers.

    Every worker gets ``load // workers`` messages; the last one also takes
    the remainder, so the chunks always add up to ``load``.
    """

    load: int
    workers: int

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.workers > self.load:
            raise ValueError("workers must not exceed load")

    @property
    def chunks(self) -> list[int]:
        base, remainder = divmod(self.load, self.workers)
        sizes = [base] * self.workers
        sizes[-1] += remainder
        return sizes
