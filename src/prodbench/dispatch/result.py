"""Dispatch result dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DispatchResult:
    """Outcome of a completed dispatch."""

    messages_sent: int = 0
    deliveries_observed: int = 0
    duration_seconds: float = 0.0
    sent_per_worker: list[int] = field(default_factory=list)
