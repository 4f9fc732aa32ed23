"""Outbound message and generation job models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# Lets the producer client pick the partition.
ANY_PARTITION = -1


class DecoderScheme(str, Enum):
    """Encodings accepted for lines of a message file."""

    RAW = "raw"
    HEX = "hex"
    BASE64 = "base64"


@dataclass(frozen=True)
class OutboundMessage:
    """A single message handed to the producer client."""

    topic: str
    partition: int
    payload: bytes


@dataclass(frozen=True)
class GenerationJob:
    """How many messages a single generator stream must emit, and where to."""

    count: int
    topic: str
    partition: int = ANY_PARTITION

    def __post_init__(self):
        if self.count < 1:
            raise ValueError("count must be at least 1")
        if self.partition < ANY_PARTITION:
            raise ValueError("partition must be -1 or a partition index")


@dataclass(frozen=True)
class DeliveryReport:
    """Outcome of one asynchronous send."""

    message: OutboundMessage
    partition: int = ANY_PARTITION
    offset: int = -1
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
