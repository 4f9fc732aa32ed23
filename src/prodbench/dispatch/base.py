"""Base dispatcher with common functionality."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Coroutine
from typing import Any

from prodbench.dispatch.result import DispatchResult
from prodbench.generators.message import MessageGenerator
from prodbench.kafka.client import ProducerClient
from prodbench.models.config import BenchmarkConfig

logger = logging.getLogger(__name__)


async def run_until_first_failure(*coros: Coroutine[Any, Any, Any]) -> list[Any]:
    """Run coroutines concurrently and return their results in order.

    The first exception cancels everything still running and is re-raised,
    so one failed sender ends the whole dispatch.
    """
    tasks = [asyncio.create_task(c) for c in coros]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    failed = [t for t in done if not t.cancelled() and t.exception() is not None]
    if failed:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        raise failed[0].exception()  # type: ignore[misc]
    return [t.result() for t in tasks]


class BaseDispatcher(ABC):
    """Drives generated messages through a producer client."""

    def __init__(
        self,
        config: BenchmarkConfig,
        client: ProducerClient,
        generator: MessageGenerator,
        pacer_interval: float = 1.0,
    ):
        self.config = config
        self.client = client
        self.generator = generator
        self.pacer_interval = pacer_interval

    @abstractmethod
    async def dispatch(self) -> DispatchResult:
        """Send the configured load and return once all of it is accounted for."""
        ...
