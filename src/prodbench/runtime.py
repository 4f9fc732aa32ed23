import asyncio
import functools
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

T = TypeVar("T")

_executor: ThreadPoolExecutor | None = None


def get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="producer-client")
    return _executor


async def run_blocking(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking client call off the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(get_executor(), functools.partial(func, *args))


def shutdown_executor() -> None:
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=True)
        _executor = None
