"""
Async helpers for blocking work.

Everything on the request path is async; the filesystem store still has
to call blocking ``os`` functions, which run on a shared thread pool here.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, TypeVar

T = TypeVar("T")

_EXECUTOR = ThreadPoolExecutor(
    max_workers=min(32, (os.cpu_count() or 1) + 4),
    thread_name_prefix="askai-kvs-io",
)


async def run_sync(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """
    Run ``func(*args, **kwargs)`` on the shared pool and await its result.

    The pending future is polled rather than awaited through
    ``run_in_executor`` so completion never depends on a cross-thread
    loop wakeup. Cancelling the awaiting task cancels the job if it has
    not started yet.
    """
    future = _EXECUTOR.submit(partial(func, *args, **kwargs))
    try:
        while not future.done():
            await asyncio.sleep(0.001)
        return future.result()
    except asyncio.CancelledError:
        future.cancel()
        raise


__all__ = ["run_sync"]
