"""Asyncio utilities for the CLI entry points."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Coroutine


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run an async coroutine from synchronous code.

    When a loop is already running (e.g. under an embedding host), the
    coroutine runs on a fresh loop in a worker thread instead.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    if loop and loop.is_running():
        import concurrent.futures

        with concurrent.futures.ThreadPoolExecutor() as pool:
            return pool.submit(asyncio.run, coro).result()
    return asyncio.run(coro)


async def wait_for_or_timeout(awaitable: Coroutine[Any, Any, Any], timeout: float | None) -> bool:
    """Await *awaitable*, giving up after *timeout* seconds (``None`` = forever).

    Returns ``True`` if it completed, ``False`` if the timeout fired first.
    The awaitable is cancelled on timeout.
    """
    if timeout is None:
        await awaitable
        return True
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        task.result()
        return True
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    return False
