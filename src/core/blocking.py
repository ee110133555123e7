# src/core/blocking.py - v2
"""Run blocking calls in worker threads without losing late results.

A caller awaiting a worker thread may give up (timeout or cancellation)
while the thread keeps running. When the abandoned call eventually
returns a resource (a started container, an acquired lock), the
``on_abandoned`` callback receives it so it can be released. A caller
that must keep something held until the thread stops (a key lock over
an output directory) passes ``hand_off`` instead.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_blocking(
    func: Callable[..., T],
    *args: Any,
    on_abandoned: Callable[[T], None] | None = None,
    hand_off: Callable[[], Callable[[], None]] | None = None,
    **kwargs: Any,
) -> T:
    """Await func(*args, **kwargs) in the default executor.

    Args:
        func: Blocking callable.
        on_abandoned: Called with the result if func completes after the
            awaiting coroutine was cancelled.
        hand_off: Called at the moment the awaiting coroutine is cancelled.
            The callable it returns runs once func finishes, whatever
            its outcome.

    Returns:
        The value returned by func.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(None, functools.partial(func, *args, **kwargs))
    try:
        return await asyncio.shield(future)
    except asyncio.CancelledError:
        if on_abandoned is not None:
            future.add_done_callback(_late_result_callback(on_abandoned))
        if hand_off is not None:
            future.add_done_callback(_finished_callback(hand_off()))
        raise


def _late_result_callback(
    on_abandoned: Callable[[Any], None],
) -> Callable[[asyncio.Future[Any]], None]:
    def _callback(fut: asyncio.Future[Any]) -> None:
        if fut.cancelled() or fut.exception() is not None:
            return
        try:
            on_abandoned(fut.result())
        except Exception:
            logger.exception("Failed to release late result of abandoned call")

    return _callback


def _finished_callback(
    on_finished: Callable[[], None],
) -> Callable[[asyncio.Future[Any]], None]:
    def _callback(fut: asyncio.Future[Any]) -> None:
        if not fut.cancelled() and fut.exception() is not None:
            logger.debug("Abandoned call failed: %s", fut.exception())
        try:
            on_finished()
        except Exception:
            logger.exception("Failed to run hand-off after abandoned call")

    return _callback
