# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Cancellable await helpers.

The continuation loop has exactly two suspension points: the caller's send
function and the optional delay between continuations. Both are raced
against a shared ``asyncio.Event`` so that setting the event aborts the run
promptly instead of waiting for the network or the timer.

Example usage:
    cancel_event = asyncio.Event()

    response = await await_cancellable(send_next(messages), cancel_event)
    await sleep_cancellable(0.5, cancel_event)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Optional, TypeVar

from llmstitch.core.errors import ContinuationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_cancelled(cancel_event: Optional[asyncio.Event]) -> bool:
    """Check if cancellation has been requested."""
    return cancel_event is not None and cancel_event.is_set()


def raise_if_cancelled(
    cancel_event: Optional[asyncio.Event], message: str = "Continuation cancelled"
) -> None:
    """Raise ContinuationCancelledError if the event is set."""
    if is_cancelled(cancel_event):
        raise ContinuationCancelledError(message)


async def sleep_cancellable(delay: float, cancel_event: Optional[asyncio.Event] = None) -> None:
    """Sleep for ``delay`` seconds, aborting early if ``cancel_event`` is set.

    Raises:
        ContinuationCancelledError: If the event is set before the delay ends
    """
    raise_if_cancelled(cancel_event, "Continuation cancelled before delay")
    if delay <= 0:
        return
    if cancel_event is None:
        await asyncio.sleep(delay)
        return

    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise ContinuationCancelledError("Continuation cancelled during delay")


async def await_cancellable(
    awaitable: Awaitable[T], cancel_event: Optional[asyncio.Event] = None
) -> T:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    Exceptions raised by the awaitable propagate unchanged. When the event
    wins the race, or the caller itself is cancelled, the pending awaitable
    is cancelled and awaited so its cleanup finishes before this returns.

    Raises:
        ContinuationCancelledError: If the event is set before completion
    """
    if cancel_event is None:
        return await awaitable

    if cancel_event.is_set():
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise ContinuationCancelledError("Continuation cancelled before request")

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await _cancel_and_drain(task, waiter)
        raise

    if task in done:
        waiter.cancel()
        return task.result()

    await _cancel_and_drain(task)
    raise ContinuationCancelledError("Continuation cancelled while awaiting response")


async def _cancel_and_drain(*futures: asyncio.Future) -> None:
    """Cancel ``futures`` and wait until each has finished its cleanup."""
    for future in futures:
        future.cancel()
    results = await asyncio.gather(*futures, return_exceptions=True)
    for result in results:
        # A request that failed while being cancelled; cancellation wins
        if isinstance(result, Exception):
            logger.debug("Request failed during cancellation: %s", result)
