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

"""Tests for cancellable await helpers."""

import asyncio
import logging

import pytest

from llmstitch.core.async_utils import (
    await_cancellable,
    is_cancelled,
    raise_if_cancelled,
    sleep_cancellable,
)
from llmstitch.core.errors import ContinuationCancelledError


class TestCancellationChecks:
    """Tests for is_cancelled() and raise_if_cancelled()."""

    def test_no_event(self):
        assert not is_cancelled(None)
        raise_if_cancelled(None)

    @pytest.mark.asyncio
    async def test_event_states(self):
        event = asyncio.Event()
        assert not is_cancelled(event)

        event.set()

        assert is_cancelled(event)
        with pytest.raises(ContinuationCancelledError, match="stop now"):
            raise_if_cancelled(event, "stop now")


class TestSleepCancellable:
    """Tests for sleep_cancellable()."""

    @pytest.mark.asyncio
    async def test_zero_delay_returns(self):
        await sleep_cancellable(0, asyncio.Event())

    @pytest.mark.asyncio
    async def test_sleeps_without_event(self):
        await sleep_cancellable(0.01)

    @pytest.mark.asyncio
    async def test_full_delay_when_not_cancelled(self):
        await sleep_cancellable(0.01, asyncio.Event())

    @pytest.mark.asyncio
    async def test_already_cancelled(self):
        event = asyncio.Event()
        event.set()

        with pytest.raises(ContinuationCancelledError):
            await sleep_cancellable(0, event)

    @pytest.mark.asyncio
    async def test_cancelled_during_delay(self):
        """Setting the event ends a long delay promptly."""
        event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, event.set)

        with pytest.raises(ContinuationCancelledError, match="during delay"):
            await asyncio.wait_for(sleep_cancellable(30, event), timeout=5)


class TestAwaitCancellable:
    """Tests for await_cancellable()."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def work():
            return 42

        assert await await_cancellable(work(), asyncio.Event()) == 42

    @pytest.mark.asyncio
    async def test_without_event(self):
        async def work():
            return "done"

        assert await await_cancellable(work()) == "done"

    @pytest.mark.asyncio
    async def test_exception_propagates_unchanged(self):
        async def work():
            raise ConnectionError("network down")

        with pytest.raises(ConnectionError, match="network down"):
            await await_cancellable(work(), asyncio.Event())

    @pytest.mark.asyncio
    async def test_already_cancelled_never_starts(self):
        """The awaitable is not started when the event is already set."""
        started = False

        async def work():
            nonlocal started
            started = True

        event = asyncio.Event()
        event.set()

        with pytest.raises(ContinuationCancelledError):
            await await_cancellable(work(), event)
        assert not started

    @pytest.mark.asyncio
    async def test_cancel_aborts_pending_work(self):
        """The pending awaitable is cancelled when the event wins."""
        event = asyncio.Event()
        was_cancelled = False

        async def slow():
            nonlocal was_cancelled
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                was_cancelled = True
                raise

        asyncio.get_running_loop().call_later(0.01, event.set)

        with pytest.raises(ContinuationCancelledError, match="awaiting response"):
            await asyncio.wait_for(await_cancellable(slow(), event), timeout=5)
        assert was_cancelled

    @pytest.mark.asyncio
    async def test_caller_cancellation_waits_for_cleanup(self):
        """Cancelling the caller lets the pending request finish its cleanup first."""
        started = asyncio.Event()
        cleaned_up = False

        async def slow():
            nonlocal cleaned_up
            started.set()
            try:
                await asyncio.sleep(30)
            finally:
                await asyncio.sleep(0)
                cleaned_up = True

        caller = asyncio.ensure_future(await_cancellable(slow(), asyncio.Event()))
        await started.wait()
        caller.cancel()

        with pytest.raises(asyncio.CancelledError):
            await caller
        assert cleaned_up

    @pytest.mark.asyncio
    async def test_request_error_during_cancellation_is_logged(self, caplog):
        """A request that fails while being cancelled still reports cancellation."""
        event = asyncio.Event()

        async def failing():
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                raise ConnectionError("socket closed")

        asyncio.get_running_loop().call_later(0.01, event.set)

        with caplog.at_level(logging.DEBUG, logger="llmstitch"):
            with pytest.raises(ContinuationCancelledError):
                await asyncio.wait_for(await_cancellable(failing(), event), timeout=5)

        assert "socket closed" in caplog.text
