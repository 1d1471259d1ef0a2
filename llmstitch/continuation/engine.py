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

"""Continuation engine for truncated model responses.

One run handles one turn:

    not truncated --> DONE
    truncated --> CONTINUING --> CONTINUING | DONE | STALLED | MAX_REACHED | CANCELLED

Each iteration checks cancellation, stops when the latest fragment shows no
progress, optionally waits, asks the caller's ``send_next`` for more text and
classifies the new response. Afterwards the fragments are combined, repaired
(JSON first, then code fences) and written into a copy of the last response.

The caller's ``send_next`` and the optional delay are the only suspension
points; both abort when the cancel event is set. Errors raised by
``send_next`` propagate unchanged and are never retried here. This engine
retries on truncation only.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple

from llmstitch.continuation.config import ContinuationConfig
from llmstitch.continuation.recovery import (
    ContentRecoveryResult,
    combine_fragments,
    repair_fences,
    repair_json,
)
from llmstitch.continuation.truncation import (
    TruncationDetector,
    extract_finish_code,
    extract_text,
)
from llmstitch.core.async_utils import await_cancellable, raise_if_cancelled, sleep_cancellable
from llmstitch.core.debug_logger import preview
from llmstitch.core.errors import ContinuationCancelledError, MaxContinuationsReachedError
from llmstitch.core.protocols import SendNext, TruncationDetectorProtocol
from llmstitch.core.typed_models import ChatMessage, ChatResponse

logger = logging.getLogger(__name__)


class ContinuationState(str, Enum):
    """States of one continuation run."""

    CONTINUING = "continuing"
    DONE = "done"
    STALLED = "stalled"
    MAX_REACHED = "max_reached"
    CANCELLED = "cancelled"


@dataclass
class ContinuationResult:
    """Outcome of a continuation run.

    Attributes:
        final_response: Last response received, carrying the combined text
        final_text: Combined (and possibly repaired) text
        continuation_count: Number of continuation requests sent
        reached_max: continuation_count >= max_continuations
        intermediate_responses: Every response received, the initial one first
        state: Why the loop ended (DONE, STALLED or MAX_REACHED)
        recovery: Repair applied to the combined text, if any. A
            PARTIALLY_RECOVERED result means trailing content was dropped.
    """

    final_response: Any
    final_text: str
    continuation_count: int
    reached_max: bool
    intermediate_responses: List[Any] = field(default_factory=list)
    state: ContinuationState = ContinuationState.DONE
    recovery: Optional[ContentRecoveryResult] = None

    @property
    def was_continued(self) -> bool:
        return self.continuation_count > 0

    @property
    def is_lossy(self) -> bool:
        return self.recovery is not None and self.recovery.is_lossy

    @classmethod
    def not_truncated(cls, response: Any) -> ContinuationResult:
        """Result for a response that needed no continuation."""
        return cls(
            final_response=response,
            final_text=extract_text(response),
            continuation_count=0,
            reached_max=False,
            intermediate_responses=[response],
            state=ContinuationState.DONE,
        )


class ContinuationEngine:
    """Drives the detect, continue, combine and repair loop for one turn at a time.

    The engine holds no per-run state, so a single instance can serve many
    concurrent turns.
    """

    def __init__(self, detector: Optional[TruncationDetectorProtocol] = None):
        """Initialize engine.

        Args:
            detector: Truncation classifier. Defaults to TruncationDetector().
        """
        self._detector = detector or TruncationDetector()

    async def run(
        self,
        initial_response: Any,
        config: Optional[ContinuationConfig],
        send_next: SendNext,
        cancel_event: Optional[asyncio.Event] = None,
        messages: Optional[Sequence[ChatMessage]] = None,
    ) -> ContinuationResult:
        """Continue ``initial_response`` until it is complete or the policy says stop.

        Args:
            initial_response: First model response for this turn
            config: Continuation policy. Defaults to ContinuationConfig.default().
            send_next: Async callable that sends a message list and returns
                the next response
            cancel_event: Set to abort the run
            messages: Original request messages; continuation requests are
                built on top of a copy of them

        Returns:
            ContinuationResult

        Raises:
            ContinuationCancelledError: If cancel_event is set during the run
            MaxContinuationsReachedError: If the cap is reached and
                config.throw_on_max_continuations is set
        """
        if initial_response is None:
            raise TypeError("initial_response must not be None")
        if send_next is None:
            raise TypeError("send_next must not be None")

        config = config or ContinuationConfig.default()
        base_messages = list(messages or ())

        truncation = self._detector.classify(initial_response)
        if not truncation.is_truncated:
            return ContinuationResult.not_truncated(initial_response)

        logger.info(
            "Response truncated (%s): %s", truncation.reason.value, truncation.details
        )

        intermediate_responses: List[Any] = [initial_response]
        fragments: List[str] = []
        continuation_count = 0
        current_response = initial_response
        state = ContinuationState.CONTINUING

        initial_text = extract_text(initial_response)
        if initial_text:
            fragments.append(initial_text)

        started = time.monotonic()
        duration_warned = False

        try:
            while continuation_count < config.max_continuations:
                raise_if_cancelled(cancel_event)

                if (
                    len(fragments) > 1
                    and len(fragments[-1]) < config.min_progress_per_continuation
                ):
                    logger.warning(
                        "Continuation stalled: latest fragment has %d chars (minimum %d)",
                        len(fragments[-1]),
                        config.min_progress_per_continuation,
                    )
                    state = ContinuationState.STALLED
                    break

                if continuation_count > 0 and config.delay_between_continuations > 0:
                    await sleep_cancellable(config.delay_between_continuations, cancel_event)

                if not duration_warned and self._duration_exceeded(started, config):
                    logger.warning(
                        "Continuation exceeded advisory duration of %.1fs",
                        config.max_total_duration,
                    )
                    duration_warned = True

                request = self.build_continuation_messages(base_messages, current_response, config)
                logger.debug(
                    "Requesting continuation %d/%d (%d messages)",
                    continuation_count + 1,
                    config.max_continuations,
                    len(request),
                )

                next_response = await await_cancellable(send_next(request), cancel_event)
                continuation_count += 1
                intermediate_responses.append(next_response)

                next_text = extract_text(next_response)
                if next_text:
                    fragments.append(next_text)
                current_response = next_response

                next_truncation = self._detector.classify(next_response)
                if not next_truncation.is_truncated:
                    state = ContinuationState.DONE
                    break

                logger.debug(
                    "Continuation %d still truncated (%s), tail: %s",
                    continuation_count,
                    next_truncation.reason.value,
                    preview(next_text),
                )
        except ContinuationCancelledError as exc:
            exc.continuation_count = continuation_count
            exc.details["continuation_count"] = continuation_count
            exc.details["state"] = ContinuationState.CANCELLED.value
            logger.log(
                exc.log_level, "Continuation cancelled after %d request(s)", continuation_count
            )
            raise

        reached_max = continuation_count >= config.max_continuations
        combined_text = combine_fragments(fragments)

        if reached_max:
            if state == ContinuationState.CONTINUING:
                state = ContinuationState.MAX_REACHED
            logger.warning(
                "Max continuations reached (%d/%d)", continuation_count, config.max_continuations
            )
            if config.throw_on_max_continuations:
                raise MaxContinuationsReachedError(
                    f"Response truncated and max continuations "
                    f"({config.max_continuations}) reached",
                    max_continuations=config.max_continuations,
                    continuation_count=continuation_count,
                    accumulated_text=combined_text,
                    intermediate_responses=intermediate_responses,
                )

        final_text, recovery = self.apply_recovery(combined_text, config)
        final_response = self.build_final_response(current_response, final_text)

        logger.info(
            "Continuation finished: state=%s, continuations=%d, chars=%d",
            state.value,
            continuation_count,
            len(final_text),
        )

        return ContinuationResult(
            final_response=final_response,
            final_text=final_text,
            continuation_count=continuation_count,
            reached_max=reached_max,
            intermediate_responses=intermediate_responses,
            state=state,
            recovery=recovery,
        )

    @staticmethod
    def build_continuation_messages(
        base_messages: Sequence[ChatMessage],
        previous_response: Any,
        config: ContinuationConfig,
    ) -> List[ChatMessage]:
        """Original messages, optionally the previous response, then the continuation prompt."""
        messages = list(base_messages)

        if config.include_previous_response:
            previous_text = extract_text(previous_response)
            if previous_text:
                messages.append(ChatMessage.assistant(previous_text))

        messages.append(ChatMessage.user(config.continuation_prompt))
        return messages

    @staticmethod
    def apply_recovery(
        text: str, config: ContinuationConfig
    ) -> Tuple[str, Optional[ContentRecoveryResult]]:
        """Repair ``text`` as JSON, else close code fences, per ``config``.

        Returns:
            (text to use, adopted recovery result or None)
        """
        if not text:
            return text, None

        if config.enable_json_recovery:
            json_result = repair_json(text)
            if json_result.changed_content:
                if json_result.is_lossy:
                    logger.warning("JSON recovery dropped content: %s", json_result.description)
                else:
                    logger.info("JSON recovery applied: %s", json_result.description)
                return json_result.content, json_result

        if config.enable_code_block_recovery:
            fence_result = repair_fences(text)
            if fence_result.changed_content:
                logger.info("Code block recovery applied: %s", fence_result.description)
                return fence_result.content, fence_result

        return text, None

    @staticmethod
    def build_final_response(last_response: Any, text: str) -> Any:
        """Copy of ``last_response`` holding ``text``, metadata preserved."""
        with_text = getattr(last_response, "with_text", None)
        if callable(with_text):
            return with_text(text)
        return ChatResponse.from_text(text, finish_reason=extract_finish_code(last_response))

    @staticmethod
    def _duration_exceeded(started: float, config: ContinuationConfig) -> bool:
        if config.max_total_duration <= 0:
            return False
        return time.monotonic() - started > config.max_total_duration


async def run_continuation(
    initial_response: Any,
    config: Optional[ContinuationConfig],
    send_next: SendNext,
    cancel_event: Optional[asyncio.Event] = None,
    messages: Optional[Sequence[ChatMessage]] = None,
    detector: Optional[TruncationDetectorProtocol] = None,
) -> ContinuationResult:
    """Run the continuation loop with a fresh engine."""
    engine = ContinuationEngine(detector=detector)
    return await engine.run(
        initial_response,
        config,
        send_next,
        cancel_event=cancel_event,
        messages=messages,
    )
