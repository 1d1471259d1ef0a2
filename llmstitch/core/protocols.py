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

"""Protocol definitions for the continuation subsystem's boundaries.

The engine and classifier depend on these Protocols rather than on concrete
provider response classes, so provider adapters can hand in their own
response objects without inheriting from anything.

Usage Example:
    from llmstitch.core.protocols import ResponseProtocol

    class AnthropicResponseAdapter:
        def __init__(self, raw):
            self._raw = raw

        def text(self) -> str:
            return "".join(block["text"] for block in self._raw["content"])

        def finish_code(self) -> Optional[str]:
            return self._raw.get("stop_reason")
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    List,
    Optional,
    Protocol,
    runtime_checkable,
)

if TYPE_CHECKING:
    from llmstitch.continuation.truncation import TruncationInfo
    from llmstitch.core.typed_models import ChatMessage


@runtime_checkable
class ResponseProtocol(Protocol):
    """Minimal view of a model response needed for truncation handling."""

    def text(self) -> str:
        """Plain text content of the response."""
        ...

    def finish_code(self) -> Optional[str]:
        """Provider-reported stop code (normalized or raw), if any."""
        ...


@runtime_checkable
class RebuildableResponseProtocol(ResponseProtocol, Protocol):
    """A response that can produce a copy of itself with different text.

    Used to build the final stitched response while keeping the last
    response's finish reason, model id, usage and side-channel metadata.
    """

    def with_text(self, text: str) -> Any:
        ...


@runtime_checkable
class TruncationDetectorProtocol(Protocol):
    """Protocol for truncation classifiers used by the continuation engine."""

    def classify(self, response: Optional[ResponseProtocol]) -> TruncationInfo:
        """Decide whether ``response`` is complete or truncated."""
        ...


# Caller-supplied capability that dispatches the next LLM request.
SendNext = Callable[[List["ChatMessage"]], Awaitable[Any]]
