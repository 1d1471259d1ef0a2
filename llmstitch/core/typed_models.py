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

"""Typed dataclasses for chat messages and responses.

These are the value types the continuation engine works with. Provider
adapters convert their wire formats into ChatResponse; anything else that
satisfies ResponseProtocol (see llmstitch.core.protocols) works too.

Design Principles:
    - All fields are explicitly typed
    - Optional fields use Optional[T] with None defaults
    - Immutable (frozen=True); edits produce new instances via dataclasses.replace
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class ChatRole(str, Enum):
    """Message author roles."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    """Normalized stop codes shared across providers.

    Provider-specific strings that have no normalized form (Anthropic
    ``max_tokens``, Gemini ``SAFETY`` and so on) are kept as raw strings.
    """

    STOP = "stop"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    TOOL_CALLS = "tool_calls"


@dataclass(frozen=True)
class ChatMessage:
    """A single message in a conversation."""

    role: ChatRole
    content: str = ""
    name: Optional[str] = None

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(role=ChatRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> ChatMessage:
        return cls(role=ChatRole.ASSISTANT, content=content)

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role=ChatRole.SYSTEM, content=content)


@dataclass(frozen=True)
class UsageDetails:
    """Token usage information from provider response."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class ChatResponse:
    """Provider-neutral chat completion response.

    Attributes:
        messages: Messages produced by the model, usually one assistant message
        finish_reason: Normalized FinishReason or the provider's raw stop string
        model_id: Model that produced the response
        usage: Token usage reported by the provider
        additional_properties: Side-channel metadata (reasoning payloads,
            request ids, provider extras) carried through untouched
    """

    messages: Tuple[ChatMessage, ...] = ()
    finish_reason: Optional[Union[FinishReason, str]] = None
    model_id: Optional[str] = None
    usage: Optional[UsageDetails] = None
    additional_properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_text(
        cls,
        text: str,
        finish_reason: Optional[Union[FinishReason, str]] = None,
        **kwargs: Any,
    ) -> ChatResponse:
        """Build a response holding a single assistant message."""
        return cls(
            messages=(ChatMessage.assistant(text),),
            finish_reason=finish_reason,
            **kwargs,
        )

    def text(self) -> str:
        """Concatenated content of all assistant messages."""
        return "".join(
            message.content for message in self.messages if message.role == ChatRole.ASSISTANT
        )

    def finish_code(self) -> Optional[str]:
        """Stop code as a plain string, or None when the provider sent none."""
        if self.finish_reason is None:
            return None
        if isinstance(self.finish_reason, FinishReason):
            return self.finish_reason.value
        return str(self.finish_reason)

    def with_text(self, text: str) -> ChatResponse:
        """Copy of this response whose content is replaced by ``text``.

        Finish reason, model id, usage and additional properties are kept.
        """
        return replace(self, messages=(ChatMessage.assistant(text),))
