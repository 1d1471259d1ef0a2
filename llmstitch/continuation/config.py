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

"""Configuration for response continuation handling."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

from llmstitch.core.errors import ConfigurationError

DEFAULT_CONTINUATION_PROMPT = "Please continue from where you left off."

# Fields that must never be negative
_NON_NEGATIVE_FIELDS = (
    "max_continuations",
    "max_total_duration",
    "delay_between_continuations",
    "min_progress_per_continuation",
)


@dataclass(frozen=True)
class ContinuationConfig:
    """Policy for continuing truncated responses.

    Validated on construction; an invalid instance cannot exist.

    Attributes:
        max_continuations: Maximum continuation requests per turn. 0 disables
            continuation entirely.
        max_total_duration: Seconds the whole loop should take. Advisory:
            exceeding it is logged, the loop is not stopped.
        delay_between_continuations: Seconds to wait before every
            continuation request after the first
        enable_json_recovery: Repair the combined text as JSON
        enable_code_block_recovery: Close an unterminated code fence
        continuation_prompt: User message asking the model to continue
        include_previous_response: Send the previous response back as an
            assistant message before the continuation prompt
        min_progress_per_continuation: Minimum length of the latest fragment
            for the loop to keep going
        throw_on_max_continuations: Raise MaxContinuationsReachedError instead
            of returning a partial result
    """

    max_continuations: int = 5
    max_total_duration: float = 300.0
    delay_between_continuations: float = 0.0
    enable_json_recovery: bool = True
    enable_code_block_recovery: bool = True
    continuation_prompt: str = DEFAULT_CONTINUATION_PROMPT
    include_previous_response: bool = True
    min_progress_per_continuation: int = 10
    throw_on_max_continuations: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigurationError: When a count, length or duration is negative
        """
        for name in _NON_NEGATIVE_FIELDS:
            value = getattr(self, name)
            if value < 0:
                raise ConfigurationError(
                    f"{name} must be non-negative, got {value}",
                    config_key=name,
                    value=value,
                )

    @classmethod
    def default(cls) -> ContinuationConfig:
        return cls()

    def with_overrides(self, **changes: Any) -> ContinuationConfig:
        """Copy with ``changes`` applied; the copy is validated again."""
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigurationError(
                f"Unknown continuation setting(s): {', '.join(sorted(unknown))}",
                config_key=sorted(unknown)[0],
                recovery_hint="Check the field names of ContinuationConfig.",
            )
        return replace(self, **changes)
