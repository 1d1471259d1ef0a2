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

"""Exception types raised by llmstitch.

Only three conditions ever surface as exceptions: configuration misuse,
cancellation, and the opt-in max-continuations failure. Repair failures are
reported through ContentRecoveryResult, and transport errors raised by the
caller's send function pass through untouched.

Each subclass fixes its category, severity and recoverability as class
attributes. Instances carry the message, a details dict for structured logs,
an optional recovery hint and a short correlation id.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(str, Enum):
    """What kind of condition an error reports."""

    CONFIG_INVALID = "config_invalid"
    CANCELLED = "cancelled"
    CONTINUATION_LIMIT = "continuation_limit"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """How loudly an error should be logged."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_SEVERITY_LOG_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
}


class StitchError(Exception):
    """Base exception for all llmstitch errors."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    severity: ErrorSeverity = ErrorSeverity.ERROR
    recoverable: bool = True
    default_recovery_hint: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        recovery_hint: Optional[str] = None,
        correlation_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.recovery_hint = recovery_hint or self.default_recovery_hint
        self.correlation_id = correlation_id or uuid.uuid4().hex[:8]
        self.cause = cause

    @property
    def log_level(self) -> int:
        """stdlib logging level matching ``severity``."""
        return _SEVERITY_LOG_LEVELS[self.severity]

    def to_dict(self) -> Dict[str, Any]:
        """Structured form for log records and API error payloads."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "correlation_id": self.correlation_id,
            "recovery_hint": self.recovery_hint,
            "details": dict(self.details),
        }

    def __str__(self) -> str:
        text = f"{self.message} (ref {self.correlation_id})"
        if self.recovery_hint:
            text += f"\nHint: {self.recovery_hint}"
        return text


class ConfigurationError(StitchError):
    """A continuation, detection or settings value is invalid.

    Raised synchronously while a config object is being constructed, so an
    invalid policy never reaches the continuation loop.
    """

    category = ErrorCategory.CONFIG_INVALID
    recoverable = False
    default_recovery_hint = "Use a non-negative value for counts, lengths and durations."

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.config_key = config_key
        self.value = value
        self.details["config_key"] = config_key
        if value is not None:
            self.details["value"] = value


class ContinuationCancelledError(StitchError):
    """The continuation loop was cancelled through its cancel event.

    Never retried. A cancelled run returns no partial result.
    """

    category = ErrorCategory.CANCELLED
    severity = ErrorSeverity.INFO
    recoverable = False

    def __init__(
        self,
        message: str = "Continuation cancelled",
        continuation_count: int = 0,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.continuation_count = continuation_count
        self.details["continuation_count"] = continuation_count


class MaxContinuationsReachedError(StitchError):
    """Response still truncated after the configured number of continuations.

    Only raised when ContinuationConfig.throw_on_max_continuations is set.
    The text gathered so far travels with the error.
    """

    category = ErrorCategory.CONTINUATION_LIMIT
    severity = ErrorSeverity.WARNING
    default_recovery_hint = (
        "Raise max_continuations, increase the model's max tokens, "
        "or disable throw_on_max_continuations to accept a partial response."
    )

    def __init__(
        self,
        message: str,
        max_continuations: int,
        continuation_count: int,
        accumulated_text: str = "",
        intermediate_responses: Optional[List[Any]] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.max_continuations = max_continuations
        self.continuation_count = continuation_count
        self.accumulated_text = accumulated_text
        self.intermediate_responses = list(intermediate_responses or [])
        self.details.update(
            max_continuations=max_continuations,
            continuation_count=continuation_count,
            accumulated_length=len(accumulated_text),
        )
