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

"""Truncation detection for model responses.

Detection runs as a three-tier cascade; the first tier that finds a problem
decides the result:

1. Finish reason (authoritative). The provider knows why it stopped, so a
   token-limit, filter, recitation, refusal or context-window stop code is
   reported as-is. Normalized codes are checked before raw provider strings:

   ==============================  ======================
   Stop code (case-insensitive)    TruncationReason
   ==============================  ======================
   length, max_tokens              TOKEN_LIMIT
   model_context_window_exceeded   CONTEXT_WINDOW_EXCEEDED
   content_filter, safety          CONTENT_FILTERED
   recitation                      RECITATION
   refusal                         REFUSAL
   ==============================  ======================

2. Structure. Unbalanced brackets (escape and string aware) or an unclosed
   code fence. Many proxies and client-side limits clip output while the
   provider still reports a plain "stop", so the text itself is evidence.

3. Heuristics. Long text that does not end in a sentence terminator, list
   marker, heading marker or code fence is treated as cut mid-sentence.

Classification never raises and never blocks; missing signals resolve to
TruncationReason.NONE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from llmstitch.continuation.scanner import (
    SENTENCE_TERMINATORS,
    TEXT_BRACKETS,
    TEXT_QUOTES,
    ends_with_fence,
    scan_fences,
    scan_structure,
)
from llmstitch.core.errors import ConfigurationError
from llmstitch.core.typed_models import FinishReason

logger = logging.getLogger(__name__)

DEFAULT_SENTENCE_TERMINATORS = SENTENCE_TERMINATORS
DEFAULT_LIST_MARKERS = ":-*#"
DEFAULT_MIN_TEXT_LENGTH_FOR_HEURISTICS = 100


class TruncationReason(str, Enum):
    """Why a response was judged truncated, in detection priority order."""

    NONE = "none"
    TOKEN_LIMIT = "token_limit"
    CONTENT_FILTERED = "content_filtered"
    RECITATION = "recitation"
    REFUSAL = "refusal"
    CONTEXT_WINDOW_EXCEEDED = "context_window_exceeded"
    UNBALANCED_STRUCTURE = "unbalanced_structure"
    INCOMPLETE_CODE_BLOCK = "incomplete_code_block"
    MID_SENTENCE = "mid_sentence"


@dataclass(frozen=True)
class TruncationInfo:
    """Outcome of one classification. Compared by value."""

    is_truncated: bool
    reason: TruncationReason = TruncationReason.NONE
    details: str = ""

    @classmethod
    def not_truncated(cls) -> TruncationInfo:
        return cls(is_truncated=False, reason=TruncationReason.NONE)

    @classmethod
    def truncated(cls, reason: TruncationReason, details: str = "") -> TruncationInfo:
        return cls(is_truncated=True, reason=reason, details=details)


@dataclass(frozen=True)
class TruncationDetectorOptions:
    """Configuration options for truncation detection.

    Attributes:
        enable_structural_analysis: Check bracket balance and code fences
        enable_heuristic_analysis: Check for mid-sentence endings
        min_text_length_for_heuristics: Shorter texts are assumed to be
            intentionally brief and skip the heuristic tier
        sentence_terminators: Characters that end a sentence
        list_markers: Final characters that introduce a list or heading
    """

    enable_structural_analysis: bool = True
    enable_heuristic_analysis: bool = True
    min_text_length_for_heuristics: int = DEFAULT_MIN_TEXT_LENGTH_FOR_HEURISTICS
    sentence_terminators: str = DEFAULT_SENTENCE_TERMINATORS
    list_markers: str = DEFAULT_LIST_MARKERS

    def __post_init__(self) -> None:
        if self.min_text_length_for_heuristics < 0:
            raise ConfigurationError(
                "min_text_length_for_heuristics must be non-negative",
                config_key="min_text_length_for_heuristics",
                value=self.min_text_length_for_heuristics,
            )
        if not self.sentence_terminators:
            raise ConfigurationError(
                "sentence_terminators must not be empty",
                config_key="sentence_terminators",
                recovery_hint="Provide at least one terminator character, e.g. '.!?'.",
            )


# Normalized stop codes, checked first
_STANDARD_FINISH_REASONS: Dict[str, Tuple[TruncationReason, str]] = {
    FinishReason.LENGTH.value: (
        TruncationReason.TOKEN_LIMIT,
        "Response was truncated due to token limit (finish_reason: length)",
    ),
    FinishReason.CONTENT_FILTER.value: (
        TruncationReason.CONTENT_FILTERED,
        "Response was blocked by content filter",
    ),
}

# Provider-specific raw stop codes (Anthropic, Gemini), keyed lowercase
_PROVIDER_FINISH_REASONS: Dict[str, Tuple[TruncationReason, str]] = {
    "max_tokens": (
        TruncationReason.TOKEN_LIMIT,
        "Response was truncated due to token limit (stop_reason: {code})",
    ),
    "model_context_window_exceeded": (
        TruncationReason.CONTEXT_WINDOW_EXCEEDED,
        "Response was truncated due to context window limit exceeded",
    ),
    "safety": (
        TruncationReason.CONTENT_FILTERED,
        "Response was blocked by safety/content filter (stop_reason: {code})",
    ),
    "recitation": (
        TruncationReason.RECITATION,
        "Response was stopped due to potential recitation/copyright concerns",
    ),
    "refusal": (
        TruncationReason.REFUSAL,
        "Model refused to generate response due to safety concerns",
    ),
}

_BRACKET_LABELS = {
    "{": "'{' brace(s)",
    "[": "'[' bracket(s)",
    "(": "'(' parenthesis(es)",
}


def extract_text(response: Any) -> str:
    """Pull plain text out of a response object.

    Uses ``response.text()`` (or a ``text`` attribute); when that is empty,
    falls back to the first non-empty ``content`` among ``response.messages``.
    """
    if response is None:
        return ""

    text_attr = getattr(response, "text", None)
    text = text_attr() if callable(text_attr) else text_attr
    if isinstance(text, str) and text:
        return text

    for message in getattr(response, "messages", None) or ():
        content = getattr(message, "content", None)
        if isinstance(content, str) and content:
            return content

    return ""


def extract_finish_code(response: Any) -> Optional[str]:
    """Provider stop code as a string, or None."""
    finish_attr = getattr(response, "finish_code", None)
    code = finish_attr() if callable(finish_attr) else finish_attr
    if code is None:
        return None
    if isinstance(code, Enum):
        code = code.value
    code = str(code).strip()
    return code or None


class TruncationDetector:
    """Detects truncation in model responses using finish reason, structure and heuristics."""

    def __init__(self, options: Optional[TruncationDetectorOptions] = None):
        """Initialize detector.

        Args:
            options: Detection options. Defaults to TruncationDetectorOptions().
        """
        self.options = options or TruncationDetectorOptions()

    def classify(self, response: Any) -> TruncationInfo:
        """Decide whether ``response`` is complete or truncated.

        Args:
            response: Any object exposing ``text()`` and ``finish_code()``

        Returns:
            TruncationInfo describing the first signal found, or not-truncated
        """
        if response is None:
            return TruncationInfo.not_truncated()

        finish_result = self._check_finish_reason(extract_finish_code(response))
        if finish_result.is_truncated:
            logger.debug("Finish reason indicates truncation: %s", finish_result.details)
            return finish_result

        text = extract_text(response)
        if not text:
            return TruncationInfo.not_truncated()

        return self._analyze_text(text)

    def classify_text(self, text: Optional[str]) -> TruncationInfo:
        """Detect truncation in raw text without response context."""
        if not text:
            return TruncationInfo.not_truncated()
        return self._analyze_text(text)

    def _analyze_text(self, text: str) -> TruncationInfo:
        if self.options.enable_structural_analysis:
            structural_result = self._check_structural_completeness(text)
            if structural_result.is_truncated:
                logger.debug("Structural truncation: %s", structural_result.details)
                return structural_result

        if self.options.enable_heuristic_analysis:
            heuristic_result = self._check_mid_sentence(text)
            if heuristic_result.is_truncated:
                logger.debug("Heuristic truncation: %s", heuristic_result.details)
                return heuristic_result

        return TruncationInfo.not_truncated()

    @staticmethod
    def _check_finish_reason(code: Optional[str]) -> TruncationInfo:
        if not code:
            return TruncationInfo.not_truncated()

        normalized = code.lower()

        standard = _STANDARD_FINISH_REASONS.get(normalized)
        if standard is not None:
            reason, details = standard
            return TruncationInfo.truncated(reason, details)

        provider = _PROVIDER_FINISH_REASONS.get(normalized)
        if provider is not None:
            reason, template = provider
            return TruncationInfo.truncated(reason, template.format(code=code))

        return TruncationInfo.not_truncated()

    @staticmethod
    def _check_structural_completeness(text: str) -> TruncationInfo:
        scan = scan_structure(text, quote_chars=TEXT_QUOTES, brackets=TEXT_BRACKETS)
        unclosed = scan.unclosed
        if unclosed:
            details = ", ".join(
                f"{unclosed[opener]} unclosed {_BRACKET_LABELS[opener]}"
                for opener in TEXT_BRACKETS
                if opener in unclosed
            )
            return TruncationInfo.truncated(TruncationReason.UNBALANCED_STRUCTURE, details)

        if scan_fences(text).inside_fence:
            return TruncationInfo.truncated(
                TruncationReason.INCOMPLETE_CODE_BLOCK, "1 unclosed code block(s) detected"
            )

        return TruncationInfo.not_truncated()

    def _check_mid_sentence(self, text: str) -> TruncationInfo:
        if len(text) < self.options.min_text_length_for_heuristics:
            return TruncationInfo.not_truncated()

        trimmed = text.rstrip()
        if not trimmed:
            return TruncationInfo.not_truncated()

        # A trailing code block is not prose
        if ends_with_fence(trimmed):
            return TruncationInfo.not_truncated()

        last_char = trimmed[-1]
        if last_char in self.options.sentence_terminators:
            return TruncationInfo.not_truncated()

        if last_char in self.options.list_markers:
            return TruncationInfo.not_truncated()

        return TruncationInfo.truncated(
            TruncationReason.MID_SENTENCE, "Response appears to end mid-sentence"
        )


_default_detector = TruncationDetector()


def classify(response: Any) -> TruncationInfo:
    """Classify ``response`` with default detector options."""
    return _default_detector.classify(response)


def classify_text(text: Optional[str]) -> TruncationInfo:
    """Classify raw ``text`` with default detector options."""
    return _default_detector.classify_text(text)
