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

"""Best-effort repair of text recovered from truncated responses.

All functions are pure and total: they never raise for odd input (except
combine_fragments(None)) and report failure through ContentRecoveryResult
instead of exceptions.

- repair_json(): close open strings and brackets; if that is not enough,
  cut back to the last complete element (lossy, PARTIALLY_RECOVERED).
- repair_fences(): close an unterminated ``` code block.
- find_clean_break(): last sentence, paragraph or line boundary.
- combine_fragments(): stitch continuation fragments into one text.
"""

from __future__ import annotations

import json
import logging
import unicodedata
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

from llmstitch.continuation.scanner import (
    FENCE_MARKER,
    JSON_BRACKETS,
    JSON_QUOTES,
    SENTENCE_TERMINATORS,
    iter_structure,
    scan_fences,
    scan_structure,
)
from llmstitch.core.debug_logger import TRACE

logger = logging.getLogger(__name__)

# Only objects, arrays and strings can end in one of these characters, so
# only text starting with their opener can be cut back to valid JSON.
_JSON_ELEMENT_ENDINGS = '}]"'
_JSON_ELEMENT_STARTS = '{["'

_JSON_DECODER = json.JSONDecoder()


class ContentRecoveryStatus(str, Enum):
    """Status of content recovery."""

    NO_RECOVERY_NEEDED = "no_recovery_needed"
    RECOVERED = "recovered"
    PARTIALLY_RECOVERED = "partially_recovered"
    FAILED = "failed"


@dataclass(frozen=True)
class ContentRecoveryResult:
    """Result of a content recovery operation.

    PARTIALLY_RECOVERED means trailing content was discarded to reach a
    valid state; callers must treat it as lossy, not as plain success.
    """

    status: ContentRecoveryStatus
    content: str
    description: str = ""

    @property
    def is_success(self) -> bool:
        """Whether recovery succeeded (including no recovery needed)."""
        return self.status != ContentRecoveryStatus.FAILED

    @property
    def is_lossy(self) -> bool:
        return self.status == ContentRecoveryStatus.PARTIALLY_RECOVERED

    @property
    def changed_content(self) -> bool:
        """True for RECOVERED and PARTIALLY_RECOVERED."""
        return self.status in (
            ContentRecoveryStatus.RECOVERED,
            ContentRecoveryStatus.PARTIALLY_RECOVERED,
        )

    @classmethod
    def no_recovery_needed(cls, content: str) -> ContentRecoveryResult:
        return cls(status=ContentRecoveryStatus.NO_RECOVERY_NEEDED, content=content)

    @classmethod
    def recovered(cls, content: str, description: str) -> ContentRecoveryResult:
        return cls(status=ContentRecoveryStatus.RECOVERED, content=content, description=description)

    @classmethod
    def partially_recovered(cls, content: str, description: str) -> ContentRecoveryResult:
        return cls(
            status=ContentRecoveryStatus.PARTIALLY_RECOVERED,
            content=content,
            description=description,
        )

    @classmethod
    def failed(cls, reason: str) -> ContentRecoveryResult:
        return cls(status=ContentRecoveryStatus.FAILED, content="", description=reason)


# =============================================================================
# JSON
# =============================================================================


def is_valid_json(text: str) -> bool:
    """True when ``text`` parses as a single JSON document."""
    try:
        json.loads(text)
    except (ValueError, RecursionError):
        return False
    return True


def close_json(text: str) -> str:
    """Append whatever closes an open string and all open brackets in ``text``."""
    scan = scan_structure(text, quote_chars=JSON_QUOTES, brackets=JSON_BRACKETS)
    return text + scan.closing_suffix()


def repair_json(text: Optional[str]) -> ContentRecoveryResult:
    """Attempt to recover truncated JSON.

    Args:
        text: The potentially incomplete JSON string

    Returns:
        NO_RECOVERY_NEEDED with the input unchanged if it already parses,
        RECOVERED when closing strings/brackets makes it parse,
        PARTIALLY_RECOVERED when it had to be cut back to the last complete
        element, FAILED otherwise.
    """
    if text is None or not text.strip():
        return ContentRecoveryResult.failed("Input is null or empty")

    if is_valid_json(text):
        return ContentRecoveryResult.no_recovery_needed(text)

    trimmed = text.strip()
    if trimmed[0] not in _JSON_ELEMENT_STARTS:
        return ContentRecoveryResult.failed("Unable to recover JSON")

    repaired = close_json(trimmed)
    if repaired != trimmed and is_valid_json(repaired):
        suffix = repaired[len(trimmed) :]
        return ContentRecoveryResult.recovered(
            repaired, f"Added missing JSON closures: {suffix}"
        )

    truncated = _truncate_to_valid_json(trimmed)
    if truncated is not None:
        return ContentRecoveryResult.partially_recovered(
            truncated, "Truncated to last complete element"
        )

    return ContentRecoveryResult.failed("Unable to recover JSON")


def _truncate_to_valid_json(text: str) -> Optional[str]:
    # Any cut past a complete leading value keeps trailing text and cannot parse
    leading_end = _leading_value_end(text)
    if leading_end is not None:
        logger.log(TRACE, "JSON cut back to leading value ending at %d", leading_end)
        return text[:leading_end]

    suffixes = _closing_suffixes(text)
    # Right to left: the first candidate that closes into valid JSON keeps the most content
    for index in sorted(suffixes, reverse=True):
        candidate = text[: index + 1] + suffixes[index]
        if is_valid_json(candidate):
            logger.log(TRACE, "JSON cut back to position %d of %d", index + 1, len(text))
            return candidate
    return None


def _leading_value_end(text: str) -> Optional[int]:
    """End offset of the JSON value ``text`` starts with, or None."""
    try:
        _, end = _JSON_DECODER.raw_decode(text)
    except (ValueError, RecursionError):
        return None
    return end


def _closing_suffixes(text: str) -> Dict[int, str]:
    """Closing suffix of ``text[: i + 1]`` for every cut candidate ``i``, in one pass.

    Index 0 is never a candidate.
    """
    suffixes: Dict[int, str] = {}
    for index, scan in iter_structure(text, quote_chars=JSON_QUOTES, brackets=JSON_BRACKETS):
        if index > 0 and text[index] in _JSON_ELEMENT_ENDINGS:
            suffixes[index] = scan.closing_suffix()
    return suffixes


# =============================================================================
# Code fences
# =============================================================================


def repair_fences(text: Optional[str]) -> ContentRecoveryResult:
    """Close an unclosed code fence.

    Returns:
        NO_RECOVERY_NEEDED if every fence is closed, otherwise RECOVERED with
        a closing fence line appended on its own line.
    """
    if not text:
        return ContentRecoveryResult.no_recovery_needed(text or "")

    if not scan_fences(text).inside_fence:
        return ContentRecoveryResult.no_recovery_needed(text)

    closed = text if text.endswith("\n") else text + "\n"
    closed += FENCE_MARKER + "\n"
    return ContentRecoveryResult.recovered(closed, "Closed 1 code block(s)")


# =============================================================================
# Break points and fragment combination
# =============================================================================


def find_clean_break(
    text: Optional[str], terminators: str = SENTENCE_TERMINATORS
) -> Optional[int]:
    """Find the index just past the last clean break point in ``text``.

    Preference order: sentence terminator, paragraph break, line break.

    Returns:
        Index suitable for ``text[:index]``, or None when there is no break
    """
    if not text:
        return None

    for index in range(len(text) - 1, -1, -1):
        if text[index] in terminators:
            return index + 1

    last_paragraph = text.rfind("\n\n")
    if last_paragraph > 0:
        return last_paragraph + 2

    last_line = text.rfind("\n")
    if last_line > 0:
        return last_line + 1

    return None


def _is_punctuation(char: str) -> bool:
    return unicodedata.category(char).startswith("P")


def combine_fragments(fragments: Iterable[Optional[str]]) -> str:
    """Combine response fragments into a single text.

    Empty fragments are skipped. A single space is inserted between two
    fragments unless the text so far ends in whitespace or punctuation, or
    the next fragment starts with whitespace.

    Raises:
        TypeError: If ``fragments`` is None
    """
    if fragments is None:
        raise TypeError("fragments must be an iterable of strings, not None")

    parts = []
    for fragment in fragments:
        if not fragment:
            continue
        if parts:
            previous = parts[-1][-1]
            if not (previous.isspace() or fragment[0].isspace() or _is_punctuation(previous)):
                parts.append(" ")
        parts.append(fragment)

    return "".join(parts)
