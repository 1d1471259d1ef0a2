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

"""Single-pass structure scanning shared by truncation detection and repair.

Two scanners live here:

- scan_structure(): walks the text once, tracking bracket counters, a stack
  of expected closers, quoted-string state and a preceding-backslash escape
  flag. The classifier reads the counters; JSON repair reads the closer
  stack. Both therefore agree on what counts as "inside a string".
- scan_fences(): walks lines and toggles an inside-fence flag on every line
  that is a bare triple-backtick marker with an optional language tag.

Neither scanner raises; any string is a valid input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

# Opener -> closer for every bracket kind the scanner understands
BRACKET_PAIRS: Dict[str, str] = {"{": "}", "[": "]", "(": ")"}
CLOSER_TO_OPENER: Dict[str, str] = {closer: opener for opener, closer in BRACKET_PAIRS.items()}

# Quote characters for prose/code (classification) and for JSON (repair)
TEXT_QUOTES = "\"'"
JSON_QUOTES = '"'

# Bracket kinds tracked for prose/code and for JSON
TEXT_BRACKETS = "{[("
JSON_BRACKETS = "{["

FENCE_MARKER = "```"

# ASCII terminators plus CJK full-width period, comma, exclamation and question marks
SENTENCE_TERMINATORS = ".!?。、！？"

# A fence line: ``` followed by an optional language tag (c++, c#, python3, ...)
_FENCE_LINE_PATTERN = re.compile(r"```[\w+#]*")


@dataclass
class StructureScan:
    """Result of one pass of scan_structure()."""

    counts: Dict[str, int] = field(default_factory=dict)
    closer_stack: List[str] = field(default_factory=list)
    in_string: bool = False
    string_char: Optional[str] = None
    trailing_escape: bool = False

    @property
    def unclosed(self) -> Dict[str, int]:
        """Opener -> number of unclosed occurrences (positive counters only)."""
        return {opener: count for opener, count in self.counts.items() if count > 0}

    @property
    def is_balanced(self) -> bool:
        return not self.unclosed

    def closing_suffix(self) -> str:
        """Text that closes an open string and every stacked bracket, innermost first."""
        suffix = self.string_char if self.in_string and self.string_char else ""
        return suffix + "".join(reversed(self.closer_stack))


def iter_structure(
    text: str, quote_chars: str = TEXT_QUOTES, brackets: str = TEXT_BRACKETS
) -> Iterator[Tuple[int, StructureScan]]:
    """Scan ``text`` once, yielding the scan state after every character.

    The yielded StructureScan is the same object each time, updated in
    place; after index ``i`` it describes ``text[: i + 1]`` exactly as
    scan_structure() would. Copy what you need before advancing.

    Rules:
        - A backslash escapes the next character wherever it appears.
        - An unescaped quote from ``quote_chars`` enters string mode; only
          the same quote character (unescaped) leaves it.
        - Brackets inside string mode are ignored.
        - Outside strings, each opener increments its counter and pushes the
          matching closer; each closer decrements its counter and pops the
          stack only when it matches the top.
    """
    tracked_closers = {BRACKET_PAIRS[opener]: opener for opener in brackets}
    scan = StructureScan(counts={opener: 0 for opener in brackets})

    for index, char in enumerate(text):
        if scan.trailing_escape:
            scan.trailing_escape = False
        elif char == "\\":
            scan.trailing_escape = True
        elif scan.in_string:
            if char == scan.string_char:
                scan.in_string = False
                scan.string_char = None
        elif char in quote_chars:
            scan.in_string = True
            scan.string_char = char
        elif char in scan.counts:
            scan.counts[char] += 1
            scan.closer_stack.append(BRACKET_PAIRS[char])
        elif char in tracked_closers:
            scan.counts[tracked_closers[char]] -= 1
            if scan.closer_stack and scan.closer_stack[-1] == char:
                scan.closer_stack.pop()
        yield index, scan


def scan_structure(
    text: str, quote_chars: str = TEXT_QUOTES, brackets: str = TEXT_BRACKETS
) -> StructureScan:
    """Scan ``text`` once for bracket balance, honoring strings and escapes.

    See iter_structure() for the rules.

    Args:
        text: Text to scan
        quote_chars: Characters that delimit strings
        brackets: Opening bracket characters to track

    Returns:
        StructureScan with counters, closer stack and final string state
    """
    scan = StructureScan(counts={opener: 0 for opener in brackets})
    for _, scan in iter_structure(text, quote_chars, brackets):
        pass
    return scan


@dataclass(frozen=True)
class FenceScan:
    """Result of scan_fences()."""

    fence_lines: int = 0
    inside_fence: bool = False


def is_fence_line(line: str) -> bool:
    """True when ``line`` is a bare code-fence marker, e.g. ``` or ```python."""
    return _FENCE_LINE_PATTERN.fullmatch(line.rstrip()) is not None


def scan_fences(text: str) -> FenceScan:
    """Toggle an inside-fence flag for every fence line in ``text``."""
    inside = False
    fence_lines = 0
    for line in text.splitlines():
        if is_fence_line(line):
            fence_lines += 1
            inside = not inside
    return FenceScan(fence_lines=fence_lines, inside_fence=inside)


def ends_with_fence(text: str) -> bool:
    """True when ``text`` (trailing whitespace ignored) ends with a fence marker."""
    return text.rstrip().endswith(FENCE_MARKER)
