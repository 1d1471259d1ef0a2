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

"""Tests for the bracket/string and code-fence scanners."""

import pytest

from llmstitch.continuation.scanner import (
    JSON_BRACKETS,
    JSON_QUOTES,
    ends_with_fence,
    is_fence_line,
    iter_structure,
    scan_fences,
    scan_structure,
)


class TestScanStructure:
    """Tests for scan_structure()."""

    def test_counts_and_stack_for_open_brackets(self):
        """Each opener is counted and its closer stacked."""
        scan = scan_structure("{[(")

        assert scan.counts == {"{": 1, "[": 1, "(": 1}
        assert scan.closer_stack == ["}", "]", ")"]
        assert scan.closing_suffix() == ")]}"
        assert not scan.is_balanced

    def test_balanced_text(self):
        """Matched brackets leave every counter at zero."""
        scan = scan_structure("function test() { return [1, 2]; }")

        assert scan.is_balanced
        assert scan.closer_stack == []
        assert scan.closing_suffix() == ""

    def test_brackets_inside_strings_are_ignored(self):
        """Brackets between quotes do not count."""
        scan = scan_structure("print('{[(') + \"}])\"")

        assert scan.is_balanced
        assert not scan.in_string

    def test_escaped_quote_does_not_end_string(self):
        """A backslash-escaped quote keeps the scanner in string mode."""
        scan = scan_structure(r'"a \" b { c"')

        assert scan.counts == {"{": 0, "[": 0, "(": 0}
        assert not scan.in_string

    def test_escape_outside_string_skips_next_char(self):
        """A backslash escapes the next character even outside strings."""
        scan = scan_structure(r"\{ x")

        assert scan.is_balanced

    def test_string_closed_only_by_same_quote(self):
        """A double quote does not end a single-quoted string."""
        scan = scan_structure("'it said \" { '")

        assert scan.is_balanced
        assert not scan.in_string

    def test_open_string_reported(self):
        """Unterminated string state is exposed for repair."""
        scan = scan_structure('{"a": "b', quote_chars=JSON_QUOTES, brackets=JSON_BRACKETS)

        assert scan.in_string
        assert scan.string_char == '"'
        assert scan.closing_suffix() == '"}'

    def test_json_mode_ignores_single_quotes_and_parens(self):
        """JSON scanning treats only double quotes as strings and skips parentheses."""
        scan = scan_structure("'{' (", quote_chars=JSON_QUOTES, brackets=JSON_BRACKETS)

        assert scan.counts == {"{": 1, "[": 0}
        assert "(" not in scan.counts

    def test_unmatched_closer_goes_negative(self):
        """Extra closers decrement below zero and are not reported as unclosed."""
        scan = scan_structure("}")

        assert scan.counts["{"] == -1
        assert scan.unclosed == {}
        assert scan.closer_stack == []

    def test_mismatched_closer_does_not_pop(self):
        """A closer that does not match the stack top leaves the stack alone."""
        scan = scan_structure("[}")

        assert scan.counts == {"{": -1, "[": 1, "(": 0}
        assert scan.closer_stack == ["]"]

    def test_trailing_escape(self):
        """A final lone backslash is recorded."""
        assert scan_structure("abc\\").trailing_escape
        assert not scan_structure("abc\\\\").trailing_escape

    def test_empty_text(self):
        """Empty input is balanced."""
        scan = scan_structure("")

        assert scan.is_balanced
        assert not scan.in_string


class TestIterStructure:
    """Tests for iter_structure()."""

    @pytest.mark.parametrize(
        "text",
        ['{"a": [1, "x]"], "b\\"": {', "(it's [a] {b}) \\", '[["q", "\\\\"], {"k": "v'],
    )
    def test_each_state_matches_prefix_scan(self, text):
        """The state after index i equals a fresh scan of text[: i + 1]."""
        for index, scan in iter_structure(text, quote_chars=JSON_QUOTES, brackets=JSON_BRACKETS):
            expected = scan_structure(
                text[: index + 1], quote_chars=JSON_QUOTES, brackets=JSON_BRACKETS
            )

            assert scan.closing_suffix() == expected.closing_suffix()
            assert scan.counts == expected.counts
            assert scan.trailing_escape == expected.trailing_escape

    def test_yields_every_index(self):
        assert [index for index, _ in iter_structure("abc")] == [0, 1, 2]

    def test_empty_text_yields_nothing(self):
        assert list(iter_structure("")) == []


class TestFenceLines:
    """Tests for fence line recognition."""

    @pytest.mark.parametrize(
        "line", ["```", "```python", "```c++", "```c#", "```csharp", "```python3", "```   "]
    )
    def test_fence_lines(self, line):
        """Bare markers with an optional language tag are fences."""
        assert is_fence_line(line)

    @pytest.mark.parametrize(
        "line", ["  ```", "text ```", "```python code", "``", "````js x", "`inline`"]
    )
    def test_non_fence_lines(self, line):
        """Indented markers and markers followed by code are not fences."""
        assert not is_fence_line(line)


class TestScanFences:
    """Tests for scan_fences()."""

    def test_closed_block(self):
        """Two fence lines close each other."""
        scan = scan_fences("Intro\n```python\nx = 1\n```")

        assert scan.fence_lines == 2
        assert not scan.inside_fence

    def test_open_block(self):
        """An odd number of fence lines leaves the block open."""
        scan = scan_fences("```js\ncode1\n```\n```python\ncode2")

        assert scan.fence_lines == 3
        assert scan.inside_fence

    def test_no_fences(self):
        """Plain text has no fences."""
        assert scan_fences("no code here") == scan_fences("")

    def test_inline_backticks_ignored(self):
        """Triple backticks inside a line do not toggle the flag."""
        assert not scan_fences("Use ```python x``` inline").inside_fence


class TestEndsWithFence:
    """Tests for ends_with_fence()."""

    def test_trailing_whitespace_ignored(self):
        assert ends_with_fence("code\n```\n  \n")

    def test_plain_text(self):
        assert not ends_with_fence("just text")
