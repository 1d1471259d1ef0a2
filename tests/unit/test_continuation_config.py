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

"""Tests for ContinuationConfig."""

from dataclasses import FrozenInstanceError

import pytest

from llmstitch.continuation.config import DEFAULT_CONTINUATION_PROMPT, ContinuationConfig
from llmstitch.core.errors import ConfigurationError, ErrorCategory


class TestContinuationConfigDefaults:
    """Tests for default values."""

    def test_defaults(self):
        config = ContinuationConfig.default()

        assert config.max_continuations == 5
        assert config.max_total_duration == 300.0
        assert config.delay_between_continuations == 0.0
        assert config.enable_json_recovery is True
        assert config.enable_code_block_recovery is True
        assert config.continuation_prompt == DEFAULT_CONTINUATION_PROMPT
        assert config.include_previous_response is True
        assert config.min_progress_per_continuation == 10
        assert config.throw_on_max_continuations is False

    def test_default_equals_constructor(self):
        assert ContinuationConfig.default() == ContinuationConfig()

    def test_frozen(self):
        config = ContinuationConfig()

        with pytest.raises(FrozenInstanceError):
            config.max_continuations = 3


class TestContinuationConfigValidation:
    """Tests for construction-time validation."""

    @pytest.mark.parametrize(
        "field_name",
        [
            "max_continuations",
            "max_total_duration",
            "delay_between_continuations",
            "min_progress_per_continuation",
        ],
    )
    def test_negative_values_rejected(self, field_name):
        """Negative counts, lengths and durations raise ConfigurationError."""
        with pytest.raises(ConfigurationError) as exc_info:
            ContinuationConfig(**{field_name: -1})

        error = exc_info.value
        assert error.config_key == field_name
        assert error.value == -1
        assert error.category == ErrorCategory.CONFIG_INVALID
        assert not error.recoverable

    def test_zero_values_allowed(self):
        """Zero is valid for every bounded field."""
        config = ContinuationConfig(
            max_continuations=0,
            max_total_duration=0,
            delay_between_continuations=0,
            min_progress_per_continuation=0,
        )

        assert config.max_continuations == 0


class TestWithOverrides:
    """Tests for ContinuationConfig.with_overrides()."""

    def test_returns_new_instance(self):
        base = ContinuationConfig()

        updated = base.with_overrides(max_continuations=2, throw_on_max_continuations=True)

        assert updated.max_continuations == 2
        assert updated.throw_on_max_continuations is True
        assert base.max_continuations == 5

    def test_overrides_are_validated(self):
        with pytest.raises(ConfigurationError):
            ContinuationConfig().with_overrides(delay_between_continuations=-0.5)

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ContinuationConfig().with_overrides(max_retries=3)

        assert exc_info.value.config_key == "max_retries"
