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

"""Settings management for llmstitch.

Values come from, in increasing priority:
    1. Field defaults below
    2. An optional YAML file passed to load_settings()
    3. A ``.env`` file in the working directory
    4. ``LLMSTITCH_*`` environment variables

Example YAML:

    log_level: DEBUG
    continuation:
      max_continuations: 3
      delay_between_continuations: 0.5
    detection:
      min_text_length_for_heuristics: 200
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from llmstitch.continuation.config import DEFAULT_CONTINUATION_PROMPT, ContinuationConfig
from llmstitch.continuation.scanner import SENTENCE_TERMINATORS
from llmstitch.continuation.truncation import (
    DEFAULT_LIST_MARKERS,
    DEFAULT_MIN_TEXT_LENGTH_FOR_HEURISTICS,
    TruncationDetectorOptions,
)
from llmstitch.core.debug_logger import configure_logging_levels
from llmstitch.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# YAML sections and the settings fields they may contain
_YAML_SECTIONS = ("continuation", "detection")


class StitchSettings(BaseSettings):
    """Continuation and detection settings, overridable from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="LLMSTITCH_",
        env_file=".env" if not os.getenv("LLMSTITCH_SKIP_ENV_FILE") else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"

    # Continuation policy
    max_continuations: int = Field(5, ge=0)
    max_total_duration: float = Field(300.0, ge=0.0, description="Advisory, in seconds")
    delay_between_continuations: float = Field(0.0, ge=0.0, description="Seconds")
    enable_json_recovery: bool = True
    enable_code_block_recovery: bool = True
    continuation_prompt: str = DEFAULT_CONTINUATION_PROMPT
    include_previous_response: bool = True
    min_progress_per_continuation: int = Field(10, ge=0)
    throw_on_max_continuations: bool = False

    # Truncation detection
    enable_structural_analysis: bool = True
    enable_heuristic_analysis: bool = True
    min_text_length_for_heuristics: int = Field(DEFAULT_MIN_TEXT_LENGTH_FOR_HEURISTICS, ge=0)
    sentence_terminators: str = Field(SENTENCE_TERMINATORS, min_length=1)
    list_markers: str = DEFAULT_LIST_MARKERS

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name.

        Raises:
            ValueError: If the level is not a known name
        """
        level = v.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(sorted(VALID_LOG_LEVELS))}, got {v!r}"
            )
        return level

    @field_validator("continuation_prompt")
    @classmethod
    def validate_continuation_prompt(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("continuation_prompt must not be blank")
        return v

    def to_continuation_config(self) -> ContinuationConfig:
        """Build the validated continuation policy."""
        return ContinuationConfig(
            max_continuations=self.max_continuations,
            max_total_duration=self.max_total_duration,
            delay_between_continuations=self.delay_between_continuations,
            enable_json_recovery=self.enable_json_recovery,
            enable_code_block_recovery=self.enable_code_block_recovery,
            continuation_prompt=self.continuation_prompt,
            include_previous_response=self.include_previous_response,
            min_progress_per_continuation=self.min_progress_per_continuation,
            throw_on_max_continuations=self.throw_on_max_continuations,
        )

    def to_detector_options(self) -> TruncationDetectorOptions:
        """Build the validated truncation detector options."""
        return TruncationDetectorOptions(
            enable_structural_analysis=self.enable_structural_analysis,
            enable_heuristic_analysis=self.enable_heuristic_analysis,
            min_text_length_for_heuristics=self.min_text_length_for_heuristics,
            sentence_terminators=self.sentence_terminators,
            list_markers=self.list_markers,
        )

    def configure_logging(self, handler: Optional[logging.Handler] = None) -> logging.Logger:
        """Apply ``log_level`` to the llmstitch logger."""
        return configure_logging_levels(self.log_level, handler=handler)


def _read_yaml_settings(path: Path) -> Dict[str, Any]:
    """Flatten a settings YAML file into StitchSettings keyword arguments."""
    if not path.exists():
        raise ConfigurationError(
            f"Settings file not found: {path}",
            config_key="settings_file",
            recovery_hint="Check the path passed to load_settings().",
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Settings file is not valid YAML: {path}",
            config_key="settings_file",
            cause=e,
            recovery_hint="Fix the YAML syntax in the settings file.",
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Settings file must contain a mapping at the top level: {path}",
            config_key="settings_file",
        )

    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key in _YAML_SECTIONS:
            if not isinstance(value, dict):
                raise ConfigurationError(
                    f"Section '{key}' must be a mapping", config_key=key
                )
            values.update(value)
        else:
            values[key] = value
    return values


def load_settings(path: Optional[Union[str, Path]] = None) -> StitchSettings:
    """Load settings from an optional YAML file and the environment.

    Environment variables win over values from the file.

    Args:
        path: Optional YAML settings file

    Returns:
        StitchSettings instance

    Raises:
        ConfigurationError: If the file is missing or malformed, or a value is invalid
    """
    try:
        if path is None:
            return StitchSettings()

        file_values = _read_yaml_settings(Path(path))
        env_values = StitchSettings().model_dump(exclude_unset=True)
        settings = StitchSettings(**{**file_values, **env_values})
        logger.debug("Loaded settings from %s", path)
        return settings
    except ValidationError as e:
        invalid = [".".join(str(part) for part in error["loc"]) for error in e.errors()]
        raise ConfigurationError(
            f"Invalid llmstitch settings: {', '.join(invalid)}",
            config_key=invalid[0] if invalid else None,
            cause=e,
        ) from e
