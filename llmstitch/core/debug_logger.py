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

"""Logging utilities for llmstitch.

Logging Levels (llmstitch convention):
- TRACE (5): Per-character scanner decisions, candidate positions in JSON trimming
- DEBUG (10): Classification tiers, each continuation request
- INFO (20): Truncation detected, continuation finished, recovery applied
- WARNING (30): Progress stall, max continuations reached, lossy recovery
- ERROR (40): Not used by the library itself; callers log transport errors
"""

import logging
from typing import Any, Optional

# Custom TRACE level for very verbose logging (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def trace(self: logging.Logger, message: str, *args: Any, **kwargs: Any) -> None:
    """Log at TRACE level (5) - for very verbose per-operation logs."""
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)


# Add trace method to Logger class
logging.Logger.trace = trace  # type: ignore[attr-defined]

ROOT_LOGGER_NAME = "llmstitch"

DEFAULT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def resolve_level(log_level: str) -> int:
    """Translate a level name (including TRACE) to its numeric value."""
    level_upper = log_level.upper()
    if level_upper == "TRACE":
        return TRACE
    return getattr(logging, level_upper, logging.INFO)


def configure_logging_levels(
    log_level: str = "INFO", handler: Optional[logging.Handler] = None
) -> logging.Logger:
    """Configure the llmstitch logger.

    Args:
        log_level: Desired level. Supported: TRACE (5), DEBUG, INFO, WARNING, ERROR, CRITICAL
        handler: Optional handler to attach. Nothing is attached by default so
            the host application's logging setup stays in charge.

    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(resolve_level(log_level))

    if handler is not None:
        if handler.formatter is None:
            handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        package_logger.addHandler(handler)

    return package_logger


def preview(text: str, limit: int = 60) -> str:
    """Short single-line excerpt of ``text`` for log messages."""
    flat = text.replace("\n", "\\n")
    if len(flat) <= limit:
        return flat
    return f"...{flat[-limit:]}"
