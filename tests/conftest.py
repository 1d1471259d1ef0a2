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

"""Shared pytest fixtures and configuration."""

import os

import pytest

from llmstitch.core.typed_models import ChatResponse, FinishReason


@pytest.fixture(autouse=True)
def isolate_environment_variables(monkeypatch):
    """Isolate tests from LLMSTITCH_* environment variables and .env files."""
    monkeypatch.setenv("LLMSTITCH_SKIP_ENV_FILE", "1")
    for var in list(os.environ):
        if var.startswith("LLMSTITCH_") and var != "LLMSTITCH_SKIP_ENV_FILE":
            monkeypatch.delenv(var, raising=False)


@pytest.fixture
def make_response():
    """Factory for single-message assistant responses."""

    def _make(text: str, finish_reason=FinishReason.STOP, **kwargs) -> ChatResponse:
        return ChatResponse.from_text(text, finish_reason=finish_reason, **kwargs)

    return _make
