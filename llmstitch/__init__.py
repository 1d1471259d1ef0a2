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

"""
llmstitch - continuation and repair of truncated language-model responses.

Classifies a response as complete or truncated, drives a bounded loop that
asks the model to continue, stitches the fragments together and repairs
broken JSON or unclosed code fences in the result.

Simple API:
    from llmstitch import ContinuationConfig, run_continuation

    result = await run_continuation(response, ContinuationConfig(), send_next, messages=messages)
    print(result.final_text)

Building blocks:
    from llmstitch import classify_text, repair_json, combine_fragments
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from llmstitch.config.settings import StitchSettings, load_settings
from llmstitch.continuation import (
    ContentRecoveryResult,
    ContentRecoveryStatus,
    ContinuationConfig,
    ContinuationEngine,
    ContinuationResult,
    ContinuationState,
    TruncationDetector,
    TruncationDetectorOptions,
    TruncationInfo,
    TruncationReason,
    classify,
    classify_text,
    combine_fragments,
    find_clean_break,
    repair_fences,
    repair_json,
    run_continuation,
)
from llmstitch.core.errors import (
    ConfigurationError,
    ContinuationCancelledError,
    MaxContinuationsReachedError,
    StitchError,
)
from llmstitch.core.typed_models import (
    ChatMessage,
    ChatResponse,
    ChatRole,
    FinishReason,
    UsageDetails,
)

__all__ = [
    "__version__",
    # Models
    "ChatMessage",
    "ChatResponse",
    "ChatRole",
    "FinishReason",
    "UsageDetails",
    # Detection
    "TruncationDetector",
    "TruncationDetectorOptions",
    "TruncationInfo",
    "TruncationReason",
    "classify",
    "classify_text",
    # Repair
    "ContentRecoveryResult",
    "ContentRecoveryStatus",
    "combine_fragments",
    "find_clean_break",
    "repair_fences",
    "repair_json",
    # Continuation
    "ContinuationConfig",
    "ContinuationEngine",
    "ContinuationResult",
    "ContinuationState",
    "run_continuation",
    # Settings
    "StitchSettings",
    "load_settings",
    # Errors
    "ConfigurationError",
    "ContinuationCancelledError",
    "MaxContinuationsReachedError",
    "StitchError",
]
