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

"""Truncation detection, content repair and the continuation loop."""

from llmstitch.continuation.config import ContinuationConfig
from llmstitch.continuation.engine import (
    ContinuationEngine,
    ContinuationResult,
    ContinuationState,
    run_continuation,
)
from llmstitch.continuation.recovery import (
    ContentRecoveryResult,
    ContentRecoveryStatus,
    combine_fragments,
    find_clean_break,
    repair_fences,
    repair_json,
)
from llmstitch.continuation.truncation import (
    TruncationDetector,
    TruncationDetectorOptions,
    TruncationInfo,
    TruncationReason,
    classify,
    classify_text,
)

__all__ = [
    "ContinuationConfig",
    "ContinuationEngine",
    "ContinuationResult",
    "ContinuationState",
    "run_continuation",
    "ContentRecoveryResult",
    "ContentRecoveryStatus",
    "combine_fragments",
    "find_clean_break",
    "repair_fences",
    "repair_json",
    "TruncationDetector",
    "TruncationDetectorOptions",
    "TruncationInfo",
    "TruncationReason",
    "classify",
    "classify_text",
]
