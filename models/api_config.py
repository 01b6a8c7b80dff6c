# Copyright 2025 Google LLC
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
# ==============================================================================

# Model identifiers per provider.
SPEED_MODEL = "llama-3.1-8b-instant"
REASONING_MODEL = "deepseek-reasoner"
GENERAL_MODEL = "google/gemini-2.5-flash"
GEMINI_MODEL = "gemini-2.5-flash"

# Provider names used by the limiter and the quota status endpoint.
SPEED_PROVIDER = "groq"
REASONING_PROVIDER = "deepseek"
GENERAL_PROVIDER = "ai-gateway"

DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.1

# Deepseek pricing, dollars per million tokens.
DEEPSEEK_PROMPT_COST_PER_M = 0.14
DEEPSEEK_COMPLETION_COST_PER_M = 0.28
DEEPSEEK_REASONING_COST_PER_M = 0.28


def estimate_deepseek_cost(
    prompt_tokens: int, completion_tokens: int, reasoning_tokens: int
) -> float:
    return (
        prompt_tokens * DEEPSEEK_PROMPT_COST_PER_M
        + completion_tokens * DEEPSEEK_COMPLETION_COST_PER_M
        + reasoning_tokens * DEEPSEEK_REASONING_COST_PER_M
    ) / 1_000_000
