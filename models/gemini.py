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

import json
import logging
import time
from typing import Optional

from google import genai
from google.genai import errors, types

from models import api_config
from models.gateway import (
    ChatResult,
    GatewayCreditsExhaustedError,
    GatewayError,
    GatewayInvalidResponseError,
    GatewayRateLimitedError,
)

logger = logging.getLogger(__name__)

QUERY_RESPONSE_MAX_OUTPUT_TOKENS = 4000


class GeminiInvalidResponseException(GatewayInvalidResponseError):
    pass


def _split_messages(messages: list[dict]) -> tuple[Optional[str], list[types.Content]]:
    system_parts = []
    contents = []
    for message in messages:
        role = message.get("role", "user")
        text = message.get("content") or ""
        if role == "system":
            system_parts.append(text)
            continue
        contents.append(
            types.Content(
                role="model" if role == "assistant" else "user",
                parts=[types.Part.from_text(text=text)],
            )
        )
    system_instruction = "\n\n".join(system_parts) if system_parts else None
    return system_instruction, contents


def _tool_instruction(tools: list[dict], tool_choice: Optional[dict]) -> tuple[str, str]:
    """Describes the requested function as a JSON output contract."""
    chosen = None
    if tool_choice:
        chosen = tool_choice.get("function", {}).get("name")
    function = next(
        (
            tool["function"]
            for tool in tools
            if chosen is None or tool["function"]["name"] == chosen
        ),
        tools[0]["function"],
    )
    instruction = (
        f"Respond only with a JSON object holding the arguments of the function "
        f"`{function['name']}` ({function.get('description', '')}). "
        f"The object must match this JSON schema:\n"
        f"{json.dumps(function.get('parameters', {}))}"
    )
    return function["name"], instruction


class GeminiGateway:
    """
    Gemini through google-genai.

    Function calling is emulated: the tool schema is turned into a JSON
    output instruction and the parsed object is returned as tool arguments.
    """

    def __init__(self, api_key: str, *, model_override: Optional[str] = None):
        self.client = genai.Client(api_key=api_key)
        self.model_override = model_override

    def _resolve_model(self, model: str) -> str:
        if self.model_override:
            return self.model_override
        # Gateway-style ids ("google/gemini-2.5-flash") name the Gemini model directly.
        if model.startswith("google/"):
            return model.split("/", 1)[1]
        if model.startswith("gemini"):
            return model
        return api_config.GEMINI_MODEL

    def chat(
        self,
        messages: list[dict],
        *,
        model: str,
        tools: Optional[list[dict]] = None,
        tool_choice: Optional[dict] = None,
        max_tokens: int = api_config.DEFAULT_MAX_TOKENS,
        temperature: float = api_config.DEFAULT_TEMPERATURE,
    ) -> ChatResult:
        system_instruction, contents = _split_messages(messages)
        function_name = None
        if tools:
            function_name, instruction = _tool_instruction(tools, tool_choice)
            system_instruction = "\n\n".join(
                part for part in (system_instruction, instruction) if part
            )

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=min(max_tokens, QUERY_RESPONSE_MAX_OUTPUT_TOKENS),
            response_mime_type="application/json" if function_name else None,
        )
        gemini_model = self._resolve_model(model)
        start_time = time.time()
        try:
            response = self.client.models.generate_content(
                model=gemini_model, contents=contents, config=config
            )
        except errors.APIError as e:
            if e.code == 429:
                raise GatewayRateLimitedError() from e
            if e.code == 402:
                raise GatewayCreditsExhaustedError() from e
            raise GatewayError(f"Gemini error: {e.code}") from e
        latency_ms = int((time.time() - start_time) * 1000)
        logger.info("Gemini %s call took %dms", gemini_model, latency_ms)

        text = response.text
        if not text:
            raise GeminiInvalidResponseException("Empty Gemini response")

        tool_arguments = None
        if function_name:
            try:
                tool_arguments = json.loads(text)
            except json.JSONDecodeError as e:
                raise GeminiInvalidResponseException(
                    f"Gemini did not return JSON for {function_name}"
                ) from e

        usage = {}
        metadata = response.usage_metadata
        if metadata is not None:
            usage = {
                "prompt_tokens": metadata.prompt_token_count or 0,
                "completion_tokens": metadata.candidates_token_count or 0,
                "total_tokens": metadata.total_token_count or 0,
            }
        return ChatResult(
            content=text,
            tool_arguments=tool_arguments,
            usage=usage,
            latency_ms=latency_ms,
            model=gemini_model,
        )
