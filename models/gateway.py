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
"""
Chat-completion gateways.

Every AI feature goes through one call, ``chat``, which returns the text
content, the parsed arguments of the first tool call (if any), token usage,
latency and the response headers (for rate-limit bookkeeping).
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import requests

from models import api_config

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again in a few minutes."
CREDITS_EXHAUSTED_MESSAGE = "AI credits exhausted. Please add credits to continue."


class GatewayError(Exception):
    """A gateway call failed. Surfaced to HTTP callers as a 502."""

    status_code = 502

    def __init__(self, message: str, *, headers: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers or {}


class GatewayRateLimitedError(GatewayError):
    status_code = 429

    def __init__(self, message: str = RATE_LIMIT_MESSAGE, *, headers: Optional[dict] = None):
        super().__init__(message, headers=headers)


class GatewayCreditsExhaustedError(GatewayError):
    status_code = 402

    def __init__(
        self, message: str = CREDITS_EXHAUSTED_MESSAGE, *, headers: Optional[dict] = None
    ):
        super().__init__(message, headers=headers)


class GatewayInvalidResponseError(GatewayError):
    """The response did not contain the expected content or tool call."""


class GatewayUnavailableError(GatewayError):
    """The limiter refused the call (open circuit or exhausted quota)."""

    status_code = 503


@dataclass
class ChatResult:
    content: str = ""
    tool_arguments: Optional[dict] = None
    usage: dict = field(default_factory=dict)
    latency_ms: int = 0
    headers: dict = field(default_factory=dict)
    model: str = ""
    # Chain-of-thought text, only returned by reasoning models.
    reasoning: str = ""

    @property
    def total_tokens(self) -> int:
        return int(self.usage.get("total_tokens") or 0)

    def require_tool_arguments(self) -> dict:
        if self.tool_arguments is None:
            raise GatewayInvalidResponseError("No tool call in AI response")
        return self.tool_arguments


def function_tool(name: str, description: str, parameters: dict) -> dict:
    """Builds an OpenAI-style function tool definition."""
    return {
        "type": "function",
        "function": {"name": name, "description": description, "parameters": parameters},
    }


def forced_tool_choice(name: str) -> dict:
    return {"type": "function", "function": {"name": name}}


class LlmGateway(Protocol):
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
        ...


def _parse_tool_arguments(message: dict) -> Optional[dict]:
    tool_calls = message.get("tool_calls") or []
    if not tool_calls:
        return None
    arguments = tool_calls[0].get("function", {}).get("arguments")
    if isinstance(arguments, dict):
        return arguments
    try:
        return json.loads(arguments or "")
    except json.JSONDecodeError as e:
        raise GatewayInvalidResponseError(f"Malformed tool arguments: {e}") from e


class HttpGateway:
    """
    OpenAI-compatible chat completions over HTTP.

    The hosted AI gateway, Groq and Deepseek all speak this wire format.
    """

    def __init__(self, url: str, api_key: str, *, timeout: float = 30.0, name: str = "gateway"):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.name = name

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
        body: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if tools:
            body["tools"] = tools
        if tool_choice:
            body["tool_choice"] = tool_choice

        start = time.monotonic()
        try:
            response = requests.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise GatewayError(f"{self.name} request failed: {e}") from e
        latency_ms = int((time.monotonic() - start) * 1000)
        headers = {key.lower(): value for key, value in response.headers.items()}

        if response.status_code == 429:
            raise GatewayRateLimitedError(headers=headers)
        if response.status_code == 402:
            raise GatewayCreditsExhaustedError(headers=headers)
        if not response.ok:
            logger.error(
                "[%s] AI gateway error %s: %s",
                self.name,
                response.status_code,
                response.text[:500],
            )
            raise GatewayError(
                f"AI gateway error: {response.status_code}", headers=headers
            )

        try:
            data = response.json()
            message = data["choices"][0]["message"]
        except (ValueError, KeyError, IndexError) as e:
            raise GatewayInvalidResponseError(f"Unexpected AI response shape: {e}") from e

        return ChatResult(
            content=message.get("content") or "",
            tool_arguments=_parse_tool_arguments(message),
            usage=data.get("usage") or {},
            latency_ms=latency_ms,
            headers=headers,
            model=data.get("model") or model,
            reasoning=message.get("reasoning_content") or "",
        )


class InMemoryGateway:
    """
    Scripted gateway for development and tests.

    Queued responses are returned in order; each may be a ChatResult, a
    plain string (used as content), a dict (used as tool arguments) or an
    exception instance (raised). When the script is empty the default
    result is returned.
    """

    def __init__(self, responses: Optional[list] = None, default: Optional[ChatResult] = None):
        self.responses = list(responses or [])
        self.default = default or ChatResult(content="")
        self.calls: list[dict] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def reset(self) -> None:
        self.responses.clear()
        self.calls.clear()

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
        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "tools": tools,
                "tool_choice": tool_choice,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if not self.responses:
            return ChatResult(
                content=self.default.content,
                tool_arguments=self.default.tool_arguments,
                usage=dict(self.default.usage),
                headers=dict(self.default.headers),
                model=model,
            )
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return ChatResult(content=response, model=model)
        if isinstance(response, dict):
            return ChatResult(tool_arguments=response, model=model)
        return response
