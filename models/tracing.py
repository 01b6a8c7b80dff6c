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
LangSmith run tracing for AI calls.

Runs are created before a call and patched afterwards with latency and the
outcome. Without an API key every helper still runs the wrapped call and
hands back a fresh trace id. Tracing failures are logged and never raised.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

import requests

from shared.utils import now_iso

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.smith.langchain.com"
DEFAULT_PROJECT = "save-plus-ai"
REQUEST_TIMEOUT_SECONDS = 5

T = TypeVar("T")


@dataclass
class TraceMetadata:
    model: str
    user_id: Optional[str] = None
    conversation_id: Optional[str] = None
    model_name: Optional[str] = None
    query_type: Optional[str] = None
    query_length: Optional[int] = None
    estimated_cost: Optional[float] = None
    tags: list[str] = field(default_factory=list)

    def extra(self) -> dict:
        return {
            "userId": self.user_id,
            "conversationId": self.conversation_id,
            "estimatedCost": self.estimated_cost,
            "tags": self.tags or [self.model, self.query_type or "unknown"],
        }


class Tracer:
    def __init__(
        self,
        api_key: Optional[str] = None,
        project_name: str = DEFAULT_PROJECT,
        endpoint: str = DEFAULT_ENDPOINT,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.project_name = project_name or DEFAULT_PROJECT
        self.endpoint = endpoint.rstrip("/")
        self.session = session or requests.Session()
        if not api_key:
            logger.warning("[LangSmith] API key not configured - tracing disabled")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "x-api-key": self.api_key or ""}

    def _create_run(self, run: dict) -> None:
        try:
            response = self.session.post(
                f"{self.endpoint}/runs",
                json={**run, "project_name": self.project_name},
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            if not response.ok:
                logger.error("[LangSmith] Failed to create run: %s", response.text)
        except requests.RequestException:
            logger.exception("[LangSmith] Error creating run")

    def _update_run(self, run_id: str, updates: dict) -> None:
        try:
            response = self.session.patch(
                f"{self.endpoint}/runs/{run_id}",
                json=updates,
                headers=self._headers(),
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            if not response.ok:
                logger.error("[LangSmith] Failed to update run: %s", response.text)
        except requests.RequestException:
            logger.exception("[LangSmith] Error updating run")

    def _run_traced(
        self,
        run: dict,
        fn: Callable[[], T],
        success_outputs: Optional[dict] = None,
        success_extra: Optional[dict] = None,
    ) -> tuple[T, str]:
        trace_id = run["id"]
        self._create_run(run)
        start = time.monotonic()
        try:
            result = fn()
        except Exception as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            self._update_run(
                trace_id,
                {
                    "end_time": now_iso(),
                    "error": str(e),
                    "outputs": {"success": False, "latencyMs": latency_ms},
                },
            )
            logger.error("[LangSmith] Trace %s failed after %dms: %s", run["name"], latency_ms, e)
            raise
        latency_ms = int((time.monotonic() - start) * 1000)
        updates: dict[str, Any] = {
            "end_time": now_iso(),
            "outputs": {"success": True, "latencyMs": latency_ms, **(success_outputs or {})},
        }
        if success_extra is not None:
            updates["extra"] = {**success_extra, "latencyMs": latency_ms}
        self._update_run(trace_id, updates)
        logger.info(
            "[LangSmith] Trace %s completed in %dms (ID: %s)", run["name"], latency_ms, trace_id
        )
        return result, trace_id

    def trace_ai_call(
        self,
        name: str,
        metadata: TraceMetadata,
        fn: Callable[[], T],
        parent_run_id: Optional[str] = None,
    ) -> tuple[T, str]:
        """Runs ``fn`` inside an ``llm`` run. Returns ``(result, trace_id)``."""
        trace_id = str(uuid.uuid4())
        if not self.enabled:
            return fn(), trace_id
        run = {
            "id": trace_id,
            "name": name,
            "run_type": "llm",
            "parent_run_id": parent_run_id,
            "start_time": now_iso(),
            "inputs": {
                "model": metadata.model,
                "modelName": metadata.model_name or metadata.model,
                "queryType": metadata.query_type or "unknown",
                "queryLength": metadata.query_length,
            },
            "extra": metadata.extra(),
            "serialized": {"model": metadata.model},
        }
        return self._run_traced(run, fn, success_extra=metadata.extra())

    def trace_routing(
        self,
        query_type: str,
        selected_model: str,
        metadata: TraceMetadata,
        fn: Callable[[], T],
    ) -> tuple[T, str]:
        trace_id = str(uuid.uuid4())
        if not self.enabled:
            return fn(), trace_id
        run = {
            "id": trace_id,
            "name": f"route_{query_type}_to_{selected_model}",
            "run_type": "chain",
            "start_time": now_iso(),
            "inputs": {
                "queryType": query_type,
                "selectedModel": selected_model,
                "queryLength": metadata.query_length,
            },
            "extra": {
                "userId": metadata.user_id,
                "conversationId": metadata.conversation_id,
                "tags": ["routing", query_type, selected_model],
            },
        }
        return self._run_traced(run, fn, success_outputs={"routedTo": selected_model})

    def log_fallback(
        self,
        original_model: str,
        fallback_model: str,
        reason: str,
        metadata: TraceMetadata,
        parent_run_id: Optional[str] = None,
    ) -> Optional[str]:
        if not self.enabled:
            return None
        trace_id = str(uuid.uuid4())
        timestamp = now_iso()
        self._create_run(
            {
                "id": trace_id,
                "name": f"fallback_{original_model}_to_{fallback_model}",
                "run_type": "chain",
                "parent_run_id": parent_run_id,
                "start_time": timestamp,
                "end_time": timestamp,
                "inputs": {
                    "originalModel": original_model,
                    "fallbackModel": fallback_model,
                    "reason": reason,
                },
                "outputs": {"success": True, "type": "fallback"},
                "extra": {
                    "userId": metadata.user_id,
                    "conversationId": metadata.conversation_id,
                    "tags": ["fallback", original_model, fallback_model],
                },
            }
        )
        logger.info(
            "[LangSmith] Logged fallback: %s -> %s (%s)", original_model, fallback_model, reason
        )
        return trace_id

    def dashboard_url(self, trace_id: str) -> str:
        return (
            f"https://smith.langchain.com/o/default/projects/p/{self.project_name}"
            f"?run_ids={trace_id}"
        )
