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
Multi-debt payoff optimisation with the reasoning model.

The model is asked for a full optimisation JSON. When the answer cannot be
parsed, or the provider is unavailable, the avalanche plan is returned instead.
"""

import logging
import time
from typing import Optional

from backend.db import DbClient
from backend.records import RoutingAnalyticsRecord
from insights.payoff import PayoffDebt, avalanche_plan
from models import api_config, prompts
from models.gateway import GatewayError
from models.services import AiServices
from models.tracing import TraceMetadata
from shared.json_utils import extract_json_object

logger = logging.getLogger(__name__)

OPTIMIZE_MAX_TOKENS = 4096
FALLBACK_MODEL = "avalanche-fallback"


def optimize_debt_strategy(
    db: DbClient,
    ai: AiServices,
    user_id: str,
    debts: list[dict],
    *,
    extra_payment: float = 0.0,
    preferred_strategy: Optional[str] = None,
    target_payoff_months: Optional[int] = None,
) -> dict:
    if not debts:
        raise ValueError("No debts provided")
    payoff_debts = [PayoffDebt.from_request(d) for d in debts]
    prompt = prompts.make_optimize_debt_prompt(
        [
            {
                "name": d.name,
                "balance": d.balance,
                "interestRate": d.interest_rate,
                "minimumPayment": d.minimum_payment,
            }
            for d in payoff_debts
        ],
        extra_payment,
        preferred_strategy,
        target_payoff_months,
    )
    messages = [
        {"role": "system", "content": prompts.OPTIMIZE_DEBT_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]

    start = time.monotonic()
    try:
        response, _ = ai.tracer.trace_ai_call(
            "optimize_debt_strategy",
            TraceMetadata(
                model=api_config.REASONING_MODEL,
                user_id=user_id,
                query_type="mathematical_reasoning",
                query_length=len(prompt),
            ),
            lambda: ai.reasoning.chat(
                messages,
                model=api_config.REASONING_MODEL,
                max_tokens=OPTIMIZE_MAX_TOKENS,
                temperature=0.1,
            ),
        )
    except GatewayError as e:
        logger.warning("[OptimizeDebt] Reasoning model unavailable, using avalanche: %s", e)
        return {
            "success": True,
            "result": avalanche_plan(payoff_debts, extra_payment),
            "model": FALLBACK_MODEL,
            "responseTimeMs": int((time.monotonic() - start) * 1000),
            "usage": {},
        }
    response_time_ms = int((time.monotonic() - start) * 1000)

    result = extract_json_object(response.content)
    if result is None:
        logger.warning("[OptimizeDebt] Could not parse model output, using avalanche")
        result = avalanche_plan(payoff_debts, extra_payment)
    if response.reasoning and not result.get("reasoningChain"):
        result["reasoningChain"] = [
            line for line in response.reasoning.split("\n") if line.strip()
        ]

    usage = response.usage
    db.insert(
        "ai_model_routing_analytics",
        RoutingAnalyticsRecord(
            user_id=user_id,
            query_type="mathematical_reasoning",
            model_used=api_config.REASONING_MODEL,
            response_time_ms=response_time_ms,
            token_count=int(usage.get("total_tokens") or 0),
            reasoning_tokens=int(usage.get("reasoning_tokens") or 0),
            estimated_cost=api_config.estimate_deepseek_cost(
                int(usage.get("prompt_tokens") or 0),
                int(usage.get("completion_tokens") or 0),
                int(usage.get("reasoning_tokens") or 0),
            ),
        ),
    )
    return {
        "success": True,
        "result": result,
        "model": api_config.REASONING_MODEL,
        "responseTimeMs": response_time_ms,
        "usage": usage,
    }
