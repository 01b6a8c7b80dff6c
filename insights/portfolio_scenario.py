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

import logging

from models import api_config, prompts
from models.gateway import forced_tool_choice
from models.services import AiServices
from models.tracing import TraceMetadata

logger = logging.getLogger(__name__)

IMPACTS = ("positive", "negative", "neutral")
SEVERITIES = ("severe", "significant", "moderate", "minimal")
PRIORITIES = ("high", "medium", "low")
CONFIDENCE_LEVELS = ("high", "medium", "low")


def _choice(value, allowed: tuple, default: str) -> str:
    value = str(value or "").lower()
    return value if value in allowed else default


def _number(value, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def validate_analysis(raw: dict) -> dict:
    """Coerces a model answer into the scenario analysis shape, enums included."""
    impact_range = raw.get("estimatedImpactRange") or {}
    low = _number(impact_range.get("min"))
    high = _number(impact_range.get("max"))
    return {
        "overallImpact": str(raw.get("overallImpact") or ""),
        "estimatedImpactRange": {"min": min(low, high), "max": max(low, high)},
        "affectedAssets": [
            {
                "assetClass": str(asset.get("assetClass") or "Unknown"),
                "impact": _choice(asset.get("impact"), IMPACTS, "neutral"),
                "severity": _choice(asset.get("severity"), SEVERITIES, "moderate"),
                "explanation": str(asset.get("explanation") or ""),
            }
            for asset in raw.get("affectedAssets") or []
            if isinstance(asset, dict)
        ],
        "defensiveActions": [
            {
                "action": str(action.get("action") or ""),
                "priority": _choice(action.get("priority"), PRIORITIES, "medium"),
                "rationale": str(action.get("rationale") or ""),
            }
            for action in raw.get("defensiveActions") or []
            if isinstance(action, dict) and action.get("action")
        ],
        "historicalContext": str(raw.get("historicalContext") or ""),
        "confidenceLevel": _choice(raw.get("confidenceLevel"), CONFIDENCE_LEVELS, "medium"),
    }


def simulate_portfolio_scenario(
    ai: AiServices, user_id: str, portfolio: list[dict], scenario: str
) -> dict:
    if not scenario or not scenario.strip():
        raise ValueError("Scenario is required")
    prompt = prompts.make_portfolio_scenario_prompt(portfolio, scenario.strip())
    messages = [
        {"role": "system", "content": prompts.PORTFOLIO_SCENARIO_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
    result, _ = ai.tracer.trace_ai_call(
        "simulate_portfolio_scenario",
        TraceMetadata(
            model=api_config.GENERAL_MODEL,
            user_id=user_id,
            query_type="analytical",
            query_length=len(prompt),
        ),
        lambda: ai.general.chat(
            messages,
            model=api_config.GENERAL_MODEL,
            tools=[prompts.PORTFOLIO_SCENARIO_TOOL],
            tool_choice=forced_tool_choice("analyze_portfolio_scenario"),
        ),
    )
    analysis = validate_analysis(result.require_tool_arguments())
    logger.info(
        "[PortfolioScenario] %d assets affected, confidence %s",
        len(analysis["affectedAssets"]),
        analysis["confidenceLevel"],
    )
    return analysis
