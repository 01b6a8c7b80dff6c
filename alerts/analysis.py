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
Transaction anomaly analysis with the speed model.

A single transaction is analysed against a 30 day user context; a batch is
analysed in one call that returns a JSON array with one verdict per item.
"""

import json
import logging
from typing import Optional

from backend.db import DbClient
from models import api_config, prompts
from models.limiter import AdaptiveLimiter
from shared.json_utils import extract_json_array, extract_json_object
from shared.utils import days_ago_date

logger = logging.getLogger(__name__)

CONTEXT_LOOKBACK_DAYS = 30
CONTEXT_TRANSACTION_LIMIT = 100
DEFAULT_AVERAGE_SPEND = 50.0
DEFAULT_MONTHLY_BUDGET = 2000.0
MAX_USUAL_CATEGORIES = 5
INSTANT_MAX_TOKENS = 300
BATCH_TOKENS_PER_TRANSACTION = 150
AVERAGE_SPEND_SAMPLE = 50

BATCH_THRESHOLD = 3
MAX_BATCH_SIZE = 20
BATCH_SIZING = ((5, 5), (20, 10), (50, 15))

THROTTLE_BASE_DELAY_MS = 100
THROTTLE_LATENCY_THRESHOLD_MS = 500
THROTTLE_BACKOFF_MULTIPLIER = 1.5
THROTTLE_MAX_DELAY_MS = 2000

DEFAULT_ALERT = {
    "isAnomaly": False,
    "riskLevel": "low",
    "alertType": None,
    "message": "Transaction processed",
}


def build_user_context(db: DbClient, user_id: str) -> dict:
    recent = db.query(
        "transactions",
        user_id=user_id,
        filters={"transaction_date__gte": days_ago_date(CONTEXT_LOOKBACK_DAYS)},
        order_by="transaction_date",
        descending=True,
        limit=CONTEXT_TRANSACTION_LIMIT,
    )
    amounts = [abs(t.amount) for t in recent]
    average = sum(amounts) / len(amounts) if amounts else DEFAULT_AVERAGE_SPEND
    categories: list[str] = []
    for t in recent:
        if t.category and t.category not in categories:
            categories.append(t.category)
    budgets = db.query("budgets", user_id=user_id, filters={"is_active": True})
    monthly_budget = sum(b.total_limit or 0 for b in budgets) or DEFAULT_MONTHLY_BUDGET
    return {
        "averageSpend": round(average, 2),
        "monthlyBudget": monthly_budget,
        "usualCategories": categories[:MAX_USUAL_CATEGORIES],
        "recentTransactionCount": len(recent),
    }


def parse_alert(content: str) -> dict:
    """Whole content as JSON, then the first {...} block, then a no-anomaly default."""
    parsed = extract_json_object(content)
    if parsed is None:
        logger.warning("[InstantAlert] Unparseable model output, defaulting to normal")
        return dict(DEFAULT_ALERT)
    return parsed


def analyze_transaction(
    limiter: AdaptiveLimiter, transaction: dict, user_context: dict
) -> dict:
    """Returns the model's verdict plus ``latencyMs`` and ``strategy``."""
    strategy = limiter.status()["strategy"]
    result = limiter.chat(
        [
            {"role": "system", "content": prompts.INSTANT_ALERT_SYSTEM_PROMPT},
            {"role": "user", "content": prompts.make_instant_alert_prompt(transaction, user_context)},
        ],
        model=api_config.SPEED_MODEL,
        max_tokens=INSTANT_MAX_TOKENS,
        temperature=0.1,
    )
    logger.info(
        "[InstantAlert] Speed model responded in %dms, strategy: %s", result.latency_ms, strategy
    )
    return {**parse_alert(result.content), "latencyMs": result.latency_ms, "strategy": strategy}


def transaction_length(transaction: dict) -> int:
    return len(json.dumps(transaction, separators=(",", ":"), default=str))


def calculate_batch_size(queue_depth: int) -> int:
    for max_depth, size in BATCH_SIZING:
        if queue_depth <= max_depth:
            return size
    return MAX_BATCH_SIZE


def calculate_throttle_delay(previous_latency_ms: float) -> float:
    if previous_latency_ms <= THROTTLE_LATENCY_THRESHOLD_MS:
        return THROTTLE_BASE_DELAY_MS
    overage = previous_latency_ms / THROTTLE_LATENCY_THRESHOLD_MS
    return min(
        THROTTLE_BASE_DELAY_MS * overage * THROTTLE_BACKOFF_MULTIPLIER, THROTTLE_MAX_DELAY_MS
    )


def user_average_spend(db: DbClient, user_id: str) -> float:
    """Average absolute spend over the user's latest 50 spending transactions."""
    spending = db.query(
        "transactions",
        user_id=user_id,
        filters={"amount__lt": 0},
        order_by="transaction_date",
        descending=True,
        limit=AVERAGE_SPEND_SAMPLE,
    )
    if not spending:
        return DEFAULT_AVERAGE_SPEND
    return sum(abs(t.amount) for t in spending) / len(spending)


def _default_verdict(index: int, *, unparseable: bool) -> dict:
    return {
        "index": index,
        "isAnomaly": False,
        "alertType": "normal",
        "riskLevel": "low",
        "message": (
            "Analysis unavailable - defaulting to normal" if unparseable else "No anomaly detected"
        ),
        "confidence": 0.0 if unparseable else 0.5,
    }


def parse_batch_results(content: str, count: int) -> list[dict]:
    """One verdict per item, in order; missing fields are filled with normal defaults."""
    parsed = extract_json_array(content)
    if parsed is None:
        logger.error("[BatchProcess] Failed to parse batch response")
        return [_default_verdict(i, unparseable=True) for i in range(count)]
    verdicts = []
    for i in range(count):
        raw = parsed[i] if i < len(parsed) and isinstance(parsed[i], dict) else {}
        verdict = _default_verdict(i, unparseable=False)
        verdict.update({k: v for k, v in raw.items() if v is not None})
        verdict["index"] = i
        verdicts.append(verdict)
    return verdicts


def analyze_batch(
    limiter: AdaptiveLimiter, items: list[tuple[dict, float]]
) -> tuple[list[dict], int, Optional[dict]]:
    """Returns ``(verdicts, latency_ms, usage)`` for (transaction, average spend) pairs."""
    result = limiter.chat(
        [{"role": "user", "content": prompts.make_batch_alert_prompt(items)}],
        model=api_config.SPEED_MODEL,
        max_tokens=len(items) * BATCH_TOKENS_PER_TRANSACTION,
        temperature=0.1,
    )
    return parse_batch_results(result.content, len(items)), result.latency_ms, result.usage
