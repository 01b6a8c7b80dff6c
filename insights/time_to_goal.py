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
import math
from datetime import date
from typing import Optional

from backend.db import DbClient
from backend.records import TransactionRecord
from models import api_config, prompts
from models.gateway import forced_tool_choice
from models.services import AiServices
from models.tracing import TraceMetadata
from shared.utils import add_months, days_ago_date, utc_now

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 90
TRANSACTION_LIMIT = 500
DEFAULT_MONTHLY_CONTRIBUTION = 100.0
NO_CONTRIBUTION_MONTHS = 12


class GoalNotFoundError(LookupError):
    pass


def monthly_contribution(transactions: list[TransactionRecord]) -> float:
    """Average of the latest 30 incoming transactions, extrapolated to a month."""
    contributions = [t.amount for t in transactions if t.amount > 0][:30]
    if not contributions:
        return DEFAULT_MONTHLY_CONTRIBUTION
    return sum(contributions) / len(contributions) * 30


def projection(remaining: float, contribution: float, today: date) -> date:
    if contribution <= 0:
        return add_months(today, NO_CONTRIBUTION_MONTHS)
    return add_months(today, max(math.ceil(remaining / contribution), 0))


def spending_by_category(transactions: list[TransactionRecord]) -> dict:
    spending: dict[str, dict] = {}
    for t in transactions:
        bucket = spending.setdefault(t.category or "Other", {"total": 0.0, "count": 0})
        bucket["total"] += abs(t.amount)
        bucket["count"] += 1
    return spending


def calculate_time_to_goal(
    db: DbClient,
    ai: AiServices,
    user_id: str,
    goal_id: str,
    *,
    today: Optional[date] = None,
) -> dict:
    today = today or utc_now().date()
    goal = db.get("goals", goal_id)
    if goal is None or goal.user_id != user_id:
        raise GoalNotFoundError("Goal not found")
    remaining = goal.target_amount - (goal.current_amount or 0)

    transactions = db.query(
        "transactions",
        user_id=user_id,
        filters={"transaction_date__gte": days_ago_date(LOOKBACK_DAYS)},
        order_by="transaction_date",
        descending=True,
        limit=TRANSACTION_LIMIT,
    )
    prompt = prompts.make_time_to_goal_prompt(
        remaining, goal.deadline, spending_by_category(transactions)
    )
    result, _ = ai.tracer.trace_ai_call(
        "time_to_goal_suggestions",
        TraceMetadata(
            model=api_config.GENERAL_MODEL,
            user_id=user_id,
            query_type="analytical",
            query_length=len(prompt),
        ),
        lambda: ai.general.chat(
            [{"role": "user", "content": prompt}],
            model=api_config.GENERAL_MODEL,
            tools=[prompts.SAVINGS_SUGGESTIONS_TOOL],
            tool_choice=forced_tool_choice("generate_savings_suggestions"),
        ),
    )
    ai_suggestions = result.require_tool_arguments().get("suggestions") or []

    contribution = monthly_contribution(transactions)
    current = projection(remaining, contribution, today)
    suggestions = []
    for s in ai_suggestions:
        savings = s.get("savings") or 0
        new_projection = projection(remaining, contribution + savings, today)
        days_saved = (current - new_projection).days
        suggestions.append(
            {
                "id": s.get("id") or s.get("category"),
                "action": s.get("action"),
                "savings": savings,
                "timeReduction": f"{days_saved} days" if days_saved > 0 else "0 days",
                "newProjection": new_projection.isoformat(),
                "difficulty": s.get("difficulty") or "medium",
                "category": s.get("category") or "Other",
            }
        )
    logger.info("[TimeToGoal] Generated %d suggestions for goal %s", len(suggestions), goal_id)
    return {
        "currentProjection": current.isoformat(),
        "currentMonthlyContribution": f"{contribution:.2f}",
        "remaining": f"{remaining:.2f}",
        "suggestions": suggestions,
    }
