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
Financial health score.

Six components on a 0-100 scale are weighted into one overall score:
credit 25%, debt 20%, savings 20%, goals 15%, investment 10% and emergency
fund 10%. Recurring spending from the last 30 days stands in for the user's
subscriptions.
"""

import logging

from backend.db import DbClient
from backend.records import (
    CreditScoreRecord,
    DebtRecord,
    GoalRecord,
    HealthScoreRecord,
    InvestmentRecord,
    TransactionRecord,
)
from shared.utils import days_ago_date

logger = logging.getLogger(__name__)

WEIGHTS = {
    "credit": 0.25,
    "debt": 0.20,
    "savings": 0.20,
    "goals": 0.15,
    "investment": 0.10,
    "emergencyFund": 0.10,
}
DEBT_CEILING = 50000
EMERGENCY_FUND_MONTHS = 6
SUBSCRIPTION_REVIEW_COUNT = 10


def credit_component(latest: CreditScoreRecord | None) -> float:
    if latest is None:
        return 50
    return round((latest.score - 300) / 550 * 100)


def debt_component(total_debt: float) -> float:
    if total_debt == 0:
        return 100
    return max(0, 100 - min(100, total_debt / DEBT_CEILING * 100))


def savings_component(goals: list[GoalRecord]) -> float:
    if not goals:
        return 50
    progress = [
        min(100, g.current_amount / g.target_amount * 100) if g.target_amount else 0
        for g in goals
    ]
    return round(sum(progress) / len(goals))


def goals_component(goals: list[GoalRecord]) -> float:
    if not goals:
        return 50
    completed = sum(1 for g in goals if g.current_amount >= g.target_amount)
    return round(completed / len(goals) * 100)


def investment_component(investments: list[InvestmentRecord]) -> float:
    value = sum(i.total_value for i in investments)
    if value <= 0:
        return 50
    gains = sum(i.gains_losses or 0 for i in investments)
    return max(0, min(100, 50 + gains / value * 100))


def recurring_spending(transactions: list[TransactionRecord]) -> dict[str, float]:
    """Monthly amount per recurring merchant."""
    by_merchant: dict[str, float] = {}
    for t in transactions:
        if t.is_recurring and t.amount < 0:
            key = t.merchant or t.category or "Unknown"
            by_merchant[key] = by_merchant.get(key, 0.0) + abs(t.amount)
    return by_merchant


def build_recommendations(
    *,
    credit: float,
    latest_credit: CreditScoreRecord | None,
    debt: float,
    total_debt: float,
    emergency_fund: float,
    months_covered: float,
    savings: float,
    subscriptions: dict[str, float],
) -> list[dict]:
    recommendations = []
    if credit < 60 and latest_credit is not None:
        recommendations.append(
            {
                "id": "improve-credit",
                "title": "Improve Your Credit Score",
                "description": (
                    f"Your credit score is {latest_credit.score}. Focus on paying bills on "
                    "time and reducing credit utilization below 30%."
                ),
                "priority": "high",
                "impact": 15,
                "actionLabel": "View Credit Details",
                "actionLink": "/credit",
            }
        )
    if debt < 60 and total_debt > 0:
        recommendations.append(
            {
                "id": "reduce-debt",
                "title": "Create a Debt Payoff Plan",
                "description": (
                    f"You have ${total_debt:.2f} in debt. Consider using the avalanche or "
                    "snowball method to pay it down faster."
                ),
                "priority": "high",
                "impact": 12,
                "actionLabel": "Manage Debts",
                "actionLink": "/debts",
            }
        )
    if emergency_fund < 40:
        recommendations.append(
            {
                "id": "emergency-fund",
                "title": "Build Your Emergency Fund",
                "description": (
                    f"You have {months_covered:.1f} months of expenses saved. Aim for 3-6 "
                    "months for financial security."
                ),
                "priority": "high",
                "impact": 10,
                "actionLabel": "Set Savings Goal",
                "actionLink": "/goals",
            }
        )
    if savings > 80:
        recommendations.append(
            {
                "id": "great-progress",
                "title": "You're Doing Great!",
                "description": (
                    "Your savings progress is excellent. Keep up the good work and consider "
                    "increasing your goals."
                ),
                "priority": "low",
                "impact": 5,
                "actionLabel": "Review Goals",
                "actionLink": "/goals",
            }
        )
    if len(subscriptions) > SUBSCRIPTION_REVIEW_COUNT:
        recommendations.append(
            {
                "id": "review-subscriptions",
                "title": "Review Your Subscriptions",
                "description": (
                    f"You have {len(subscriptions)} active subscriptions costing "
                    f"${sum(subscriptions.values()):.2f}/month. Consider canceling unused ones."
                ),
                "priority": "medium",
                "impact": 8,
                "actionLabel": "Manage Subscriptions",
                "actionLink": "/subscriptions",
            }
        )
    return recommendations


def calculate_financial_health(db: DbClient, user_id: str) -> dict:
    latest = db.query(
        "credit_scores", user_id=user_id, order_by="score_date", descending=True, limit=1
    )
    latest_credit = latest[0] if latest else None
    debts: list[DebtRecord] = db.query("debts", user_id=user_id)
    goals: list[GoalRecord] = db.query("goals", user_id=user_id)
    investments = db.query("investments", user_id=user_id)
    recent = db.query(
        "transactions",
        user_id=user_id,
        filters={"transaction_date__gte": days_ago_date(30)},
    )

    total_debt = sum(d.current_balance for d in debts)
    subscriptions = recurring_spending(recent)
    monthly_expenses = sum(subscriptions.values())
    savings_balance = sum(g.current_amount for g in goals)
    months_covered = savings_balance / monthly_expenses if monthly_expenses > 0 else 0

    components = {
        "credit": credit_component(latest_credit),
        "debt": debt_component(total_debt),
        "savings": savings_component(goals),
        "goals": goals_component(goals),
        "investment": investment_component(investments),
        "emergencyFund": min(100, months_covered / EMERGENCY_FUND_MONTHS * 100),
    }
    overall = round(sum(components[name] * weight for name, weight in WEIGHTS.items()))
    recommendations = build_recommendations(
        credit=components["credit"],
        latest_credit=latest_credit,
        debt=components["debt"],
        total_debt=total_debt,
        emergency_fund=components["emergencyFund"],
        months_covered=months_covered,
        savings=components["savings"],
        subscriptions=subscriptions,
    )

    record = db.insert(
        "financial_health_scores",
        HealthScoreRecord(
            user_id=user_id,
            overall_score=overall,
            credit_score_component=components["credit"],
            debt_component=components["debt"],
            savings_component=components["savings"],
            goals_component=components["goals"],
            investment_component=components["investment"],
            emergency_fund_component=components["emergencyFund"],
            recommendations=recommendations,
        ),
    )
    logger.info("[FinancialHealth] %s scored %d", user_id, overall)
    return {
        "success": True,
        "overallScore": overall,
        "components": components,
        "recommendations": recommendations,
        "calculatedAt": record.created_at,
    }
