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
import textwrap
from typing import Optional

from models.gateway import function_tool

# Transaction alerts

INSTANT_ALERT_SYSTEM_PROMPT = """You are a real-time transaction monitor. Analyze transactions for anomalies and generate instant alerts. Respond with ONLY valid JSON.

Detect:
- Unusual amounts (much higher than user average)
- Suspicious merchants (unusual patterns)
- Budget warnings (approaching limits)
- Duplicate charges (same merchant/amount recently)
- Time anomalies (unusual purchase time)"""


def make_instant_alert_prompt(transaction: dict, user_context: dict) -> str:
    amount = transaction.get("amount")
    categories = ", ".join(user_context.get("usualCategories") or [])
    return f"""Analyze this transaction:
Merchant: {transaction.get("merchant")}
Amount: ${amount}
Category: {transaction.get("category") or "Unknown"}
Time: {transaction.get("timestamp")}

User Profile:
- Average spend: ${user_context["averageSpend"]}
- Monthly budget: ${user_context["monthlyBudget"]}
- Usual categories: {categories}
- Recent transactions: {user_context["recentTransactionCount"]}

Return ONLY: {{"isAnomaly":false,"riskLevel":"low","alertType":null,"message":"Normal transaction","category":"suggested_category"}}
Or if anomaly: {{"isAnomaly":true,"riskLevel":"high","alertType":"unusual_amount","message":"⚠️ Alert: This ${amount} charge is 3x your average spend","category":"suggested_category"}}"""


def make_batch_alert_prompt(items: list[tuple[dict, float]]) -> str:
    """``items`` holds (transaction_data, user average spend) pairs."""
    lines = []
    for i, (tx, avg_spend) in enumerate(items):
        lines.append(
            f"""
[{i}] Merchant: "{tx.get("merchant")}"
     Amount: ${abs(float(tx.get("amount") or 0)):.2f}
     Category: {tx.get("category") or "unknown"}
     User's avg spend in category: ${avg_spend:.2f}
"""
        )
    return f"""You are a financial anomaly detection system. Analyze these {len(items)} transactions and return a JSON array with analysis for each.

TRANSACTIONS:
{"".join(lines)}
For each transaction, determine:
1. isAnomaly: true if amount is >2x the user's average OR merchant seems suspicious
2. alertType: "unusual_amount" | "unusual_merchant" | "unusual_time" | "normal"
3. riskLevel: "low" | "medium" | "high"
4. message: Brief explanation (max 100 chars)
5. confidence: 0.0 to 1.0

Return ONLY a valid JSON array with objects matching this structure:
[{{"index":0,"isAnomaly":false,"alertType":"normal","riskLevel":"low","message":"Within normal spending","confidence":0.95}}, ...]

JSON array:"""


# Debt freedom prediction

PREDICT_DEBT_FREEDOM_TOOL = function_tool(
    "predict_debt_freedom",
    "Predict when user will be debt-free based on behavioral analysis",
    {
        "type": "object",
        "properties": {
            "predicted_date": {
                "type": "string",
                "description": "Predicted debt-free date (YYYY-MM-DD)",
            },
            "confidence_level": {
                "type": "number",
                "description": "Confidence in prediction (0-100)",
            },
            "months_to_freedom": {
                "type": "number",
                "description": "Number of months until debt-free",
            },
            "key_factors": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Top 3-5 factors influencing timeline",
            },
            "acceleration_opportunities": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "action": {"type": "string"},
                        "potential_savings": {"type": "number"},
                        "time_saved_months": {"type": "number"},
                    },
                },
                "description": "Ways to become debt-free faster",
            },
            "risks": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Factors that could delay payoff",
            },
            "best_case_date": {"type": "string"},
            "worst_case_date": {"type": "string"},
        },
        "required": [
            "predicted_date",
            "confidence_level",
            "months_to_freedom",
            "key_factors",
        ],
        "additionalProperties": False,
    },
)


def make_debt_freedom_prompt(debts: list, metrics: dict) -> str:
    debt_lines = []
    for debt in debts:
        line = (
            f"- {debt.debt_name}: ${debt.current_balance} @ {debt.interest_rate}%\n"
            f"  Min Payment: ${debt.minimum_payment}"
        )
        if debt.actual_payment:
            line += f"\n  Actual Payment: ${debt.actual_payment}"
        debt_lines.append(line)
    return f"""You are a financial forecasting AI that predicts debt freedom dates with high accuracy.

Analyze the following financial data and predict when the user will be completely debt-free:

DEBT PORTFOLIO:
{chr(10).join(debt_lines)}

SPENDING BEHAVIOR (Last 90 Days):
- Average Monthly Spending: ${metrics["avgMonthlySpend"]:.2f}
- Spending Volatility: {metrics["spendingVolatility"]:.1f}% (standard deviation)
- Transaction Count: {metrics["transactionCount"]}

INCOME PATTERNS:
- Average Monthly Income: ${metrics["avgMonthlyIncome"]:.2f}
- Income Transactions: {metrics["incomeTransactionCount"]}

PAYMENT BEHAVIOR:
- Months with Payments: {metrics["monthsWithPayments"]}
- Months with Extra Payments: {metrics["monthsWithExtra"]}
- Payment Consistency Score: {metrics["consistencyScore"]}/100

Based on this holistic view, predict when they'll be debt-free. Consider:
1. Current payment patterns (are they paying extra?)
2. Spending stability (consistent or volatile?)
3. Income reliability
4. Interest accrual on debts

Be realistic but motivating. Factor in both optimistic and conservative scenarios."""


DEBT_FREEDOM_USER_MESSAGE = "Predict my debt freedom date based on the data provided."


# Debt strategy optimisation

OPTIMIZE_DEBT_SYSTEM_PROMPT = """You are a financial mathematics expert specializing in debt optimization algorithms.
Your task is to calculate the mathematically optimal debt payoff strategy with step-by-step reasoning.

You MUST respond with a valid JSON object containing the optimization results."""

_OPTIMIZE_RESPONSE_FORMAT = """{
  "optimalAllocations": [
    {
      "debtId": "string",
      "debtName": "string",
      "minimumPayment": number,
      "extraPayment": number,
      "totalPayment": number,
      "interestSaved": number,
      "monthsToPayoff": number
    }
  ],
  "totalInterestSaved": number,
  "totalPayoffMonths": number,
  "npvAnalysis": {
    "presentValueSavings": number,
    "futureValueSavings": number,
    "effectiveRate": number
  },
  "sensitivityMatrix": [
    { "extraPaymentAmount": number, "monthsSaved": number, "interestSaved": number }
  ],
  "hybridStrategy": {
    "strategy": "string",
    "description": "string",
    "steps": ["string"]
  },
  "reasoningChain": ["step1", "step2", "..."],
  "confidence": number (0-1)
}"""


def make_optimize_debt_prompt(
    debts: list[dict],
    extra_payment: float,
    preferred_strategy: Optional[str],
    target_payoff_months: Optional[int],
) -> str:
    debt_lines = "\n".join(
        f"{i + 1}. {d['name']}: ${d['balance']:.2f} @ {d['interestRate']}% APR, "
        f"min payment ${d['minimumPayment']:.2f}"
        for i, d in enumerate(debts)
    )
    target = f"Target payoff: {target_payoff_months} months" if target_payoff_months else ""
    return f"""## Multi-Debt Optimization Problem

### Input Debts
{debt_lines}

### Available Extra Payment
${extra_payment:.2f} per month beyond minimums

### User Preference
Strategy: {preferred_strategy or "optimal"}
{target}

### Required Analysis

1. **MATHEMATICAL OPTIMIZATION**
   - Calculate NPV of each debt at current rate
   - Determine optimal allocation using weighted interest-to-balance ratio
   - Account for psychological factors (quick wins vs. interest savings)

2. **SENSITIVITY ANALYSIS**
   - Test extra payments at: $50, $100, $200, $500, $1000
   - Calculate months saved and interest saved for each

3. **HYBRID STRATEGY**
   - If one small debt can be paid off quickly, start with snowball
   - Then switch to avalanche for remaining high-interest debts

### Response Format (JSON)
{_OPTIMIZE_RESPONSE_FORMAT}

Show your mathematical reasoning, then provide the JSON result."""


# Portfolio scenarios

PORTFOLIO_SCENARIO_SYSTEM_PROMPT = """You are an investment risk analyst. Given a user's portfolio and a hypothetical market scenario, estimate the impact on each holding and recommend defensive actions. Be specific, balanced and avoid guarantees."""

PORTFOLIO_SCENARIO_TOOL = function_tool(
    "analyze_portfolio_scenario",
    "Analyze how a market scenario would affect the user's portfolio",
    {
        "type": "object",
        "properties": {
            "overallImpact": {
                "type": "string",
                "description": "One or two sentence summary of the overall impact",
            },
            "estimatedImpactRange": {
                "type": "object",
                "properties": {
                    "min": {"type": "number", "description": "Worst case change in percent"},
                    "max": {"type": "number", "description": "Best case change in percent"},
                },
            },
            "affectedAssets": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "assetClass": {"type": "string"},
                        "impact": {"type": "string", "enum": ["positive", "negative", "neutral"]},
                        "severity": {
                            "type": "string",
                            "enum": ["severe", "significant", "moderate", "minimal"],
                        },
                        "explanation": {"type": "string"},
                    },
                    "required": ["assetClass", "impact", "severity", "explanation"],
                },
            },
            "defensiveActions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "action": {"type": "string"},
                        "priority": {"type": "string", "enum": ["high", "medium", "low"]},
                        "rationale": {"type": "string"},
                    },
                    "required": ["action", "priority", "rationale"],
                },
            },
            "historicalContext": {"type": "string"},
            "confidenceLevel": {"type": "string", "enum": ["high", "medium", "low"]},
        },
        "required": ["overallImpact", "affectedAssets", "defensiveActions", "confidenceLevel"],
    },
)


def make_portfolio_scenario_prompt(portfolio: list[dict], scenario: str) -> str:
    holdings = "\n".join(
        f"- {item['name']}: ${float(item['value']):,.2f}"
        + (f" ({item['change']:+.2f}% recent change)" if item.get("change") is not None else "")
        for item in portfolio
    ) or "No holdings provided"
    return f"""Portfolio holdings:
{holdings}

Scenario: {scenario}

Assess the impact on each asset class, give an estimated portfolio impact range in percent, and list defensive actions ordered by priority."""


# Time to goal

SAVINGS_SUGGESTIONS_TOOL = function_tool(
    "generate_savings_suggestions",
    "Generate 3 savings suggestions to help reach a financial goal faster",
    {
        "type": "object",
        "properties": {
            "suggestions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "string", "description": "Unique identifier"},
                        "action": {"type": "string", "description": "Specific action to take"},
                        "savings": {"type": "number", "description": "Monthly savings amount"},
                        "category": {"type": "string", "description": "Spending category"},
                        "difficulty": {"type": "string", "enum": ["easy", "medium", "hard"]},
                    },
                    "required": ["id", "action", "savings", "category", "difficulty"],
                },
                "minItems": 3,
                "maxItems": 3,
            }
        },
        "required": ["suggestions"],
    },
)


def make_time_to_goal_prompt(remaining: float, deadline: Optional[str], spending: dict) -> str:
    spending_summary = "\n".join(
        f"{category}: ${data['total']:.2f} ({data['count']} transactions)"
        for category, data in spending.items()
    )
    return f"""Analyze this user's spending and suggest 3 realistic, actionable savings strategies to help them reach their goal faster.

Goal: ${remaining:.2f} remaining to save
Deadline: {deadline or "No deadline set"}

Recent spending (last 90 days):
{spending_summary}

Focus on the top spending categories. Make suggestions practical and specific with monthly savings amounts."""


# Dashboard briefing

DASHBOARD_BRIEFING_SYSTEM_PROMPT = textwrap.dedent(
    """\
    You are the $ave+ dashboard narrator. The dashboard layout has already been
    chosen; write the short briefing shown above it. Be warm, specific and brief.

    Return ONLY a JSON object with this exact structure:
    {
      "greeting": "string",
      "summary": "string (2-3 sentences)",
      "keyInsight": "string",
      "suggestedAction": "string"
    }"""
)


def make_dashboard_briefing_prompt(context: dict, layout: dict, mood: str) -> str:
    return (
        "## User Financial Context\n"
        f"{json.dumps(context, indent=2, default=str)}\n\n"
        "## Chosen Layout\n"
        f"Hero: {layout['hero']['widgetId']}\n"
        f"Featured: {', '.join(w['widgetId'] for w in layout['featured']) or 'none'}\n"
        f"Mood: {mood}\n\n"
        "Write the briefing for this user right now."
    )
