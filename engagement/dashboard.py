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
Generates the personalised dashboard: a rule-based layout plus a short
briefing written by the general model.
"""

import logging
import time
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

from backend.cache import Cache, user_cache_key
from backend.db import DbClient
from engagement import layout_engine
from engagement.layout_engine import DashboardSnapshot, Layout
from models import api_config, prompts
from models.gateway import GatewayError
from models.services import AiServices
from models.tracing import TraceMetadata
from shared.json_utils import extract_json_object
from shared.types import Mood
from shared.utils import days_ago_date, now_iso, parse_date, utc_now

logger = logging.getLogger(__name__)

DASHBOARD_CACHE_PREFIX = "dashboard"
DASHBOARD_CACHE_TTL_SECONDS = 300
STREAK_LOOKBACK_DAYS = 366
BRIEFING_MAX_TOKENS = 400


def time_of_day(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    if hour < 21:
        return "evening"
    return "night"


def savings_streak(transactions: list[dict], today: date) -> int:
    """Consecutive days with money coming in, ending today or yesterday."""
    days = {
        parse_date(t.get("transaction_date"))
        for t in transactions
        if (t.get("amount") or 0) > 0
    }
    day = today if today in days else today - timedelta(days=1)
    streak = 0
    while day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def _rows(db: DbClient, table: str, user_id: str, **kwargs) -> list[dict]:
    return [r.as_dict() for r in db.query(table, user_id=user_id, **kwargs)]


def load_snapshot(
    db: DbClient, user_id: str, *, pinned: Optional[list[str]] = None, today: Optional[date] = None
) -> DashboardSnapshot:
    today = today or utc_now().date()
    credit = db.query(
        "credit_scores", user_id=user_id, order_by="score_date", descending=True, limit=1
    )
    income = _rows(
        db,
        "transactions",
        user_id,
        filters={
            "amount__gt": 0,
            "transaction_date__gte": (today - timedelta(days=STREAK_LOOKBACK_DAYS)).isoformat(),
        },
    )
    return DashboardSnapshot(
        accounts=_rows(db, "accounts", user_id, filters={"is_active": True}),
        goals=_rows(db, "goals", user_id, filters={"is_active": True}),
        pots=_rows(db, "pots", user_id, filters={"is_active": True}),
        budgets=_rows(db, "budgets", user_id, filters={"is_active": True}),
        debts=_rows(db, "debts", user_id, filters={"status": "active"}),
        transactions=_rows(
            db,
            "transactions",
            user_id,
            filters={"transaction_date__gte": days_ago_date(30)},
            order_by="transaction_date",
            descending=True,
        ),
        credit_score=credit[0].score if credit else None,
        investments=_rows(db, "investments", user_id),
        streak=savings_streak(income, today),
        pinned=list(pinned or []),
        today=today,
    )


def _widget_content(widget_id: str, snapshot: DashboardSnapshot) -> tuple[str, str, dict]:
    """Headline, body and data for one widget."""
    total_balance = sum(a.get("balance") or 0 for a in snapshot.accounts)
    if widget_id == "balance_hero":
        return (
            f"${total_balance:,.2f}",
            f"Across {len(snapshot.accounts)} accounts",
            {"totalBalance": round(total_balance, 2)},
        )
    if widget_id == "upcoming_bills":
        upcoming = sorted(
            (
                (layout_engine.days_until_due(int(d["due_day"]), snapshot.today), d)
                for d in snapshot.debts
                if d.get("due_day")
            ),
            key=lambda pair: pair[0],
        )
        if not upcoming:
            return "No bills due", "Nothing scheduled this month", {"bills": []}
        days, debt = upcoming[0]
        return (
            f"{debt.get('debt_name')} due in {days} days",
            f"Minimum payment ${debt.get('minimum_payment') or 0:,.2f}",
            {
                "bills": [
                    {"name": d.get("debt_name"), "daysUntilDue": n, "amount": d.get("minimum_payment")}
                    for n, d in upcoming
                ]
            },
        )
    if widget_id == "budget_status":
        over = [
            b for b in snapshot.budgets
            if b.get("total_limit") and (b.get("spent_amount") or 0) >= b["total_limit"]
        ]
        return (
            f"{len(over)} of {len(snapshot.budgets)} budgets over limit",
            "Review your spending categories" if over else "Spending is within your limits",
            {
                "budgets": [
                    {"category": b.get("category"), "spent": b.get("spent_amount"), "limit": b.get("total_limit")}
                    for b in snapshot.budgets
                ]
            },
        )
    if widget_id == "goal_progress":
        goals = [
            {
                "name": g.get("name"),
                "progress": round(min((g.get("current_amount") or 0) / g["target_amount"] * 100, 100), 1)
                if g.get("target_amount")
                else 0,
            }
            for g in snapshot.goals
        ]
        goals.sort(key=lambda g: g["progress"], reverse=True)
        if not goals:
            return "Set your first goal", "Goals turn saving into progress", {"goals": []}
        return (
            f"{goals[0]['name']}: {goals[0]['progress']}%",
            f"{len(goals)} active goals",
            {"goals": goals},
        )
    if widget_id == "spending_breakdown":
        by_category: dict[str, float] = defaultdict(float)
        for t in snapshot.transactions:
            if (t.get("amount") or 0) < 0:
                by_category[t.get("category") or "Other"] += abs(t["amount"])
        total = sum(by_category.values())
        return (
            f"${total:,.2f} spent this month",
            f"{len(by_category)} categories",
            {"categories": {k: round(v, 2) for k, v in by_category.items()}},
        )
    if widget_id == "savings_streak":
        return f"{snapshot.streak}-day streak", "Keep it going", {"streak": snapshot.streak}
    if widget_id == "credit_score":
        score = snapshot.credit_score
        return (
            f"Credit score {score}" if score is not None else "No credit score",
            "Updated from your latest report" if score is not None else "Add a score to track it",
            {"score": score},
        )
    if widget_id == "investment_summary":
        value = sum(i.get("total_value") or 0 for i in snapshot.investments)
        gains = sum(i.get("gains_losses") or 0 for i in snapshot.investments)
        return (
            f"${value:,.2f} invested",
            f"{'+' if gains >= 0 else '-'}${abs(gains):,.2f} all time",
            {"totalValue": round(value, 2), "gainsLosses": round(gains, 2)},
        )
    if widget_id == "net_worth":
        assets = total_balance + sum(i.get("total_value") or 0 for i in snapshot.investments)
        liabilities = sum(d.get("current_balance") or 0 for d in snapshot.debts)
        net = assets - liabilities
        return (
            f"${net:,.2f} net worth",
            f"${assets:,.2f} assets, ${liabilities:,.2f} debts",
            {"assets": round(assets, 2), "liabilities": round(liabilities, 2), "netWorth": round(net, 2)},
        )
    if widget_id == "cashflow_forecast":
        net = layout_engine.net_cash_flow(snapshot.transactions)
        return (
            f"{'+' if net >= 0 else '-'}${abs(net):,.2f} this month",
            "Money in minus money out over 30 days",
            {"netCashFlow": round(net, 2)},
        )
    if widget_id == "ai_insight":
        return "Your insight", "", {}
    return (
        "Quick actions",
        "Add a transaction, move money or set a goal",
        {"actions": ["add_transaction", "deposit_to_pot", "create_goal"]},
    )


def build_widgets(layout: Layout, snapshot: DashboardSnapshot) -> dict:
    widgets = {}
    visible = ([layout.hero] if layout.hero else []) + layout.featured + layout.grid
    for widget in visible:
        headline, body, data = _widget_content(widget.widget_id, snapshot)
        widgets[widget.widget_id] = {
            "type": widget.widget_id,
            "headline": headline,
            "body": body,
            "mood": layout.mood.value,
            "urgencyScore": min(widget.score, 100),
            "data": data,
        }
    return widgets


def rule_briefing(snapshot: DashboardSnapshot, layout: Layout, greeting_time: str) -> dict:
    """Briefing written from the layout alone, used when the model is unavailable."""
    greeting = f"Good {greeting_time}" if greeting_time != "night" else "Good evening"
    if layout.mood == Mood.CAUTIONARY:
        summary = "A bill or a budget needs your attention today."
        action = "Check upcoming bills and budgets"
    elif layout.mood == Mood.CELEBRATORY:
        summary = "You've completed a goal. That's a big win."
        action = "Pick your next goal"
    elif layout.mood == Mood.ENERGETIC:
        summary = "More money came in than went out this month."
        action = "Move the surplus into a pot"
    else:
        summary = "Everything is steady."
        action = "Review your goals"
    hero = layout.hero.reason if layout.hero else "Your finances at a glance"
    return {
        "greeting": greeting,
        "summary": summary,
        "keyInsight": hero,
        "suggestedAction": action,
    }


def _briefing_context(snapshot: DashboardSnapshot, context: dict) -> dict:
    return {
        **context,
        "totalBalance": round(sum(a.get("balance") or 0 for a in snapshot.accounts), 2),
        "netCashFlow30d": round(layout_engine.net_cash_flow(snapshot.transactions), 2),
        "budgetsCount": len(snapshot.budgets),
        "debtsCount": len(snapshot.debts),
        "creditScore": snapshot.credit_score,
    }


def generate_briefing(
    ai: AiServices,
    user_id: str,
    snapshot: DashboardSnapshot,
    layout: Layout,
    context: dict,
) -> tuple[dict, str]:
    """Returns ``(briefing, model)``; model is ``rules`` when the fallback was used."""
    prompt = prompts.make_dashboard_briefing_prompt(
        _briefing_context(snapshot, context), layout.as_dict(), layout.mood.value
    )
    messages = [
        {"role": "system", "content": prompts.DASHBOARD_BRIEFING_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]
    try:
        result, _ = ai.tracer.trace_ai_call(
            "dashboard_briefing",
            TraceMetadata(
                model=api_config.GENERAL_MODEL,
                user_id=user_id,
                query_type="dashboard",
                query_length=len(prompt),
            ),
            lambda: ai.general.chat(
                messages,
                model=api_config.GENERAL_MODEL,
                max_tokens=BRIEFING_MAX_TOKENS,
                temperature=0.7,
            ),
        )
    except GatewayError as e:
        logger.warning("[Dashboard] Briefing fell back to rules: %s", e)
        ai.tracer.log_fallback(
            api_config.GENERAL_MODEL, "rules", str(e), TraceMetadata(model="rules", user_id=user_id)
        )
        return rule_briefing(snapshot, layout, context["timeOfDay"]), "rules"

    parsed = extract_json_object(result.content)
    if not parsed or not parsed.get("summary"):
        logger.warning("[Dashboard] Unparseable briefing, using rules")
        return rule_briefing(snapshot, layout, context["timeOfDay"]), "rules"
    fallback = rule_briefing(snapshot, layout, context["timeOfDay"])
    return {key: parsed.get(key) or fallback[key] for key in fallback}, api_config.GENERAL_MODEL


def generate_dashboard(
    db: DbClient,
    ai: AiServices,
    user_id: str,
    *,
    pinned: Optional[list[str]] = None,
    now: Optional[datetime] = None,
) -> dict:
    start = time.monotonic()
    now = now or utc_now()
    snapshot = load_snapshot(db, user_id, pinned=pinned, today=now.date())
    layout = layout_engine.build_layout(snapshot)
    context = {
        "timeOfDay": time_of_day(now.hour),
        "totalSavings": round(sum(p.get("current_amount") or 0 for p in snapshot.pots), 2),
        "goalsCount": len(snapshot.goals),
        "streak": snapshot.streak,
    }
    briefing, model = generate_briefing(ai, user_id, snapshot, layout, context)
    widgets = build_widgets(layout, snapshot)
    if "ai_insight" in widgets:
        widgets["ai_insight"]["headline"] = briefing["keyInsight"]
        widgets["ai_insight"]["body"] = briefing["suggestedAction"]
    return {
        "success": True,
        "dashboard": {
            "layout": layout.as_dict(),
            "widgets": widgets,
            "theme": layout_engine.theme_for(layout.mood),
            "briefing": briefing,
        },
        "context": context,
        "meta": {
            "model": model,
            "processingTimeMs": int((time.monotonic() - start) * 1000),
            "generatedAt": now_iso(),
        },
    }


def get_dashboard(
    db: DbClient,
    ai: AiServices,
    cache: Cache,
    user_id: str,
    *,
    pinned: Optional[list[str]] = None,
    force_refresh: bool = False,
) -> dict:
    """Cached per user; pinned widgets are part of the cache key."""
    key = user_cache_key(DASHBOARD_CACHE_PREFIX, user_id, ",".join(sorted(pinned or [])))
    if force_refresh:
        cache.delete(key)
    dashboard, from_cache = cache.get_or_set(
        key,
        lambda: generate_dashboard(db, ai, user_id, pinned=pinned),
        DASHBOARD_CACHE_TTL_SECONDS,
    )
    if from_cache:
        logger.info("[Dashboard] Cache hit for %s", user_id)
    return {**dashboard, "meta": {**dashboard["meta"], "cached": from_cache}}
