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
Rule-based dashboard layout.

Every widget gets a literal score from its rule, pinned widgets get a flat
bonus, and the ranked list is cut into hero / featured / grid / hidden tiers.
The mood and theme accent come from the same snapshot.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from shared.types import Mood
from shared.utils import add_months, progress_percent

# Catalogue order doubles as the tie breaker.
WIDGET_CATALOGUE = (
    "upcoming_bills",
    "budget_status",
    "goal_progress",
    "balance_hero",
    "spending_breakdown",
    "savings_streak",
    "credit_score",
    "investment_summary",
    "net_worth",
    "cashflow_forecast",
    "ai_insight",
    "quick_actions",
)

PIN_BONUS = 100
HIDDEN_SCORE_CEILING = 10
FEATURED_COUNT = 3
GRID_COUNT = 4

THEMES = {
    Mood.CAUTIONARY: {"accentColor": "amber", "backgroundIntensity": 0.6, "animationLevel": "subtle"},
    Mood.CELEBRATORY: {"accentColor": "gold", "backgroundIntensity": 0.8, "animationLevel": "lively"},
    Mood.ENERGETIC: {"accentColor": "cyan", "backgroundIntensity": 0.7, "animationLevel": "moderate"},
    Mood.CALM: {"accentColor": "emerald", "backgroundIntensity": 0.4, "animationLevel": "subtle"},
}


@dataclass
class DashboardSnapshot:
    """What the layout rules look at. Records are plain dicts."""

    accounts: list[dict] = field(default_factory=list)
    goals: list[dict] = field(default_factory=list)
    pots: list[dict] = field(default_factory=list)
    budgets: list[dict] = field(default_factory=list)
    debts: list[dict] = field(default_factory=list)
    # Transactions from the last 30 days.
    transactions: list[dict] = field(default_factory=list)
    credit_score: Optional[int] = None
    investments: list[dict] = field(default_factory=list)
    streak: int = 0
    pinned: list[str] = field(default_factory=list)
    today: date = field(default_factory=date.today)


@dataclass
class WidgetScore:
    widget_id: str
    score: int
    reason: str
    pinned: bool = False


@dataclass
class Layout:
    hero: Optional[WidgetScore]
    featured: list[WidgetScore]
    grid: list[WidgetScore]
    hidden: list[WidgetScore]
    mood: Mood
    scores: dict[str, int]

    def as_dict(self) -> dict:
        return {
            "hero": (
                {"widgetId": self.hero.widget_id, "reason": self.hero.reason}
                if self.hero
                else None
            ),
            "featured": [
                {"widgetId": w.widget_id, "size": "medium", "reason": w.reason}
                for w in self.featured
            ],
            "grid": [
                {"widgetId": w.widget_id, "size": "small", "reason": w.reason}
                for w in self.grid
            ],
            "hidden": [w.widget_id for w in self.hidden],
        }


def _due_date_in_month(year: int, month: int, due_day: int) -> date:
    return date(year, month, min(due_day, calendar.monthrange(year, month)[1]))


def days_until_due(due_day: int, today: date) -> int:
    """Days from ``today`` to the next occurrence of a day-of-month."""
    due = _due_date_in_month(today.year, today.month, due_day)
    if due < today:
        next_month = add_months(today.replace(day=1), 1)
        due = _due_date_in_month(next_month.year, next_month.month, due_day)
    return (due - today).days


def _due_days(snapshot: DashboardSnapshot) -> list[int]:
    return [
        days_until_due(int(d["due_day"]), snapshot.today)
        for d in snapshot.debts
        if d.get("due_day") and d.get("status", "active") == "active"
    ]


def _budget_usage(snapshot: DashboardSnapshot) -> list[float]:
    return [
        (b.get("spent_amount") or 0) / b["total_limit"] * 100
        for b in snapshot.budgets
        if b.get("total_limit")
    ]


def _goal_progress(snapshot: DashboardSnapshot) -> list[float]:
    return [
        progress_percent(g.get("current_amount"), g.get("target_amount"))
        for g in snapshot.goals
    ]


def net_cash_flow(transactions: list[dict]) -> float:
    return sum(float(t.get("amount") or 0) for t in transactions)


def _score_upcoming_bills(s: DashboardSnapshot) -> tuple[int, str]:
    due = _due_days(s)
    if any(d <= 3 for d in due):
        return 90, "A bill is due within 3 days"
    if any(d <= 7 for d in due):
        return 70, "A bill is due this week"
    return 20, "No bills due soon"


def _score_budget_status(s: DashboardSnapshot) -> tuple[int, str]:
    usage = _budget_usage(s)
    if any(u >= 100 for u in usage):
        return 85, "A budget is over its limit"
    if any(u >= 80 for u in usage):
        return 65, "A budget is close to its limit"
    if s.budgets:
        return 35, "Budgets on track"
    return 10, "No budgets yet"


def _score_goal_progress(s: DashboardSnapshot) -> tuple[int, str]:
    progress = _goal_progress(s)
    if any(p >= 100 for p in progress):
        return 80, "A goal is complete"
    if any(p >= 75 for p in progress):
        return 60, "A goal is nearly there"
    if s.goals:
        return 45, "Goals in progress"
    return 15, "No goals yet"


def _score_balance_hero(s: DashboardSnapshot) -> tuple[int, str]:
    if s.accounts:
        return 50, "Current balances"
    return 40, "Connect an account to see balances"


def _score_spending_breakdown(s: DashboardSnapshot) -> tuple[int, str]:
    spending = [t for t in s.transactions if (t.get("amount") or 0) < 0]
    if len(spending) >= 10:
        return 40, "Enough recent spending to break down"
    return 20, "Little recent spending"


def _score_savings_streak(s: DashboardSnapshot) -> tuple[int, str]:
    if s.streak >= 7:
        return 55, f"{s.streak}-day savings streak"
    if s.streak > 0:
        return 30, "Savings streak started"
    return 5, "No active streak"


def _score_credit_score(s: DashboardSnapshot) -> tuple[int, str]:
    if s.credit_score is not None and s.credit_score < 580:
        return 60, "Credit score needs attention"
    if s.credit_score is not None:
        return 25, "Credit score tracked"
    return 5, "No credit score on file"


def _score_investment_summary(s: DashboardSnapshot) -> tuple[int, str]:
    if s.investments:
        return 35, "Investments tracked"
    return 5, "No investments"


def _score_net_worth(s: DashboardSnapshot) -> tuple[int, str]:
    if s.accounts or s.investments:
        return 30, "Net worth across accounts"
    return 10, "Nothing to total yet"


def _score_cashflow_forecast(s: DashboardSnapshot) -> tuple[int, str]:
    if len(s.transactions) >= 30:
        return 35, "Enough history to forecast"
    return 15, "Not enough history to forecast"


def _score_ai_insight(s: DashboardSnapshot) -> tuple[int, str]:
    return 45, "Personal insight"


def _score_quick_actions(s: DashboardSnapshot) -> tuple[int, str]:
    return 25, "Shortcuts"


_RULES = {
    "upcoming_bills": _score_upcoming_bills,
    "budget_status": _score_budget_status,
    "goal_progress": _score_goal_progress,
    "balance_hero": _score_balance_hero,
    "spending_breakdown": _score_spending_breakdown,
    "savings_streak": _score_savings_streak,
    "credit_score": _score_credit_score,
    "investment_summary": _score_investment_summary,
    "net_worth": _score_net_worth,
    "cashflow_forecast": _score_cashflow_forecast,
    "ai_insight": _score_ai_insight,
    "quick_actions": _score_quick_actions,
}


def score_widgets(snapshot: DashboardSnapshot) -> list[WidgetScore]:
    """Scores every catalogue widget, ranked by score then catalogue order."""
    scored = []
    for widget_id in WIDGET_CATALOGUE:
        score, reason = _RULES[widget_id](snapshot)
        pinned = widget_id in snapshot.pinned
        if pinned:
            score += PIN_BONUS
            reason = f"Pinned. {reason}"
        scored.append(WidgetScore(widget_id, score, reason, pinned))
    order = {widget_id: i for i, widget_id in enumerate(WIDGET_CATALOGUE)}
    return sorted(scored, key=lambda w: (-w.score, order[w.widget_id]))


def determine_mood(snapshot: DashboardSnapshot) -> Mood:
    if any(d <= 3 for d in _due_days(snapshot)) or any(u > 100 for u in _budget_usage(snapshot)):
        return Mood.CAUTIONARY
    if any(p >= 100 for p in _goal_progress(snapshot)):
        return Mood.CELEBRATORY
    if net_cash_flow(snapshot.transactions) > 0:
        return Mood.ENERGETIC
    return Mood.CALM


def theme_for(mood: Mood) -> dict:
    return {"mood": mood.value, **THEMES[mood]}


def build_layout(snapshot: DashboardSnapshot) -> Layout:
    ranked = score_widgets(snapshot)
    visible = [w for w in ranked if w.score > HIDDEN_SCORE_CEILING]
    hero = visible[0] if visible else None
    featured = visible[1 : 1 + FEATURED_COUNT]
    grid = visible[1 + FEATURED_COUNT : 1 + FEATURED_COUNT + GRID_COUNT]
    shown = {w.widget_id for w in visible[: 1 + FEATURED_COUNT + GRID_COUNT]}
    hidden = [w for w in ranked if w.widget_id not in shown]
    return Layout(
        hero=hero,
        featured=featured,
        grid=grid,
        hidden=hidden,
        mood=determine_mood(snapshot),
        scores={w.widget_id: w.score for w in ranked},
    )
