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

import unittest
from datetime import date

from engagement import layout_engine
from engagement.layout_engine import DashboardSnapshot
from shared.types import Mood

TODAY = date(2025, 6, 10)


class DaysUntilDueTest(unittest.TestCase):

    def test_days_until_due(self):
        self.assertEqual(layout_engine.days_until_due(12, TODAY), 2)
        self.assertEqual(layout_engine.days_until_due(10, TODAY), 0)
        # Already passed this month.
        self.assertEqual(layout_engine.days_until_due(5, TODAY), 25)
        # Clamped to the end of February.
        self.assertEqual(layout_engine.days_until_due(31, date(2025, 2, 10)), 18)
        # Rolls into a shorter month.
        self.assertEqual(layout_engine.days_until_due(30, date(2025, 1, 31)), 28)
        self.assertEqual(layout_engine.days_until_due(15, date(2025, 12, 20)), 26)


class BuildLayoutTest(unittest.TestCase):

    def test_empty_snapshot(self):
        layout = layout_engine.build_layout(DashboardSnapshot(today=TODAY))

        self.assertEqual(layout.hero.widget_id, "ai_insight")
        self.assertEqual(
            [w.widget_id for w in layout.featured],
            ["balance_hero", "quick_actions", "upcoming_bills"],
        )
        self.assertEqual(
            [w.widget_id for w in layout.grid],
            ["spending_breakdown", "goal_progress", "cashflow_forecast"],
        )
        self.assertEqual(
            [w.widget_id for w in layout.hidden],
            ["budget_status", "net_worth", "savings_streak", "credit_score", "investment_summary"],
        )
        self.assertEqual(layout.mood, Mood.CALM)
        self.assertEqual(len(layout.scores), len(layout_engine.WIDGET_CATALOGUE))

    def test_pinned_widget_takes_hero(self):
        layout = layout_engine.build_layout(
            DashboardSnapshot(today=TODAY, pinned=["credit_score"])
        )
        self.assertEqual(layout.hero.widget_id, "credit_score")
        self.assertEqual(layout.scores["credit_score"], 105)
        self.assertEqual(
            layout.as_dict()["hero"],
            {"widgetId": "credit_score", "reason": "Pinned. No credit score on file"},
        )

    def test_bill_due_soon_is_cautionary(self):
        snapshot = DashboardSnapshot(
            today=TODAY, debts=[{"due_day": 12, "status": "active"}]
        )
        layout = layout_engine.build_layout(snapshot)
        self.assertEqual(layout.hero.widget_id, "upcoming_bills")
        self.assertEqual(layout.scores["upcoming_bills"], 90)
        self.assertEqual(layout.mood, Mood.CAUTIONARY)

    def test_paid_off_debt_is_ignored(self):
        snapshot = DashboardSnapshot(
            today=TODAY, debts=[{"due_day": 12, "status": "paid_off"}]
        )
        self.assertEqual(layout_engine.build_layout(snapshot).scores["upcoming_bills"], 20)

    def test_completed_goal_is_celebratory(self):
        snapshot = DashboardSnapshot(
            today=TODAY, goals=[{"current_amount": 500, "target_amount": 500}]
        )
        layout = layout_engine.build_layout(snapshot)
        self.assertEqual(layout.hero.widget_id, "goal_progress")
        self.assertEqual(layout.mood, Mood.CELEBRATORY)

    def test_budget_exactly_at_limit_is_not_cautionary(self):
        at_limit = DashboardSnapshot(
            today=TODAY, budgets=[{"spent_amount": 100, "total_limit": 100}]
        )
        self.assertEqual(layout_engine.build_layout(at_limit).scores["budget_status"], 85)
        self.assertEqual(layout_engine.determine_mood(at_limit), Mood.CALM)

        over = DashboardSnapshot(
            today=TODAY, budgets=[{"spent_amount": 120, "total_limit": 100}]
        )
        self.assertEqual(layout_engine.determine_mood(over), Mood.CAUTIONARY)

    def test_positive_cash_flow_is_energetic(self):
        snapshot = DashboardSnapshot(
            today=TODAY, transactions=[{"amount": 2500}, {"amount": -300}]
        )
        self.assertEqual(layout_engine.determine_mood(snapshot), Mood.ENERGETIC)

    def test_theme_for(self):
        self.assertEqual(
            layout_engine.theme_for(Mood.CALM),
            {
                "mood": "calm",
                "accentColor": "emerald",
                "backgroundIntensity": 0.4,
                "animationLevel": "subtle",
            },
        )


if __name__ == "__main__":
    unittest.main()
