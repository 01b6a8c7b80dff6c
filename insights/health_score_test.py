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

from backend.db import InMemoryDbClient
from backend.records import (
    CreditScoreRecord,
    DebtRecord,
    GoalRecord,
    InvestmentRecord,
    TransactionRecord,
)
from insights import health_score


class ComponentsTest(unittest.TestCase):

    def test_credit_component(self):
        self.assertEqual(health_score.credit_component(None), 50)
        self.assertEqual(health_score.credit_component(CreditScoreRecord(score=850)), 100)
        self.assertEqual(health_score.credit_component(CreditScoreRecord(score=685)), 70)

    def test_debt_component(self):
        self.assertEqual(health_score.debt_component(0), 100)
        self.assertEqual(health_score.debt_component(10000), 80)
        self.assertEqual(health_score.debt_component(80000), 0)

    def test_recurring_spending_groups_by_merchant(self):
        transactions = [
            TransactionRecord(amount=-15, merchant="Netflix", is_recurring=True),
            TransactionRecord(amount=-15, merchant="Netflix", is_recurring=True),
            TransactionRecord(amount=-9, category="Music", is_recurring=True),
            TransactionRecord(amount=-40, merchant="Cafe"),
            TransactionRecord(amount=2500, merchant="Payroll", is_recurring=True),
        ]
        self.assertEqual(
            health_score.recurring_spending(transactions), {"Netflix": 30.0, "Music": 9.0}
        )


class CalculateFinancialHealthTest(unittest.TestCase):

    def setUp(self):
        self.db = InMemoryDbClient()

    def test_empty_profile(self):
        result = health_score.calculate_financial_health(self.db, "u1")

        self.assertEqual(result["overallScore"], 55)
        self.assertEqual(result["components"]["emergencyFund"], 0)
        self.assertEqual([r["id"] for r in result["recommendations"]], ["emergency-fund"])
        stored = self.db.query("financial_health_scores", user_id="u1")
        self.assertEqual(stored[0].overall_score, 55)

    def test_weighted_score(self):
        self.db.insert(
            "credit_scores", CreditScoreRecord(user_id="u1", score=520, score_date="2024-01-01")
        )
        self.db.insert(
            "credit_scores", CreditScoreRecord(user_id="u1", score=685, score_date="2025-01-01")
        )
        self.db.insert("debts", DebtRecord(user_id="u1", current_balance=10000))
        self.db.insert("goals", GoalRecord(user_id="u1", target_amount=1000, current_amount=500))
        self.db.insert("goals", GoalRecord(user_id="u1", target_amount=1000, current_amount=1000))
        self.db.insert(
            "investments", InvestmentRecord(user_id="u1", total_value=10000, gains_losses=1000)
        )
        for merchant, amount in (("Netflix", -15), ("Gym", -45)):
            self.db.insert(
                "transactions",
                TransactionRecord(user_id="u1", amount=amount, merchant=merchant, is_recurring=True),
            )

        result = health_score.calculate_financial_health(self.db, "u1")

        self.assertEqual(
            result["components"],
            {
                "credit": 70,
                "debt": 80,
                "savings": 75,
                "goals": 50,
                "investment": 60,
                "emergencyFund": 100,
            },
        )
        self.assertEqual(result["overallScore"], 72)
        self.assertEqual(result["recommendations"], [])

    def test_low_credit_recommendation(self):
        self.db.insert("credit_scores", CreditScoreRecord(user_id="u1", score=520))
        result = health_score.calculate_financial_health(self.db, "u1")
        credit = result["recommendations"][0]
        self.assertEqual(credit["id"], "improve-credit")
        self.assertIn("520", credit["description"])


if __name__ == "__main__":
    unittest.main()
