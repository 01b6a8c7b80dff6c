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

from alerts import analysis
from backend.db import InMemoryDbClient
from backend.records import BudgetRecord, TransactionRecord


class SizingTest(unittest.TestCase):

    def test_calculate_batch_size(self):
        self.assertEqual(analysis.calculate_batch_size(4), 5)
        self.assertEqual(analysis.calculate_batch_size(6), 10)
        self.assertEqual(analysis.calculate_batch_size(20), 10)
        self.assertEqual(analysis.calculate_batch_size(50), 15)
        self.assertEqual(analysis.calculate_batch_size(51), 20)

    def test_calculate_throttle_delay(self):
        self.assertEqual(analysis.calculate_throttle_delay(300), 100)
        self.assertEqual(analysis.calculate_throttle_delay(1000), 300)
        self.assertEqual(analysis.calculate_throttle_delay(10000), 2000)


class ParsingTest(unittest.TestCase):

    def test_parse_alert_defaults_to_normal(self):
        self.assertEqual(analysis.parse_alert("not json"), analysis.DEFAULT_ALERT)
        self.assertEqual(
            analysis.parse_alert('Sure! {"isAnomaly": true, "riskLevel": "high"}'),
            {"isAnomaly": True, "riskLevel": "high"},
        )

    def test_parse_batch_results_fills_missing_items(self):
        verdicts = analysis.parse_batch_results(
            '[{"isAnomaly": true, "riskLevel": "high", "message": null}]', 2
        )
        self.assertEqual(len(verdicts), 2)
        self.assertTrue(verdicts[0]["isAnomaly"])
        self.assertEqual(verdicts[0]["message"], "No anomaly detected")
        self.assertEqual(verdicts[1]["index"], 1)
        self.assertFalse(verdicts[1]["isAnomaly"])
        self.assertEqual(verdicts[1]["confidence"], 0.5)

    def test_unparseable_batch_is_all_normal(self):
        with self.assertLogs("alerts.analysis", level="ERROR"):
            verdicts = analysis.parse_batch_results("rate limited, sorry", 3)
        self.assertEqual([v["confidence"] for v in verdicts], [0.0, 0.0, 0.0])
        self.assertTrue(all(v["alertType"] == "normal" for v in verdicts))


class UserContextTest(unittest.TestCase):

    def setUp(self):
        self.db = InMemoryDbClient()

    def test_defaults_without_history(self):
        context = analysis.build_user_context(self.db, "u1")
        self.assertEqual(context["averageSpend"], 50.0)
        self.assertEqual(context["monthlyBudget"], 2000.0)
        self.assertEqual(context["recentTransactionCount"], 0)
        self.assertEqual(analysis.user_average_spend(self.db, "u1"), 50.0)

    def test_context_from_recent_activity(self):
        for amount, category in ((-20, "Dining"), (-40, "Groceries"), (-30, "Dining")):
            self.db.insert(
                "transactions", TransactionRecord(user_id="u1", amount=amount, category=category)
            )
        self.db.insert("budgets", BudgetRecord(user_id="u1", total_limit=300))
        self.db.insert("budgets", BudgetRecord(user_id="u1", total_limit=200))
        self.db.insert("budgets", BudgetRecord(user_id="u1", total_limit=1000, is_active=False))

        context = analysis.build_user_context(self.db, "u1")

        self.assertEqual(context["averageSpend"], 30.0)
        self.assertEqual(context["monthlyBudget"], 500)
        self.assertEqual(sorted(context["usualCategories"]), ["Dining", "Groceries"])
        self.assertEqual(analysis.user_average_spend(self.db, "u1"), 30.0)


if __name__ == "__main__":
    unittest.main()
