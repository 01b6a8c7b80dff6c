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
from datetime import date, datetime

from backend.db import InMemoryDbClient
from backend.records import AccountRecord
from engagement import dashboard
from models.gateway import GatewayError, InMemoryGateway
from models.services import AiServices

TODAY = date(2025, 6, 10)


def _income(day):
    return {"amount": 100, "transaction_date": day}


class HelpersTest(unittest.TestCase):

    def test_time_of_day(self):
        self.assertEqual(dashboard.time_of_day(8), "morning")
        self.assertEqual(dashboard.time_of_day(12), "afternoon")
        self.assertEqual(dashboard.time_of_day(17), "evening")
        self.assertEqual(dashboard.time_of_day(22), "night")

    def test_savings_streak(self):
        self.assertEqual(
            dashboard.savings_streak([_income("2025-06-10"), _income("2025-06-09")], TODAY), 2
        )
        # A streak ending yesterday still counts.
        self.assertEqual(
            dashboard.savings_streak(
                [_income("2025-06-09T08:00:00Z"), _income("2025-06-08")], TODAY
            ),
            2,
        )
        self.assertEqual(dashboard.savings_streak([_income("2025-06-07")], TODAY), 0)
        self.assertEqual(
            dashboard.savings_streak([{"amount": -5, "transaction_date": "2025-06-10"}], TODAY),
            0,
        )


class GenerateDashboardTest(unittest.TestCase):

    def setUp(self):
        self.db = InMemoryDbClient()
        self.gateway = InMemoryGateway()
        self.ai = AiServices.in_memory(self.gateway)

    def test_gateway_failure_uses_rule_briefing(self):
        self.db.insert("accounts", AccountRecord(user_id="u1", name="Checking", balance=1250.5))
        self.gateway.queue(GatewayError("gateway down"))

        result = dashboard.generate_dashboard(
            self.db, self.ai, "u1", now=datetime(2025, 6, 10, 22, 0)
        )

        self.assertEqual(result["meta"]["model"], "rules")
        briefing = result["dashboard"]["briefing"]
        self.assertEqual(briefing["greeting"], "Good evening")
        self.assertEqual(briefing["summary"], "Everything is steady.")
        self.assertEqual(result["context"]["timeOfDay"], "night")
        widgets = result["dashboard"]["widgets"]
        self.assertEqual(widgets["balance_hero"]["headline"], "$1,250.50")
        self.assertEqual(widgets["ai_insight"]["headline"], briefing["keyInsight"])
        self.assertEqual(result["dashboard"]["theme"]["mood"], "calm")

    def test_partial_model_briefing_is_completed_from_rules(self):
        self.gateway.queue('{"summary": "Savings are up this week."}')

        result = dashboard.generate_dashboard(
            self.db, self.ai, "u1", now=datetime(2025, 6, 10, 9, 0)
        )

        briefing = result["dashboard"]["briefing"]
        self.assertEqual(result["meta"]["model"], "google/gemini-2.5-flash")
        self.assertEqual(briefing["summary"], "Savings are up this week.")
        self.assertEqual(briefing["greeting"], "Good morning")


if __name__ == "__main__":
    unittest.main()
