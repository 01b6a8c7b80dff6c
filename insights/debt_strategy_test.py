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
import unittest

from backend.db import InMemoryDbClient
from insights import debt_strategy
from models.gateway import ChatResult, GatewayUnavailableError, InMemoryGateway
from models.services import AiServices

DEBTS = [
    {"name": "Card", "balance": 3000, "interestRate": 24, "minimumPayment": 90},
    {"name": "Car", "balance": 8000, "interestRate": 6, "minimumPayment": 250},
]


class OptimizeDebtStrategyTest(unittest.TestCase):

    def setUp(self):
        self.db = InMemoryDbClient()
        self.gateway = InMemoryGateway()
        self.ai = AiServices.in_memory(self.gateway)

    def test_requires_debts(self):
        with self.assertRaises(ValueError):
            debt_strategy.optimize_debt_strategy(self.db, self.ai, "u1", [])

    def test_model_answer_is_used(self):
        self.gateway.queue(
            ChatResult(
                content="Here you go:\n" + json.dumps({"totalPayoffMonths": 31, "confidence": 0.9}),
                reasoning="First, rank by APR.\n\nThen apply the extra payment.",
                usage={"prompt_tokens": 1000, "completion_tokens": 500, "total_tokens": 1500},
            )
        )

        result = debt_strategy.optimize_debt_strategy(
            self.db, self.ai, "u1", DEBTS, extra_payment=200
        )

        self.assertEqual(result["model"], "deepseek-reasoner")
        self.assertEqual(result["result"]["totalPayoffMonths"], 31)
        self.assertEqual(
            result["result"]["reasoningChain"],
            ["First, rank by APR.", "Then apply the extra payment."],
        )
        call = self.gateway.calls[0]
        self.assertEqual(call["max_tokens"], 4096)
        self.assertIn("Card", call["messages"][1]["content"])

        analytics = self.db.query("ai_model_routing_analytics", user_id="u1")
        self.assertEqual(analytics[0].token_count, 1500)
        self.assertGreater(analytics[0].estimated_cost, 0)

    def test_unparseable_answer_falls_back_to_avalanche(self):
        self.gateway.queue("No JSON here")
        result = debt_strategy.optimize_debt_strategy(self.db, self.ai, "u1", DEBTS)

        self.assertEqual(result["model"], "deepseek-reasoner")
        self.assertEqual(result["result"]["confidence"], 0.7)
        self.assertEqual(result["result"]["optimalAllocations"][0]["debtName"], "Card")

    def test_unavailable_provider_falls_back_without_analytics(self):
        self.gateway.queue(GatewayUnavailableError("deepseek API temporarily unavailable"))
        with self.assertLogs("insights.debt_strategy", level="WARNING"):
            result = debt_strategy.optimize_debt_strategy(self.db, self.ai, "u1", DEBTS)

        self.assertEqual(result["model"], debt_strategy.FALLBACK_MODEL)
        self.assertEqual(result["usage"], {})
        self.assertEqual(self.db.query("ai_model_routing_analytics"), [])


if __name__ == "__main__":
    unittest.main()
