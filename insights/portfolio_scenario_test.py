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

from insights import portfolio_scenario
from models.gateway import InMemoryGateway
from models.services import AiServices


class ValidateAnalysisTest(unittest.TestCase):

    def test_enums_and_ranges_are_coerced(self):
        analysis = portfolio_scenario.validate_analysis(
            {
                "overallImpact": "Rates rise sharply",
                "estimatedImpactRange": {"min": "5", "max": -12},
                "affectedAssets": [
                    {"assetClass": "Bonds", "impact": "NEGATIVE", "severity": "catastrophic"},
                    "not an asset",
                ],
                "defensiveActions": [
                    {"action": "Shorten duration", "priority": "urgent"},
                    {"rationale": "missing action"},
                ],
                "confidenceLevel": "certain",
            }
        )

        self.assertEqual(analysis["estimatedImpactRange"], {"min": -12.0, "max": 5.0})
        self.assertEqual(
            analysis["affectedAssets"],
            [
                {
                    "assetClass": "Bonds",
                    "impact": "negative",
                    "severity": "moderate",
                    "explanation": "",
                }
            ],
        )
        self.assertEqual(
            analysis["defensiveActions"],
            [{"action": "Shorten duration", "priority": "medium", "rationale": ""}],
        )
        self.assertEqual(analysis["confidenceLevel"], "medium")
        self.assertEqual(analysis["historicalContext"], "")


class SimulatePortfolioScenarioTest(unittest.TestCase):

    def test_tool_answer_is_validated(self):
        gateway = InMemoryGateway(
            [{"overallImpact": "Mild", "estimatedImpactRange": {"min": -3, "max": 1}}]
        )
        ai = AiServices.in_memory(gateway)

        analysis = portfolio_scenario.simulate_portfolio_scenario(
            ai, "u1", [{"name": "Index fund", "value": 5000}], "  Recession in 2026  "
        )

        self.assertEqual(analysis["overallImpact"], "Mild")
        self.assertEqual(analysis["affectedAssets"], [])
        call = gateway.calls[0]
        self.assertEqual(call["tool_choice"]["function"]["name"], "analyze_portfolio_scenario")
        self.assertIn("Recession in 2026", call["messages"][1]["content"])

    def test_blank_scenario_is_rejected(self):
        ai = AiServices.in_memory(InMemoryGateway())
        with self.assertRaises(ValueError):
            portfolio_scenario.simulate_portfolio_scenario(ai, "u1", [], "   ")


if __name__ == "__main__":
    unittest.main()
