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
Deterministic debt payoff arithmetic.

Balances are simulated month by month: interest accrues on the balance at
APR / 12, then the payment is applied. Simulations stop at 360 months.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from shared.utils import add_months

MAX_MONTHS = 360
DISCOUNT_RATE_PERCENT = 5.0
SENSITIVITY_STEPS = (50, 100, 200, 500)


@dataclass
class PayoffDebt:
    id: str
    name: str
    balance: float
    interest_rate: float
    minimum_payment: float

    @classmethod
    def from_request(cls, data: dict) -> "PayoffDebt":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "Debt",
            balance=float(data.get("balance") or 0),
            interest_rate=float(data.get("interestRate") or 0),
            minimum_payment=float(data.get("minimumPayment") or 0),
        )

    @classmethod
    def from_record(cls, record: dict) -> "PayoffDebt":
        return cls(
            id=record["id"],
            name=record.get("debt_name") or "Debt",
            balance=float(record.get("current_balance") or 0),
            interest_rate=float(record.get("interest_rate") or 0),
            minimum_payment=float(
                record.get("actual_payment") or record.get("minimum_payment") or 0
            ),
        )


def simulate_payoff(balance: float, apr: float, payment: float) -> tuple[int, float]:
    """Returns ``(months, total_interest)``; months is capped at MAX_MONTHS."""
    monthly_rate = apr / 100 / 12
    months = 0
    total_interest = 0.0
    while balance > 0 and months < MAX_MONTHS:
        interest = balance * monthly_rate
        total_interest += interest
        balance = balance + interest - payment
        months += 1
    return months, total_interest


def _allocations(debts: list[PayoffDebt], extra_payment: float) -> list[dict]:
    allocations = []
    for index, debt in enumerate(debts):
        extra = extra_payment if index == 0 else 0.0
        total_payment = debt.minimum_payment + extra
        months, interest = simulate_payoff(debt.balance, debt.interest_rate, total_payment)
        _, base_interest = simulate_payoff(debt.balance, debt.interest_rate, debt.minimum_payment)
        allocations.append(
            {
                "debtId": debt.id,
                "debtName": debt.name,
                "minimumPayment": debt.minimum_payment,
                "extraPayment": extra,
                "totalPayment": total_payment,
                "interestSaved": max(0.0, base_interest - interest),
                "monthsToPayoff": months,
            }
        )
    return allocations


def _summary(allocations: list[dict]) -> tuple[float, int]:
    saved = sum(a["interestSaved"] for a in allocations)
    months = max((a["monthsToPayoff"] for a in allocations), default=0)
    return saved, months


def sensitivity_matrix(debts: list[PayoffDebt]) -> list[dict]:
    """Months and interest saved for a range of extra payments against minimum-only."""
    base_saved, base_months = _summary(_allocations(debts, 0.0))
    rows = []
    for amount in SENSITIVITY_STEPS:
        saved, months = _summary(_allocations(debts, float(amount)))
        rows.append(
            {
                "extraPaymentAmount": amount,
                "monthsSaved": max(0, base_months - months),
                "interestSaved": round(saved - base_saved, 2),
            }
        )
    return rows


def npv_analysis(total_saved: float, months: int) -> dict:
    monthly_rate = DISCOUNT_RATE_PERCENT / 100 / 12
    growth = (1 + monthly_rate) ** months
    return {
        "presentValueSavings": round(total_saved / growth, 2),
        "futureValueSavings": round(total_saved * growth, 2),
        "effectiveRate": DISCOUNT_RATE_PERCENT,
    }


def avalanche_plan(debts: list[PayoffDebt], extra_payment: float) -> dict:
    """
    The avalanche plan: all extra money goes to the highest-APR debt.

    The result has the same shape as the reasoning model's optimisation, with
    a fixed confidence of 0.7.
    """
    ordered = sorted(debts, key=lambda d: d.interest_rate, reverse=True)
    allocations = _allocations(ordered, extra_payment)
    total_saved, total_months = _summary(allocations)
    return {
        "optimalAllocations": allocations,
        "totalInterestSaved": total_saved,
        "totalPayoffMonths": total_months,
        "npvAnalysis": npv_analysis(total_saved, total_months),
        "sensitivityMatrix": sensitivity_matrix(ordered),
        "hybridStrategy": {
            "strategy": "avalanche",
            "description": "Focus extra payments on highest interest debt first",
            "steps": [
                f"Step {i + 1}: Pay off {d.name} ({d.interest_rate}% APR)"
                for i, d in enumerate(ordered)
            ],
        },
        "reasoningChain": [
            "Calculated using avalanche method (highest interest first)",
            "Fallback calculation due to API response parsing error",
        ],
        "confidence": 0.7,
    }


def amortisation_baseline(debts: list[PayoffDebt], today: Optional[date] = None) -> dict:
    """Payoff timeline if every debt keeps its current payment."""
    today = today or date.today()
    rows = []
    for debt in debts:
        months, interest = simulate_payoff(debt.balance, debt.interest_rate, debt.minimum_payment)
        rows.append(
            {
                "debtId": debt.id,
                "debtName": debt.name,
                "monthsToPayoff": months,
                "totalInterest": round(interest, 2),
                "paysOff": months < MAX_MONTHS,
            }
        )
    months = max((r["monthsToPayoff"] for r in rows), default=0)
    return {
        "monthsToPayoff": months,
        "payoffDate": add_months(today, months).isoformat(),
        "totalInterest": round(sum(r["totalInterest"] for r in rows), 2),
        "allDebtsPayOff": all(r["paysOff"] for r in rows),
        "debts": rows,
    }
