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

import logging
import math
from datetime import date
from typing import Optional

from backend.db import DbClient
from backend.records import DebtPaymentRecord, DebtRecord, TransactionRecord
from insights.payoff import PayoffDebt, amortisation_baseline
from models import api_config, prompts
from models.gateway import forced_tool_choice
from models.services import AiServices
from models.tracing import TraceMetadata
from shared.utils import days_ago_date

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 90
PAYMENT_HISTORY_LIMIT = 100


def spending_metrics(
    transactions: list[TransactionRecord],
    payments: list[DebtPaymentRecord],
    debts: list[DebtRecord],
) -> dict:
    """Behavioural metrics over a 90 day window, as monthly figures."""
    spending = [abs(t.amount) for t in transactions if t.amount < 0]
    income = [t.amount for t in transactions if t.amount > 0]

    avg_monthly_spend = sum(spending) / 3 if transactions else 0.0
    mean_spend = sum(spending) / len(spending) if spending else 0.0
    variance = (
        sum((amount - mean_spend) ** 2 for amount in spending) / len(spending) if spending else 0.0
    )
    volatility = math.sqrt(variance) / mean_spend * 100 if mean_spend > 0 else 0.0
    avg_monthly_income = sum(income) / 3 if income else 0.0

    minimums = {d.id: d.minimum_payment for d in debts}
    months_with_payments = len({p.payment_date[:7] for p in payments if p.payment_date})
    months_with_extra = sum(1 for p in payments if p.amount > (minimums.get(p.debt_id) or 0))
    consistency = (
        round(months_with_extra / months_with_payments * 100) if months_with_payments > 0 else 0
    )
    return {
        "avgMonthlySpend": avg_monthly_spend,
        "spendingVolatility": volatility,
        "transactionCount": len(transactions),
        "avgMonthlyIncome": avg_monthly_income,
        "incomeTransactionCount": len(income),
        "monthsWithPayments": months_with_payments,
        "monthsWithExtra": months_with_extra,
        "consistencyScore": consistency,
    }


def predict_debt_freedom(
    db: DbClient, ai: AiServices, user_id: str, *, today: Optional[date] = None
) -> dict:
    debts = db.query("debts", user_id=user_id, filters={"status": "active"})
    if not debts:
        return {"error": "No active debts found", "needsData": True}

    transactions = db.query(
        "transactions",
        user_id=user_id,
        filters={"transaction_date__gte": days_ago_date(LOOKBACK_DAYS)},
        order_by="transaction_date",
        descending=True,
    )
    payments = db.query(
        "debt_payments",
        user_id=user_id,
        order_by="payment_date",
        descending=True,
        limit=PAYMENT_HISTORY_LIMIT,
    )
    metrics = spending_metrics(transactions, payments, debts)
    system_prompt = prompts.make_debt_freedom_prompt(debts, metrics)
    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": prompts.DEBT_FREEDOM_USER_MESSAGE},
    ]

    result, trace_id = ai.tracer.trace_ai_call(
        "predict_debt_freedom",
        TraceMetadata(
            model=api_config.GENERAL_MODEL,
            user_id=user_id,
            query_type="debt_prediction",
            query_length=len(system_prompt),
        ),
        lambda: ai.general.chat(
            messages,
            model=api_config.GENERAL_MODEL,
            tools=[prompts.PREDICT_DEBT_FREEDOM_TOOL],
            tool_choice=forced_tool_choice("predict_debt_freedom"),
        ),
    )
    prediction = result.require_tool_arguments()
    logger.info(
        "[DebtFreedom] Predicted %s for %s (trace %s)",
        prediction.get("predicted_date"),
        user_id,
        trace_id,
    )

    return {
        "success": True,
        "prediction": prediction,
        "baseline": amortisation_baseline(
            [PayoffDebt.from_record(d.as_dict()) for d in debts], today
        ),
        "dataQuality": {
            "hasTransactions": len(transactions) > 30,
            "hasPaymentHistory": len(payments) > 3,
            "monthsOfData": max(metrics["monthsWithPayments"], 1),
        },
    }
