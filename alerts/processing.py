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
Transaction alert queue processing.

New spending transactions land in ``transaction_alert_queue`` as pending
rows. A small queue is drained one row at a time with the instant analyser;
a deeper queue is drained in batches with one model call per batch.
"""

import logging
import random
import string
import time
from typing import Optional

from alerts import analysis
from backend.db import ALERT_QUEUE_TABLE, DbClient
from backend.records import (
    AlertQueueRecord,
    BatchAnalyticsRecord,
    PushNotificationRecord,
    RoutingAnalyticsRecord,
    WalletNotificationRecord,
)
from models.services import AiServices
from shared.types import AlertStatus, AlertType
from shared.utils import now_iso

logger = logging.getLogger(__name__)

SINGLE_MODE_LIMIT = 10
INSTANT_MODEL_LABEL = "groq-instant"
BATCH_MODEL_LABEL = "groq-batch"
BATCH_TOKENS_ESTIMATE = 100


def _alert_title(alert_type: Optional[str]) -> str:
    if alert_type == AlertType.UNUSUAL_AMOUNT.value:
        return "⚠️ Unusual Transaction"
    return "⚠️ Transaction Alert"


def _queue_push(db: DbClient, user_id: str, merchant: str, body: str, data: dict) -> None:
    db.insert(
        "notification_queue",
        PushNotificationRecord(
            user_id=user_id,
            notification_type="transaction_anomaly",
            subject=f"⚠️ {merchant}",
            content={
                "title": f"Unusual Transaction: {merchant}",
                "body": body,
                "data": {"type": "transaction_anomaly", **data},
            },
        ),
    )


def instant_transaction_alert(
    db: DbClient,
    ai: AiServices,
    user_id: str,
    transaction: dict,
    *,
    notify: bool = True,
) -> dict:
    """Analyses one transaction, logs a routing analytics row and notifies on anomaly."""
    user_context = analysis.build_user_context(db, user_id)
    alert = analysis.analyze_transaction(ai.speed, transaction, user_context)

    db.insert(
        "ai_model_routing_analytics",
        RoutingAnalyticsRecord(
            user_id=user_id,
            query_type="speed_critical",
            model_used=INSTANT_MODEL_LABEL,
            response_time_ms=alert["latencyMs"],
            confidence_score=0.95 if alert.get("isAnomaly") else 0.8,
            query_length=analysis.transaction_length(transaction),
        ),
    )

    if notify and alert.get("isAnomaly"):
        merchant = transaction.get("merchant")
        db.insert(
            "wallet_notifications",
            WalletNotificationRecord(
                user_id=user_id,
                notification_type="transaction_alert",
                title=f"{_alert_title(alert.get('alertType'))}: {merchant}",
                message=alert.get("message") or "",
                priority=alert.get("riskLevel") or "low",
                metadata={
                    "transaction_amount": transaction.get("amount"),
                    "merchant": merchant,
                    "alert_type": alert.get("alertType"),
                    "risk_level": alert.get("riskLevel"),
                    "latency_ms": alert["latencyMs"],
                    "strategy": alert["strategy"],
                    "model": INSTANT_MODEL_LABEL,
                },
            ),
        )
        _queue_push(
            db,
            user_id,
            merchant,
            alert.get("message") or "",
            {
                "riskLevel": alert.get("riskLevel"),
                "strategy": alert["strategy"],
                "model": INSTANT_MODEL_LABEL,
                "latencyMs": alert["latencyMs"],
            },
        )

    return {
        **alert,
        "userContext": {
            "averageSpend": user_context["averageSpend"],
            "monthlyBudget": user_context["monthlyBudget"],
        },
    }


def _process_single(db: DbClient, ai: AiServices, row: AlertQueueRecord) -> dict:
    tx = row.transaction_data
    result = instant_transaction_alert(
        db,
        ai,
        row.user_id,
        {
            "merchant": tx.get("merchant"),
            "amount": abs(float(tx.get("amount") or 0)),
            "category": tx.get("category"),
            "timestamp": tx.get("transaction_date"),
        },
        notify=False,
    )
    if result.get("isAnomaly"):
        db.insert(
            "wallet_notifications",
            WalletNotificationRecord(
                user_id=row.user_id,
                notification_type="transaction_alert",
                title=_alert_title(result.get("alertType")),
                message=result.get("message") or "",
                priority=result.get("riskLevel") or "low",
                metadata={
                    "transaction_id": tx.get("id"),
                    "merchant": tx.get("merchant"),
                    "amount": tx.get("amount"),
                    "category": tx.get("category"),
                    "alert_type": result.get("alertType"),
                    "risk_level": result.get("riskLevel"),
                    "latency_ms": result["latencyMs"],
                    "model": INSTANT_MODEL_LABEL,
                },
            ),
        )
        _queue_push(
            db,
            row.user_id,
            tx.get("merchant"),
            result.get("message") or "",
            {
                "transactionId": tx.get("id"),
                "riskLevel": result.get("riskLevel"),
                "model": INSTANT_MODEL_LABEL,
                "latencyMs": result["latencyMs"],
            },
        )
    db.update(
        ALERT_QUEUE_TABLE, row.id, status=AlertStatus.COMPLETED.value, processed_at=now_iso()
    )
    return {
        "alertId": row.id,
        "transactionId": tx.get("id"),
        "isAnomaly": bool(result.get("isAnomaly")),
        "riskLevel": result.get("riskLevel"),
        "latencyMs": result["latencyMs"],
    }


def _mark_failed(db: DbClient, alert_id: str, error: Exception) -> None:
    db.update(
        ALERT_QUEUE_TABLE,
        alert_id,
        status=AlertStatus.FAILED.value,
        error_message=str(error) or type(error).__name__,
        processed_at=now_iso(),
    )


def process_transaction_alerts(db: DbClient, ai: AiServices) -> dict:
    queue_depth = db.count(ALERT_QUEUE_TABLE, filters={"status": AlertStatus.PENDING.value})
    logger.info("[ProcessAlerts] Queue depth: %d", queue_depth)
    if queue_depth > analysis.BATCH_THRESHOLD:
        logger.info(
            "[ProcessAlerts] Queue depth %d > %d, using batch processing",
            queue_depth,
            analysis.BATCH_THRESHOLD,
        )
        return {"mode": "batch", **batch_process_alerts(db, ai)}

    rows = db.claim_pending_alerts(SINGLE_MODE_LIMIT)
    if not rows:
        logger.info("[ProcessAlerts] No pending alerts to process")
        return {"mode": "single", "processed": 0, "message": "No pending alerts"}

    results = []
    for row in rows:
        try:
            results.append(_process_single(db, ai, row))
        except Exception as e:
            logger.exception("[ProcessAlerts] Error processing alert %s", row.id)
            _mark_failed(db, row.id, e)
            results.append({"alertId": row.id, "error": str(e)})
    return {"mode": "single", "processed": len(results), "results": results}


def new_batch_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"batch_{int(time.time() * 1000)}_{suffix}"


def batch_process_alerts(db: DbClient, ai: AiServices) -> dict:
    start = time.monotonic()
    batch_id = new_batch_id()
    queue_depth = db.count(ALERT_QUEUE_TABLE, filters={"status": AlertStatus.PENDING.value})
    batch_size = analysis.calculate_batch_size(queue_depth)
    logger.info("[BatchProcess] Queue depth: %d, Batch size: %d", queue_depth, batch_size)

    rows = db.claim_pending_alerts(batch_size)
    if not rows:
        logger.info("[BatchProcess] No pending alerts")
        return {"processed": 0, "message": "No pending alerts", "batchId": batch_id}

    averages: dict[str, float] = {}
    for row in rows:
        if row.user_id not in averages:
            averages[row.user_id] = analysis.user_average_spend(db, row.user_id)

    try:
        verdicts, latency_ms, _ = analysis.analyze_batch(
            ai.speed, [(row.transaction_data, averages[row.user_id]) for row in rows]
        )
    except Exception as e:
        logger.exception("[BatchProcess] Fatal error in batch %s", batch_id)
        for row in rows:
            db.update(ALERT_QUEUE_TABLE, row.id, status=AlertStatus.PENDING.value)
        db.insert(
            "batch_processing_analytics",
            BatchAnalyticsRecord(
                batch_id=batch_id,
                total_processing_ms=int((time.monotonic() - start) * 1000),
                error_message=str(e) or type(e).__name__,
            ),
        )
        raise

    results = []
    anomalies = 0
    for row, verdict in zip(rows, verdicts):
        tx = row.transaction_data
        try:
            if verdict.get("isAnomaly"):
                anomalies += 1
                db.insert(
                    "wallet_notifications",
                    WalletNotificationRecord(
                        user_id=row.user_id,
                        notification_type="transaction_alert",
                        title=_alert_title(verdict.get("alertType")),
                        message=verdict.get("message") or "",
                        priority=verdict.get("riskLevel") or "low",
                        metadata={
                            "transaction_id": tx.get("id"),
                            "merchant": tx.get("merchant"),
                            "amount": tx.get("amount"),
                            "category": tx.get("category"),
                            "alert_type": verdict.get("alertType"),
                            "risk_level": verdict.get("riskLevel"),
                            "confidence": verdict.get("confidence"),
                            "batch_id": batch_id,
                            "model": BATCH_MODEL_LABEL,
                        },
                    ),
                )
                _queue_push(
                    db,
                    row.user_id,
                    tx.get("merchant"),
                    verdict.get("message") or "",
                    {
                        "transactionId": tx.get("id"),
                        "riskLevel": verdict.get("riskLevel"),
                        "batchId": batch_id,
                        "model": BATCH_MODEL_LABEL,
                    },
                )
            db.update(
                ALERT_QUEUE_TABLE,
                row.id,
                status=AlertStatus.COMPLETED.value,
                processed_at=now_iso(),
            )
            results.append(
                {
                    "alertId": row.id,
                    "transactionId": tx.get("id"),
                    "isAnomaly": bool(verdict.get("isAnomaly")),
                    "riskLevel": verdict.get("riskLevel"),
                    "confidence": verdict.get("confidence"),
                }
            )
        except Exception as e:
            logger.exception("[BatchProcess] Error processing item %s", row.id)
            _mark_failed(db, row.id, e)

    total_ms = int((time.monotonic() - start) * 1000)
    db.insert(
        "batch_processing_analytics",
        BatchAnalyticsRecord(
            batch_id=batch_id,
            queue_depth=queue_depth,
            batch_size=batch_size,
            transactions_processed=len(results),
            anomalies_detected=anomalies,
            groq_latency_ms=latency_ms,
            total_processing_ms=total_ms,
            tokens_used=len(rows) * BATCH_TOKENS_ESTIMATE,
        ),
    )
    logger.info(
        "[BatchProcess] Completed batch %s: %d processed, %d anomalies, %dms latency",
        batch_id,
        len(results),
        anomalies,
        latency_ms,
    )
    return {
        "batchId": batch_id,
        "processed": len(results),
        "anomaliesDetected": anomalies,
        "groqLatencyMs": latency_ms,
        "totalProcessingMs": total_ms,
        "results": results,
    }
