"""
Worker loop that drains the job queue.

Transaction creation enqueues ``process-transaction-alerts``. When a batch
leaves pending alerts behind, the worker waits for the throttle delay and
enqueues another ``batch-process-alerts`` job.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from alerts import analysis, processing
from backend.db import ALERT_QUEUE_TABLE, DbClient
from backend.dependencies import get_ai_services, get_db_client, get_queue_client
from backend.queue import BATCH_ALERTS_JOB, PROCESS_ALERTS_JOB, Job, JobQueue
from models.services import AiServices
from shared.types import AlertStatus

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

STALE_LOCK_SECONDS = 900


def _schedule_next_batch(
    db: DbClient, queue: JobQueue, result: dict, sleep: Callable[[float], None]
) -> None:
    remaining = db.count(ALERT_QUEUE_TABLE, filters={"status": AlertStatus.PENDING.value})
    if not remaining:
        return
    delay_ms = analysis.calculate_throttle_delay(result.get("groqLatencyMs") or 0)
    logger.info(
        "[Worker] %d alerts still pending, next batch in %dms", remaining, delay_ms
    )
    sleep(delay_ms / 1000)
    queue.enqueue(Job(BATCH_ALERTS_JOB))


def run_job(
    job: Job,
    *,
    db: DbClient,
    queue: JobQueue,
    ai: AiServices,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    if job.name == PROCESS_ALERTS_JOB:
        result = processing.process_transaction_alerts(db, ai)
        if result.get("mode") == "batch" and result.get("processed"):
            _schedule_next_batch(db, queue, result, sleep)
        return result
    if job.name == BATCH_ALERTS_JOB:
        result = processing.batch_process_alerts(db, ai)
        if result.get("processed"):
            _schedule_next_batch(db, queue, result, sleep)
        return result
    raise ValueError(f"Unknown job: {job.name}")


def process_next(
    *,
    db: Optional[DbClient] = None,
    queue: Optional[JobQueue] = None,
    ai: Optional[AiServices] = None,
    block: bool = True,
    timeout: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Fetch and run one job from the queue (or pending alert fallback). Returns True if processed.
    """
    db = db or get_db_client()
    queue = queue or get_queue_client()
    ai = ai or get_ai_services()

    job = queue.dequeue(block=block, timeout=timeout)
    if job is None:
        # Fallback for pending alerts whose job was lost, e.g. after a failed batch.
        if not db.count(ALERT_QUEUE_TABLE, filters={"status": AlertStatus.PENDING.value}):
            return False
        job = Job(PROCESS_ALERTS_JOB)

    logger.info("[Worker] Running %s", job.name)
    try:
        result = run_job(job, db=db, queue=queue, ai=ai, sleep=sleep)
    except Exception:
        logger.exception("[Worker] Job %s failed", job.name)
        return True
    logger.info("[Worker] %s processed %s alerts", job.name, result.get("processed", 0))
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Simple polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    db = get_db_client()
    queue = get_queue_client()
    ai = get_ai_services()
    while True:
        try:
            requeued = db.requeue_stale_alerts(lock_timeout_seconds=STALE_LOCK_SECONDS)
            if requeued:
                logger.info("[Worker] Requeued %d stale alerts", requeued)
                queue.enqueue(Job(PROCESS_ALERTS_JOB))
        except Exception:
            logger.exception("Failed to requeue stale alerts")
        processed = process_next(
            db=db, queue=queue, ai=ai, block=True, timeout=max(1, int(poll_interval_seconds))
        )
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    run_loop()
