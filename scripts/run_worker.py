"""
Runs the alert worker: blocks on the job queue and processes alert jobs.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.db import ALERT_QUEUE_TABLE
from backend.dependencies import get_db_client, get_queue_client
from backend.queue import PROCESS_ALERTS_JOB, Job
from backend.worker import process_next, run_loop
from shared.types import AlertStatus

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="$ave+ alert worker")
    parser.add_argument(
        "--poll-interval-seconds",
        type=float,
        default=2.0,
        help="Seconds to block on the queue before polling again",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Drain pending alerts once and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    if not args.once:
        run_loop(poll_interval_seconds=args.poll_interval_seconds)
        return 0

    db = get_db_client()
    queue = get_queue_client()
    pending = db.count(ALERT_QUEUE_TABLE, filters={"status": AlertStatus.PENDING.value})
    logger.info("%d pending alerts", pending)
    if pending:
        queue.enqueue(Job(PROCESS_ALERTS_JOB))
    while process_next(db=db, queue=queue, block=False):
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
