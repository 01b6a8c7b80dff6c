import unittest
from unittest.mock import MagicMock, patch

from backend.db import ALERT_QUEUE_TABLE, InMemoryDbClient
from backend.queue import BATCH_ALERTS_JOB, PROCESS_ALERTS_JOB, InMemoryJobQueue, Job
from backend.records import AlertQueueRecord
from backend.worker import process_next, run_loop
from models.gateway import GatewayUnavailableError, InMemoryGateway
from models.services import AiServices


def _queue_alerts(db, count):
    for i in range(count):
        db.insert(
            ALERT_QUEUE_TABLE,
            AlertQueueRecord(
                user_id="user-1",
                transaction_data={
                    "id": f"tx-{i}",
                    "merchant": "Coffee Shop",
                    "amount": -4.5,
                    "category": "Dining",
                },
            ),
        )


class WorkerTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.queue = InMemoryJobQueue()
        self.gateway = InMemoryGateway()
        self.ai = AiServices.in_memory(self.gateway)
        self.sleep = MagicMock()

    def _process(self):
        return process_next(
            db=self.db, queue=self.queue, ai=self.ai, block=False, sleep=self.sleep
        )

    def _count(self, status):
        return self.db.count(ALERT_QUEUE_TABLE, filters={"status": status})

    def test_process_once_no_jobs(self):
        self.assertFalse(self._process())

    def test_single_mode_completes_alerts(self):
        _queue_alerts(self.db, 2)
        self.queue.enqueue(Job(PROCESS_ALERTS_JOB))

        self.assertTrue(self._process())

        self.assertEqual(self._count("completed"), 2)
        self.assertEqual(len(self.gateway.calls), 2)
        self.assertEqual(self.queue.items, [])
        self.sleep.assert_not_called()

    def test_deep_queue_schedules_next_batch(self):
        _queue_alerts(self.db, 25)
        self.queue.enqueue(Job(PROCESS_ALERTS_JOB))

        self.assertTrue(self._process())

        # Depth 25 gives a batch of 15 and one model call.
        self.assertEqual(self._count("completed"), 15)
        self.assertEqual(self._count("pending"), 10)
        self.assertEqual(len(self.gateway.calls), 1)
        self.sleep.assert_called_once_with(0.1)
        self.assertEqual([job.name for job in self.queue.items], [BATCH_ALERTS_JOB])

        self.assertTrue(self._process())
        self.assertEqual(self._count("completed"), 25)
        self.assertEqual(self.queue.items, [])

    def test_failed_batch_is_logged_and_rows_released(self):
        _queue_alerts(self.db, 6)
        self.gateway.queue(GatewayUnavailableError("groq API temporarily unavailable"))
        self.queue.enqueue(Job(BATCH_ALERTS_JOB))

        with self.assertLogs("backend.worker", level="ERROR"):
            self.assertTrue(self._process())

        self.assertEqual(self._count("pending"), 6)
        analytics = self.db.query("batch_processing_analytics")
        self.assertEqual(len(analytics), 1)
        self.assertIn("unavailable", analytics[0].error_message)
        self.assertEqual(self.queue.items, [])

        # The next poll finds the released rows even though no job was queued.
        self.assertTrue(self._process())
        self.assertEqual(self._count("pending"), 0)
        self.assertEqual(self._count("completed"), 6)
        self.assertFalse(self._process())

    def test_unknown_job_is_logged(self):
        self.queue.enqueue(Job("send-weekly-digest"))
        with self.assertLogs("backend.worker", level="ERROR"):
            self.assertTrue(self._process())

    def test_run_loop_never_blocks_without_timeout(self):
        db = MagicMock()
        db.requeue_stale_alerts.return_value = 0
        with patch("backend.worker.get_db_client", return_value=db), patch(
            "backend.worker.get_queue_client"
        ), patch("backend.worker.get_ai_services"), patch(
            "backend.worker.process_next", side_effect=[True, KeyboardInterrupt]
        ) as mock_process:
            with self.assertRaises(KeyboardInterrupt):
                run_loop(poll_interval_seconds=0.5)

        self.assertEqual(mock_process.call_args.kwargs["timeout"], 1)


if __name__ == "__main__":
    unittest.main()
