import json
import unittest
from unittest.mock import MagicMock

from backend.db import InMemoryDbClient
from backend.exports import collect_rows, csv_escape, generate_csv, generate_export
from backend.records import BudgetRecord, GoalRecord, TransactionRecord
from backend.storage import InMemoryStorageClient
from shared.types import ExportFormat, ExportType


class CsvTests(unittest.TestCase):
    def test_csv_escape(self):
        self.assertEqual(csv_escape(None), "")
        self.assertEqual(csv_escape(12.5), "12.5")
        self.assertEqual(csv_escape("Cafe, Downtown"), '"Cafe, Downtown"')
        self.assertEqual(csv_escape('The "Best" Deli'), '"The ""Best"" Deli"')
        self.assertEqual(csv_escape("two\nlines"), '"two\nlines"')

    def test_generate_csv(self):
        self.assertEqual(generate_csv([]), "")
        rows = [{"a": 1, "b": "x,y"}, {"a": 2, "b": None}]
        self.assertEqual(generate_csv(rows), 'a,b\n1,"x,y"\n2,')


class ExportTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.storage = InMemoryStorageClient()
        for amount, day, category in (
            (-40.0, "2025-01-10", "Dining"),
            (-15.0, "2025-02-01", "Groceries"),
            (-90.0, "2024-12-30", "Dining"),
            (2500.0, "2025-01-15", "Income"),
        ):
            self.db.insert(
                "transactions",
                TransactionRecord(
                    user_id="u1", amount=amount, category=category, transaction_date=day
                ),
            )
        self.db.insert("transactions", TransactionRecord(user_id="u2", amount=-1.0))

    def test_transactions_filtered_by_range_and_category(self):
        rows, columns, stem = collect_rows(
            self.db,
            "u1",
            ExportType.TRANSACTIONS,
            date_range_start="2025-01-01",
            date_range_end="2025-01-31",
            category="Dining",
        )
        self.assertEqual([r["amount"] for r in rows], [-40.0])
        self.assertEqual(columns[0], "transaction_date")
        self.assertEqual(stem, "transactions_2025-01-01_2025-01-31")

    def test_tax_report_groups_by_category(self):
        rows, _, stem = collect_rows(
            self.db, "u1", ExportType.TAX_REPORT, date_range_start="2025-01-01"
        )
        self.assertEqual(stem, "tax_report_2025")
        self.assertEqual(
            [(r["category"], r["transaction_date"]) for r in rows],
            [("Dining", "2025-01-10"), ("Groceries", "2025-02-01"), ("Income", "2025-01-15")],
        )

    def test_budget_and_goal_columns(self):
        self.db.insert("budgets", BudgetRecord(user_id="u1", category="Dining", total_limit=300))
        self.db.insert("goals", GoalRecord(user_id="u1", name="Trip", target_amount=900))
        budgets, _, _ = collect_rows(self.db, "u1", ExportType.BUDGETS)
        goals, _, _ = collect_rows(self.db, "u1", ExportType.GOALS)
        self.assertEqual(set(budgets[0]), {"category", "total_limit", "period", "is_active", "created_at"})
        self.assertEqual(goals[0]["name"], "Trip")

    def test_full_backup_is_always_json(self):
        result = generate_export(
            self.db, self.storage, "u1", ExportType.FULL_BACKUP, ExportFormat.CSV
        )
        self.assertTrue(result["fileName"].startswith("full_backup_"))
        self.assertTrue(result["fileName"].endswith(".json"))
        path = f"exports/u1/{result['fileName']}"
        self.assertEqual(self.storage.content_types[path], "application/json")
        backup = json.loads(self.storage.get_bytes(path))[0]
        self.assertEqual(len(backup["transactions"]), 4)

        job = self.db.get("export_jobs", result["jobId"])
        self.assertEqual(job.status, "completed")
        self.assertEqual(job.storage_path, path)

    def test_upload_failure_marks_job_failed(self):
        storage = MagicMock()
        storage.upload_bytes.side_effect = RuntimeError("bucket unavailable")

        with self.assertRaises(RuntimeError):
            generate_export(self.db, storage, "u1", ExportType.GOALS, ExportFormat.JSON)

        jobs = self.db.query("export_jobs", user_id="u1")
        self.assertEqual(jobs[0].status, "failed")
        self.assertEqual(jobs[0].error_message, "bucket unavailable")


if __name__ == "__main__":
    unittest.main()
