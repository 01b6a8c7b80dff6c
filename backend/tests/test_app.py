import unittest
from datetime import timedelta

from fastapi.testclient import TestClient

from backend.app import create_app
from backend.db import ALERT_QUEUE_TABLE, InMemoryDbClient
from backend.dependencies import get_db_client, get_queue_client
from backend.queue import PROCESS_ALERTS_JOB, InMemoryJobQueue
from backend.records import TransactionRecord, WishlistItemRecord
from shared.utils import utc_now

USER = {"X-User-Id": "user-1"}
OTHER_USER = {"X-User-Id": "user-2"}


class BackendApiTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.queue = InMemoryJobQueue()
        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        app.dependency_overrides[get_queue_client] = lambda: self.queue
        self.client = TestClient(app)

    def test_requires_user_header(self):
        response = self.client.get("/api/accounts")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Not authenticated")

    def test_account_crud(self):
        created = self.client.post(
            "/api/accounts", json={"name": "Checking", "balance": 1200.5}, headers=USER
        )
        self.assertEqual(created.status_code, 201)
        account = created.json()
        self.assertEqual(account["user_id"], "user-1")
        self.assertEqual(account["account_type"], "checking")

        listed = self.client.get("/api/accounts", headers=USER).json()
        self.assertEqual([a["id"] for a in listed], [account["id"]])

        updated = self.client.patch(
            f"/api/accounts/{account['id']}", json={"balance": 900}, headers=USER
        )
        self.assertEqual(updated.status_code, 200)
        self.assertEqual(updated.json()["balance"], 900)
        self.assertEqual(updated.json()["name"], "Checking")

        deleted = self.client.delete(f"/api/accounts/{account['id']}", headers=USER)
        self.assertEqual(deleted.json(), {"status": "ok"})
        missing = self.client.get(f"/api/accounts/{account['id']}", headers=USER)
        self.assertEqual(missing.status_code, 404)

    def test_rejects_unknown_and_read_only_fields(self):
        response = self.client.post(
            "/api/goals", json={"name": "Trip", "colour": "red", "user_id": "x"}, headers=USER
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("colour", response.json()["detail"])
        self.assertIn("user_id", response.json()["detail"])

    def test_rejects_wrongly_typed_values(self):
        goal = self.client.post(
            "/api/goals", json={"name": "Trip", "target_amount": "100"}, headers=USER
        )
        self.assertEqual(goal.status_code, 400)
        self.assertIn("target_amount", goal.json()["detail"])
        self.assertEqual(self.db.query("goals"), [])

        transaction = self.client.post("/api/transactions", json={"amount": None}, headers=USER)
        self.assertEqual(transaction.status_code, 400)
        self.assertEqual(self.db.query("transactions"), [])
        self.assertEqual(self.queue.items, [])

        created = self.client.post(
            "/api/goals", json={"name": "Trip", "target_amount": 100}, headers=USER
        ).json()
        patched = self.client.patch(
            f"/api/goals/{created['id']}", json={"is_active": "no"}, headers=USER
        )
        self.assertEqual(patched.status_code, 400)
        contributed = self.client.post(
            f"/api/goals/{created['id']}/contribute", json={"amount": 25}, headers=USER
        )
        self.assertEqual(contributed.status_code, 200)
        self.assertEqual(contributed.json()["record"]["current_amount"], 25)

    def test_other_users_record_is_not_found(self):
        goal = self.client.post(
            "/api/goals", json={"name": "Car", "target_amount": 5000}, headers=USER
        ).json()
        self.assertEqual(
            self.client.get(f"/api/goals/{goal['id']}", headers=OTHER_USER).status_code, 404
        )
        self.assertEqual(
            self.client.delete(f"/api/goals/{goal['id']}", headers=OTHER_USER).status_code, 404
        )
        self.assertEqual(self.client.get("/api/goals", headers=OTHER_USER).json(), [])

    def test_goal_contribution_returns_celebrations(self):
        goal = self.client.post(
            "/api/goals",
            json={"name": "Vacation", "target_amount": 1000, "current_amount": 200},
            headers=USER,
        ).json()

        response = self.client.post(
            f"/api/goals/{goal['id']}/contribute", json={"amount": 400}, headers=USER
        )

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["record"]["current_amount"], 600)
        self.assertEqual([c["threshold"] for c in payload["celebrations"]], [25, 50])
        self.assertEqual(payload["celebrations"][1]["rarity"], "rare")

    def test_goal_completion_with_reduced_motion(self):
        goal = self.client.post(
            "/api/goals",
            json={"name": "Laptop", "target_amount": 100, "current_amount": 90},
            headers=USER,
        ).json()

        payload = self.client.post(
            f"/api/goals/{goal['id']}/contribute",
            json={"amount": 50, "reduced_motion": True},
            headers=USER,
        ).json()

        self.assertEqual(len(payload["celebrations"]), 1)
        celebration = payload["celebrations"][0]
        self.assertEqual(celebration["type"], "goal_complete")
        self.assertEqual(celebration["title"], "Laptop complete!")
        self.assertFalse(celebration["effects"]["confetti"])
        self.assertTrue(celebration["effects"]["haptic"])

    def test_contribution_amount_must_be_positive(self):
        pot = self.client.post("/api/pots", json={"name": "Rainy day"}, headers=USER).json()
        response = self.client.post(
            f"/api/pots/{pot['id']}/deposit", json={"amount": 0}, headers=USER
        )
        self.assertEqual(response.status_code, 422)

    def test_pot_without_target_has_no_celebrations(self):
        pot = self.client.post("/api/pots", json={"name": "Rainy day"}, headers=USER).json()
        payload = self.client.post(
            f"/api/pots/{pot['id']}/deposit", json={"amount": 75}, headers=USER
        ).json()
        self.assertEqual(payload["record"]["current_amount"], 75)
        self.assertEqual(payload["celebrations"], [])

    def test_spending_transaction_queues_alert(self):
        response = self.client.post(
            "/api/transactions",
            json={"amount": -250.0, "merchant": "Electronics Hub", "category": "Shopping"},
            headers=USER,
        )

        self.assertEqual(response.status_code, 201)
        alerts = self.db.query(ALERT_QUEUE_TABLE)
        self.assertEqual(len(alerts), 1)
        self.assertEqual(alerts[0].status, "pending")
        self.assertEqual(alerts[0].transaction_data["merchant"], "Electronics Hub")
        self.assertEqual(alerts[0].transaction_data["id"], response.json()["id"])
        self.assertEqual([job.name for job in self.queue.items], [PROCESS_ALERTS_JOB])

    def test_income_extending_streak_writes_achievement(self):
        now = utc_now()
        for days_ago in range(1, 7):
            self.db.insert(
                "transactions",
                TransactionRecord(
                    user_id="user-1",
                    amount=20.0,
                    transaction_date=(now - timedelta(days=days_ago)).isoformat(),
                ),
            )

        response = self.client.post(
            "/api/transactions",
            json={"amount": 20.0, "merchant": "Savings transfer", "transaction_date": now.isoformat()},
            headers=USER,
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(self.db.query(ALERT_QUEUE_TABLE), [])
        notifications = self.db.query("wallet_notifications", user_id="user-1")
        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0].notification_type, "achievement")
        self.assertEqual(notifications[0].title, "7-day streak")

    def _wishlist(self, **fields):
        return self.db.insert("wishlist_items", WishlistItemRecord(user_id="user-1", **fields))

    def test_wishlist_sorting(self):
        self._wishlist(name="Bike", target_amount=500, saved_amount=100, priority=2)
        self._wishlist(name="Camera", target_amount=1000, saved_amount=900, priority=1,
                       target_date="2026-12-01")
        self._wishlist(name="Desk", target_amount=300, saved_amount=0, priority=4,
                       target_date="2026-11-01")
        self._wishlist(name="Phone", target_amount=800, priority=1, is_purchased=True)

        def names(sort_by):
            response = self.client.get(f"/api/wishlist?sort_by={sort_by}", headers=USER)
            return [item["name"] for item in response.json()]

        self.assertEqual(names("priority"), ["Camera", "Bike", "Desk"])
        self.assertEqual(names("progress"), ["Camera", "Bike", "Desk"])
        self.assertEqual(names("amount"), ["Camera", "Bike", "Desk"])
        self.assertEqual(names("date"), ["Desk", "Camera", "Bike"])
        self.assertEqual(
            self.client.get("/api/wishlist?sort_by=colour", headers=USER).status_code, 422
        )

    def test_wishlist_stats_cover_active_items(self):
        self._wishlist(name="Bike", target_amount=500, saved_amount=100, priority=2)
        self._wishlist(name="Camera", target_amount=1500, saved_amount=400, priority=4)
        self._wishlist(name="Phone", target_amount=800, saved_amount=800, is_purchased=True)

        stats = self.client.get("/api/wishlist/stats", headers=USER).json()

        self.assertEqual(stats["totalItems"], 2)
        self.assertEqual(stats["purchasedCount"], 1)
        self.assertEqual(stats["totalTarget"], 2000)
        self.assertEqual(stats["totalSaved"], 500)
        self.assertEqual(stats["overallProgress"], 25)
        self.assertEqual(stats["highPriorityCount"], 1)
        self.assertEqual(stats["remainingToSave"], 1500)

    def test_wishlist_stats_empty(self):
        stats = self.client.get("/api/wishlist/stats", headers=USER).json()
        self.assertEqual(stats["totalItems"], 0)
        self.assertEqual(stats["overallProgress"], 0)


if __name__ == "__main__":
    unittest.main()
