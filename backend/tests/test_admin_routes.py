import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from backend.app import create_app
from backend.db import InMemoryDbClient
from backend.dependencies import get_db_client

ADMIN = {"X-User-Id": "admin-1"}
MEMBER = {"X-User-Id": "user-1"}


class RedirectRoutesTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        app = create_app()
        app.dependency_overrides[get_db_client] = lambda: self.db
        self.client = TestClient(app)
        patcher = patch("backend.dependencies.get_settings")
        mock_settings = patcher.start()
        mock_settings.return_value = type("Settings", (), {"admin_ids": {"admin-1"}})()
        self.addCleanup(patcher.stop)

    def _create(self, from_path="/old", to_path="/new", **extra):
        return self.client.post(
            "/api/admin/redirects",
            json={"from_path": from_path, "to_path": to_path, **extra},
            headers=ADMIN,
        )

    def test_non_admin_is_forbidden(self):
        response = self.client.get("/api/admin/redirects", headers=MEMBER)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], "Admin access required")

    def test_create_and_resolve_counts_usage(self):
        created = self._create(description="Moved page")
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["created_by"], "admin-1")

        for _ in range(2):
            resolved = self.client.get("/api/redirects/resolve", params={"path": "/old"})
            self.assertEqual(resolved.json(), {"fromPath": "/old", "toPath": "/new"})

        listed = self.client.get("/api/admin/redirects", headers=ADMIN).json()
        self.assertEqual(listed[0]["usage_count"], 2)

    def test_list_orders_by_usage(self):
        self._create("/a", "/x")
        self._create("/b", "/y")
        self.client.get("/api/redirects/resolve", params={"path": "/b"})

        listed = self.client.get("/api/admin/redirects", headers=ADMIN).json()
        self.assertEqual([r["from_path"] for r in listed], ["/b", "/a"])

    def test_validation(self):
        self.assertEqual(self._create("old", "/new").status_code, 400)
        self.assertEqual(self._create("/same", "/same").status_code, 400)
        self.assertEqual(self._create("/dup", "/one").status_code, 201)
        duplicate = self._create("/dup", "/two")
        self.assertEqual(duplicate.status_code, 400)
        self.assertIn("already exists", duplicate.json()["detail"])

    def test_update_keeps_own_from_path(self):
        redirect = self._create().json()
        response = self.client.patch(
            f"/api/admin/redirects/{redirect['id']}",
            json={"from_path": "/old", "to_path": "/newer"},
            headers=ADMIN,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["to_path"], "/newer")

        self_loop = self.client.patch(
            f"/api/admin/redirects/{redirect['id']}", json={"to_path": "/old"}, headers=ADMIN
        )
        self.assertEqual(self_loop.status_code, 400)

    def test_toggle_hides_redirect(self):
        redirect = self._create().json()
        toggled = self.client.post(
            f"/api/admin/redirects/{redirect['id']}/toggle", headers=ADMIN
        )
        self.assertFalse(toggled.json()["is_active"])
        resolved = self.client.get("/api/redirects/resolve", params={"path": "/old"})
        self.assertEqual(resolved.status_code, 404)

    def test_delete(self):
        redirect = self._create().json()
        self.assertEqual(
            self.client.delete(f"/api/admin/redirects/{redirect['id']}", headers=ADMIN).json(),
            {"status": "ok"},
        )
        self.assertEqual(
            self.client.delete(f"/api/admin/redirects/{redirect['id']}", headers=ADMIN).status_code,
            404,
        )


if __name__ == "__main__":
    unittest.main()
