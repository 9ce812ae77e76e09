"""Tests for the demo seed script."""

from __future__ import annotations

from database import get_db
from db_stores import Owner, StudentStoreDB
from seed_demo_data import DEMO_TEACHER, clear_demo, ensure_superadmin, seed


class TestSeed:
    def test_seed_builds_scenario(self, app):
        with app.app_context():
            result = seed()
            assert result["created"] is True
            details = StudentStoreDB(Owner(teacher_id=result["teacher_id"])).details(result["student_id"])
            assert details["overall"] == {"target": 10, "completed": 3, "percentage": 30}

    def test_seed_is_idempotent(self, app):
        with app.app_context():
            first = seed()
            second = seed()
            assert second == {"teacher_id": first["teacher_id"], "created": False}

    def test_demo_teacher_can_log_in(self, app, client):
        with app.app_context():
            seed()
        resp = client.post("/api/auth/login", json={
            "email": DEMO_TEACHER["email"], "password": DEMO_TEACHER["password"],
        })
        assert resp.status_code == 200

    def test_clear_demo(self, app):
        with app.app_context():
            seed()
            clear_demo("admin-1")
            db = get_db()
            assert db.execute("SELECT COUNT(*) FROM users WHERE email = ?", (DEMO_TEACHER["email"],)).fetchone()[0] == 0
            assert db.execute("SELECT COUNT(*) FROM students").fetchone()[0] == 0

    def test_superadmin(self, app):
        with app.app_context():
            assert ensure_superadmin("", "") is None
            admin_id = ensure_superadmin("Root@Test.com", "rootpass")
            assert ensure_superadmin("root@test.com", "rootpass") == admin_id
            role = get_db().execute("SELECT role FROM users WHERE id = ?", (admin_id,)).fetchone()["role"]
            assert role == "SUPER_ADMIN"
