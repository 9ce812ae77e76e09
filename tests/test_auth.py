"""Tests for teacher and student sign-in, lockout and subscriptions."""

from __future__ import annotations

from database import get_db

PASSWORD = "TeacherPass1"


def _login(client, email="teacher@test.com", password=PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestTeacherLogin:
    def test_success(self, client):
        resp = _login(client)
        assert resp.status_code == 200
        user = resp.get_json()["user"]
        assert user["kind"] == "teacher"
        assert user["email"] == "teacher@test.com"
        assert user["role"] == "TEACHER"

    def test_email_is_case_insensitive(self, client):
        assert _login(client, email="  Teacher@Test.com ").status_code == 200

    def test_wrong_password(self, client):
        resp = _login(client, password="wrong")
        assert resp.status_code == 401
        assert resp.get_json() == {"error": "Invalid email or password"}

    def test_unknown_email(self, client):
        assert _login(client, email="nobody@test.com").status_code == 401

    def test_missing_fields(self, client):
        resp = client.post("/api/auth/login", json={"email": "teacher@test.com"})
        assert resp.status_code == 400
        fields = [d["field"] for d in resp.get_json()["details"]]
        assert "password" in fields

    def test_me(self, teacher_client):
        resp = teacher_client.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.get_json()["user"]["id"] == "teacher-1"

    def test_me_anonymous(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_logout(self, teacher_client):
        assert teacher_client.post("/api/auth/logout").status_code == 200
        assert teacher_client.get("/api/auth/me").status_code == 401

    def test_failed_login_is_audited(self, app, client):
        _login(client, password="wrong")
        with app.app_context():
            row = get_db().execute(
                "SELECT * FROM audit_log WHERE action = 'login_failed' ORDER BY id DESC",
            ).fetchone()
            assert row["actor"] == "teacher:teacher-1"


class TestLockout:
    def test_locks_after_repeated_failures(self, client):
        for _ in range(5):
            assert _login(client, password="wrong").status_code == 401
        resp = _login(client)
        assert resp.status_code == 403
        assert "locked" in resp.get_json()["error"]

    def test_success_resets_counter(self, app, client):
        for _ in range(3):
            _login(client, password="wrong")
        assert _login(client).status_code == 200
        with app.app_context():
            row = get_db().execute("SELECT login_attempts FROM users WHERE id = 'teacher-1'").fetchone()
            assert row["login_attempts"] == 0


class TestSubscription:
    def _expire(self, app, user_id):
        with app.app_context():
            db = get_db()
            db.execute("UPDATE users SET subscription_end_date = '2020-01-01' WHERE id = ?", (user_id,))
            db.commit()

    def test_expired_teacher_is_refused(self, app, client):
        self._expire(app, "teacher-1")
        resp = _login(client)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Subscription has expired"

    def test_super_admin_ignores_end_date(self, app, client):
        self._expire(app, "admin-1")
        assert _login(client, email="admin@test.com").status_code == 200

    def test_future_end_date(self, app, client):
        with app.app_context():
            db = get_db()
            db.execute("UPDATE users SET subscription_end_date = '2999-12-31' WHERE id = 'teacher-1'")
            db.commit()
        user = _login(client).get_json()["user"]
        assert user["isSubscriptionActive"] is True


class TestStudentLogin:
    def test_success(self, client, curriculum):
        resp = client.post("/api/students/auth/login", json={
            "email": curriculum["student_email"], "password": curriculum["student_password"],
        })
        assert resp.status_code == 200
        assert resp.get_json()["user"]["kind"] == "student"
        assert client.get("/api/auth/me").get_json()["user"]["id"] == curriculum["student_id"]

    def test_wrong_password(self, client, curriculum):
        resp = client.post("/api/students/auth/login", json={
            "email": curriculum["student_email"], "password": "nope",
        })
        assert resp.status_code == 401

    def test_teacher_credentials_do_not_work(self, client):
        resp = client.post("/api/students/auth/login", json={"email": "teacher@test.com", "password": PASSWORD})
        assert resp.status_code == 401

    def test_student_cannot_use_teacher_routes(self, student_client):
        resp = student_client.get("/api/lessons")
        assert resp.status_code == 403
        assert student_client.post("/api/lessons", json={"name": "Fizik", "group": "Sayısal"}).status_code == 403
