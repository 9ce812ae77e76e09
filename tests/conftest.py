"""
Test fixtures for the curriculum tracker.

Provides app, client, teacher/admin/student clients and a db fixture with
file-based SQLite. CSRF enforcement stays on; signed-in clients carry the
token pair the way the browser client does.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from werkzeug.security import generate_password_hash

sys.path.insert(0, str(Path(__file__).parent.parent))

TEACHER_ID = "teacher-1"
OTHER_TEACHER_ID = "teacher-2"
ADMIN_ID = "admin-1"
PASSWORD = "TeacherPass1"


@pytest.fixture
def app(tmp_path):
    """Create app with file-based SQLite for testing."""
    from app import create_app

    db_file = str(tmp_path / "test.db")
    app = create_app({
        "TESTING": True,
        "DATABASE": db_file,
        "SECRET_KEY": "test-secret-key",
    })

    with app.app_context():
        from database import get_db, init_db, run_migrations

        init_db()
        run_migrations()

        db = get_db()
        pw = generate_password_hash(PASSWORD)
        for uid, name, email, role in (
            (TEACHER_ID, "Test Teacher", "teacher@test.com", "TEACHER"),
            (OTHER_TEACHER_ID, "Other Teacher", "other@test.com", "TEACHER"),
            (ADMIN_ID, "Super Admin", "admin@test.com", "SUPER_ADMIN"),
        ):
            db.execute(
                "INSERT INTO users (id, name, email, password_hash, role, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, '2026-01-01', '2026-01-01')",
                (uid, name, email, pw, role),
            )
        db.commit()

    # requests push their own app context, so g (and the signed-in user) is per request
    return app


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    return app.test_client()


def sign_in(client, url: str, email: str, password: str = PASSWORD):
    """Log in, fetch a CSRF token and send it on every later request."""
    resp = client.post(url, json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    token = client.get("/api/csrf-token").get_json()["csrfToken"]
    client.environ_base["HTTP_X_CSRF_TOKEN"] = token
    return client


@pytest.fixture
def teacher_client(app):
    """Authenticated test client logged in as a teacher."""
    return sign_in(app.test_client(), "/api/auth/login", "teacher@test.com")


@pytest.fixture
def other_teacher_client(app):
    return sign_in(app.test_client(), "/api/auth/login", "other@test.com")


@pytest.fixture
def admin_client(app):
    return sign_in(app.test_client(), "/api/auth/login", "admin@test.com")


@pytest.fixture
def db(app):
    """Direct database access for store tests."""
    with app.app_context():
        from database import get_db
        yield get_db()


@pytest.fixture
def owner():
    from db_stores import Owner
    return Owner(teacher_id=TEACHER_ID)


@pytest.fixture
def curriculum(app):
    """Matematik / Türev / Kaynak A (20 questions) / Ali, assigned with a target of 10."""
    with app.app_context():
        from seed_demo_data import DEMO_STUDENT
        from db_stores import (
            AssignmentStoreDB, LessonStoreDB, Owner, ResourceStoreDB, StudentStoreDB, TopicStoreDB,
        )
        from schemas import LessonCreate, ResourcePayload, StudentCreate

        owner = Owner(teacher_id=TEACHER_ID)
        lesson = LessonStoreDB(owner).create(LessonCreate(name="Matematik", group="Sayısal"))
        topic = TopicStoreDB(owner).create(lesson["id"], "Türev")
        resource = ResourceStoreDB(owner).create(ResourcePayload(
            name="Kaynak A",
            lesson_ids=[lesson["id"]],
            topic_ids=[topic["id"]],
            topic_question_counts={topic["id"]: 20},
        ))
        student = StudentStoreDB(owner).create(StudentCreate(**DEMO_STUDENT))
        assignment = AssignmentStoreDB(owner).assign(
            student["id"], [topic["id"]], {topic["id"]: {resource["id"]: {student["id"]: 10}}},
        )["created"][0]
        return {
            "lesson_id": lesson["id"],
            "topic_id": topic["id"],
            "resource_id": resource["id"],
            "student_id": student["id"],
            "student_email": DEMO_STUDENT["email"],
            "student_password": DEMO_STUDENT["password"],
            "assignment_id": assignment["id"],
        }


@pytest.fixture
def student_client(app, curriculum):
    """Ali, signed in to the student dashboard."""
    return sign_in(
        app.test_client(), "/api/students/auth/login",
        curriculum["student_email"], curriculum["student_password"],
    )
