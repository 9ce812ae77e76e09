"""
Seed Demo Data: standalone script and test helper.

Creates the super admin (from SUPERADMIN_EMAIL / SUPERADMIN_PASSWORD when
set), one demo teacher, and a small curriculum: the Matematik lesson with a
Türev topic, the Kaynak A resource offering 20 questions on it, and a
student Ali assigned the topic with a target of 10 and 3 questions solved.

Usage:
    python seed_demo_data.py           # Seed into the configured database
    python seed_demo_data.py --reset   # Clear demo data first
"""

from __future__ import annotations

import sys

from werkzeug.security import generate_password_hash

from database import get_db, new_id, now_iso
from db_stores import (
    AssignmentStoreDB,
    LessonStoreDB,
    Owner,
    ProgressStoreDB,
    ResourceStoreDB,
    StudentStoreDB,
    TeacherStoreDB,
    TopicStoreDB,
)
from schemas import LessonCreate, ProgressUpsert, ResourcePayload, StudentCreate

DEMO_TEACHER = {"name": "Demo Öğretmen", "email": "teacher@demo.local", "password": "demo123"}
DEMO_STUDENT = {"name": "Ali", "email": "ali@demo.local", "password": "demo123"}


def ensure_superadmin(email: str, password: str) -> str | None:
    """Create the super admin account once; returns its id."""
    if not email or not password:
        return None
    db = get_db()
    row = db.execute("SELECT id FROM users WHERE email = ?", (email.lower(),)).fetchone()
    if row:
        return row["id"]
    admin_id = new_id()
    now = now_iso()
    db.execute(
        "INSERT INTO users (id, name, email, password_hash, role, created_at, updated_at) "
        "VALUES (?, 'Super Admin', ?, ?, 'SUPER_ADMIN', ?, ?)",
        (admin_id, email.lower(), generate_password_hash(password), now, now),
    )
    db.commit()
    return admin_id


def _demo_teacher_id() -> str | None:
    row = get_db().execute("SELECT id FROM users WHERE email = ?", (DEMO_TEACHER["email"],)).fetchone()
    return row["id"] if row else None


def seed() -> dict:
    """Seed the demo curriculum. Returns a summary dict."""
    existing = _demo_teacher_id()
    if existing:
        return {"teacher_id": existing, "created": False}

    db = get_db()
    teacher_id = new_id()
    now = now_iso()
    db.execute(
        "INSERT INTO users (id, name, email, password_hash, role, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, 'TEACHER', ?, ?)",
        (teacher_id, DEMO_TEACHER["name"], DEMO_TEACHER["email"],
         generate_password_hash(DEMO_TEACHER["password"]), now, now),
    )
    db.commit()

    owner = Owner(teacher_id=teacher_id)
    lesson = LessonStoreDB(owner).create(LessonCreate(name="Matematik", group="Sayısal", type="TYT"))
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
    ProgressStoreDB(owner).upsert(
        ProgressUpsert(
            student_id=student["id"], assignment_id=assignment["id"],
            resource_id=resource["id"], topic_id=topic["id"],
        ),
        solved_count=3,
    )
    return {
        "teacher_id": teacher_id,
        "lesson_id": lesson["id"],
        "topic_id": topic["id"],
        "resource_id": resource["id"],
        "student_id": student["id"],
        "assignment_id": assignment["id"],
        "created": True,
    }


def clear_demo(admin_id: str | None = None) -> None:
    """Remove the demo teacher and everything they own."""
    teacher_id = _demo_teacher_id()
    if not teacher_id:
        return
    TeacherStoreDB(Owner(teacher_id=admin_id or "", is_admin=True)).delete(teacher_id)


if __name__ == "__main__":
    from app import create_app
    from database import init_db, run_migrations

    app = create_app()
    with app.app_context():
        init_db()
        run_migrations()
        admin_id = ensure_superadmin(app.config["SUPERADMIN_EMAIL"], app.config["SUPERADMIN_PASSWORD"])
        if "--reset" in sys.argv:
            clear_demo(admin_id)
            print("[Seed] Demo data cleared.")
        result = seed()
        print(f"[Seed] Done: {result}")
