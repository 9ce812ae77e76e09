"""Tests for database.py: schema creation, migrations, transactions."""

import sqlite3

import pytest
from database import MIGRATIONS, get_db, init_db, new_id, run_migrations, transaction


class TestSchema:
    """Verify all tables are created correctly."""

    def test_tables_exist(self, app):
        with app.app_context():
            db = get_db()
            tables = [r["name"] for r in db.execute(
                "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
            ).fetchall()]
            expected = [
                "assignment_question_counts", "audit_log", "lessons", "resource_lessons",
                "resource_topics", "resources", "schema_version", "student_assignments",
                "student_progress", "students", "topics", "users", "week_plans", "week_topics",
                "weekly_schedules",
            ]
            for t in expected:
                assert t in tables, f"Table {t} not found"

    def test_wal_mode(self, app):
        with app.app_context():
            db = get_db()
            mode = db.execute("PRAGMA journal_mode").fetchone()[0]
            assert mode == "wal"

    def test_foreign_keys_enabled(self, app):
        with app.app_context():
            db = get_db()
            fk = db.execute("PRAGMA foreign_keys").fetchone()[0]
            assert fk == 1

    def test_seed_teacher_exists(self, db):
        row = db.execute("SELECT * FROM users WHERE id='teacher-1'").fetchone()
        assert row is not None
        assert row["role"] == "TEACHER"

    def test_foreign_key_enforced(self, app):
        with app.app_context():
            db = get_db()
            with pytest.raises(sqlite3.IntegrityError):
                db.execute(
                    "INSERT INTO topics (id, lesson_id, name) VALUES (?, 'missing', 'Türev')", (new_id(),),
                )

    def test_unique_assignment_per_topic(self, app, curriculum):
        with app.app_context():
            db = get_db()
            with pytest.raises(sqlite3.IntegrityError):
                db.execute(
                    "INSERT INTO student_assignments (id, student_id, topic_id) VALUES (?, ?, ?)",
                    (new_id(), curriculum["student_id"], curriculum["topic_id"]),
                )


class TestMigrations:
    def test_all_versions_recorded(self, db):
        versions = {r["version"] for r in db.execute("SELECT version FROM schema_version").fetchall()}
        assert versions == {1} | {v for v, _ in MIGRATIONS}

    def test_rerun_is_idempotent(self, app):
        with app.app_context():
            init_db()
            run_migrations()
            db = get_db()
            count = db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
            assert count == 1 + len(MIGRATIONS)

    def test_progress_result_columns(self, db):
        columns = {r["name"] for r in db.execute("PRAGMA table_info(student_progress)").fetchall()}
        assert {"correct_count", "wrong_count", "empty_count"} <= columns


class TestTransaction:
    def _insert_lesson(self, db, lesson_id):
        db.execute(
            "INSERT INTO lessons (id, teacher_id, name) VALUES (?, 'teacher-1', 'Fizik')", (lesson_id,),
        )

    def test_commit(self, app):
        with app.app_context():
            with transaction() as db:
                self._insert_lesson(db, "l-1")
            assert get_db().execute("SELECT COUNT(*) FROM lessons").fetchone()[0] == 1

    def test_rollback_on_error(self, app):
        with app.app_context():
            with pytest.raises(RuntimeError):
                with transaction() as db:
                    self._insert_lesson(db, "l-1")
                    raise RuntimeError("boom")
            assert get_db().execute("SELECT COUNT(*) FROM lessons").fetchone()[0] == 0

    def test_nested_blocks_share_outer_transaction(self, app):
        with app.app_context():
            with pytest.raises(RuntimeError):
                with transaction() as db:
                    with transaction() as inner:
                        self._insert_lesson(inner, "l-1")
                    self._insert_lesson(db, "l-2")
                    raise RuntimeError("boom")
            assert get_db().execute("SELECT COUNT(*) FROM lessons").fetchone()[0] == 0
