"""
SQLite database layer for the curriculum tracker.

Uses raw sqlite3 with WAL mode and parameterized queries.
A schema_version table handles migrations. Dependent rows are removed
explicitly inside transactions rather than through ON DELETE CASCADE.
"""

from __future__ import annotations

import fcntl
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator

from flask import current_app, g

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent / "curriculum.db"


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

-- Teachers and super admins
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL DEFAULT '',
    role TEXT NOT NULL DEFAULT 'TEACHER',
    login_attempts INTEGER NOT NULL DEFAULT 0,
    locked_until TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS lessons (
    id TEXT PRIMARY KEY,
    teacher_id TEXT NOT NULL REFERENCES users(id),
    name TEXT NOT NULL,
    group_name TEXT NOT NULL DEFAULT '',
    type TEXT NOT NULL DEFAULT 'TYT',
    subject TEXT,
    color TEXT NOT NULL DEFAULT 'blue',
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS topics (
    id TEXT PRIMARY KEY,
    lesson_id TEXT NOT NULL REFERENCES lessons(id),
    name TEXT NOT NULL,
    sort_order INTEGER NOT NULL DEFAULT 1,
    average_test_count INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS resources (
    id TEXT PRIMARY KEY,
    teacher_id TEXT NOT NULL REFERENCES users(id),
    name TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS resource_lessons (
    id TEXT PRIMARY KEY,
    resource_id TEXT NOT NULL REFERENCES resources(id),
    lesson_id TEXT NOT NULL REFERENCES lessons(id),
    UNIQUE(resource_id, lesson_id)
);

CREATE TABLE IF NOT EXISTS resource_topics (
    id TEXT PRIMARY KEY,
    resource_lesson_id TEXT NOT NULL REFERENCES resource_lessons(id),
    resource_id TEXT NOT NULL REFERENCES resources(id),
    topic_id TEXT NOT NULL REFERENCES topics(id),
    question_count INTEGER NOT NULL DEFAULT 0,
    UNIQUE(resource_lesson_id, topic_id)
);

CREATE TABLE IF NOT EXISTS students (
    id TEXT PRIMARY KEY,
    teacher_id TEXT NOT NULL REFERENCES users(id),
    name TEXT NOT NULL,
    email TEXT UNIQUE,
    password_hash TEXT,
    phone TEXT,
    parent_name TEXT,
    parent_phone TEXT,
    notes TEXT,
    status TEXT NOT NULL DEFAULT 'ACTIVE',
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS student_assignments (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL REFERENCES students(id),
    topic_id TEXT NOT NULL REFERENCES topics(id),
    completed INTEGER NOT NULL DEFAULT 0,
    assigned_at TEXT NOT NULL DEFAULT '',
    UNIQUE(student_id, topic_id)
);

-- questionCounts as explicit (resource, student, count) rows per assignment
CREATE TABLE IF NOT EXISTS assignment_question_counts (
    assignment_id TEXT NOT NULL REFERENCES student_assignments(id),
    resource_id TEXT NOT NULL REFERENCES resources(id),
    student_id TEXT NOT NULL REFERENCES students(id),
    count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (assignment_id, resource_id, student_id)
);

CREATE TABLE IF NOT EXISTS student_progress (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL REFERENCES students(id),
    assignment_id TEXT NOT NULL REFERENCES student_assignments(id),
    resource_id TEXT NOT NULL REFERENCES resources(id),
    topic_id TEXT NOT NULL REFERENCES topics(id),
    solved_count INTEGER NOT NULL DEFAULT 0,
    total_count INTEGER NOT NULL DEFAULT 0,
    last_solved_at TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT '',
    UNIQUE(student_id, assignment_id, resource_id)
);

CREATE TABLE IF NOT EXISTS weekly_schedules (
    id TEXT PRIMARY KEY,
    student_id TEXT NOT NULL REFERENCES students(id),
    title TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS week_plans (
    id TEXT PRIMARY KEY,
    schedule_id TEXT NOT NULL REFERENCES weekly_schedules(id),
    week_number INTEGER NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS week_topics (
    id TEXT PRIMARY KEY,
    week_plan_id TEXT NOT NULL REFERENCES week_plans(id),
    assignment_id TEXT NOT NULL REFERENCES student_assignments(id),
    position INTEGER NOT NULL DEFAULT 1,
    is_completed INTEGER NOT NULL DEFAULT 0
);

-- Security audit trail
CREATE TABLE IF NOT EXISTS audit_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    actor TEXT,
    action TEXT NOT NULL,
    detail TEXT NOT NULL DEFAULT '',
    ip_address TEXT NOT NULL DEFAULT '',
    user_agent TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);
"""


# Versioned migrations: list of (version, sql) tuples.
# Version 1 is the base schema above.
MIGRATIONS: list[tuple[int, str]] = [
    # Migration 2: lookup indexes for ownership and nested reads
    (2, """
        CREATE INDEX IF NOT EXISTS idx_lessons_teacher ON lessons(teacher_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_topics_lesson_order ON topics(lesson_id, sort_order);
        CREATE INDEX IF NOT EXISTS idx_resources_teacher ON resources(teacher_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_resource_topics_topic ON resource_topics(topic_id);
        CREATE INDEX IF NOT EXISTS idx_students_teacher ON students(teacher_id, created_at);
        CREATE INDEX IF NOT EXISTS idx_assignments_student ON student_assignments(student_id);
        CREATE INDEX IF NOT EXISTS idx_progress_assignment ON student_progress(assignment_id, resource_id);
        CREATE INDEX IF NOT EXISTS idx_week_plans_schedule ON week_plans(schedule_id, week_number);
        CREATE INDEX IF NOT EXISTS idx_week_topics_week ON week_topics(week_plan_id, position);
    """),

    # Migration 3: per-attempt result breakdown on progress rows
    (3, """
        ALTER TABLE student_progress ADD COLUMN correct_count INTEGER NOT NULL DEFAULT 0;
        ALTER TABLE student_progress ADD COLUMN wrong_count INTEGER NOT NULL DEFAULT 0;
        ALTER TABLE student_progress ADD COLUMN empty_count INTEGER NOT NULL DEFAULT 0;
    """),

    # Migration 4: teacher subscriptions
    (4, """
        ALTER TABLE users ADD COLUMN subscription_end_date TEXT;
    """),
]


def new_id() -> str:
    """Opaque string identifier for new rows."""
    return uuid.uuid4().hex


def now_iso() -> str:
    return datetime.now().isoformat()


def get_db() -> sqlite3.Connection:
    """Return a DB connection from Flask g, creating if needed."""
    if "db" not in g:
        db_path = current_app.config.get("DATABASE", str(DEFAULT_DB_PATH))
        g.db = sqlite3.connect(db_path)
        g.db.row_factory = sqlite3.Row
        g.db.execute("PRAGMA journal_mode=WAL")
        g.db.execute("PRAGMA foreign_keys=ON")
    return g.db


def close_db(e=None) -> None:
    """Close the DB connection at teardown."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


@contextmanager
def transaction() -> Iterator[sqlite3.Connection]:
    """Run a block of statements all-or-nothing.

    Nested blocks join the outermost transaction; only the outermost
    block commits or rolls back.
    """
    db = get_db()
    depth = g.get("_tx_depth", 0)
    g._tx_depth = depth + 1
    try:
        yield db
        if depth == 0:
            db.commit()
    except Exception:
        if depth == 0:
            db.rollback()
        raise
    finally:
        g._tx_depth = depth


def init_db() -> None:
    """Execute schema DDL to create all tables."""
    db = get_db()
    db.executescript(SCHEMA)
    row = db.execute("SELECT version FROM schema_version WHERE version = 1").fetchone()
    if not row:
        db.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (1, ?)",
            (now_iso(),),
        )
    db.commit()


def run_migrations() -> None:
    """Apply any unapplied versioned migrations.

    Uses file-based locking to prevent race conditions when multiple
    Gunicorn workers start simultaneously.
    """
    db_path = current_app.config.get("DATABASE", str(DEFAULT_DB_PATH))
    lock_file = None
    if db_path != ":memory:":
        try:
            lock_file = open(Path(db_path).with_suffix(".migration.lock"), "w")
            fcntl.flock(lock_file, fcntl.LOCK_EX)
        except OSError:
            lock_file = None

    try:
        db = get_db()
        applied = {
            row["version"]
            for row in db.execute("SELECT version FROM schema_version").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version in applied:
                continue
            try:
                db.executescript(sql)
            except sqlite3.OperationalError as e:
                if "duplicate column" not in str(e).lower():
                    raise
            db.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (version, now_iso()),
            )
            db.commit()
            logger.info("Applied migration %d", version)
    finally:
        if lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def init_app(app) -> None:
    """Register teardown and auto-init on first request."""
    app.teardown_appcontext(close_db)

    @app.before_request
    def _ensure_db():
        if not getattr(app, "_db_initialized", False):
            init_db()
            run_migrations()
            app._db_initialized = True
