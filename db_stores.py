"""
DB-backed store classes for the curriculum tracker.

Each store is bound to an ``Owner`` and only reads or writes rows that owner
may see: a teacher's own lessons, resources and students (and everything
hanging off them), a student's own records, or everything for a super admin.
Rows are returned as camelCase dicts ready for the JSON API.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

import progress
import schedule
from auth import ROLE_SUPER_ADMIN, subscription_active
from database import get_db, new_id, now_iso, transaction
from errors import Conflict, Forbidden, NotFound, OwnershipError, ValidationFailed
from schemas import LESSON_COLORS


@dataclass(frozen=True)
class Owner:
    """Who a store acts for.

    Students carry their teacher's id too, so teacher-owned lookups
    (lessons, resources) resolve for them read-only.
    """
    teacher_id: str
    is_admin: bool = False
    student_id: Optional[str] = None

    @property
    def is_student(self) -> bool:
        return self.student_id is not None

    def check_teacher(self, teacher_id: str) -> None:
        if self.is_admin:
            return
        if teacher_id != self.teacher_id:
            raise OwnershipError()

    def check_student(self, student_row) -> None:
        if self.is_student:
            if student_row["id"] != self.student_id:
                raise OwnershipError()
            return
        self.check_teacher(student_row["teacher_id"])

    def require_teacher(self) -> None:
        if self.is_student:
            raise Forbidden("Teacher access required")


def _marks(n: int) -> str:
    return ",".join("?" * n)


def _update_row(db, table: str, row_id: str, columns: dict) -> None:
    if not columns:
        return
    assignments = ", ".join(f"{col} = ?" for col in columns)
    db.execute(f"UPDATE {table} SET {assignments} WHERE id = ?", (*columns.values(), row_id))


def _purge_assignments(db, where: str, params: tuple) -> None:
    """Delete matching assignments and every row that points at them."""
    sub = f"SELECT id FROM student_assignments WHERE {where}"
    db.execute(f"DELETE FROM week_topics WHERE assignment_id IN ({sub})", params)
    db.execute(f"DELETE FROM student_progress WHERE assignment_id IN ({sub})", params)
    db.execute(f"DELETE FROM assignment_question_counts WHERE assignment_id IN ({sub})", params)
    db.execute(f"DELETE FROM student_assignments WHERE {where}", params)


# ── Serializers ──────────────────────────────────────────────────────

def _lesson_dict(row, topics: list[dict] | None = None) -> dict:
    d = {
        "id": row["id"],
        "teacherId": row["teacher_id"],
        "name": row["name"],
        "group": row["group_name"],
        "type": row["type"],
        "subject": row["subject"],
        "color": row["color"],
        "createdAt": row["created_at"],
    }
    if topics is not None:
        d["topics"] = topics
    return d


def _topic_dict(row) -> dict:
    return {
        "id": row["id"],
        "lessonId": row["lesson_id"],
        "name": row["name"],
        "order": row["sort_order"],
        "averageTestCount": row["average_test_count"],
        "createdAt": row["created_at"],
    }


def _student_dict(row) -> dict:
    return {
        "id": row["id"],
        "teacherId": row["teacher_id"],
        "name": row["name"],
        "email": row["email"],
        "phone": row["phone"],
        "parentName": row["parent_name"],
        "parentPhone": row["parent_phone"],
        "notes": row["notes"],
        "status": row["status"],
        "hasAccount": bool(row["password_hash"]),
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def _progress_dict(row) -> dict:
    return {
        "id": row["id"],
        "studentId": row["student_id"],
        "assignmentId": row["assignment_id"],
        "resourceId": row["resource_id"],
        "topicId": row["topic_id"],
        "solvedCount": row["solved_count"],
        "totalCount": row["total_count"],
        "correctCount": row["correct_count"],
        "wrongCount": row["wrong_count"],
        "emptyCount": row["empty_count"],
        "lastSolvedAt": row["last_solved_at"] or None,
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def _topics_by_lesson(db, lesson_ids: list[str]) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {lid: [] for lid in lesson_ids}
    if not lesson_ids:
        return grouped
    rows = db.execute(
        f"SELECT * FROM topics WHERE lesson_id IN ({_marks(len(lesson_ids))}) "
        "ORDER BY sort_order, created_at",
        tuple(lesson_ids),
    ).fetchall()
    for r in rows:
        grouped[r["lesson_id"]].append(_topic_dict(r))
    return grouped


def _student_row(db, owner: Owner, student_id: str):
    row = db.execute("SELECT * FROM students WHERE id = ?", (student_id,)).fetchone()
    if not row:
        raise NotFound("Student not found")
    owner.check_student(row)
    return row


# ── Lessons ──────────────────────────────────────────────────────────

class LessonStoreDB:
    """Lessons of one teacher, each with its ordered topics."""

    def __init__(self, owner: Owner):
        self.owner = owner

    def _scope(self, alias: str = "") -> tuple[str, tuple]:
        if self.owner.is_admin:
            return "1 = 1", ()
        return f"{alias}teacher_id = ?", (self.owner.teacher_id,)

    def _row(self, lesson_id: str):
        row = get_db().execute("SELECT * FROM lessons WHERE id = ?", (lesson_id,)).fetchone()
        if not row:
            raise NotFound("Lesson not found")
        self.owner.check_teacher(row["teacher_id"])
        return row

    def list(self, page: int = 1, limit: int = 20, type: str | None = None) -> tuple[list[dict], int]:
        db = get_db()
        where, params = self._scope()
        if type:
            where += " AND type = ?"
            params += (type,)
        total = db.execute(f"SELECT COUNT(*) FROM lessons WHERE {where}", params).fetchone()[0]
        rows = db.execute(
            f"SELECT * FROM lessons WHERE {where} ORDER BY created_at DESC, id LIMIT ? OFFSET ?",
            (*params, limit, (page - 1) * limit),
        ).fetchall()
        topics = _topics_by_lesson(db, [r["id"] for r in rows])
        return [_lesson_dict(r, topics[r["id"]]) for r in rows], total

    def all(self) -> list[dict]:
        db = get_db()
        where, params = self._scope()
        rows = db.execute(f"SELECT * FROM lessons WHERE {where} ORDER BY created_at", params).fetchall()
        topics = _topics_by_lesson(db, [r["id"] for r in rows])
        return [_lesson_dict(r, topics[r["id"]]) for r in rows]

    def get(self, lesson_id: str) -> dict:
        row = self._row(lesson_id)
        return _lesson_dict(row, _topics_by_lesson(get_db(), [lesson_id])[lesson_id])

    def pick_color(self) -> str:
        """First palette color none of the teacher's lessons uses yet."""
        used = {
            r["color"] for r in get_db().execute(
                "SELECT color FROM lessons WHERE teacher_id = ?", (self.owner.teacher_id,),
            ).fetchall()
        }
        for color in LESSON_COLORS:
            if color not in used:
                return color
        return "blue"

    def create(self, data) -> dict:
        self.owner.require_teacher()
        lesson_id = new_id()
        with transaction() as db:
            db.execute(
                "INSERT INTO lessons (id, teacher_id, name, group_name, type, subject, color, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (lesson_id, self.owner.teacher_id, data.name, data.group, data.type,
                 data.subject, data.color or self.pick_color(), now_iso()),
            )
        return self.get(lesson_id)

    def update(self, lesson_id: str, data) -> dict:
        self.owner.require_teacher()
        self._row(lesson_id)
        columns = {
            {"group": "group_name"}.get(k, k): v
            for k, v in data.model_dump(exclude_none=True).items()
        }
        with transaction() as db:
            _update_row(db, "lessons", lesson_id, columns)
        return self.get(lesson_id)

    def delete(self, lesson_id: str) -> None:
        """Remove the lesson, its topics and everything linked to them, all at once."""
        self.owner.require_teacher()
        self._row(lesson_id)
        with transaction() as db:
            topic_sub = "SELECT id FROM topics WHERE lesson_id = ?"
            db.execute(
                "DELETE FROM resource_topics WHERE topic_id IN (" + topic_sub + ") "
                "OR resource_lesson_id IN (SELECT id FROM resource_lessons WHERE lesson_id = ?)",
                (lesson_id, lesson_id),
            )
            db.execute("DELETE FROM resource_lessons WHERE lesson_id = ?", (lesson_id,))
            _purge_assignments(db, f"topic_id IN ({topic_sub})", (lesson_id,))
            db.execute(f"DELETE FROM student_progress WHERE topic_id IN ({topic_sub})", (lesson_id,))
            db.execute("DELETE FROM topics WHERE lesson_id = ?", (lesson_id,))
            db.execute("DELETE FROM lessons WHERE id = ?", (lesson_id,))

    def assign_colors(self) -> list[dict]:
        """Recolor lessons left uncolored or on the default, cycling the palette."""
        self.owner.require_teacher()
        where, params = self._scope()
        with transaction() as db:
            rows = db.execute(
                f"SELECT * FROM lessons WHERE {where} AND (color IS NULL OR color = '' OR color = 'blue') "
                "ORDER BY created_at, id",
                params,
            ).fetchall()
            for i, row in enumerate(rows):
                db.execute(
                    "UPDATE lessons SET color = ? WHERE id = ?",
                    (LESSON_COLORS[i % len(LESSON_COLORS)], row["id"]),
                )
        return [self.get(r["id"]) for r in rows]


# ── Topics ───────────────────────────────────────────────────────────

class TopicStoreDB:
    """Topics are owned through their lesson; order is 1..N within a lesson."""

    def __init__(self, owner: Owner):
        self.owner = owner
        self.lessons = LessonStoreDB(owner)

    def _row(self, topic_id: str):
        row = get_db().execute(
            "SELECT t.*, l.teacher_id FROM topics t JOIN lessons l ON l.id = t.lesson_id WHERE t.id = ?",
            (topic_id,),
        ).fetchone()
        if not row:
            raise NotFound("Topic not found")
        self.owner.check_teacher(row["teacher_id"])
        return row

    def list_for_lesson(self, lesson_id: str) -> list[dict]:
        self.lessons._row(lesson_id)
        return _topics_by_lesson(get_db(), [lesson_id])[lesson_id]

    def list(self) -> list[dict]:
        where, params = self.lessons._scope("l.")
        rows = get_db().execute(
            "SELECT t.* FROM topics t JOIN lessons l ON l.id = t.lesson_id "
            f"WHERE {where} ORDER BY l.created_at, t.sort_order",
            params,
        ).fetchall()
        return [_topic_dict(r) for r in rows]

    def get(self, topic_id: str) -> dict:
        row = self._row(topic_id)
        topic = _topic_dict(row)
        topic["lesson"] = _lesson_dict(self.lessons._row(row["lesson_id"]))
        return topic

    def create(self, lesson_id: str, name: str, order: int | None = None,
               average_test_count: int = 0) -> dict:
        self.owner.require_teacher()
        self.lessons._row(lesson_id)
        topic_id = new_id()
        with transaction() as db:
            if order is None:
                current = db.execute(
                    "SELECT MAX(sort_order) FROM topics WHERE lesson_id = ?", (lesson_id,),
                ).fetchone()[0]
                order = (current or 0) + 1
            db.execute(
                "INSERT INTO topics (id, lesson_id, name, sort_order, average_test_count, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (topic_id, lesson_id, name, order, average_test_count, now_iso()),
            )
        return _topic_dict(self._row(topic_id))

    def update(self, topic_id: str, data) -> dict:
        self.owner.require_teacher()
        self._row(topic_id)
        columns = {
            {"order": "sort_order"}.get(k, k): v
            for k, v in data.model_dump(exclude_none=True).items()
        }
        with transaction() as db:
            _update_row(db, "topics", topic_id, columns)
        return _topic_dict(self._row(topic_id))

    def _resequence(self, db, lesson_id: str, ordered_ids: list[str]) -> None:
        for topic_id, position in schedule.renumber(ordered_ids):
            db.execute("UPDATE topics SET sort_order = ? WHERE id = ?", (position, topic_id))

    def _ordered_ids(self, db, lesson_id: str, by: str = "sort_order, created_at") -> list[str]:
        return [
            r["id"] for r in db.execute(
                f"SELECT id FROM topics WHERE lesson_id = ? ORDER BY {by}", (lesson_id,),
            ).fetchall()
        ]

    def delete(self, topic_id: str) -> None:
        self.owner.require_teacher()
        row = self._row(topic_id)
        with transaction() as db:
            db.execute("DELETE FROM resource_topics WHERE topic_id = ?", (topic_id,))
            _purge_assignments(db, "topic_id = ?", (topic_id,))
            db.execute("DELETE FROM student_progress WHERE topic_id = ?", (topic_id,))
            db.execute("DELETE FROM topics WHERE id = ?", (topic_id,))
            self._resequence(db, row["lesson_id"], self._ordered_ids(db, row["lesson_id"]))

    def reorder(self, lesson_id: str, topic_ids: list[str]) -> list[dict]:
        """Give each topic its 1-based position in ``topic_ids``."""
        self.owner.require_teacher()
        self.lessons._row(lesson_id)
        with transaction() as db:
            existing = self._ordered_ids(db, lesson_id)
            if len(topic_ids) != len(set(topic_ids)) or set(topic_ids) != set(existing):
                raise ValidationFailed(
                    "topicIds must list every topic of the lesson exactly once",
                    details=[{"field": "topicIds", "message": "not a permutation of the lesson's topics"}],
                )
            self._resequence(db, lesson_id, topic_ids)
        return self.list_for_lesson(lesson_id)

    def move(self, topic_id: str, index: int) -> list[dict]:
        """Drag one topic to ``index`` (0-based) and renumber the lesson."""
        row = self._row(topic_id)
        with transaction() as db:
            ids = self._ordered_ids(db, row["lesson_id"])
            return self.reorder(row["lesson_id"], schedule.move(ids, ids.index(topic_id), index))

    def fix_orders(self) -> int:
        """Re-sequence every lesson by creation time; returns topics touched."""
        self.owner.require_teacher()
        touched = 0
        with transaction() as db:
            for lesson in self.lessons.all():
                ids = self._ordered_ids(db, lesson["id"], by="created_at, id")
                self._resequence(db, lesson["id"], ids)
                touched += len(ids)
        return touched


# ── Resources ────────────────────────────────────────────────────────

class ResourceStoreDB:
    """Question banks linked to lessons and, within them, to topics."""

    def __init__(self, owner: Owner):
        self.owner = owner
        self.lessons = LessonStoreDB(owner)

    def _row(self, resource_id: str):
        row = get_db().execute("SELECT * FROM resources WHERE id = ?", (resource_id,)).fetchone()
        if not row:
            raise NotFound("Resource not found")
        self.owner.check_teacher(row["teacher_id"])
        return row

    def _nested(self, rows) -> list[dict]:
        db = get_db()
        ids = [r["id"] for r in rows]
        links: dict[str, list[dict]] = {rid: [] for rid in ids}
        if ids:
            lesson_rows = db.execute(
                "SELECT rl.id, rl.resource_id, rl.lesson_id, l.name, l.group_name, l.color, l.type "
                "FROM resource_lessons rl JOIN lessons l ON l.id = rl.lesson_id "
                f"WHERE rl.resource_id IN ({_marks(len(ids))}) ORDER BY l.name",
                tuple(ids),
            ).fetchall()
            topic_rows = db.execute(
                "SELECT rt.id, rt.resource_lesson_id, rt.topic_id, rt.question_count, t.name, t.sort_order "
                "FROM resource_topics rt JOIN topics t ON t.id = rt.topic_id "
                f"WHERE rt.resource_id IN ({_marks(len(ids))}) ORDER BY t.sort_order",
                tuple(ids),
            ).fetchall()
            by_link: dict[str, list[dict]] = {}
            for t in topic_rows:
                by_link.setdefault(t["resource_lesson_id"], []).append({
                    "id": t["id"],
                    "topicId": t["topic_id"],
                    "questionCount": t["question_count"],
                    "topic": {"id": t["topic_id"], "name": t["name"], "order": t["sort_order"]},
                })
            for rl in lesson_rows:
                links[rl["resource_id"]].append({
                    "id": rl["id"],
                    "lessonId": rl["lesson_id"],
                    "lesson": {
                        "id": rl["lesson_id"], "name": rl["name"], "group": rl["group_name"],
                        "color": rl["color"], "type": rl["type"],
                    },
                    "topics": by_link.get(rl["id"], []),
                })
        return [
            {
                "id": r["id"],
                "teacherId": r["teacher_id"],
                "name": r["name"],
                "description": r["description"],
                "createdAt": r["created_at"],
                "lessons": links[r["id"]],
            }
            for r in rows
        ]

    def _scope(self) -> tuple[str, tuple]:
        if self.owner.is_admin:
            return "1 = 1", ()
        return "teacher_id = ?", (self.owner.teacher_id,)

    def list(self, page: int = 1, limit: int = 20) -> tuple[list[dict], int]:
        db = get_db()
        where, params = self._scope()
        total = db.execute(f"SELECT COUNT(*) FROM resources WHERE {where}", params).fetchone()[0]
        rows = db.execute(
            f"SELECT * FROM resources WHERE {where} ORDER BY created_at DESC, id LIMIT ? OFFSET ?",
            (*params, limit, (page - 1) * limit),
        ).fetchall()
        return self._nested(rows), total

    def all(self) -> list[dict]:
        where, params = self._scope()
        rows = get_db().execute(f"SELECT * FROM resources WHERE {where} ORDER BY created_at", params).fetchall()
        return self._nested(rows)

    def get(self, resource_id: str) -> dict:
        return self._nested([self._row(resource_id)])[0]

    def for_topic(self, topic_id: str) -> list[dict]:
        """Resources offering questions for a topic, one entry per resource."""
        TopicStoreDB(self.owner)._row(topic_id)
        return progress.resources_for_topic(topic_id, self.all())

    def _link(self, db, resource_id: str, data) -> None:
        """Create associations: each lesson, plus the submitted topics that belong to it."""
        wanted_topics = set(data.topic_ids)
        for lesson_id in dict.fromkeys(data.lesson_ids):
            self.lessons._row(lesson_id)
            link_id = new_id()
            db.execute(
                "INSERT INTO resource_lessons (id, resource_id, lesson_id) VALUES (?, ?, ?)",
                (link_id, resource_id, lesson_id),
            )
            lesson_topics = db.execute(
                "SELECT id FROM topics WHERE lesson_id = ? ORDER BY sort_order", (lesson_id,),
            ).fetchall()
            for t in lesson_topics:
                if t["id"] not in wanted_topics:
                    continue
                db.execute(
                    "INSERT INTO resource_topics (id, resource_lesson_id, resource_id, topic_id, question_count) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (new_id(), link_id, resource_id, t["id"], data.topic_question_counts.get(t["id"], 0)),
                )

    def create(self, data) -> dict:
        self.owner.require_teacher()
        resource_id = new_id()
        with transaction() as db:
            db.execute(
                "INSERT INTO resources (id, teacher_id, name, description, created_at) VALUES (?, ?, ?, ?, ?)",
                (resource_id, self.owner.teacher_id, data.name, data.description, now_iso()),
            )
            self._link(db, resource_id, data)
        return self.get(resource_id)

    def update(self, resource_id: str, data) -> dict:
        """Rename and replace every association with the submitted ones."""
        self.owner.require_teacher()
        self._row(resource_id)
        with transaction() as db:
            db.execute(
                "UPDATE resources SET name = ?, description = ? WHERE id = ?",
                (data.name, data.description, resource_id),
            )
            db.execute("DELETE FROM resource_topics WHERE resource_id = ?", (resource_id,))
            db.execute("DELETE FROM resource_lessons WHERE resource_id = ?", (resource_id,))
            self._link(db, resource_id, data)
        return self.get(resource_id)

    def delete(self, resource_id: str) -> None:
        self.owner.require_teacher()
        self._row(resource_id)
        with transaction() as db:
            db.execute("DELETE FROM resource_topics WHERE resource_id = ?", (resource_id,))
            db.execute("DELETE FROM resource_lessons WHERE resource_id = ?", (resource_id,))
            db.execute("DELETE FROM assignment_question_counts WHERE resource_id = ?", (resource_id,))
            db.execute("DELETE FROM student_progress WHERE resource_id = ?", (resource_id,))
            db.execute("DELETE FROM resources WHERE id = ?", (resource_id,))


# ── Students ─────────────────────────────────────────────────────────

STUDENT_COLUMNS = ("name", "email", "phone", "parent_name", "parent_phone", "notes", "status")


class StudentStoreDB:
    """Students of one teacher, optionally with a login of their own."""

    def __init__(self, owner: Owner):
        self.owner = owner

    def _row(self, student_id: str):
        return _student_row(get_db(), self.owner, student_id)

    def _email_taken(self, db, email: str, exclude_id: str | None = None) -> bool:
        row = db.execute(
            "SELECT id FROM students WHERE email = ? AND id != ?", (email, exclude_id or ""),
        ).fetchone()
        return row is not None

    def list(self, page: int = 1, limit: int = 20, status: str | None = None) -> tuple[list[dict], int]:
        self.owner.require_teacher()
        db = get_db()
        where, params = ("1 = 1", ()) if self.owner.is_admin else ("teacher_id = ?", (self.owner.teacher_id,))
        if status:
            where += " AND status = ?"
            params += (status,)
        total = db.execute(f"SELECT COUNT(*) FROM students WHERE {where}", params).fetchone()[0]
        rows = db.execute(
            f"SELECT * FROM students WHERE {where} ORDER BY created_at DESC, id LIMIT ? OFFSET ?",
            (*params, limit, (page - 1) * limit),
        ).fetchall()
        return [_student_dict(r) for r in rows], total

    def get(self, student_id: str) -> dict:
        return _student_dict(self._row(student_id))

    def create(self, data) -> dict:
        self.owner.require_teacher()
        if data.email and not data.password:
            raise ValidationFailed(
                "Password is required when an email is set",
                details=[{"field": "password", "message": "required when email is set"}],
            )
        student_id = new_id()
        now = now_iso()
        with transaction() as db:
            if data.email and self._email_taken(db, data.email):
                raise Conflict("A student with this email already exists")
            db.execute(
                "INSERT INTO students (id, teacher_id, name, email, password_hash, phone, parent_name, "
                "parent_phone, notes, status, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (student_id, self.owner.teacher_id, data.name, data.email,
                 generate_password_hash(data.password) if data.password else None,
                 data.phone, data.parent_name, data.parent_phone, data.notes, data.status, now, now),
            )
        return self.get(student_id)

    def update(self, student_id: str, data) -> dict:
        self.owner.require_teacher()
        row = self._row(student_id)
        fields = data.model_dump(exclude_unset=True)
        columns = {k: v for k, v in fields.items() if k in STUDENT_COLUMNS}
        if columns.get("name", "") is None or columns.get("status", "") is None:
            raise ValidationFailed("name and status cannot be cleared")
        password = fields.get("password")
        if columns.get("email") and not password and not row["password_hash"]:
            raise ValidationFailed(
                "Password is required when an email is set",
                details=[{"field": "password", "message": "required when email is set"}],
            )
        if password:
            columns["password_hash"] = generate_password_hash(password)
        with transaction() as db:
            if columns.get("email") and self._email_taken(db, columns["email"], student_id):
                raise Conflict("A student with this email already exists")
            columns["updated_at"] = now_iso()
            _update_row(db, "students", student_id, columns)
        return self.get(student_id)

    def delete(self, student_id: str) -> None:
        self.owner.require_teacher()
        self._row(student_id)
        with transaction() as db:
            plans = ("SELECT id FROM week_plans WHERE schedule_id IN "
                     "(SELECT id FROM weekly_schedules WHERE student_id = ?)")
            db.execute(f"DELETE FROM week_topics WHERE week_plan_id IN ({plans})", (student_id,))
            db.execute(
                "DELETE FROM week_plans WHERE schedule_id IN "
                "(SELECT id FROM weekly_schedules WHERE student_id = ?)", (student_id,),
            )
            db.execute("DELETE FROM weekly_schedules WHERE student_id = ?", (student_id,))
            _purge_assignments(db, "student_id = ?", (student_id,))
            db.execute("DELETE FROM student_progress WHERE student_id = ?", (student_id,))
            db.execute("DELETE FROM assignment_question_counts WHERE student_id = ?", (student_id,))
            db.execute("DELETE FROM students WHERE id = ?", (student_id,))

    def details(self, student_id: str) -> dict:
        """Student with assignments and the progress rollups."""
        student = self.get(student_id)
        assignments = AssignmentStoreDB(self.owner).list(student_id=student_id)
        resources = ResourceStoreDB(Owner(student["teacherId"], self.owner.is_admin)).all()
        progress_rows = ProgressStoreDB(self.owner).list(student_id=student_id)
        lessons = {a["lessonId"]: a["topic"]["lesson"] for a in assignments}
        report = progress.build_report(assignments, resources, progress_rows, lessons)
        return {"student": student, **report}


# ── Assignments ──────────────────────────────────────────────────────

def _targets_by_assignment(db, assignment_ids: list[str]) -> dict[str, list[progress.QuestionTarget]]:
    grouped: dict[str, list[progress.QuestionTarget]] = {aid: [] for aid in assignment_ids}
    if not assignment_ids:
        return grouped
    rows = db.execute(
        "SELECT assignment_id, resource_id, student_id, count FROM assignment_question_counts "
        f"WHERE assignment_id IN ({_marks(len(assignment_ids))})",
        tuple(assignment_ids),
    ).fetchall()
    for r in rows:
        grouped[r["assignment_id"]].append(
            progress.QuestionTarget(r["resource_id"], r["student_id"], r["count"])
        )
    return grouped


ASSIGNMENT_SELECT = (
    "SELECT a.*, t.name AS topic_name, t.sort_order, t.average_test_count, t.lesson_id, "
    "l.name AS lesson_name, l.group_name, l.color, l.type, s.teacher_id "
    "FROM student_assignments a "
    "JOIN topics t ON t.id = a.topic_id "
    "JOIN lessons l ON l.id = t.lesson_id "
    "JOIN students s ON s.id = a.student_id "
)


def _assignment_dicts(db, rows) -> list[dict]:
    targets = _targets_by_assignment(db, [r["id"] for r in rows])
    return [
        {
            "id": r["id"],
            "studentId": r["student_id"],
            "topicId": r["topic_id"],
            "lessonId": r["lesson_id"],
            "completed": bool(r["completed"]),
            "assignedAt": r["assigned_at"],
            "questionCounts": progress.nest_targets(targets[r["id"]]),
            "topic": {
                "id": r["topic_id"],
                "name": r["topic_name"],
                "order": r["sort_order"],
                "averageTestCount": r["average_test_count"],
                "lesson": {
                    "id": r["lesson_id"],
                    "name": r["lesson_name"],
                    "group": r["group_name"],
                    "color": r["color"],
                    "type": r["type"],
                },
            },
        }
        for r in rows
    ]


class AssignmentStoreDB:
    """Topics assigned to students, with per-resource question targets."""

    def __init__(self, owner: Owner):
        self.owner = owner

    def _row(self, assignment_id: str):
        db = get_db()
        row = db.execute("SELECT * FROM student_assignments WHERE id = ?", (assignment_id,)).fetchone()
        if not row:
            raise NotFound("Assignment not found")
        _student_row(db, self.owner, row["student_id"])
        return row

    def list(self, student_id: str | None = None, topic_id: str | None = None) -> list[dict]:
        db = get_db()
        clauses, params = [], []
        if self.owner.is_student:
            clauses.append("a.student_id = ?")
            params.append(self.owner.student_id)
        elif not self.owner.is_admin:
            clauses.append("s.teacher_id = ?")
            params.append(self.owner.teacher_id)
        if student_id:
            clauses.append("a.student_id = ?")
            params.append(student_id)
        if topic_id:
            clauses.append("a.topic_id = ?")
            params.append(topic_id)
        where = " AND ".join(clauses) or "1 = 1"
        rows = db.execute(
            ASSIGNMENT_SELECT + f"WHERE {where} ORDER BY l.name, t.sort_order, a.assigned_at",
            tuple(params),
        ).fetchall()
        return _assignment_dicts(db, rows)

    def get(self, assignment_id: str) -> dict:
        self._row(assignment_id)
        db = get_db()
        rows = db.execute(ASSIGNMENT_SELECT + "WHERE a.id = ?", (assignment_id,)).fetchall()
        return _assignment_dicts(db, rows)[0]

    def _validate_counts(self, db, topic_id: str, student_id: str, counts: dict) -> None:
        """Every resource key must be linked to the topic; every student key must be the assignee."""
        linked = {
            r["resource_id"] for r in db.execute(
                "SELECT DISTINCT resource_id FROM resource_topics WHERE topic_id = ?", (topic_id,),
            ).fetchall()
        }
        errors = [
            {"field": f"questionCounts.{resource_id}", "message": "resource is not linked to this topic"}
            for resource_id in counts if resource_id not in linked
        ]
        if errors:
            raise ValidationFailed("Question counts reference resources outside the topic", details=errors)
        errors = [
            {"field": f"questionCounts.{resource_id}.{key}", "message": "counts must belong to the assigned student"}
            for resource_id, per_student in counts.items() for key in per_student if key != student_id
        ]
        if errors:
            raise ValidationFailed("Question counts reference another student", details=errors)

    def _write_counts(self, db, assignment_id: str, counts: dict) -> None:
        db.execute("DELETE FROM assignment_question_counts WHERE assignment_id = ?", (assignment_id,))
        for t in progress.targets_from_nested(counts):
            db.execute(
                "INSERT INTO assignment_question_counts (assignment_id, resource_id, student_id, count) "
                "VALUES (?, ?, ?, ?)",
                (assignment_id, t.resource_id, t.student_id, t.count),
            )

    def assign(self, student_id: str, topic_ids: list[str], question_counts: dict) -> dict:
        """Assign topics to a student; already-assigned topics are skipped and reported."""
        self.owner.require_teacher()
        topics = TopicStoreDB(self.owner)
        created, skipped = [], []
        with transaction() as db:
            _student_row(db, self.owner, student_id)
            for topic_id in dict.fromkeys(topic_ids):
                topics._row(topic_id)
                exists = db.execute(
                    "SELECT id FROM student_assignments WHERE student_id = ? AND topic_id = ?",
                    (student_id, topic_id),
                ).fetchone()
                if exists:
                    skipped.append(topic_id)
                    continue
                counts = question_counts.get(topic_id) or {}
                self._validate_counts(db, topic_id, student_id, counts)
                assignment_id = new_id()
                db.execute(
                    "INSERT INTO student_assignments (id, student_id, topic_id, completed, assigned_at) "
                    "VALUES (?, ?, ?, 0, ?)",
                    (assignment_id, student_id, topic_id, now_iso()),
                )
                self._write_counts(db, assignment_id, counts)
                created.append(assignment_id)
        return {"created": [self.get(a) for a in created], "skipped": skipped}

    def update(self, assignment_id: str, completed: bool | None = None,
               question_counts: dict | None = None) -> dict:
        self.owner.require_teacher()
        row = self._row(assignment_id)
        with transaction() as db:
            if completed is not None:
                db.execute(
                    "UPDATE student_assignments SET completed = ? WHERE id = ?",
                    (int(completed), assignment_id),
                )
            if question_counts is not None:
                self._validate_counts(db, row["topic_id"], row["student_id"], question_counts)
                self._write_counts(db, assignment_id, question_counts)
        return self.get(assignment_id)

    def delete(self, assignment_id: str) -> None:
        self.owner.require_teacher()
        self._row(assignment_id)
        with transaction() as db:
            _purge_assignments(db, "id = ?", (assignment_id,))

    def bulk_question_counts(self, data) -> list[str]:
        """Set one resource target on every in-scope assignment of a student.

        Only topics the resource is linked to are touched; returns their ids.
        """
        self.owner.require_teacher()
        lessons = LessonStoreDB(self.owner).all()
        in_scope = set(schedule.select_topics(
            data.scope, lessons, data.selected_topic_ids, data.group, data.lesson_id,
        ))
        updated = []
        with transaction() as db:
            _student_row(db, self.owner, data.student_id)
            ResourceStoreDB(self.owner)._row(data.resource_id)
            linked = {
                r["topic_id"] for r in db.execute(
                    "SELECT DISTINCT topic_id FROM resource_topics WHERE resource_id = ?", (data.resource_id,),
                ).fetchall()
            }
            rows = db.execute(
                "SELECT id, topic_id FROM student_assignments WHERE student_id = ?", (data.student_id,),
            ).fetchall()
            for r in rows:
                if r["topic_id"] not in in_scope or r["topic_id"] not in linked:
                    continue
                db.execute(
                    "INSERT INTO assignment_question_counts (assignment_id, resource_id, student_id, count) "
                    "VALUES (?, ?, ?, ?) ON CONFLICT(assignment_id, resource_id, student_id) "
                    "DO UPDATE SET count = excluded.count",
                    (r["id"], data.resource_id, data.student_id, data.count),
                )
                updated.append(r["topic_id"])
        return updated


# ── Progress ─────────────────────────────────────────────────────────

class ProgressStoreDB:
    """Solved-question counters, one row per (student, assignment, resource)."""

    def __init__(self, owner: Owner):
        self.owner = owner

    def _row(self, progress_id: str):
        db = get_db()
        row = db.execute("SELECT * FROM student_progress WHERE id = ?", (progress_id,)).fetchone()
        if not row:
            raise NotFound("Progress record not found")
        _student_row(db, self.owner, row["student_id"])
        return row

    def _check_key(self, db, key) -> None:
        """The resource must belong to the student's teacher and be linked to the topic."""
        student = _student_row(db, self.owner, key.student_id)
        assignment = db.execute(
            "SELECT * FROM student_assignments WHERE id = ?", (key.assignment_id,),
        ).fetchone()
        if not assignment:
            raise NotFound("Assignment not found")
        if assignment["student_id"] != key.student_id:
            raise ValidationFailed("Assignment does not belong to this student")
        if assignment["topic_id"] != key.topic_id:
            raise ValidationFailed("topicId does not match the assignment")
        resource = db.execute("SELECT teacher_id FROM resources WHERE id = ?", (key.resource_id,)).fetchone()
        if not resource:
            raise NotFound("Resource not found")
        if resource["teacher_id"] != student["teacher_id"]:
            raise OwnershipError()
        linked = db.execute(
            "SELECT 1 FROM resource_topics WHERE resource_id = ? AND topic_id = ?",
            (key.resource_id, key.topic_id),
        ).fetchone()
        if not linked:
            raise ValidationFailed("Resource is not linked to this topic")

    def _by_key(self, db, key) -> dict:
        row = db.execute(
            "SELECT * FROM student_progress WHERE student_id = ? AND assignment_id = ? AND resource_id = ?",
            (key.student_id, key.assignment_id, key.resource_id),
        ).fetchone()
        return _progress_dict(row)

    def list(self, student_id: str | None = None, assignment_id: str | None = None,
             topic_id: str | None = None, resource_id: str | None = None) -> list[dict]:
        clauses, params = [], []
        if self.owner.is_student:
            clauses.append("p.student_id = ?")
            params.append(self.owner.student_id)
        elif not self.owner.is_admin:
            clauses.append("s.teacher_id = ?")
            params.append(self.owner.teacher_id)
        for column, value in (("student_id", student_id), ("assignment_id", assignment_id),
                              ("topic_id", topic_id), ("resource_id", resource_id)):
            if value:
                clauses.append(f"p.{column} = ?")
                params.append(value)
        where = " AND ".join(clauses) or "1 = 1"
        rows = get_db().execute(
            "SELECT p.* FROM student_progress p JOIN students s ON s.id = p.student_id "
            f"WHERE {where} ORDER BY p.updated_at DESC, p.id",
            tuple(params),
        ).fetchall()
        return [_progress_dict(r) for r in rows]

    def get(self, progress_id: str) -> dict:
        return _progress_dict(self._row(progress_id))

    def upsert(self, key, solved_count: int | None = None, total_count: int | None = None) -> dict:
        now = now_iso()
        with transaction() as db:
            self._check_key(db, key)
            db.execute(
                "INSERT INTO student_progress (id, student_id, assignment_id, resource_id, topic_id, "
                "solved_count, total_count, last_solved_at, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, COALESCE(?, 0), COALESCE(?, 0), ?, ?, ?) "
                "ON CONFLICT(student_id, assignment_id, resource_id) DO UPDATE SET "
                "solved_count = COALESCE(?, solved_count), total_count = COALESCE(?, total_count), "
                "last_solved_at = CASE WHEN ? IS NULL THEN last_solved_at ELSE ? END, updated_at = ?",
                (new_id(), key.student_id, key.assignment_id, key.resource_id, key.topic_id,
                 solved_count, total_count, now if solved_count is not None else "", now, now,
                 solved_count, total_count, solved_count, now, now),
            )
            return self._by_key(db, key)

    def increment(self, key, by: int = 1) -> dict:
        if by < 1:
            raise ValidationFailed("increment must be at least 1")
        now = now_iso()
        with transaction() as db:
            self._check_key(db, key)
            db.execute(
                "INSERT INTO student_progress (id, student_id, assignment_id, resource_id, topic_id, "
                "solved_count, total_count, last_solved_at, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, 0, ?, ?, ?) "
                "ON CONFLICT(student_id, assignment_id, resource_id) DO UPDATE SET "
                "solved_count = solved_count + excluded.solved_count, "
                "last_solved_at = excluded.last_solved_at, updated_at = excluded.updated_at",
                (new_id(), key.student_id, key.assignment_id, key.resource_id, key.topic_id,
                 by, now, now, now),
            )
            return self._by_key(db, key)

    def record_result(self, student_id: str, topic_id: str, correct: int, wrong: int, empty: int) -> dict:
        """Store a test result on the student's progress row for the topic.

        Solved questions are the sum of correct, wrong and empty answers.
        """
        solved = correct + wrong + empty
        with transaction() as db:
            _student_row(db, self.owner, student_id)
            row = db.execute(
                "SELECT p.id, t.name AS topic_name, l.name AS lesson_name FROM student_progress p "
                "JOIN topics t ON t.id = p.topic_id JOIN lessons l ON l.id = t.lesson_id "
                "WHERE p.student_id = ? AND p.topic_id = ? ORDER BY p.created_at, p.id LIMIT 1",
                (student_id, topic_id),
            ).fetchone()
            if not row:
                raise NotFound("Progress record not found")
            now = now_iso()
            db.execute(
                "UPDATE student_progress SET correct_count = ?, wrong_count = ?, empty_count = ?, "
                "solved_count = ?, last_solved_at = ?, updated_at = ? WHERE id = ?",
                (correct, wrong, empty, solved, now, now, row["id"]),
            )
        result = self.get(row["id"])
        result.update(topicName=row["topic_name"], lessonName=row["lesson_name"])
        return result

    def patch(self, progress_id: str, solved_count: int | None = None, total_count: int | None = None) -> dict:
        self.owner.require_teacher()
        self._row(progress_id)
        now = now_iso()
        columns: dict = {"updated_at": now}
        if solved_count is not None:
            columns.update(solved_count=solved_count, last_solved_at=now)
        if total_count is not None:
            columns["total_count"] = total_count
        with transaction() as db:
            _update_row(db, "student_progress", progress_id, columns)
        return self.get(progress_id)

    def delete(self, progress_id: str) -> None:
        self.owner.require_teacher()
        self._row(progress_id)
        with transaction() as db:
            db.execute("DELETE FROM student_progress WHERE id = ?", (progress_id,))


# ── Weekly schedules ─────────────────────────────────────────────────

def _week_topic_dicts(db, week_ids: list[str]) -> dict[str, list[dict]]:
    grouped: dict[str, list[dict]] = {wid: [] for wid in week_ids}
    if not week_ids:
        return grouped
    rows = db.execute(
        "SELECT wt.*, a.topic_id, a.completed, t.name AS topic_name, l.id AS lesson_id, "
        "l.name AS lesson_name, l.color FROM week_topics wt "
        "JOIN student_assignments a ON a.id = wt.assignment_id "
        "JOIN topics t ON t.id = a.topic_id JOIN lessons l ON l.id = t.lesson_id "
        f"WHERE wt.week_plan_id IN ({_marks(len(week_ids))}) ORDER BY wt.position, wt.id",
        tuple(week_ids),
    ).fetchall()
    for r in rows:
        grouped[r["week_plan_id"]].append({
            "id": r["id"],
            "weekPlanId": r["week_plan_id"],
            "assignmentId": r["assignment_id"],
            "position": r["position"],
            "isCompleted": bool(r["is_completed"]),
            "assignment": {
                "id": r["assignment_id"],
                "topicId": r["topic_id"],
                "completed": bool(r["completed"]),
                "topic": {
                    "id": r["topic_id"],
                    "name": r["topic_name"],
                    "lesson": {"id": r["lesson_id"], "name": r["lesson_name"], "color": r["color"]},
                },
            },
        })
    return grouped


def _week_dicts(db, rows, include_topics: bool = True) -> list[dict]:
    topics = _week_topic_dicts(db, [r["id"] for r in rows]) if include_topics else {}
    weeks = []
    for r in rows:
        week = {
            "id": r["id"],
            "scheduleId": r["schedule_id"],
            "weekNumber": r["week_number"],
            "startDate": r["start_date"],
            "endDate": r["end_date"],
        }
        if include_topics:
            week["weekTopics"] = topics[r["id"]]
        weeks.append(week)
    return weeks


class WeeklyScheduleStoreDB:
    """A student's plan split into weeks, each holding ordered assignments."""

    def __init__(self, owner: Owner):
        self.owner = owner

    def _row(self, schedule_id: str):
        db = get_db()
        row = db.execute("SELECT * FROM weekly_schedules WHERE id = ?", (schedule_id,)).fetchone()
        if not row:
            raise NotFound("Schedule not found")
        _student_row(db, self.owner, row["student_id"])
        return row

    def _week_row(self, schedule_id: str, week_id: str):
        self._row(schedule_id)
        row = get_db().execute(
            "SELECT * FROM week_plans WHERE id = ? AND schedule_id = ?", (week_id, schedule_id),
        ).fetchone()
        if not row:
            raise NotFound("Week not found")
        return row

    def _week_topic_row(self, week_topic_id: str):
        row = get_db().execute(
            "SELECT wt.*, wp.schedule_id FROM week_topics wt JOIN week_plans wp ON wp.id = wt.week_plan_id "
            "WHERE wt.id = ?",
            (week_topic_id,),
        ).fetchone()
        if not row:
            raise NotFound("Week topic not found")
        self._row(row["schedule_id"])
        return row

    def _schedule_dict(self, db, row) -> dict:
        weeks = db.execute(
            "SELECT * FROM week_plans WHERE schedule_id = ? ORDER BY week_number", (row["id"],),
        ).fetchall()
        return {
            "id": row["id"],
            "studentId": row["student_id"],
            "title": row["title"],
            "startDate": row["start_date"],
            "endDate": row["end_date"],
            "isActive": bool(row["is_active"]),
            "createdAt": row["created_at"],
            "weekPlans": _week_dicts(db, weeks),
        }

    def _check_assignments(self, db, student_id: str, assignment_ids) -> None:
        for assignment_id in assignment_ids:
            row = db.execute(
                "SELECT student_id FROM student_assignments WHERE id = ?", (assignment_id,),
            ).fetchone()
            if not row:
                raise NotFound("Assignment not found")
            if row["student_id"] != student_id:
                raise ValidationFailed("Assignment does not belong to this student")

    def list(self, student_id: str | None = None) -> list[dict]:
        db = get_db()
        clauses, params = [], []
        if self.owner.is_student:
            clauses.append("ws.student_id = ?")
            params.append(self.owner.student_id)
        elif not self.owner.is_admin:
            clauses.append("s.teacher_id = ?")
            params.append(self.owner.teacher_id)
        if student_id:
            clauses.append("ws.student_id = ?")
            params.append(student_id)
        where = " AND ".join(clauses) or "1 = 1"
        rows = db.execute(
            "SELECT ws.* FROM weekly_schedules ws JOIN students s ON s.id = ws.student_id "
            f"WHERE {where} ORDER BY ws.created_at DESC, ws.id",
            tuple(params),
        ).fetchall()
        return [self._schedule_dict(db, r) for r in rows]

    def get(self, schedule_id: str) -> dict:
        return self._schedule_dict(get_db(), self._row(schedule_id))

    def create(self, student_id: str, title: str, start, end, assignment_ids: list[str]) -> dict:
        """Create the schedule, its weeks, and one assignment per week."""
        self.owner.require_teacher()
        schedule_id = new_id()
        with transaction() as db:
            _student_row(db, self.owner, student_id)
            self._check_assignments(db, student_id, assignment_ids)
            db.execute(
                "INSERT INTO weekly_schedules (id, student_id, title, start_date, end_date, is_active, created_at) "
                "VALUES (?, ?, ?, ?, ?, 1, ?)",
                (schedule_id, student_id, title, start.isoformat(), end.isoformat(), now_iso()),
            )
            week_ids = {}
            for week in schedule.derive_weeks(start, end):
                week_ids[week.week_number] = new_id()
                db.execute(
                    "INSERT INTO week_plans (id, schedule_id, week_number, start_date, end_date) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (week_ids[week.week_number], schedule_id, week.week_number,
                     week.start.isoformat(), week.end.isoformat()),
                )
            for week_number, assignment_id, position in schedule.distribute(assignment_ids, list(week_ids)):
                db.execute(
                    "INSERT INTO week_topics (id, week_plan_id, assignment_id, position, is_completed) "
                    "VALUES (?, ?, ?, ?, 0)",
                    (new_id(), week_ids[week_number], assignment_id, position),
                )
        return self.get(schedule_id)

    def update(self, schedule_id: str, data) -> dict:
        self.owner.require_teacher()
        row = self._row(schedule_id)
        columns: dict = {}
        if data.title is not None:
            columns["title"] = data.title
        if data.start_date is not None:
            columns["start_date"] = data.start_date.isoformat()
        if data.end_date is not None:
            columns["end_date"] = data.end_date.isoformat()
        if data.is_active is not None:
            columns["is_active"] = int(data.is_active)
        if columns.get("end_date", row["end_date"]) < columns.get("start_date", row["start_date"]):
            raise ValidationFailed("endDate must not be before startDate")
        with transaction() as db:
            _update_row(db, "weekly_schedules", schedule_id, columns)
        return self.get(schedule_id)

    def delete(self, schedule_id: str) -> None:
        self.owner.require_teacher()
        self._row(schedule_id)
        with transaction() as db:
            db.execute(
                "DELETE FROM week_topics WHERE week_plan_id IN "
                "(SELECT id FROM week_plans WHERE schedule_id = ?)", (schedule_id,),
            )
            db.execute("DELETE FROM week_plans WHERE schedule_id = ?", (schedule_id,))
            db.execute("DELETE FROM weekly_schedules WHERE id = ?", (schedule_id,))

    def list_weeks(self, schedule_id: str, page: int = 1, limit: int = 20,
                   include_topics: bool = True) -> tuple[list[dict], int]:
        self._row(schedule_id)
        db = get_db()
        total = db.execute(
            "SELECT COUNT(*) FROM week_plans WHERE schedule_id = ?", (schedule_id,),
        ).fetchone()[0]
        rows = db.execute(
            "SELECT * FROM week_plans WHERE schedule_id = ? ORDER BY week_number LIMIT ? OFFSET ?",
            (schedule_id, limit, (page - 1) * limit),
        ).fetchall()
        return _week_dicts(db, rows, include_topics), total

    def get_week(self, schedule_id: str, week_id: str) -> dict:
        return _week_dicts(get_db(), [self._week_row(schedule_id, week_id)])[0]

    def update_week(self, schedule_id: str, week_id: str, data) -> dict:
        """Change a week's dates and, when given, replace its topics (positions 1..N)."""
        self.owner.require_teacher()
        schedule_row = self._row(schedule_id)
        self._week_row(schedule_id, week_id)
        with transaction() as db:
            columns = {}
            if data.start_date is not None:
                columns["start_date"] = data.start_date.isoformat()
            if data.end_date is not None:
                columns["end_date"] = data.end_date.isoformat()
            _update_row(db, "week_plans", week_id, columns)
            if data.week_topics is not None:
                self._check_assignments(
                    db, schedule_row["student_id"], [wt.assignment_id for wt in data.week_topics],
                )
                db.execute("DELETE FROM week_topics WHERE week_plan_id = ?", (week_id,))
                for position, wt in enumerate(data.week_topics, start=1):
                    db.execute(
                        "INSERT INTO week_topics (id, week_plan_id, assignment_id, position, is_completed) "
                        "VALUES (?, ?, ?, ?, ?)",
                        (new_id(), week_id, wt.assignment_id, position, int(wt.is_completed)),
                    )
        return self.get_week(schedule_id, week_id)

    def _week_topic_ids(self, db, week_id: str) -> list[str]:
        return [
            r["id"] for r in db.execute(
                "SELECT id FROM week_topics WHERE week_plan_id = ? ORDER BY position, id", (week_id,),
            ).fetchall()
        ]

    def _renumber(self, db, week_id: str, ids: list[str]) -> None:
        for week_topic_id, position in schedule.renumber(ids):
            db.execute(
                "UPDATE week_topics SET week_plan_id = ?, position = ? WHERE id = ?",
                (week_id, position, week_topic_id),
            )

    def reorder_week(self, schedule_id: str, week_id: str, week_topic_ids: list[str]) -> dict:
        self.owner.require_teacher()
        self._week_row(schedule_id, week_id)
        with transaction() as db:
            existing = self._week_topic_ids(db, week_id)
            if len(week_topic_ids) != len(set(week_topic_ids)) or set(week_topic_ids) != set(existing):
                raise ValidationFailed(
                    "weekTopicIds must list every topic of the week exactly once",
                    details=[{"field": "weekTopicIds", "message": "not a permutation of the week's topics"}],
                )
            self._renumber(db, week_id, week_topic_ids)
        return self.get_week(schedule_id, week_id)

    def move_week_topic(self, week_topic_id: str, target_week_id: str, index: int) -> dict:
        """Drag a week topic to ``index`` in the target week of the same schedule."""
        self.owner.require_teacher()
        row = self._week_topic_row(week_topic_id)
        self._week_row(row["schedule_id"], target_week_id)
        source_week_id = row["week_plan_id"]
        with transaction() as db:
            source = self._week_topic_ids(db, source_week_id)
            if source_week_id == target_week_id:
                self._renumber(db, source_week_id, schedule.move(source, source.index(week_topic_id), index))
            else:
                source.remove(week_topic_id)
                target = self._week_topic_ids(db, target_week_id)
                target.insert(max(0, min(index, len(target))), week_topic_id)
                self._renumber(db, source_week_id, source)
                self._renumber(db, target_week_id, target)
        return self.get(row["schedule_id"])

    def set_week_topic_completed(self, week_topic_id: str, completed: bool) -> dict:
        row = self._week_topic_row(week_topic_id)
        with transaction() as db:
            db.execute(
                "UPDATE week_topics SET is_completed = ? WHERE id = ?", (int(completed), week_topic_id),
            )
        week = _week_dicts(get_db(), [get_db().execute(
            "SELECT * FROM week_plans WHERE id = ?", (row["week_plan_id"],),
        ).fetchone()])[0]
        return next(wt for wt in week["weekTopics"] if wt["id"] == week_topic_id)


# ── Teachers ─────────────────────────────────────────────────────────

def _teacher_dict(row) -> dict:
    keys = row.keys()
    d = {
        "id": row["id"],
        "name": row["name"],
        "email": row["email"],
        "role": row["role"],
        "subscriptionEndDate": row["subscription_end_date"],
        "isSubscriptionActive": row["role"] == ROLE_SUPER_ADMIN or subscription_active(row["subscription_end_date"]),
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }
    if "student_count" in keys:
        d["_count"] = {
            "students": row["student_count"],
            "lessons": row["lesson_count"],
            "resources": row["resource_count"],
        }
    return d


TEACHER_SELECT = (
    "SELECT u.*, "
    "(SELECT COUNT(*) FROM students s WHERE s.teacher_id = u.id) AS student_count, "
    "(SELECT COUNT(*) FROM lessons l WHERE l.teacher_id = u.id) AS lesson_count, "
    "(SELECT COUNT(*) FROM resources r WHERE r.teacher_id = u.id) AS resource_count "
    "FROM users u "
)


class TeacherStoreDB:
    """Teacher accounts. Managing other accounts needs a super admin."""

    def __init__(self, owner: Owner):
        self.owner = owner

    def _require_admin(self) -> None:
        if not self.owner.is_admin:
            raise Forbidden("Super admin access required")

    def _row(self, teacher_id: str):
        row = get_db().execute(TEACHER_SELECT + "WHERE u.id = ?", (teacher_id,)).fetchone()
        if not row:
            raise NotFound("Teacher not found")
        return row

    def _email_taken(self, db, email: str, exclude_id: str = "") -> bool:
        return db.execute(
            "SELECT 1 FROM users WHERE email = ? AND id != ?", (email, exclude_id),
        ).fetchone() is not None

    def list(self) -> list[dict]:
        self._require_admin()
        rows = get_db().execute(TEACHER_SELECT + "ORDER BY u.created_at DESC, u.id").fetchall()
        return [_teacher_dict(r) for r in rows]

    def get(self, teacher_id: str) -> dict:
        if teacher_id != self.owner.teacher_id:
            self._require_admin()
        return _teacher_dict(self._row(teacher_id))

    def create(self, data, role: str = "TEACHER") -> dict:
        self._require_admin()
        teacher_id = new_id()
        now = now_iso()
        with transaction() as db:
            if self._email_taken(db, data.email.lower()):
                raise Conflict("A user with this email already exists")
            db.execute(
                "INSERT INTO users (id, name, email, password_hash, role, created_at, updated_at, "
                "subscription_end_date) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (teacher_id, data.name, data.email.lower(), generate_password_hash(data.password), role,
                 now, now, data.subscription_end_date.isoformat() if data.subscription_end_date else None),
            )
        return self.get(teacher_id)

    def _apply(self, teacher_id: str, fields: dict) -> dict:
        columns = {}
        if fields.get("name"):
            columns["name"] = fields["name"]
        if fields.get("email"):
            columns["email"] = fields["email"].lower()
        if "subscription_end_date" in fields:
            end = fields["subscription_end_date"]
            columns["subscription_end_date"] = end.isoformat() if end else None
        if fields.get("password"):
            columns["password_hash"] = generate_password_hash(fields["password"])
        with transaction() as db:
            if "email" in columns and self._email_taken(db, columns["email"], teacher_id):
                raise Conflict("A user with this email already exists")
            columns["updated_at"] = now_iso()
            _update_row(db, "users", teacher_id, columns)
        return self.get(teacher_id)

    def update(self, teacher_id: str, data) -> dict:
        self._require_admin()
        self._row(teacher_id)
        return self._apply(teacher_id, data.model_dump(exclude_unset=True))

    def update_profile(self, data) -> dict:
        """The signed-in teacher edits their own name and email."""
        self.owner.require_teacher()
        self._row(self.owner.teacher_id)
        return self._apply(self.owner.teacher_id, data.model_dump(exclude_none=True))

    def change_password(self, current_password: str, new_password: str) -> None:
        self.owner.require_teacher()
        row = self._row(self.owner.teacher_id)
        if not row["password_hash"] or not check_password_hash(row["password_hash"], current_password):
            raise ValidationFailed(
                "Current password is incorrect",
                details=[{"field": "currentPassword", "message": "does not match"}],
            )
        self._apply(self.owner.teacher_id, {"password": new_password})

    def delete(self, teacher_id: str) -> None:
        """Remove a teacher together with their students, lessons and resources."""
        self._require_admin()
        self._row(teacher_id)
        if teacher_id == self.owner.teacher_id:
            raise ValidationFailed("You cannot delete your own account")
        admin = Owner(teacher_id=self.owner.teacher_id, is_admin=True)
        db = get_db()
        with transaction():
            for r in db.execute("SELECT id FROM students WHERE teacher_id = ?", (teacher_id,)).fetchall():
                StudentStoreDB(admin).delete(r["id"])
            for r in db.execute("SELECT id FROM resources WHERE teacher_id = ?", (teacher_id,)).fetchall():
                ResourceStoreDB(admin).delete(r["id"])
            for r in db.execute("SELECT id FROM lessons WHERE teacher_id = ?", (teacher_id,)).fetchall():
                LessonStoreDB(admin).delete(r["id"])
            db.execute("DELETE FROM users WHERE id = ?", (teacher_id,))
