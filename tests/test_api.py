"""API tests: CRUD over HTTP and the full teacher-to-student flow."""

from __future__ import annotations

import pytest


def _create(client, path, body):
    resp = client.post(path, json=body)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


class TestLessonsAPI:
    def test_crud(self, teacher_client):
        lesson = _create(teacher_client, "/api/lessons", {"name": "Fizik", "group": "Sayısal", "type": "AYT"})
        assert lesson["color"] == "blue"

        resp = teacher_client.put(f"/api/lessons/{lesson['id']}", json={"name": "Fizik 2", "color": "red"})
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Fizik 2"
        assert resp.get_json()["color"] == "red"

        resp = teacher_client.delete(f"/api/lessons/{lesson['id']}")
        assert resp.get_json() == {"message": "Lesson deleted successfully"}
        assert teacher_client.get(f"/api/lessons/{lesson['id']}").status_code == 404

    def test_validation_details(self, teacher_client):
        resp = teacher_client.post("/api/lessons", json={"name": "F", "group": "Sayısal", "color": "pink"})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "Validation failed"
        assert {d["field"] for d in body["details"]} == {"name", "color"}

    def test_unknown_field_rejected(self, teacher_client):
        resp = teacher_client.post("/api/lessons", json={"name": "Fizik", "group": "Sayısal", "teacherId": "x"})
        assert resp.status_code == 400

    def test_body_must_be_object(self, teacher_client):
        resp = teacher_client.post("/api/lessons", json=["Fizik"])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Request body must be a JSON object"

    def test_assign_colors(self, teacher_client):
        for name in ("Fizik", "Kimya"):
            _create(teacher_client, "/api/lessons", {"name": name, "group": "Sayısal", "color": "blue"})
        resp = teacher_client.post("/api/lessons/assign-colors")
        body = resp.get_json()
        assert body["message"] == "Successfully assigned colors to 2 lessons"
        assert [l["color"] for l in body["lessons"]] == ["blue", "purple"]


class TestTopicsAPI:
    @pytest.fixture
    def lesson_id(self, teacher_client):
        return _create(teacher_client, "/api/lessons", {"name": "Matematik", "group": "Sayısal"})["id"]

    def test_create_and_reorder(self, teacher_client, lesson_id):
        ids = [
            _create(teacher_client, "/api/topics", {"lessonId": lesson_id, "name": name})["id"]
            for name in ("Limit", "Türev", "İntegral")
        ]
        resp = teacher_client.put("/api/topics/reorder", json={"lessonId": lesson_id, "topicIds": ids[::-1]})
        assert resp.status_code == 200
        assert [t["id"] for t in resp.get_json()["topics"]] == ids[::-1]

        topics = teacher_client.get(f"/api/topics?lessonId={lesson_id}").get_json()
        assert [(t["id"], t["order"]) for t in topics] == [(ids[2], 1), (ids[1], 2), (ids[0], 3)]

    def test_move(self, teacher_client, lesson_id):
        ids = [
            _create(teacher_client, "/api/topics", {"lessonId": lesson_id, "name": name})["id"]
            for name in ("Limit", "Türev")
        ]
        resp = teacher_client.put(f"/api/topics/{ids[1]}/move", json={"index": 0})
        assert [t["id"] for t in resp.get_json()["topics"]] == [ids[1], ids[0]]

    def test_bad_reorder(self, teacher_client, lesson_id):
        topic = _create(teacher_client, "/api/topics", {"lessonId": lesson_id, "name": "Limit"})
        resp = teacher_client.put("/api/topics/reorder", json={"lessonId": lesson_id, "topicIds": [topic["id"], "x"]})
        assert resp.status_code == 400
        assert resp.get_json()["details"][0]["field"] == "topicIds"

    def test_lesson_includes_topics(self, teacher_client, lesson_id):
        _create(teacher_client, "/api/topics", {"lessonId": lesson_id, "name": "Limit"})
        lesson = teacher_client.get(f"/api/lessons/{lesson_id}").get_json()
        assert [t["name"] for t in lesson["topics"]] == ["Limit"]

    def test_missing_lesson(self, teacher_client):
        resp = teacher_client.post("/api/topics", json={"lessonId": "missing", "name": "Limit"})
        assert resp.status_code == 404


class TestStudentsAPI:
    def test_create_and_list(self, teacher_client):
        student = _create(teacher_client, "/api/students", {
            "name": "Veli", "email": "Veli@Test.com", "password": "secret1", "phone": "+905551112233",
        })
        assert student["email"] == "veli@test.com"
        assert student["hasAccount"] is True
        assert "password" not in student

        data = teacher_client.get("/api/students").get_json()
        assert data["pagination"]["totalCount"] == 1

    def test_duplicate_email(self, teacher_client):
        body = {"name": "Veli", "email": "veli@test.com", "password": "secret1"}
        _create(teacher_client, "/api/students", body)
        resp = teacher_client.post("/api/students", json=body)
        assert resp.status_code == 409

    def test_bad_phone(self, teacher_client):
        resp = teacher_client.post("/api/students", json={"name": "Veli", "phone": "12"})
        assert resp.status_code == 400
        assert resp.get_json()["details"][0]["field"] == "phone"

    def test_update_and_delete(self, teacher_client):
        student = _create(teacher_client, "/api/students", {"name": "Veli"})
        resp = teacher_client.put(f"/api/students/{student['id']}", json={"status": "PASSIVE", "notes": "izinli"})
        assert resp.get_json()["status"] == "PASSIVE"
        assert resp.get_json()["notes"] == "izinli"
        assert teacher_client.delete(f"/api/students/{student['id']}").status_code == 200
        assert teacher_client.get(f"/api/students/{student['id']}").status_code == 404


class TestCurriculumFlow:
    """Lesson, topic, resource and student built over HTTP, then tracked."""

    @pytest.fixture
    def setup(self, teacher_client):
        c = teacher_client
        lesson = _create(c, "/api/lessons", {"name": "Matematik", "group": "Sayısal", "type": "TYT"})
        topic = _create(c, "/api/topics", {"lessonId": lesson["id"], "name": "Türev"})
        resource = _create(c, "/api/resources", {
            "name": "Kaynak A",
            "lessonIds": [lesson["id"]],
            "topicIds": [topic["id"]],
            "topicQuestionCounts": {topic["id"]: 20},
        })
        student = _create(c, "/api/students", {"name": "Ali", "email": "ali@test.com", "password": "demo123"})
        body = _create(c, "/api/student-assignments", {
            "studentId": student["id"],
            "topicIds": [topic["id"]],
            "questionCounts": {topic["id"]: {resource["id"]: {student["id"]: 10}}},
        })
        return {
            "client": c,
            "lesson": lesson,
            "topic": topic,
            "resource": resource,
            "student": student,
            "assignment": body["assignments"][0],
        }

    def _progress_key(self, s):
        return {
            "studentId": s["student"]["id"],
            "assignmentId": s["assignment"]["id"],
            "resourceId": s["resource"]["id"],
            "topicId": s["topic"]["id"],
        }

    def test_resource_shape(self, setup):
        lessons = setup["resource"]["lessons"]
        assert lessons[0]["lessonId"] == setup["lesson"]["id"]
        assert lessons[0]["topics"][0]["questionCount"] == 20

    def test_resources_for_topic(self, setup):
        c = setup["client"]
        result = c.get(f"/api/resources/for-topic/{setup['topic']['id']}").get_json()
        assert result == [{"resourceId": setup["resource"]["id"], "name": "Kaynak A", "questionCount": 20}]

    def test_progress_report(self, setup):
        c = setup["client"]
        resp = c.post("/api/student-progress", json={**self._progress_key(setup), "solvedCount": 3})
        assert resp.status_code == 200
        assert resp.get_json()["solvedCount"] == 3

        details = c.get(f"/api/students/{setup['student']['id']}").get_json()
        assert details["assignments"][0]["progress"] == {"target": 10, "completed": 3, "percentage": 30}
        assert details["lessons"][0]["percentage"] == 30
        assert details["overall"] == {"target": 10, "completed": 3, "percentage": 30}

    def test_increment(self, setup):
        c = setup["client"]
        c.post("/api/student-progress", json={**self._progress_key(setup), "solvedCount": 3})
        resp = c.post("/api/student-progress/increment", json={**self._progress_key(setup), "increment": 4})
        assert resp.get_json()["solvedCount"] == 7

    def test_increment_bounds(self, setup):
        resp = setup["client"].post(
            "/api/student-progress/increment", json={**self._progress_key(setup), "increment": 0},
        )
        assert resp.status_code == 400

    def test_record_result(self, setup):
        c = setup["client"]
        c.post("/api/student-progress", json={**self._progress_key(setup), "solvedCount": 1})
        resp = c.post("/api/student-progress/update", json={
            "studentId": setup["student"]["id"], "topicId": setup["topic"]["id"],
            "correctCount": 5, "wrongCount": 3, "emptyCount": 2,
        })
        body = resp.get_json()
        assert body["success"] is True
        assert body["data"]["solvedCount"] == 10
        assert body["data"]["topicName"] == "Türev"

    def test_duplicate_assignment_is_skipped(self, setup):
        c = setup["client"]
        body = _create(c, "/api/student-assignments", {
            "studentId": setup["student"]["id"], "topicIds": [setup["topic"]["id"]],
        })
        assert body["assignments"] == []
        assert body["skippedTopicIds"] == [setup["topic"]["id"]]

    def test_bulk_question_counts(self, setup):
        c = setup["client"]
        resp = c.put("/api/student-assignments/bulk-question-counts", json={
            "studentId": setup["student"]["id"], "resourceId": setup["resource"]["id"],
            "count": 15, "scope": "lesson", "lessonId": setup["lesson"]["id"],
            "selectedTopicIds": [setup["topic"]["id"]],
        })
        assert resp.get_json()["updatedTopicIds"] == [setup["topic"]["id"]]
        details = c.get(f"/api/students/{setup['student']['id']}").get_json()
        assert details["overall"]["target"] == 15

    def test_bulk_scope_needs_argument(self, setup):
        resp = setup["client"].put("/api/student-assignments/bulk-question-counts", json={
            "studentId": setup["student"]["id"], "resourceId": setup["resource"]["id"],
            "count": 15, "scope": "group",
        })
        assert resp.status_code == 400

    def test_resource_update_replaces_links(self, setup):
        c = setup["client"]
        resp = c.put(f"/api/resources/{setup['resource']['id']}", json={"name": "Kaynak A", "lessonIds": []})
        assert resp.get_json()["lessons"] == []
        details = c.get(f"/api/students/{setup['student']['id']}").get_json()
        assert details["overall"] == {"target": 0, "completed": 0, "percentage": 0}

    def test_weekly_schedule(self, setup):
        c = setup["client"]
        schedule = _create(c, "/api/weekly-schedules", {
            "studentId": setup["student"]["id"],
            "title": "Mart planı",
            "startDate": "2026-03-02T00:00:00.000Z",
            "endDate": "2026-03-17",
            "assignments": [{"id": setup["assignment"]["id"], "topic": {"name": "Türev"}}],
        })
        assert len(schedule["weekPlans"]) == 3
        first = schedule["weekPlans"][0]
        assert first["weekTopics"][0]["assignment"]["topic"]["name"] == "Türev"

        weeks = c.get(f"/api/weekly-schedules/{schedule['id']}/weeks?includeTopics=false").get_json()
        assert weeks["pagination"]["totalCount"] == 3
        assert "weekTopics" not in weeks["data"][0]

        week_topic_id = first["weekTopics"][0]["id"]
        resp = c.put(f"/api/week-topics/{week_topic_id}/move", json={"weekId": schedule["weekPlans"][2]["id"], "index": 0})
        moved = resp.get_json()
        assert moved["weekPlans"][0]["weekTopics"] == []
        assert moved["weekPlans"][2]["weekTopics"][0]["id"] == week_topic_id

        resp = c.put(f"/api/week-topics/{week_topic_id}", json={"isCompleted": True})
        assert resp.get_json()["isCompleted"] is True

        assert c.delete(f"/api/weekly-schedules/{schedule['id']}").status_code == 200
        assert c.get(f"/api/weekly-schedules/{schedule['id']}").status_code == 404

    def test_schedule_range(self, setup):
        resp = setup["client"].post("/api/weekly-schedules", json={
            "studentId": setup["student"]["id"], "title": "Ters plan",
            "startDate": "2026-03-10", "endDate": "2026-03-01",
        })
        assert resp.status_code == 400

    def test_lesson_delete_cascades(self, setup):
        c = setup["client"]
        c.post("/api/student-progress", json={**self._progress_key(setup), "solvedCount": 3})
        assert c.delete(f"/api/lessons/{setup['lesson']['id']}").status_code == 200
        assert c.get("/api/student-assignments").get_json() == []
        assert c.get("/api/student-progress").get_json() == []


class TestStudentPortal:
    def test_dashboard(self, teacher_client, student_client, curriculum):
        teacher_client.post("/api/weekly-schedules", json={
            "studentId": curriculum["student_id"], "title": "Plan",
            "startDate": "2026-03-02", "endDate": "2026-03-09",
            "assignments": [{"id": curriculum["assignment_id"]}],
        })
        resp = student_client.get("/api/student/dashboard")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["student"]["name"] == "Ali"
        assert body["overall"] == {"target": 10, "completed": 0, "percentage": 0}
        assert len(body["schedules"]) == 1

    def test_student_records_progress(self, student_client, curriculum):
        resp = student_client.post("/api/student-progress/increment", json={
            "studentId": curriculum["student_id"],
            "assignmentId": curriculum["assignment_id"],
            "resourceId": curriculum["resource_id"],
            "topicId": curriculum["topic_id"],
            "increment": 3,
        })
        assert resp.status_code == 200
        overall = student_client.get("/api/student/dashboard").get_json()["overall"]
        assert overall == {"target": 10, "completed": 3, "percentage": 30}

    def test_student_cannot_rewrite_or_remove_progress(self, teacher_client, student_client, curriculum):
        record = teacher_client.post("/api/student-progress", json={
            "studentId": curriculum["student_id"],
            "assignmentId": curriculum["assignment_id"],
            "resourceId": curriculum["resource_id"],
            "topicId": curriculum["topic_id"],
            "solvedCount": 4,
        }).get_json()
        url = f"/api/student-progress/{record['id']}"
        assert student_client.put(url, json={"solvedCount": 0}).status_code == 403
        assert student_client.delete(url).status_code == 403
        assert student_client.get(url).get_json()["solvedCount"] == 4
        assert teacher_client.put(url, json={"solvedCount": 6}).get_json()["solvedCount"] == 6

    def test_teacher_has_no_dashboard(self, teacher_client):
        assert teacher_client.get("/api/student/dashboard").status_code == 403

    def test_student_cannot_edit_schedules(self, student_client, curriculum):
        resp = student_client.post("/api/weekly-schedules", json={
            "studentId": curriculum["student_id"], "title": "Plan",
            "startDate": "2026-03-02", "endDate": "2026-03-09",
        })
        assert resp.status_code == 403


class TestTeachersAPI:
    def test_admin_crud(self, admin_client):
        teacher = _create(admin_client, "/api/teachers", {
            "name": "Yeni Öğretmen", "email": "yeni@test.com", "password": "secret1",
            "subscriptionEndDate": "2030-01-01",
        })
        assert teacher["subscriptionEndDate"] == "2030-01-01"
        assert teacher["_count"] == {"students": 0, "lessons": 0, "resources": 0}

        resp = admin_client.put(f"/api/teachers/{teacher['id']}", json={"subscriptionEndDate": "2020-01-01"})
        assert resp.get_json()["isSubscriptionActive"] is False

        resp = admin_client.post("/api/teachers", json={
            "name": "Kopya", "email": "yeni@test.com", "password": "secret1",
        })
        assert resp.status_code == 409

        assert admin_client.delete(f"/api/teachers/{teacher['id']}").status_code == 200
        assert admin_client.get(f"/api/teachers/{teacher['id']}").status_code == 404

    def test_cannot_delete_self(self, admin_client):
        resp = admin_client.delete("/api/teachers/admin-1")
        assert resp.status_code == 400

    def test_profile_and_password(self, app, teacher_client):
        resp = teacher_client.put("/api/teacher/profile", json={"name": "Yeni Ad"})
        assert resp.get_json()["name"] == "Yeni Ad"

        resp = teacher_client.put("/api/teacher/password", json={
            "currentPassword": "wrong", "newPassword": "NewPass123",
        })
        assert resp.status_code == 400
        resp = teacher_client.put("/api/teacher/password", json={
            "currentPassword": "TeacherPass1", "newPassword": "NewPass123",
        })
        assert resp.status_code == 200

        fresh = app.test_client()
        resp = fresh.post("/api/auth/login", json={"email": "teacher@test.com", "password": "NewPass123"})
        assert resp.status_code == 200


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_ready(self, client):
        assert client.get("/ready").get_json() == {"status": "ready"}

    def test_unknown_route(self, client):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Not Found"
