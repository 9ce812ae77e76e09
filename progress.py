"""
Progress aggregation for student assignments.

Pure functions over plain data: which resources serve a topic (and how many
questions each offers), what an assignment's target is, how much of it is
solved, and the percentage rollups per assignment, per lesson and overall.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class QuestionTarget:
    """Target question count one student has for one resource."""
    resource_id: str
    student_id: str
    count: int


@dataclass
class ProgressSummary:
    target: int = 0
    completed: int = 0

    @property
    def percentage(self) -> int:
        return percentage(self.completed, self.target)

    def add(self, other: "ProgressSummary") -> None:
        self.target += other.target
        self.completed += other.completed

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "completed": self.completed,
            "percentage": self.percentage,
        }


@dataclass
class AssignmentProgress:
    assignment_id: str
    topic_id: str
    lesson_id: str
    summary: ProgressSummary
    resources: list[dict] = field(default_factory=list)


def percentage(completed: int, target: int) -> int:
    """Rounded completion percentage; 0 when there is nothing to complete.

    Halves round up (as Math.round does), so 2/8 -> 25 and 1/8 -> 13.
    """
    if not target:
        return 0
    return math.floor(100 * completed / target + 0.5)


def targets_from_nested(question_counts: Mapping[str, Mapping[str, int]] | None) -> list[QuestionTarget]:
    """Flatten ``{resourceId: {studentId: count}}`` into value objects."""
    targets: list[QuestionTarget] = []
    for resource_id, per_student in (question_counts or {}).items():
        for student_id, count in (per_student or {}).items():
            targets.append(QuestionTarget(resource_id, student_id, int(count or 0)))
    return targets


def nest_targets(targets: Iterable[QuestionTarget]) -> dict[str, dict[str, int]]:
    """Inverse of targets_from_nested; the shape API clients send and read."""
    nested: dict[str, dict[str, int]] = {}
    for t in targets:
        nested.setdefault(t.resource_id, {})[t.student_id] = t.count
    return nested


def resources_for_topic(topic_id: str, resources: Iterable[Mapping]) -> list[dict]:
    """Resources that offer questions for ``topic_id``.

    ``resources`` use the nested shape returned by the resource store:
    ``{id, name, lessons: [{lessonId, topics: [{topicId, questionCount}]}]}``.
    A resource that reaches the topic through several associations appears
    once, with the question counts of every association added together.
    """
    result: list[dict] = []
    index: dict[str, dict] = {}

    for resource in resources:
        for resource_lesson in resource.get("lessons") or []:
            for resource_topic in resource_lesson.get("topics") or []:
                if resource_topic.get("topicId") != topic_id:
                    continue
                count = resource_topic.get("questionCount") or 0
                existing = index.get(resource["id"])
                if existing is not None:
                    existing["questionCount"] += count
                    continue
                entry = {
                    "resourceId": resource["id"],
                    "name": resource.get("name", ""),
                    "questionCount": count,
                }
                index[resource["id"]] = entry
                result.append(entry)
    return result


def assignment_target(targets: Iterable[QuestionTarget], topic_resources: Iterable[Mapping]) -> int:
    """Sum the per-student targets recorded under each of the topic's resources."""
    by_resource: dict[str, int] = {}
    for t in targets:
        by_resource[t.resource_id] = by_resource.get(t.resource_id, 0) + t.count
    return sum(by_resource.get(r["resourceId"], 0) for r in topic_resources)


def assignment_completed(
    progress_rows: Iterable[Mapping],
    assignment_id: str,
    topic_resources: Iterable[Mapping],
) -> int:
    """Solved questions for an assignment, one progress row per resource."""
    solved: dict[str, int] = {}
    for row in progress_rows:
        if row["assignmentId"] != assignment_id:
            continue
        # first row for a (resource, assignment) pair wins, as a lookup would
        solved.setdefault(row["resourceId"], row.get("solvedCount") or 0)
    return sum(solved.get(r["resourceId"], 0) for r in topic_resources)


def assignment_progress(
    assignment: Mapping,
    resources: list[Mapping],
    progress_rows: list[Mapping],
) -> AssignmentProgress:
    """Progress of one assignment.

    ``assignment`` carries ``id``, ``topicId``, ``lessonId`` and the nested
    ``questionCounts`` map.
    """
    topic_resources = resources_for_topic(assignment["topicId"], resources)
    targets = targets_from_nested(assignment.get("questionCounts"))
    solved_by_resource = {
        row["resourceId"]: row.get("solvedCount") or 0
        for row in reversed(progress_rows)
        if row["assignmentId"] == assignment["id"]
    }
    per_resource = []
    for r in topic_resources:
        per_resource.append({
            **r,
            "target": sum(t.count for t in targets if t.resource_id == r["resourceId"]),
            "solved": solved_by_resource.get(r["resourceId"], 0),
        })

    summary = ProgressSummary(
        target=assignment_target(targets, topic_resources),
        completed=assignment_completed(progress_rows, assignment["id"], topic_resources),
    )
    return AssignmentProgress(
        assignment_id=assignment["id"],
        topic_id=assignment["topicId"],
        lesson_id=assignment.get("lessonId", ""),
        summary=summary,
        resources=per_resource,
    )


def rollup_by_lesson(items: Iterable[AssignmentProgress]) -> dict[str, ProgressSummary]:
    lessons: dict[str, ProgressSummary] = {}
    for item in items:
        lessons.setdefault(item.lesson_id, ProgressSummary()).add(item.summary)
    return lessons


def rollup_overall(items: Iterable[AssignmentProgress]) -> ProgressSummary:
    total = ProgressSummary()
    for item in items:
        total.add(item.summary)
    return total


def build_report(
    assignments: list[Mapping],
    resources: list[Mapping],
    progress_rows: list[Mapping],
    lessons: Mapping[str, Mapping] | None = None,
) -> dict:
    """Student progress report: per assignment, per lesson and overall."""
    items = [assignment_progress(a, resources, progress_rows) for a in assignments]
    by_id = {item.assignment_id: item for item in items}

    assignment_rows = []
    for a in assignments:
        item = by_id[a["id"]]
        assignment_rows.append({
            **a,
            "resources": item.resources,
            "progress": item.summary.to_dict(),
        })

    lesson_rows = []
    for lesson_id, summary in rollup_by_lesson(items).items():
        lesson = (lessons or {}).get(lesson_id, {})
        lesson_rows.append({
            "lessonId": lesson_id,
            "name": lesson.get("name", ""),
            "color": lesson.get("color", ""),
            **summary.to_dict(),
        })

    return {
        "assignments": assignment_rows,
        "lessons": lesson_rows,
        "overall": rollup_overall(items).to_dict(),
    }
