"""
Weekly schedule derivation and ordering helpers.

Splits a date range into consecutive weeks, spreads assignments over them,
and computes the 1-based positions that drag-and-drop moves produce.
Also resolves the topic scopes used by bulk question-count assignment.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TypeVar

T = TypeVar("T")

SCOPES = ("all", "selected", "group", "lesson")


@dataclass(frozen=True)
class WeekSpan:
    week_number: int
    start: date
    end: date


def derive_weeks(start: date, end: date) -> list[WeekSpan]:
    """Consecutive 7-day weeks covering ``start``..``end``.

    The number of weeks is the day span divided by seven, rounded up; each
    week ends six days after it starts.
    """
    days = (end - start).days
    count = math.ceil(days / 7) if days > 0 else 0
    weeks = []
    for n in range(1, count + 1):
        week_start = start + timedelta(days=7 * (n - 1))
        weeks.append(WeekSpan(n, week_start, week_start + timedelta(days=6)))
    return weeks


def distribute(assignment_ids: Sequence[str], weeks: Sequence[T]) -> list[tuple[T, str, int]]:
    """Place one assignment per week, in order.

    Returns ``(week, assignment_id, position)``; assignments beyond the last
    week are not scheduled.
    """
    return [(week, assignment_id, 1) for week, assignment_id in zip(weeks, assignment_ids)]


def move(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
    """Move one element, shifting the ones in between (drag-and-drop)."""
    result = list(items)
    if not result:
        return result
    if not 0 <= from_index < len(result):
        raise IndexError(f"from_index {from_index} out of range")
    to_index = max(0, min(to_index, len(result) - 1))
    item = result.pop(from_index)
    result.insert(to_index, item)
    return result


def renumber(ids: Iterable[str]) -> list[tuple[str, int]]:
    """Pair each id with its 1-based position."""
    return [(item_id, position) for position, item_id in enumerate(ids, start=1)]


def select_topics(
    scope: str,
    lessons: Iterable[Mapping],
    selected_ids: Iterable[str] = (),
    group: str | None = None,
    lesson_id: str | None = None,
) -> list[str]:
    """Topic ids a bulk question-count change applies to.

    ``lessons`` carry ``id``, ``group`` and ``topics`` (each with ``id``).
    Scopes: ``all`` topics, the ``selected`` ones, every topic of the lessons
    in one ``group``, or the selected topics within one ``lesson``.
    """
    if scope not in SCOPES:
        raise ValueError(f"Unknown scope: {scope}")

    selected = set(selected_ids)
    result: list[str] = []
    for lesson in lessons:
        topic_ids = [t["id"] for t in lesson.get("topics") or []]
        if scope == "all":
            result.extend(topic_ids)
        elif scope == "selected":
            result.extend(t for t in topic_ids if t in selected)
        elif scope == "group":
            if lesson.get("group") == group:
                result.extend(topic_ids)
        elif lesson.get("id") == lesson_id:
            result.extend(t for t in topic_ids if t in selected)
    return result
