"""
Request payload models.

Every JSON body is validated here before it reaches a store. Unknown fields
are rejected. Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Literal, Optional, TypeVar

from flask import request
from pydantic import (
    BaseModel, BeforeValidator, ConfigDict, Field, NonNegativeInt, field_validator, model_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from errors import ValidationFailed

LESSON_COLORS = ("blue", "purple", "green", "emerald", "orange", "red", "gray")
LESSON_TYPES = ("TYT", "AYT")
STUDENT_STATUSES = ("ACTIVE", "PASSIVE", "GRADUATED")

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^\+?[0-9]{10,15}$"

LessonColor = Literal["blue", "purple", "green", "emerald", "orange", "red", "gray"]
LessonType = Literal["TYT", "AYT"]
StudentStatus = Literal["ACTIVE", "PASSIVE", "GRADUATED"]
Scope = Literal["all", "selected", "group", "lesson"]

M = TypeVar("M", bound=BaseModel)


class Payload(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


def _blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _date_part(v):
    # accept full ISO timestamps from date pickers
    if isinstance(v, str) and len(v) > 10 and v[4] == "-":
        return v[:10]
    return v


# optional text where an empty string means "not given"
Text = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
IsoDate = Annotated[date, BeforeValidator(_date_part)]


# ── Auth / teachers ────────────────────────────────────────

class LoginPayload(Payload):
    email: str = Field(min_length=1, max_length=200)
    password: str = Field(min_length=1, max_length=200)

    @field_validator("email")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class TeacherCreate(Payload):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=200)
    password: str = Field(min_length=6, max_length=200)
    subscription_end_date: Optional[IsoDate] = None


class TeacherUpdate(Payload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=200)
    password: Optional[str] = Field(default=None, min_length=6, max_length=200)
    subscription_end_date: Optional[IsoDate] = None


class ProfileUpdate(Payload):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=200)


class PasswordChange(Payload):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6, max_length=200)


# ── Lessons / topics ───────────────────────────────────────

class LessonCreate(Payload):
    name: str = Field(min_length=2, max_length=100)
    group: str = Field(min_length=1, max_length=50)
    type: LessonType = "TYT"
    subject: Text = Field(default=None, max_length=100)
    color: Annotated[Optional[LessonColor], BeforeValidator(_blank_to_none)] = None


class LessonUpdate(Payload):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    group: Optional[str] = Field(default=None, min_length=1, max_length=50)
    type: Optional[LessonType] = None
    subject: Optional[str] = Field(default=None, max_length=100)
    color: Optional[LessonColor] = None


class TopicCreate(Payload):
    lesson_id: str = Field(min_length=1)
    name: str = Field(min_length=2, max_length=200)
    order: Optional[int] = Field(default=None, ge=1)
    average_test_count: NonNegativeInt = 0


class TopicUpdate(Payload):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    order: Optional[int] = Field(default=None, ge=1)
    average_test_count: Optional[NonNegativeInt] = None


class TopicReorder(Payload):
    lesson_id: str = Field(min_length=1)
    topic_ids: list[str]


class TopicMove(Payload):
    index: NonNegativeInt


# ── Resources ──────────────────────────────────────────────

class ResourcePayload(Payload):
    name: str = Field(min_length=2, max_length=200)
    description: Text = Field(default=None, max_length=1000)
    lesson_ids: list[str] = Field(default_factory=list)
    topic_ids: list[str] = Field(default_factory=list)
    topic_question_counts: dict[str, NonNegativeInt] = Field(default_factory=dict)


# ── Students ───────────────────────────────────────────────

class StudentCreate(Payload):
    name: str = Field(min_length=2, max_length=100)
    email: Text = Field(default=None, pattern=EMAIL_PATTERN, max_length=200)
    password: Text = Field(default=None, min_length=6, max_length=200)
    phone: Text = Field(default=None, pattern=PHONE_PATTERN)
    parent_name: Text = Field(default=None, max_length=100)
    parent_phone: Text = Field(default=None, pattern=PHONE_PATTERN)
    notes: Text = Field(default=None, max_length=1000)
    status: StudentStatus = "ACTIVE"

    @field_validator("email")
    @classmethod
    def _lower(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class StudentUpdate(StudentCreate):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    status: Optional[StudentStatus] = None


# ── Assignments ────────────────────────────────────────────

NestedCounts = dict[str, dict[str, NonNegativeInt]]


class AssignmentCreate(Payload):
    student_id: str = Field(min_length=1)
    topic_ids: list[str] = Field(min_length=1)
    # topicId -> {resourceId: {studentId: count}}
    question_counts: dict[str, NestedCounts] = Field(default_factory=dict)


class AssignmentUpdate(Payload):
    completed: Optional[bool] = None
    question_counts: Optional[NestedCounts] = None


class BulkQuestionCounts(Payload):
    student_id: str = Field(min_length=1)
    resource_id: str = Field(min_length=1)
    count: NonNegativeInt
    scope: Scope
    selected_topic_ids: list[str] = Field(default_factory=list)
    group: Optional[str] = None
    lesson_id: Optional[str] = None

    @model_validator(mode="after")
    def _scope_arguments(self):
        if self.scope == "group" and not self.group:
            raise ValueError("group is required for the group scope")
        if self.scope == "lesson" and not self.lesson_id:
            raise ValueError("lessonId is required for the lesson scope")
        return self


# ── Progress ───────────────────────────────────────────────

class ProgressKey(Payload):
    student_id: str = Field(min_length=1)
    assignment_id: str = Field(min_length=1)
    resource_id: str = Field(min_length=1)
    topic_id: str = Field(min_length=1)


class ProgressUpsert(ProgressKey):
    solved_count: Optional[NonNegativeInt] = None
    total_count: Optional[NonNegativeInt] = None


class ProgressIncrement(ProgressKey):
    increment: int = Field(default=1, ge=1, le=1000)


class ProgressResultUpdate(Payload):
    student_id: str = Field(min_length=1)
    topic_id: str = Field(min_length=1)
    correct_count: NonNegativeInt = 0
    wrong_count: NonNegativeInt = 0
    empty_count: NonNegativeInt = 0


class ProgressPatch(Payload):
    solved_count: Optional[NonNegativeInt] = None
    total_count: Optional[NonNegativeInt] = None

    @model_validator(mode="after")
    def _one_field(self):
        if self.solved_count is None and self.total_count is None:
            raise ValueError("solvedCount or totalCount is required")
        return self


# ── Weekly schedules ───────────────────────────────────────

class AssignmentRef(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str = Field(min_length=1)


class ScheduleCreate(Payload):
    student_id: str = Field(min_length=1)
    title: str = Field(min_length=2, max_length=200)
    start_date: IsoDate
    end_date: IsoDate
    assignments: list[AssignmentRef] = Field(default_factory=list)

    @model_validator(mode="after")
    def _range(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class ScheduleUpdate(Payload):
    title: Optional[str] = Field(default=None, min_length=2, max_length=200)
    start_date: Optional[IsoDate] = None
    end_date: Optional[IsoDate] = None
    is_active: Optional[bool] = None


class WeekTopicIn(Payload):
    assignment_id: str = Field(min_length=1)
    is_completed: bool = False


class WeekUpdate(Payload):
    start_date: Optional[IsoDate] = None
    end_date: Optional[IsoDate] = None
    week_topics: Optional[list[WeekTopicIn]] = None


class WeekTopicReorder(Payload):
    week_topic_ids: list[str]


class WeekTopicMove(Payload):
    week_id: str = Field(min_length=1)
    index: NonNegativeInt


class WeekTopicUpdate(Payload):
    is_completed: bool


def parse_body(model: type[M]) -> M:
    """Validate the request's JSON body against ``model``."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationFailed("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationFailed(details=[
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]) from None
