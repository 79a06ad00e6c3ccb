"""Pydantic request schemas used by the API.

Schemas keep request shapes stable. Field-level rules that carry their
own error messages (question sets, answer sequences, roles) are checked by
the services, so those fields are typed loosely here.
"""

from pydantic import BaseModel
from typing import Any, Optional


class AssignmentCreate(BaseModel):
    """Payload for creating an assignment under a course.

    `questions` is a list of `{type, question_text, options, max_marks}`
    objects; its shape is checked by `validate_questions`.
    """
    title: str
    description: str = ""
    deadline: Optional[str] = None
    questions: Any = None


class SubmissionIn(BaseModel):
    """A student's answers, a list of `{question_index, answer}` objects."""
    answers: Any = None


class MarksIn(BaseModel):
    """Manual marks. Required so that clearing a grade takes an explicit null."""
    marks: Optional[float]


class CourseCreate(BaseModel):
    """Payload for creating a course. `image` is a URL hosted elsewhere."""
    title: str
    description: str = ""
    category: str = ""
    created_by: str = ""
    duration: Optional[int] = None
    price: Optional[float] = None
    image: Optional[str] = None
    assigned_to: Optional[int] = None


class LectureCreate(BaseModel):
    title: str
    description: str = ""
    video: Optional[str] = None


class RoleUpdate(BaseModel):
    role: str
