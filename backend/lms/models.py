"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Assignment questions are kept as an ordered JSON list on the assignment
row; submissions live in their own table so the one-submission-per-student
rule can be enforced by a unique constraint.
"""

from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime, timezone
from typing import List


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Closed set of caller roles."""
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `email`: unique contact address
    - `role`: one of `Role`; drives every access decision
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: str = Field(index=True, nullable=False, unique=True)
    role: Role = Field(default=Role.STUDENT, index=True)
    created_at: datetime = Field(default_factory=utcnow)


class Course(SQLModel, table=True):
    """A course, optionally assigned to an instructor."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ""
    category: str = ""
    created_by: str = ""
    duration: Optional[int] = None
    price: Optional[float] = None
    image: Optional[str] = None
    assigned_to: Optional[int] = Field(default=None, foreign_key='user.id', index=True)
    created_at: datetime = Field(default_factory=utcnow)


class Enrollment(SQLModel, table=True):
    """A user's subscription to a course."""
    user_id: int = Field(foreign_key='user.id', primary_key=True)
    course_id: int = Field(foreign_key='course.id', primary_key=True)


class Lecture(SQLModel, table=True):
    """A lecture video belonging to a course. `video` is an external URL."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ""
    video: str
    course_id: int = Field(foreign_key='course.id', index=True)
    created_at: datetime = Field(default_factory=utcnow)


class Assignment(SQLModel, table=True):
    """A gradable unit of work tied to a course.

    `questions` holds normalized question dicts (see
    `utils.questions.validate_questions`); list position is the question's
    identity and the list is never edited after creation.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ""
    course_id: int = Field(foreign_key='course.id', index=True)
    instructor_id: int = Field(foreign_key='user.id', index=True)
    deadline: Optional[datetime] = None
    questions: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow)
    submissions: List['Submission'] = Relationship(
        back_populates='assignment',
        sa_relationship_kwargs={'cascade': 'all, delete-orphan', 'order_by': 'Submission.id'},
    )


class Submission(SQLModel, table=True):
    """One student's answer set for an assignment.

    `marks` is None until something meaningful is scored or an instructor
    sets it by hand.
    """
    __table_args__ = (UniqueConstraint('assignment_id', 'student_id', name='uq_submission_assignment_student'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    assignment_id: int = Field(foreign_key='assignment.id', index=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    answers: List[dict] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    marks: Optional[float] = None
    submitted_at: datetime = Field(default_factory=utcnow)
    assignment: Optional[Assignment] = Relationship(back_populates='submissions')
