"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
courses, lectures, assignments). Repositories return SQLModel objects and
perform commits/refreshes where appropriate.
"""

from typing import List, Optional, Type
from sqlmodel import SQLModel, Session, select
from sqlalchemy import func
from . import models


def _count(session: Session, model: Type[SQLModel]) -> int:
    return session.exec(select(func.count()).select_from(model)).one()


class UserRepository:
    """CRUD operations for `User` objects and their enrollments."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_by_email(self, email: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def list_except(self, user_id: int) -> List[models.User]:
        """Return every user other than `user_id`."""
        stmt = select(models.User).where(models.User.id != user_id).order_by(models.User.id)
        return self.session.exec(stmt).all()

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def enroll(self, user_id: int, course_id: int) -> models.Enrollment:
        """Subscribe a user to a course (idempotent)."""
        existing = self.session.get(models.Enrollment, (user_id, course_id))
        if existing:
            return existing
        enrollment = models.Enrollment(user_id=user_id, course_id=course_id)
        self.session.add(enrollment)
        self.session.commit()
        return enrollment

    def list_students_for_course(self, course_id: int) -> List[models.User]:
        """Students subscribed to `course_id`."""
        stmt = (
            select(models.User)
            .join(models.Enrollment, models.Enrollment.user_id == models.User.id)
            .where(models.Enrollment.course_id == course_id, models.User.role == models.Role.STUDENT)
            .order_by(models.User.id)
        )
        return self.session.exec(stmt).all()

    def count(self) -> int:
        return _count(self.session, models.User)


class CourseRepository:
    """CRUD operations for `Course` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, course: models.Course) -> models.Course:
        self.session.add(course)
        self.session.commit()
        self.session.refresh(course)
        return course

    def get(self, course_id: int) -> Optional[models.Course]:
        return self.session.get(models.Course, course_id)

    def list_assigned_to(self, user_id: int) -> List[models.Course]:
        """Courses whose assigned instructor is `user_id`."""
        stmt = select(models.Course).where(models.Course.assigned_to == user_id).order_by(models.Course.id)
        return self.session.exec(stmt).all()

    def delete(self, course: models.Course) -> None:
        """Delete a course with its lectures, assignments and enrollments.

        Everything is removed in a single commit; assignment deletes go
        through the ORM so their submissions cascade.
        """
        for lecture in self.session.exec(select(models.Lecture).where(models.Lecture.course_id == course.id)).all():
            self.session.delete(lecture)
        for assignment in self.session.exec(select(models.Assignment).where(models.Assignment.course_id == course.id)).all():
            self.session.delete(assignment)
        for enrollment in self.session.exec(select(models.Enrollment).where(models.Enrollment.course_id == course.id)).all():
            self.session.delete(enrollment)
        self.session.delete(course)
        self.session.commit()

    def count(self) -> int:
        return _count(self.session, models.Course)


class LectureRepository:
    """CRUD operations for `Lecture` records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, lecture: models.Lecture) -> models.Lecture:
        self.session.add(lecture)
        self.session.commit()
        self.session.refresh(lecture)
        return lecture

    def get(self, lecture_id: int) -> Optional[models.Lecture]:
        return self.session.get(models.Lecture, lecture_id)

    def list_for_course(self, course_id: int) -> List[models.Lecture]:
        stmt = select(models.Lecture).where(models.Lecture.course_id == course_id).order_by(models.Lecture.id)
        return self.session.exec(stmt).all()

    def delete(self, lecture: models.Lecture) -> None:
        self.session.delete(lecture)
        self.session.commit()

    def count(self) -> int:
        return _count(self.session, models.Lecture)


class AssignmentRepository:
    """Persist assignment aggregates and their submissions."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, assignment: models.Assignment) -> models.Assignment:
        self.session.add(assignment)
        self.session.commit()
        self.session.refresh(assignment)
        return assignment

    def get(self, assignment_id: int) -> Optional[models.Assignment]:
        return self.session.get(models.Assignment, assignment_id)

    def list_by_course(self, course_id: int) -> List[models.Assignment]:
        stmt = select(models.Assignment).where(models.Assignment.course_id == course_id).order_by(models.Assignment.id)
        return self.session.exec(stmt).all()

    def add_submission(self, assignment: models.Assignment, submission: models.Submission) -> models.Submission:
        """Append a submission and commit.

        A concurrent duplicate trips the `(assignment_id, student_id)`
        unique constraint; the session is rolled back and the
        `IntegrityError` propagates to the caller.
        """
        assignment.submissions.append(submission)
        self.session.add(assignment)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(submission)
        return submission

    def get_submission(self, assignment_id: int, submission_id: int) -> Optional[models.Submission]:
        """Look up a submission only within its parent assignment."""
        stmt = select(models.Submission).where(
            models.Submission.id == submission_id,
            models.Submission.assignment_id == assignment_id,
        )
        return self.session.exec(stmt).first()

    def save_submission(self, submission: models.Submission) -> models.Submission:
        self.session.add(submission)
        self.session.commit()
        self.session.refresh(submission)
        return submission

    def delete(self, assignment: models.Assignment) -> None:
        self.session.delete(assignment)
        self.session.commit()
