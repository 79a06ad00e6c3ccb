"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the access policy and the question helpers. Services resolve the target
entity, authorize the caller, validate input and only then persist, so a
rejected request never leaves partial state behind.
"""

import json
import logging
import math
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session
from . import models, repositories
from .errors import Conflict, Forbidden, NotFound, ValidationError
from .policy import Action, Actor, is_allowed, require
from .utils.questions import marks_from_total, normalize_answers, score_answers, validate_questions

grading_logger = logging.getLogger("lms.grading")
admin_logger = logging.getLogger("lms.admin")


def _log(logger: logging.Logger, event: str, **fields) -> None:
    logger.info("%s %s", event, json.dumps(fields, ensure_ascii=True, default=str))


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_deadline(value) -> Optional[datetime]:
    """Turn an ISO-8601 string (or datetime) into a UTC timestamp.

    Empty values mean "no deadline"; naive timestamps are read as UTC.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        raise ValidationError('Invalid deadline')
    raw = value.strip()
    if raw.endswith(('Z', 'z')):
        raw = raw[:-1] + '+00:00'
    try:
        return as_utc(datetime.fromisoformat(raw))
    except ValueError:
        raise ValidationError('Invalid deadline')


class AssignmentService:
    """Assignment lifecycle, submission scoring and manual grading."""
    def __init__(self, session: Session):
        self.session = session
        self.assignment_repo = repositories.AssignmentRepository(session)
        self.course_repo = repositories.CourseRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _get_assignment(self, assignment_id: int) -> models.Assignment:
        assignment = self.assignment_repo.get(assignment_id)
        if not assignment:
            raise NotFound('Assignment not found')
        return assignment

    def _get_course(self, course_id: int) -> models.Course:
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFound('Course not found')
        return course

    def create(self, actor: Actor, course_id: int, title: str, description: str = "",
               deadline=None, questions=None) -> models.Assignment:
        """Create an assignment owned by the calling instructor/admin.

        Only an admin or the course's assigned instructor may author. The
        question set is validated in full and the deadline coerced before
        anything is written.
        """
        course = self._get_course(course_id)
        require(actor, Action.CREATE_ASSIGNMENT, owner_id=course.assigned_to)
        normalized = validate_questions(questions)
        assignment = models.Assignment(
            title=title,
            description=description or "",
            course_id=course.id,
            instructor_id=actor.id,
            deadline=coerce_deadline(deadline),
            questions=normalized,
        )
        created = self.assignment_repo.create(assignment)
        _log(grading_logger, "assignment_created", assignment_id=created.id, course_id=course.id,
             instructor_id=actor.id, questions=len(normalized))
        return created

    def delete(self, actor: Actor, assignment_id: int) -> None:
        """Delete an assignment together with all of its submissions."""
        assignment = self._get_assignment(assignment_id)
        require(actor, Action.DELETE_ASSIGNMENT, owner_id=assignment.instructor_id)
        self.assignment_repo.delete(assignment)
        _log(grading_logger, "assignment_deleted", assignment_id=assignment_id, actor_id=actor.id)

    def list_by_course(self, actor: Actor, course_id: int) -> List[dict]:
        """Return every assignment of a course as a response view.

        Instructors and admins see all submissions; a student sees only
        their own (zero or one). The redaction is applied to the view, not
        to stored data.
        """
        self._get_course(course_id)
        see_all = is_allowed(actor, Action.SEE_ALL_SUBMISSIONS)
        out = []
        for assignment in self.assignment_repo.list_by_course(course_id):
            submissions = assignment.submissions
            if not see_all:
                submissions = [s for s in submissions if s.student_id == actor.id]
            instructor = self.user_repo.get(assignment.instructor_id)
            view = assignment_view(assignment, instructor)
            view['submissions'] = [submission_view(s) for s in submissions]
            out.append(view)
        return out

    def submit(self, actor: Actor, assignment_id: int, answers, now: Optional[datetime] = None) -> models.Submission:
        """Record and auto-score a student's answers.

        Preconditions, in order: the assignment exists, the caller is a
        student, the deadline (if any) has not passed, the caller has not
        already submitted, and `answers` is a well-formed list. Any answer
        pointing outside the question list rejects the whole submission.
        """
        assignment = self._get_assignment(assignment_id)
        require(actor, Action.SUBMIT_ASSIGNMENT)
        now = as_utc(now) or datetime.now(timezone.utc)
        if assignment.deadline is not None and now > as_utc(assignment.deadline):
            _log(grading_logger, "submission_rejected", assignment_id=assignment.id,
                 student_id=actor.id, reason="deadline")
            raise Conflict('Submission deadline has passed')
        if any(s.student_id == actor.id for s in assignment.submissions):
            _log(grading_logger, "submission_rejected", assignment_id=assignment.id,
                 student_id=actor.id, reason="duplicate")
            raise Conflict('You have already submitted this assignment')
        normalized = normalize_answers(answers)
        total = score_answers(assignment.questions, normalized)
        submission = models.Submission(
            student_id=actor.id,
            answers=normalized,
            marks=marks_from_total(total),
            submitted_at=now,
        )
        try:
            created = self.assignment_repo.add_submission(assignment, submission)
        except IntegrityError:
            raise Conflict('You have already submitted this assignment')
        _log(grading_logger, "submission_recorded", assignment_id=assignment.id, submission_id=created.id,
             student_id=actor.id, answered=len(normalized), marks=created.marks)
        return created

    def set_marks(self, actor: Actor, assignment_id: int, submission_id: int, marks: Optional[float]) -> models.Submission:
        """Overwrite a submission's marks.

        No bounds are checked against the questions' `max_marks`, so an
        instructor may award bonus marks or clear the value with None.
        """
        assignment = self._get_assignment(assignment_id)
        require(actor, Action.GRADE_SUBMISSION, owner_id=assignment.instructor_id)
        submission = self.assignment_repo.get_submission(assignment.id, submission_id)
        if not submission:
            raise NotFound('Submission not found')
        if marks is not None and not math.isfinite(marks):
            raise ValidationError('Marks must be a finite number')
        previous = submission.marks
        submission.marks = marks
        saved = self.assignment_repo.save_submission(submission)
        _log(grading_logger, "marks_overridden", assignment_id=assignment.id, submission_id=submission_id,
             actor_id=actor.id, previous=previous, marks=marks)
        return saved

    def get_submissions(self, actor: Actor, assignment_id: int) -> dict:
        """Grading view of all submissions of an assignment.

        Question text, type and max marks are joined from the assignment's
        current question list at read time.
        """
        assignment = self._get_assignment(assignment_id)
        require(actor, Action.VIEW_SUBMISSIONS, owner_id=assignment.instructor_id)
        out = []
        for sub in assignment.submissions:
            student = self.user_repo.get(sub.student_id)
            answers = []
            for ans in sub.answers:
                question = assignment.questions[ans['question_index']]
                answers.append({
                    'question': question['question_text'],
                    'type': question['type'],
                    'answer': ans['answer'],
                    'max_marks': question.get('max_marks'),
                })
            out.append({
                'id': sub.id,
                'student_name': student.name if student else None,
                'submitted_at': as_utc(sub.submitted_at),
                'marks': sub.marks,
                'answers': answers,
            })
        return {'assignment_title': assignment.title, 'submissions': out}


class CourseService:
    """Course administration and course-scoped listings."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)
        self.lecture_repo = repositories.LectureRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def create(self, actor: Actor, title: str, description: str = "", category: str = "", created_by: str = "",
               duration: Optional[int] = None, price: Optional[float] = None, image: Optional[str] = None,
               assigned_to: Optional[int] = None) -> models.Course:
        """Create a course, optionally assigning an existing instructor."""
        require(actor, Action.MANAGE_COURSES)
        if assigned_to is not None:
            instructor = self.user_repo.get(assigned_to)
            if not instructor or instructor.role != models.Role.INSTRUCTOR:
                raise ValidationError('Invalid instructor ID or user is not an instructor')
        course = models.Course(
            title=title,
            description=description,
            category=category,
            created_by=created_by,
            duration=duration,
            price=price,
            image=image,
            assigned_to=assigned_to,
        )
        created = self.course_repo.create(course)
        _log(admin_logger, "course_created", course_id=created.id, actor_id=actor.id, assigned_to=assigned_to)
        return created

    def delete(self, actor: Actor, course_id: int) -> None:
        require(actor, Action.MANAGE_COURSES)
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFound('Course not found')
        self.course_repo.delete(course)
        _log(admin_logger, "course_deleted", course_id=course_id, actor_id=actor.id)

    def list_students(self, actor: Actor, course_id: int) -> List[dict]:
        """Students enrolled in a course; admin or assigned instructor only."""
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFound('Course not found')
        require(actor, Action.VIEW_COURSE_ROSTER, owner_id=course.assigned_to,
                message='You are not authorized to view students for this course')
        return [{'id': u.id, 'name': u.name, 'email': u.email} for u in self.user_repo.list_students_for_course(course.id)]

    def list_for_instructor(self, actor: Actor) -> List[dict]:
        require(actor, Action.LIST_TEACHING_COURSES)
        return [{'id': c.id, 'title': c.title} for c in self.course_repo.list_assigned_to(actor.id)]

    def stats(self, actor: Actor) -> dict:
        require(actor, Action.MANAGE_COURSES)
        return {
            'total_courses': self.course_repo.count(),
            'total_lectures': self.lecture_repo.count(),
            'total_users': self.user_repo.count(),
        }


class LectureService:
    """Lectures attached to courses. Videos are URLs hosted elsewhere."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)
        self.lecture_repo = repositories.LectureRepository(session)

    def add(self, actor: Actor, course_id: int, title: str, description: str = "", video: Optional[str] = None) -> models.Lecture:
        require(actor, Action.MANAGE_COURSES)
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFound('No course for this id')
        if not video or not video.strip():
            raise ValidationError('Video is required')
        lecture = self.lecture_repo.create(
            models.Lecture(title=title, description=description, video=video.strip(), course_id=course.id)
        )
        _log(admin_logger, "lecture_added", lecture_id=lecture.id, course_id=course.id, actor_id=actor.id)
        return lecture

    def delete(self, actor: Actor, lecture_id: int) -> None:
        require(actor, Action.MANAGE_COURSES)
        lecture = self.lecture_repo.get(lecture_id)
        if not lecture:
            raise NotFound('Lecture not found')
        self.lecture_repo.delete(lecture)
        _log(admin_logger, "lecture_deleted", lecture_id=lecture_id, actor_id=actor.id)

    def list_for_course(self, actor: Actor, course_id: int) -> List[models.Lecture]:
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFound('Course not found')
        require(actor, Action.VIEW_COURSE_ROSTER, owner_id=course.assigned_to,
                message='You are not authorized to view lectures for this course')
        return self.lecture_repo.list_for_course(course.id)


class UserAdminService:
    """Admin-only user listing and role changes."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def list_users(self, actor: Actor) -> List[dict]:
        require(actor, Action.MANAGE_USERS)
        return [user_view(u) for u in self.user_repo.list_except(actor.id)]

    def update_role(self, actor: Actor, user_id: int, role: str) -> models.User:
        """Change a user's role; admins cannot demote themselves."""
        require(actor, Action.MANAGE_USERS, message='Only admins can update roles')
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFound('User not found')
        try:
            new_role = models.Role(role)
        except ValueError:
            allowed = ', '.join(f'"{r.value}"' for r in models.Role)
            raise ValidationError(f'Invalid role specified. Must be one of {allowed}')
        if user.id == actor.id and new_role is not models.Role.ADMIN:
            raise Forbidden('You cannot demote yourself from admin')
        previous = user.role
        user.role = new_role
        saved = self.user_repo.save(user)
        _log(admin_logger, "role_updated", user_id=user.id, actor_id=actor.id,
             previous=models.Role(previous).value, role=new_role.value)
        return saved


def user_view(user: models.User) -> dict:
    return {'id': user.id, 'name': user.name, 'email': user.email, 'role': models.Role(user.role).value}


def assignment_view(assignment: models.Assignment, instructor: Optional[models.User] = None) -> dict:
    """Response shape of an assignment, without submissions."""
    return {
        'id': assignment.id,
        'title': assignment.title,
        'description': assignment.description,
        'course_id': assignment.course_id,
        'instructor': (
            {'id': instructor.id, 'name': instructor.name, 'email': instructor.email}
            if instructor else {'id': assignment.instructor_id}
        ),
        'deadline': as_utc(assignment.deadline),
        'questions': assignment.questions,
        'created_at': as_utc(assignment.created_at),
    }


def submission_view(submission: models.Submission) -> dict:
    return {
        'id': submission.id,
        'student_id': submission.student_id,
        'answers': submission.answers,
        'marks': submission.marks,
        'submitted_at': as_utc(submission.submitted_at),
    }
