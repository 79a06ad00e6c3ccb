"""Role-based access policy.

Every service method resolves the target entity first and then asks
`require` whether the calling `Actor` may perform an `Action` on it.
Ownership-scoped actions take the owning user's id (the course's
assigned instructor, or the assignment's instructor) as `owner_id`.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import Forbidden
from .models import Role


@dataclass(frozen=True)
class Actor:
    """An already-authenticated caller."""
    id: int
    role: Role
    name: str = ""


class Action(str, Enum):
    CREATE_ASSIGNMENT = "create_assignment"
    DELETE_ASSIGNMENT = "delete_assignment"
    SUBMIT_ASSIGNMENT = "submit_assignment"
    VIEW_SUBMISSIONS = "view_submissions"
    GRADE_SUBMISSION = "grade_submission"
    SEE_ALL_SUBMISSIONS = "see_all_submissions"
    VIEW_COURSE_ROSTER = "view_course_roster"
    LIST_TEACHING_COURSES = "list_teaching_courses"
    MANAGE_COURSES = "manage_courses"
    MANAGE_USERS = "manage_users"


# actions an instructor may perform only on what they own
_OWNED_BY_INSTRUCTOR = frozenset({
    Action.CREATE_ASSIGNMENT,
    Action.DELETE_ASSIGNMENT,
    Action.VIEW_SUBMISSIONS,
    Action.GRADE_SUBMISSION,
    Action.VIEW_COURSE_ROSTER,
})

_OPEN_TO_INSTRUCTOR = frozenset({
    Action.SEE_ALL_SUBMISSIONS,
    Action.LIST_TEACHING_COURSES,
})

_DEFAULT_MESSAGES = {
    Action.CREATE_ASSIGNMENT: "Only the assigned instructor or admin can create assignments",
    Action.DELETE_ASSIGNMENT: "Only the instructor who created this assignment or an admin can delete it",
    Action.SUBMIT_ASSIGNMENT: "Only students can submit assignments",
    Action.VIEW_SUBMISSIONS: "You are not authorized to view submissions for this assignment",
    Action.GRADE_SUBMISSION: "You are not authorized to update marks for this assignment",
    Action.SEE_ALL_SUBMISSIONS: "You may only see your own submissions",
    Action.VIEW_COURSE_ROSTER: "You are not authorized to view this course",
    Action.LIST_TEACHING_COURSES: "Only instructors or admins can access this resource",
    Action.MANAGE_COURSES: "Only admins can manage courses and lectures",
    Action.MANAGE_USERS: "Only admins can manage users",
}


def is_allowed(actor: Actor, action: Action, owner_id: Optional[int] = None) -> bool:
    """Return True if `actor` may perform `action` on a target owned by `owner_id`."""
    role = Role(actor.role)
    if role is Role.ADMIN:
        return action is not Action.SUBMIT_ASSIGNMENT
    if role is Role.INSTRUCTOR:
        if action in _OWNED_BY_INSTRUCTOR:
            return owner_id is not None and owner_id == actor.id
        return action in _OPEN_TO_INSTRUCTOR
    if role is Role.STUDENT:
        return action is Action.SUBMIT_ASSIGNMENT
    raise ValueError(f"unhandled role: {role!r}")


def require(actor: Actor, action: Action, owner_id: Optional[int] = None, message: Optional[str] = None) -> None:
    """Raise `Forbidden` unless `is_allowed` grants the action."""
    if not is_allowed(actor, action, owner_id):
        raise Forbidden(message or _DEFAULT_MESSAGES[action])
