"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the learning-management
backend. Controllers are intentionally thin: they resolve the caller,
delegate to services, and return JSON responses. Service errors are
rendered by the exception handlers below.

Endpoints implemented:
- GET /health
- POST /admin/courses, DELETE /admin/courses/{course_id}
- POST /admin/courses/{course_id}/lectures, DELETE /admin/lectures/{lecture_id}
- GET /admin/stats, GET /admin/users, PUT /admin/users/{user_id}/role
- GET /courses/{course_id}/lectures, GET /courses/{course_id}/students
- GET /instructor/courses
- POST /courses/{course_id}/assignments, GET /courses/{course_id}/assignments
- POST /assignments/{assignment_id}/submit
- DELETE /assignments/{assignment_id}
- GET /assignments/{assignment_id}/submissions
- PUT /assignments/{assignment_id}/submissions/{submission_id}/marks
"""

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services
from .auth import get_current_actor
from .config import settings
from .errors import ServiceError
from .policy import Actor
from .schemas import AssignmentCreate, CourseCreate, LectureCreate, MarksIn, RoleUpdate, SubmissionIn

app = FastAPI(title="LMS Assignments API")
logger = logging.getLogger("lms.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


def _request_log_payload(request: Request, req_id: str, started: float, **extra) -> str:
    payload = {
        "request_id": req_id,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    payload.update(extra)
    return json.dumps(payload, ensure_ascii=True)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed %s", _request_log_payload(request, req_id, started))
        raise
    response.headers["X-Request-ID"] = req_id
    logger.info("request_done %s", _request_log_payload(request, req_id, started, status_code=response.status_code))
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # traceback is already logged by request_context_middleware
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


# --- admin: courses, lectures, users ---

@app.post('/admin/courses', status_code=201)
def create_course(payload: CourseCreate, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """Create a course. Admin only; `assigned_to` must reference an instructor."""
    course = services.CourseService(db).create(actor, **payload.model_dump())
    return {'success': True, 'message': 'Course created successfully', 'course_id': course.id}


@app.delete('/admin/courses/{course_id}')
def delete_course(course_id: int, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """Delete a course with its lectures, assignments and enrollments."""
    services.CourseService(db).delete(actor, course_id)
    return {'success': True, 'message': 'Course deleted'}


@app.post('/admin/courses/{course_id}/lectures')
def add_lecture(course_id: int, payload: LectureCreate, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    lecture = services.LectureService(db).add(actor, course_id, payload.title, payload.description, payload.video)
    return {'success': True, 'message': 'Lecture added successfully', 'lecture': lecture.model_dump()}


@app.delete('/admin/lectures/{lecture_id}')
def delete_lecture(lecture_id: int, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    services.LectureService(db).delete(actor, lecture_id)
    return {'success': True, 'message': 'Lecture deleted'}


@app.get('/admin/stats')
def get_stats(db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    return {'success': True, 'stats': services.CourseService(db).stats(actor)}


@app.get('/admin/users')
def list_users(db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """List every user except the calling admin."""
    return {'success': True, 'users': services.UserAdminService(db).list_users(actor)}


@app.put('/admin/users/{user_id}/role')
def update_role(user_id: int, payload: RoleUpdate, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    user = services.UserAdminService(db).update_role(actor, user_id, payload.role)
    role = services.user_view(user)['role']
    return {'success': True, 'message': f'Role updated to {role}'}


# --- course views for instructors ---

@app.get('/courses/{course_id}/lectures')
def list_course_lectures(course_id: int, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    lectures = services.LectureService(db).list_for_course(actor, course_id)
    return {'success': True, 'lectures': [lecture.model_dump() for lecture in lectures]}


@app.get('/courses/{course_id}/students')
def list_course_students(course_id: int, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    return {'success': True, 'students': services.CourseService(db).list_students(actor, course_id)}


@app.get('/instructor/courses')
def list_instructor_courses(db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """Courses assigned to the calling instructor (or admin)."""
    return {'success': True, 'courses': services.CourseService(db).list_for_instructor(actor)}


# --- assignments and grading ---

@app.post('/courses/{course_id}/assignments', status_code=201)
def create_assignment(course_id: int, payload: AssignmentCreate, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """Create an assignment for a course.

    The caller must be an admin or the course's assigned instructor. The
    whole question set is validated before anything is stored.
    """
    assignment = services.AssignmentService(db).create(
        actor, course_id, payload.title, payload.description, payload.deadline, payload.questions
    )
    return {
        'success': True,
        'message': 'Assignment created successfully',
        'assignment': services.assignment_view(assignment),
    }


@app.get('/courses/{course_id}/assignments')
def list_course_assignments(course_id: int, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """List a course's assignments; students only see their own submission."""
    return {'success': True, 'assignments': services.AssignmentService(db).list_by_course(actor, course_id)}


@app.post('/assignments/{assignment_id}/submit')
def submit_assignment(assignment_id: int, payload: SubmissionIn, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """Submit answers as a student; objective questions are scored immediately."""
    submission = services.AssignmentService(db).submit(actor, assignment_id, payload.answers)
    return {
        'success': True,
        'message': 'Assignment submitted successfully',
        'submission': services.submission_view(submission),
    }


@app.delete('/assignments/{assignment_id}')
def delete_assignment(assignment_id: int, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    services.AssignmentService(db).delete(actor, assignment_id)
    return {'success': True, 'message': 'Assignment deleted successfully'}


@app.get('/assignments/{assignment_id}/submissions')
def list_assignment_submissions(assignment_id: int, db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """Grading view of an assignment's submissions for its instructor or an admin."""
    result = services.AssignmentService(db).get_submissions(actor, assignment_id)
    return {'success': True, **result}


@app.put('/assignments/{assignment_id}/submissions/{submission_id}/marks')
def update_submission_marks(assignment_id: int, submission_id: int, payload: MarksIn,
                            db: Session = Depends(get_session), actor: Actor = Depends(get_current_actor)):
    """Manually set a submission's marks (no upper bound is enforced)."""
    services.AssignmentService(db).set_marks(actor, assignment_id, submission_id, payload.marks)
    return {'success': True, 'message': 'Marks updated successfully'}
