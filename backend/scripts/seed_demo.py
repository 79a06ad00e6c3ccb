"""CLI script to seed demo users, a course and an enrollment into the backend DB.
Usage: python scripts/seed_demo.py [--course-title TITLE]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `lms` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from lms.database import engine, create_db_and_tables
from lms import models, repositories
from lms.auth import create_access_token

DEMO_USERS = (
    ('Ada Admin', 'admin@example.com', models.Role.ADMIN),
    ('Ian Instructor', 'instructor@example.com', models.Role.INSTRUCTOR),
    ('Sam Student', 'student@example.com', models.Role.STUDENT),
)


def main(course_title: str = 'Intro to Programming'):
    """Create the demo users (if missing), a course taught by the demo
    instructor and enroll the demo student.

    Bearer tokens for every demo user are printed to stdout so the API
    can be exercised right away.
    """
    create_db_and_tables()
    with Session(engine) as session:
        user_repo = repositories.UserRepository(session)
        users = {}
        for name, email, role in DEMO_USERS:
            user = user_repo.get_by_email(email)
            if not user:
                user = user_repo.create(models.User(name=name, email=email, role=role))
                print(f'Created {role.value}: {email}')
            users[role] = user
        course = repositories.CourseRepository(session).create(models.Course(
            title=course_title,
            description='Demo course',
            category='demo',
            created_by=users[models.Role.ADMIN].name,
            assigned_to=users[models.Role.INSTRUCTOR].id,
        ))
        user_repo.enroll(users[models.Role.STUDENT].id, course.id)
        print(f'Created course {course.id}: {course.title}')
        for role, user in users.items():
            print(f'{role.value} token: {create_access_token(user.id)}')


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--course-title', default='Intro to Programming', help='Title of the demo course')
    args = parser.parse_args()
    main(course_title=args.course_title)
