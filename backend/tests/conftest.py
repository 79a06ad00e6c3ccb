import itertools
import os
import tempfile
from pathlib import Path

import pytest

# Point the app at a throwaway SQLite file before `lms` is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="lms-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["ENV"] = "dev"

from sqlmodel import SQLModel, Session  # noqa: E402

from lms import models  # noqa: E402
from lms.auth import create_access_token  # noqa: E402
from lms.database import engine  # noqa: E402

_seq = itertools.count(1)


@pytest.fixture(autouse=True)
def reset_db():
    """Start every test from empty tables."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def make_user(session):
    def _make(role=models.Role.STUDENT, name=None):
        n = next(_seq)
        user = models.User(name=name or f"{role.value} {n}", email=f"user{n}@example.com", role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user
    return _make


@pytest.fixture
def make_course(session):
    def _make(assigned_to=None, title="Course"):
        course = models.Course(title=title, assigned_to=assigned_to)
        session.add(course)
        session.commit()
        session.refresh(course)
        return course
    return _make


@pytest.fixture
def headers_for():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers
