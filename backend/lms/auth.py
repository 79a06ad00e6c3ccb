"""Authentication helpers and FastAPI security dependency.

This module decodes bearer JWTs and exposes the FastAPI dependency
`get_current_actor`, which validates the token, loads the referenced
`User` and hands controllers an `Actor` (id, role, name). Login and
password handling belong to a separate identity service; tokens here are
only minted for local seeding and tests.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies.
"""

from datetime import datetime, timedelta, timezone
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from sqlmodel import Session
from .config import settings
from .database import engine
from .policy import Actor
from . import repositories

bearer_scheme = HTTPBearer()


def create_access_token(user_id: int) -> str:
    """Sign a token carrying `user_id` that expires after JWT_EXPIRE_HOURS."""
    expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
    payload = {"user_id": user_id, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_actor(credentials: HTTPAuthorizationCredentials = Security(bearer_scheme)) -> Actor:
    """FastAPI dependency that returns the authenticated caller.

    The function extracts the bearer token from the request, decodes it
    and looks the user up so the role is always current. It raises an
    HTTPException(401) for any authentication issue.
    """
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    with Session(engine) as session:
        user = repositories.UserRepository(session).get(user_id)
        if not user:
            raise HTTPException(status_code=401, detail='user not found')
        return Actor(id=user.id, role=user.role, name=user.name)
