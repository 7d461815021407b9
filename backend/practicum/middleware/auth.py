"""Cookie-session authentication dependencies and password hashing."""

import bcrypt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from practicum.config import settings
from practicum.database import get_db
from practicum.errors import ForbiddenError
from practicum.roles import ADMIN, STUDENT, TEACHER
from practicum.services.session_service import SessionContext, resolve_session


def hash_password(password: str) -> str:
    """Hash a password using bcrypt directly (passlib is broken with bcrypt>=4.1)."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(pwd_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        # Malformed stored hash
        return False


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""


def get_session(request: Request, db: Session = Depends(get_db)) -> SessionContext:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    ctx = resolve_session(
        db,
        token,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    request.state.session = ctx
    return ctx


def require_student(ctx: SessionContext = Depends(get_session)) -> SessionContext:
    if ctx.role != STUDENT:
        raise ForbiddenError("Students only")
    return ctx


def require_admin(ctx: SessionContext = Depends(get_session)) -> SessionContext:
    if ctx.role != ADMIN:
        raise ForbiddenError("Administrator role required")
    return ctx


def require_staff(ctx: SessionContext = Depends(get_session)) -> SessionContext:
    """Admins and teachers."""
    if ctx.role not in (ADMIN, TEACHER):
        raise ForbiddenError("Teacher or administrator role required")
    return ctx
