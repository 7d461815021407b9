"""Auth router — registration, cookie login/logout, session info and password reset."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from practicum.config import settings
from practicum.database import get_db
from practicum.errors import AuthError
from practicum.middleware.auth import client_ip, get_session
from practicum.middleware.rate_limit import limiter
from practicum.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SessionUserResponse,
)
from practicum.services import session_service, user_service
from practicum.services.session_service import SessionContext, session_lifetime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201)
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    """Self-registration for students (numeric student id)."""
    user_service.register_student(db, req.student_id, req.password)
    return {"success": True, "message": "Registration complete, please log in"}


@router.post("/login")
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, response: Response, req: LoginRequest, db: Session = Depends(get_db)):
    """Check credentials, open a server-side session and set the session cookie."""
    user = session_service.authenticate(db, req.username.strip(), req.password)
    session, token = session_service.create_session(
        db,
        user,
        remember_me=req.remember_me,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_ip(request),
    )
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=int(session_lifetime(req.remember_me).total_seconds()),
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    return {
        "success": True,
        "message": "Logged in",
        "role": session.role,
        "redirectTo": "/dashboard" if session.role == "student" else "/admin",
    }


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        try:
            payload = session_service.decode_session_token(token)
        except AuthError:
            payload = {}
        if payload.get("sid"):
            session_service.end_session(db, payload["sid"])
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"success": True, "message": "Logged out", "redirectTo": "/login"}


@router.get("/me")
def me(ctx: SessionContext = Depends(get_session)):
    user = ctx.user
    data = SessionUserResponse(
        id=user.id,
        username=user.username,
        role=ctx.role,
        first_name=user.first_name or "",
        last_name=user.last_name or "",
        email=user.email or "",
        avatar_url=user.avatar_url or "",
        remember_me=ctx.remember_me,
    )
    return {"success": True, "user": data.model_dump(by_alias=True)}


@router.post("/forgot-password")
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def forgot_password(request: Request, req: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Issue a reset token. The answer is the same whether or not the address is known."""
    token = session_service.request_password_reset(db, req.email)
    body = {"success": True, "message": "If the address is registered, a reset link has been sent"}
    if token and settings.PASSWORD_RESET_DEV_LINKS:
        body["_devResetLink"] = f"/reset-password/{token}"
    return body


@router.get("/reset-password/{token}")
def check_reset_token(token: str, db: Session = Depends(get_db)):
    record = session_service.check_reset_token(db, token)
    return {"success": True, "email": record.email}


@router.post("/reset-password")
def reset_password(req: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = session_service.reset_password(db, req.token, req.new_password)
    logger.info("Password reset for %s", user.id)
    return {"success": True, "message": "Password changed, please log in"}
