"""Session service — server-side login sessions and password-reset tokens.

The session cookie carries a signed JWT whose ``sid`` claim points at a
``user_sessions`` row. The row is the source of truth: expiry, idle timeout,
revocation and the User-Agent / IP drift counter all live there.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from jose import JWTError, jwt
from sqlalchemy.orm import Session

from practicum.clock import ensure_utc, utcnow
from practicum.config import settings
from practicum.errors import AuthError, ValidationError
from practicum.models.session import UserSession, PasswordResetToken
from practicum.models.user import User
from practicum.roles import STUDENT, resolve_role
from practicum.services.audit_service import log_system
from practicum.services.eligibility import student_year

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Request-scoped view of the authenticated session."""

    session_id: str
    user: User
    role: str
    remember_me: bool
    created_at: datetime
    last_activity: datetime
    security_alerts: int = 0

    @property
    def user_id(self) -> str:
        return self.user.id


def session_lifetime(remember_me: bool) -> timedelta:
    if remember_me:
        return timedelta(days=settings.SESSION_REMEMBER_ME_DAYS)
    return timedelta(hours=settings.SESSION_MAX_AGE_HOURS)


def encode_session_token(session: UserSession) -> str:
    payload = {
        "sid": session.id,
        "sub": session.user_id,
        "exp": ensure_utc(session.expires_at),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_session_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthError("Invalid or expired session")


def authenticate(db: Session, username: str, password: str) -> User:
    # Imported here: middleware.auth depends on this module
    from practicum.middleware.auth import verify_password

    if not username or not password:
        raise ValidationError("Username and password are required")
    user = (
        db.query(User)
        .filter((User.username == username) | (User.id == username))
        .first()
    )
    if not user or not verify_password(password, user.password_hash):
        raise AuthError("Invalid username or password")
    if not user.is_active:
        raise AuthError("Account is disabled")
    return user


def create_session(
    db: Session,
    user: User,
    remember_me: bool = False,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple:
    """Open a session for ``user`` and return ``(session, cookie_token)``.

    The resolved role is always persisted on the session row.
    """
    now = now or utcnow()
    role = resolve_role(user.role, user.id)
    if role == STUDENT:
        # Stored year tracks the current academic year
        user.year = student_year(user, now=now)
    session = UserSession(
        user_id=user.id,
        role=role,
        remember_me=remember_me,
        user_agent=user_agent,
        ip_address=ip_address,
        created_at=now,
        last_activity=now,
        expires_at=now + session_lifetime(remember_me),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Session opened for %s (remember_me=%s)", user.id, remember_me)
    return session, encode_session_token(session)


def _revoke(db: Session, session: UserSession) -> None:
    session.revoked = True
    db.commit()


def resolve_session(
    db: Session,
    token: Optional[str],
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SessionContext:
    """Validate the cookie token against its server-side row and touch it."""
    if not token:
        raise AuthError("Please log in")
    now = now or utcnow()
    payload = decode_session_token(token)
    session_id = payload.get("sid")
    if not session_id:
        raise AuthError("Invalid session payload")

    session = db.query(UserSession).filter(UserSession.id == session_id).first()
    if not session or session.revoked:
        raise AuthError("Session has ended, please log in again")

    if now >= ensure_utc(session.expires_at):
        _revoke(db, session)
        raise AuthError("Session expired, please log in again")

    idle_limit = timedelta(minutes=settings.SESSION_IDLE_TIMEOUT_MINUTES)
    if now - ensure_utc(session.last_activity) > idle_limit:
        _revoke(db, session)
        raise AuthError("Session timed out after inactivity, please log in again")

    drift = []
    if session.user_agent and user_agent and session.user_agent != user_agent:
        drift.append("user_agent")
    if session.ip_address and ip_address and session.ip_address != ip_address:
        drift.append("ip_address")
    if drift:
        session.security_alerts += 1
        logger.warning(
            "Session %s for %s changed %s (alert %d)",
            session.id, session.user_id, ", ".join(drift), session.security_alerts,
        )
        log_system(
            db,
            f"Session fingerprint changed for {session.user_id}",
            level="warning",
            category="security",
            user_id=session.user_id,
            details={"changed": drift, "alerts": session.security_alerts, "ip": ip_address},
        )
        if session.security_alerts >= settings.SESSION_MAX_SECURITY_ALERTS:
            _revoke(db, session)
            raise AuthError("Session ended for security reasons, please log in again")

    user = session.user
    if not user or not user.is_active:
        _revoke(db, session)
        raise AuthError("User not found")

    session.last_activity = now
    db.commit()

    return SessionContext(
        session_id=session.id,
        user=user,
        role=resolve_role(session.role, user.id),
        remember_me=session.remember_me,
        created_at=ensure_utc(session.created_at),
        last_activity=now,
        security_alerts=session.security_alerts,
    )


def end_session(db: Session, session_id: str) -> None:
    session = db.query(UserSession).filter(UserSession.id == session_id).first()
    if session and not session.revoked:
        _revoke(db, session)
        logger.info("Session %s closed", session_id)


# ── Password reset ──────────────────────────────────────────────────────────


def request_password_reset(db: Session, email: str, now: Optional[datetime] = None) -> Optional[str]:
    """Issue a 30-minute single-use token for an institution e-mail.

    Returns the token, or ``None`` when no account uses the address. Callers
    answer identically in both cases.
    """
    email = (email or "").strip().lower()
    if not email.endswith(settings.PASSWORD_RESET_EMAIL_DOMAIN):
        raise ValidationError(
            f"Please use your institution e-mail ending with {settings.PASSWORD_RESET_EMAIL_DOMAIN}"
        )
    now = now or utcnow()
    user = db.query(User).filter(User.email == email).first()
    if not user:
        logger.info("Password reset requested for unknown address")
        return None

    token = secrets.token_hex(32)
    db.add(PasswordResetToken(
        token=token,
        email=email,
        user_id=user.id,
        expires_at=now + timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES),
        created_at=now,
    ))
    log_system(db, f"Password reset requested for {user.id}", category="auth", user_id=user.id)
    db.commit()
    return token


def check_reset_token(db: Session, token: str, now: Optional[datetime] = None) -> PasswordResetToken:
    now = now or utcnow()
    record = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
    if not record:
        raise ValidationError("Invalid reset link")
    if now > ensure_utc(record.expires_at):
        raise ValidationError("Reset link has expired, please request a new one")
    if record.used:
        raise ValidationError("Reset link has already been used")
    return record


def reset_password(db: Session, token: str, new_password: str, now: Optional[datetime] = None) -> User:
    from practicum.middleware.auth import hash_password

    if not token or not new_password:
        raise ValidationError("Token and new password are required")
    if len(new_password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")
    record = check_reset_token(db, token, now)

    # Mark used first; the conditional update keeps the token single-use under races
    claimed = (
        db.query(PasswordResetToken)
        .filter(PasswordResetToken.token == token, PasswordResetToken.used.is_(False))
        .update({PasswordResetToken.used: True}, synchronize_session=False)
    )
    if claimed != 1:
        db.rollback()
        raise ValidationError("Reset link has already been used")

    user = db.query(User).filter(User.id == record.user_id).first()
    if not user:
        db.rollback()
        raise ValidationError("Account no longer exists")
    user.password_hash = hash_password(new_password)
    user.updated_at = now or utcnow()
    # Every open session ends with the old password
    db.query(UserSession).filter(UserSession.user_id == user.id).update(
        {UserSession.revoked: True}, synchronize_session=False
    )
    log_system(db, f"Password reset completed for {user.id}", category="auth", user_id=user.id)
    db.commit()
    return user
