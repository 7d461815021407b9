"""Accounts: self-registration, profile, passwords, avatars and admin user management."""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practicum.clock import isoformat, utcnow
from practicum.config import settings
from practicum.errors import AuthError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from practicum.models.user import User
from practicum.roles import ADMIN, ROLES, STUDENT, TEACHER
from practicum.services.audit_service import log_system
from practicum.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)

STUDENT_ID_RE = re.compile(r"^\d+$")
ID_PATTERNS = {
    STUDENT: (re.compile(r"^\d{11}$"), "Student ids are 11 digits"),
    TEACHER: (re.compile(r"^T[a-zA-Z0-9]{11}$"), "Teacher ids are T followed by 11 letters or digits"),
    ADMIN: (re.compile(r"^A[a-zA-Z0-9]{11}$"), "Admin ids are A followed by 11 letters or digits"),
}
CHANGE_PASSWORD_MIN_LENGTH = 8
AVATAR_PREFIX = "profile_images"
ROLE_ORDER = {STUDENT: 1, TEACHER: 2, ADMIN: 3}


def _hash(password: str) -> str:
    from practicum.middleware.auth import hash_password

    return hash_password(password)


def _blank(value) -> bool:
    return value is None or str(value).strip() == ""


def study_year_from_id(student_id: Optional[str], now: Optional[datetime] = None) -> int:
    """Study year 1..4 from the Buddhist enrollment year in the id's first two digits."""
    if not student_id or len(student_id) < 2 or not student_id[:2].isdigit():
        return 1
    enrolled = 2500 + int(student_id[:2])
    current = (now or utcnow()).year + 543
    return max(1, min(4, current - enrolled + 1))


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role,
        "firstName": user.first_name or "",
        "lastName": user.last_name or "",
        "email": user.email or "",
        "phone": user.phone or "",
        "major": user.major or "",
        "room": user.room or "",
        "year": user.year,
        "avatarUrl": user.avatar_url or "",
        "status": "active" if user.is_active else "inactive",
        "createdBy": user.created_by,
        "createdAt": isoformat(user.created_at),
        "updatedAt": isoformat(user.updated_at),
    }


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# ── Self-service ────────────────────────────────────────────────────────────


def register_student(db: Session, student_id: str, password: str, now: Optional[datetime] = None) -> User:
    student_id = (student_id or "").strip()
    if not student_id or not password:
        raise ValidationError("Please enter your student id and password")
    if not STUDENT_ID_RE.match(student_id):
        raise ValidationError("Student id must contain digits only")
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")
    if db.get(User, student_id) is not None:
        raise ValidationError("This student id is already registered")

    now = now or utcnow()
    user = User(
        id=student_id,
        username=student_id,
        password_hash=_hash(password),
        role=STUDENT,
        year=study_year_from_id(student_id, now),
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("This student id is already registered")
    logger.info("Student %s registered", student_id)
    return user


def get_profile(db: Session, user_id: str, now: Optional[datetime] = None) -> dict:
    user = get_user(db, user_id)
    data = user_to_dict(user)
    if user.role == STUDENT:
        data["year"] = study_year_from_id(user.id, now)
    data["emailLocked"] = not _blank(user.email)
    data["roomLocked"] = not _blank(user.room)
    return data


def update_profile(db: Session, user_id: str, data: dict, now: Optional[datetime] = None) -> dict:
    """Update the caller's profile. E-mail and room can each be set once."""
    first_name = (data.get("firstName") or "").strip()
    last_name = (data.get("lastName") or "").strip()
    major = (data.get("major") or "").strip()
    email = (data.get("email") or "").strip()
    if not first_name or not last_name or not major or not email:
        raise ValidationError("Please fill in all required fields")

    user = get_user(db, user_id)
    if not _blank(user.email) and user.email != email:
        raise ForbiddenError("E-mail can only be set once")
    room = data.get("room")
    if not _blank(user.room) and not _blank(room) and str(user.room) != str(room):
        raise ForbiddenError("Room can only be set once")

    user.first_name = first_name
    user.last_name = last_name
    user.major = major
    user.email = email
    user.phone = (data.get("phone") or "").strip()
    if _blank(user.room) and not _blank(room):
        user.room = str(room).strip()
    user.updated_at = now or utcnow()
    db.commit()
    logger.info("Profile of %s updated", user_id)
    return user_to_dict(user)


def change_password(db: Session, user_id: str, current_password: str, new_password: str) -> None:
    from practicum.middleware.auth import verify_password

    if not current_password or not new_password:
        raise ValidationError("Please enter your current and new password")
    if len(new_password) < CHANGE_PASSWORD_MIN_LENGTH:
        raise ValidationError(f"New password must be at least {CHANGE_PASSWORD_MIN_LENGTH} characters")
    user = get_user(db, user_id)
    if not verify_password(current_password, user.password_hash):
        raise AuthError("Current password is incorrect")
    user.password_hash = _hash(new_password)
    user.updated_at = utcnow()
    log_system(db, f"Password changed by {user_id}", category="auth", user_id=user_id)
    db.commit()


def upload_avatar(
    db: Session,
    storage: LocalObjectStorage,
    user_id: str,
    filename: Optional[str],
    content_type: Optional[str],
    content: Optional[bytes],
    now: Optional[datetime] = None,
) -> str:
    if not filename or content is None:
        raise ValidationError("No file uploaded")
    if not (content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")
    if len(content) > settings.AVATAR_MAX_BYTES:
        raise ValidationError(f"The image is larger than {settings.AVATAR_MAX_BYTES // (1024 * 1024)} MB")

    user = get_user(db, user_id)
    now = now or utcnow()
    ext = Path(filename).suffix.lower()
    object_name = f"{AVATAR_PREFIX}/{user_id}-{int(now.timestamp() * 1000)}{ext}"
    url = storage.put(object_name, content)
    user.avatar_url = url
    user.updated_at = now
    db.commit()
    logger.info("Avatar of %s stored at %s", user_id, object_name)
    return url


# ── Admin user management ───────────────────────────────────────────────────


def list_users(
    db: Session,
    search: Optional[str] = None,
    role: Optional[str] = None,
    year_level=None,
    status: Optional[str] = None,
) -> list[dict]:
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if year_level:
        try:
            query = query.filter(User.year == int(year_level))
        except ValueError:
            raise ValidationError("yearLevel must be a number")
    if status:
        query = query.filter(User.is_active.is_(status == "active"))
    users = [user_to_dict(u) for u in query.all()]
    if search:
        needle = search.lower()
        users = [
            u for u in users
            if needle in " ".join([u["firstName"], u["lastName"], u["id"], u["email"]]).lower()
        ]
    users.sort(key=lambda u: (ROLE_ORDER.get(u["role"], 999), u["firstName"]))
    return users


def create_user(db: Session, actor: User, data: dict, now: Optional[datetime] = None) -> dict:
    first_name = (data.get("firstName") or "").strip()
    last_name = (data.get("lastName") or "").strip()
    email = (data.get("email") or "").strip()
    role = data.get("role")
    user_id = str(data.get("userId") or "").strip()
    password = data.get("password") or ""
    if not first_name or not last_name or not email or not role or not user_id or not password:
        raise ValidationError("Please fill in all required fields")
    if role not in ROLES:
        raise ValidationError("Invalid role")
    pattern, hint = ID_PATTERNS[role]
    if not pattern.match(user_id):
        raise ValidationError(hint)
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")
    if db.get(User, user_id) is not None:
        raise ConflictError("This id is already in use")

    now = now or utcnow()
    user = User(
        id=user_id,
        username=user_id,
        password_hash=_hash(password),
        role=role,
        first_name=first_name,
        last_name=last_name,
        email=email,
        is_active=True,
        created_by=actor.id,
        created_at=now,
        updated_at=now,
    )
    if role == STUDENT:
        user.year = int(data.get("yearLevel") or 1)
        user.room = ""
        user.major = ""
    db.add(user)
    log_system(
        db,
        f"Created user {first_name} {last_name} ({user_id})",
        category="user_management",
        user_id=actor.id,
        details={"newUserId": user_id, "newUserRole": role, "createdByRole": actor.role},
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("This id is already in use")
    logger.info("User %s (%s) created by %s", user_id, role, actor.id)
    return user_to_dict(user)


def update_user(db: Session, actor: User, user_id: str, data: dict) -> dict:
    phone = data.get("phone")
    if phone and not re.match(r"^0\d{9}$", phone):
        raise ValidationError("Phone number must be 10 digits starting with 0")
    password = data.get("password")
    if password and len(password) < CHANGE_PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {CHANGE_PASSWORD_MIN_LENGTH} characters")

    user = get_user(db, user_id)
    for key, column in (("firstName", "first_name"), ("lastName", "last_name"), ("email", "email"),
                        ("major", "major"), ("room", "room")):
        if data.get(key) is not None:
            setattr(user, column, str(data[key]).strip())
    if phone:
        user.phone = phone
    if data.get("yearLevel") is not None and user.role == STUDENT:
        user.year = int(data["yearLevel"])
    if data.get("status") in ("active", "inactive"):
        user.is_active = data["status"] == "active"
    if password:
        user.password_hash = _hash(password)
    user.updated_at = utcnow()
    log_system(db, f"Updated user {user_id}", category="user_management", user_id=actor.id)
    db.commit()
    return user_to_dict(user)


def deactivate_user(db: Session, actor: User, user_id: str) -> None:
    """Soft delete: the account stays but can no longer log in."""
    if user_id == actor.id:
        raise ValidationError("You cannot deactivate your own account")
    user = get_user(db, user_id)
    user.is_active = False
    user.updated_at = utcnow()
    log_system(db, f"Deactivated user {user_id}", category="user_management", user_id=actor.id)
    db.commit()
    logger.info("User %s deactivated by %s", user_id, actor.id)
