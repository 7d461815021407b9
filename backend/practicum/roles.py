"""User roles and role inference from user ids."""

from typing import Optional

STUDENT = "student"
TEACHER = "teacher"
ADMIN = "admin"

ROLES = (STUDENT, TEACHER, ADMIN)


def infer_role(user_id: Optional[str]) -> Optional[str]:
    """Derive a role from the shape of a user id.

    ``T...`` is a teacher, ``A...`` an admin and an id starting with a digit is
    a student id. Anything else yields ``None``.
    """
    if not user_id:
        return None
    first = user_id[0]
    if first == "T":
        return TEACHER
    if first == "A":
        return ADMIN
    if first.isdigit():
        return STUDENT
    return None


def resolve_role(stored_role: Optional[str], user_id: Optional[str]) -> Optional[str]:
    """Prefer the persisted role; fall back to inference only when it is missing."""
    if stored_role in ROLES:
        return stored_role
    return infer_role(user_id)
