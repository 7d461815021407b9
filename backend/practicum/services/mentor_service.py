"""Mentor info service.

Within one observation period a student has one mentor and a mentor (same
school, first and last name) supervises one student. Both rules are unique
keys on ``mentors``; the pre-checks only exist to name the occupying student.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practicum.clock import isoformat, utcnow
from practicum.errors import MentorOccupiedError, NotEligibleError, ValidationError
from practicum.models.mentor import Mentor
from practicum.models.school import School, SchoolStudent
from practicum.services.eligibility import resolve_eligibility

logger = logging.getLogger(__name__)

SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 10


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_list(value) -> list:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [v for v in value if v not in (None, "")]
    return [value]


def mentor_to_dict(mentor: Mentor) -> dict:
    return {
        "firstName": mentor.first_name or "",
        "lastName": mentor.last_name or "",
        "position": mentor.position or "",
        "phone": mentor.phone or "",
        "email": mentor.email or "",
        "education": list(mentor.education or []),
        "experience": mentor.experience or 0,
        "department": mentor.department or "",
        "teachingSubjects": list(mentor.teaching_subjects or []),
        "lastUpdatedBy": mentor.last_updated_by,
        "lastUpdatedAt": isoformat(mentor.last_updated_at),
    }


def _apply_fields(mentor: Mentor, data: dict, student_id: str, now: datetime) -> None:
    mentor.first_name = _text(data.get("firstName"))
    mentor.last_name = _text(data.get("lastName"))
    mentor.position = _text(data.get("position"))
    mentor.phone = _text(data.get("phone"))
    mentor.email = _text(data.get("email"))
    mentor.education = _as_list(data.get("education"))
    mentor.experience = _to_int(data.get("experience"))
    mentor.department = _text(data.get("department"))
    mentor.teaching_subjects = _as_list(data.get("teachingSubjects"))
    mentor.last_updated_by = student_id
    mentor.last_updated_at = now


def _occupant(
    db: Session, observation_id: str, school_name: str, first_name: str, last_name: str, student_id: str
) -> Optional[Mentor]:
    return (
        db.query(Mentor)
        .filter(
            Mentor.observation_id == observation_id,
            Mentor.school_name == school_name,
            Mentor.first_name == first_name,
            Mentor.last_name == last_name,
            Mentor.student_id != student_id,
        )
        .first()
    )


def _occupied_error(student_id: Optional[str]) -> MentorOccupiedError:
    who = f" (student {student_id})" if student_id else ""
    return MentorOccupiedError(
        f"This mentor already supervises another student in this observation period{who}. "
        "Please choose a different mentor",
        occupied_by=student_id,
    )


def save_mentor(db: Session, student_id: str, data: dict, now: Optional[datetime] = None) -> dict:
    first_name = _text(data.get("firstName"))
    last_name = _text(data.get("lastName"))
    if not first_name or not last_name:
        raise ValidationError("Please enter the mentor's first and last name")

    now = now or utcnow()
    eligibility = resolve_eligibility(db, student_id, now, require_school=True)
    if not eligibility.eligible:
        raise NotEligibleError(
            eligibility.message,
            eligible=False,
            needSchoolInfo=eligibility.need_school_info,
        )
    observation_id = eligibility.observation_id

    occupant = _occupant(db, observation_id, eligibility.school_name, first_name, last_name, student_id)
    if occupant:
        raise _occupied_error(occupant.student_id)

    mentor = (
        db.query(Mentor)
        .filter(Mentor.observation_id == observation_id, Mentor.student_id == student_id)
        .first()
    )
    is_new_mentor = mentor is None
    if is_new_mentor:
        mentor = Mentor(
            school_id=eligibility.school_id,
            school_name=eligibility.school_name,
            observation_id=observation_id,
            student_id=student_id,
            created_by=student_id,
            created_at=now,
        )
        db.add(mentor)
    _apply_fields(mentor, data, student_id, now)

    try:
        db.flush()
        db.commit()
    except IntegrityError:
        db.rollback()
        # Lost a race for the same mentor
        occupant = _occupant(db, observation_id, eligibility.school_name, first_name, last_name, student_id)
        logger.info("Mentor %s %s claimed concurrently in %s", first_name, last_name, observation_id)
        raise _occupied_error(occupant.student_id if occupant else None)

    logger.info("Mentor %s saved by %s in %s (new=%s)", mentor.id, student_id, observation_id, is_new_mentor)
    return {
        "mentorId": mentor.id,
        "isNewMentor": is_new_mentor,
        "message": "New mentor information saved" if is_new_mentor else "Mentor information updated",
    }


def get_my_mentor(db: Session, student_id: str, now: Optional[datetime] = None) -> Optional[dict]:
    eligibility = resolve_eligibility(db, student_id, now, require_school=True)
    if not eligibility.eligible:
        return None
    mentor = (
        db.query(Mentor)
        .filter(Mentor.observation_id == eligibility.observation_id, Mentor.student_id == student_id)
        .first()
    )
    if not mentor:
        return None
    data = mentor_to_dict(mentor)
    data["mentorId"] = mentor.id
    return data


def search_mentors(db: Session, student_id: str, query: Optional[str]) -> list[dict]:
    """Mentors at the student's most recent school whose full name contains ``query``."""
    query = (query or "").strip().lower()
    if len(query) < SEARCH_MIN_LENGTH:
        return []
    link = (
        db.query(SchoolStudent)
        .filter(SchoolStudent.student_id == student_id)
        .order_by(SchoolStudent.linked_at.desc())
        .first()
    )
    if not link:
        return []
    school: School = link.school
    mentors = (
        db.query(Mentor)
        .filter(Mentor.school_name == school.name)
        .order_by(Mentor.first_name.asc(), Mentor.last_name.asc())
        .all()
    )
    results = []
    for mentor in mentors:
        full_name = f"{mentor.first_name or ''} {mentor.last_name or ''}".lower()
        if query not in full_name:
            continue
        item = mentor_to_dict(mentor)
        item["id"] = mentor.id
        results.append(item)
        if len(results) >= SEARCH_LIMIT:
            break
    return results
