"""School info service — save, look up and search the schools students practise at.

A school row is shared by every student of the period who picks the same
name; only the student who created it may change its fields. Switching to a
different school is allowed during the first week of the period and, when
the student already has a mentor or evaluation work, only after explicit
confirmation. The confirmed cascade (aggregate, attempts, mentor, old link)
and the new link are committed as one transaction.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practicum.clock import isoformat, utcnow
from practicum.config import settings
from practicum.errors import (
    ChangeWindowExpiredError,
    ConfirmationRequiredError,
    ConflictError,
    NotEligibleError,
    ValidationError,
)
from practicum.models.evaluation import EvaluationAggregate, EvaluationAttempt
from practicum.models.mentor import Mentor
from practicum.models.observation import StudentEnrollment
from practicum.models.school import School, SchoolStudent
from practicum.services.eligibility import resolve_eligibility

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "affiliation", "amphoe", "province", "postcode")
SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 10


def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _text(value) -> str:
    return str(value).strip() if value is not None else ""


def validate_school_data(data: dict) -> None:
    missing = [f for f in REQUIRED_FIELDS if not _text(data.get(f))]
    grade_levels = data.get("gradeLevels")
    if missing or not grade_levels:
        raise ValidationError(
            "Please complete the school form (name, affiliation, district, province, postcode, grade levels)"
        )


def _apply_fields(school: School, data: dict, student_id: str, now: datetime) -> None:
    school.name = _text(data.get("name"))
    school.affiliation = _text(data.get("affiliation"))
    school.address = _text(data.get("address"))
    school.district_area = _text(data.get("districtArea"))
    school.subdistrict = _text(data.get("subdistrict"))
    school.amphoe = _text(data.get("amphoe"))
    school.province = _text(data.get("province"))
    school.postcode = _text(data.get("postcode"))
    school.grade_levels = list(data.get("gradeLevels") or [])
    school.principal = _text(data.get("principal"))
    school.student_count = _to_int(data.get("studentCount"))
    school.teacher_count = _to_int(data.get("teacherCount"))
    school.staff_count = _to_int(data.get("staffCount"))
    school.phone = _text(data.get("phone"))
    school.email = _text(data.get("email"))
    school.last_updated_by = student_id
    school.last_updated_at = now


def school_to_dict(school: School) -> dict:
    return {
        "name": school.name or "",
        "affiliation": school.affiliation or "",
        "address": school.address or "",
        "districtArea": school.district_area or "",
        "subdistrict": school.subdistrict or "",
        "amphoe": school.amphoe or "",
        "province": school.province or "",
        "postcode": school.postcode or "",
        "gradeLevels": list(school.grade_levels or []),
        "principal": school.principal or "",
        "studentCount": school.student_count or 0,
        "teacherCount": school.teacher_count or 0,
        "staffCount": school.staff_count or 0,
        "phone": school.phone or "",
        "email": school.email or "",
        "lastUpdatedBy": school.last_updated_by,
        "lastUpdatedAt": isoformat(school.last_updated_at),
    }


def _link_count(db: Session, school_id: str) -> int:
    return db.query(func.count(SchoolStudent.id)).filter(SchoolStudent.school_id == school_id).scalar() or 0


def _student_work(db: Session, student_id: str, observation_id: str) -> tuple:
    """``(aggregate, attempt_count, mentor)`` the student has in the period."""
    aggregate = (
        db.query(EvaluationAggregate)
        .filter(
            EvaluationAggregate.student_id == student_id,
            EvaluationAggregate.observation_id == observation_id,
        )
        .first()
    )
    attempt_count = 0
    if aggregate:
        attempt_count = (
            db.query(func.count(EvaluationAttempt.id))
            .filter(EvaluationAttempt.aggregate_id == aggregate.id)
            .scalar()
        ) or 0
    mentor = (
        db.query(Mentor)
        .filter(Mentor.student_id == student_id, Mentor.observation_id == observation_id)
        .first()
    )
    return aggregate, attempt_count, mentor


def save_school(
    db: Session,
    student_id: str,
    data: dict,
    confirm_change: bool = False,
    delete_evaluations: bool = False,
    now: Optional[datetime] = None,
) -> dict:
    validate_school_data(data)
    now = now or utcnow()

    eligibility = resolve_eligibility(db, student_id, now)
    if not eligibility.eligible:
        raise NotEligibleError(eligibility.message, eligible=False)
    observation_id = eligibility.observation_id
    name = _text(data.get("name"))

    current_link = (
        db.query(SchoolStudent)
        .filter(SchoolStudent.observation_id == observation_id, SchoolStudent.student_id == student_id)
        .first()
    )
    old_school = current_link.school if current_link else None
    changing = old_school is not None and old_school.name != name

    if changing:
        days_passed = eligibility.days_passed
        if days_passed > settings.SCHOOL_CHANGE_WINDOW_DAYS:
            raise ChangeWindowExpiredError(
                f"The school can no longer be changed: the period started {days_passed} days ago "
                f"(limit {settings.SCHOOL_CHANGE_WINDOW_DAYS} days)",
                days_passed=days_passed,
            )

        aggregate, attempt_count, mentor = _student_work(db, student_id, observation_id)
        has_work = bool(mentor) or attempt_count > 0 or bool(
            aggregate and (aggregate.lesson_plan_uploaded or aggregate.video_submitted)
        )
        if has_work and not (confirm_change and delete_evaluations):
            raise ConfirmationRequiredError(
                "You have work recorded at your current school. Changing school deletes "
                "your mentor and all evaluation data for this period",
                evaluation_count=attempt_count,
                has_mentor=mentor is not None,
                old_school_name=old_school.name,
                new_school_name=name,
            )

        if has_work:
            if aggregate:
                db.delete(aggregate)
            if mentor:
                db.delete(mentor)
            db.query(StudentEnrollment).filter(
                StudentEnrollment.observation_id == observation_id,
                StudentEnrollment.student_id == student_id,
            ).update(
                {
                    StudentEnrollment.evaluations_completed: 0,
                    StudentEnrollment.lesson_plan_submitted: False,
                    StudentEnrollment.updated_at: now,
                },
                synchronize_session=False,
            )
            logger.warning(
                "School change by %s in %s discarded %d attempts and mentor=%s",
                student_id, observation_id, attempt_count, mentor is not None,
            )

        db.delete(current_link)
        current_link = None
        db.flush()

    target = (
        db.query(School)
        .filter(School.observation_id == observation_id, School.name == name)
        .first()
    )
    is_new_school = target is None
    if is_new_school:
        target = School(observation_id=observation_id, created_by=student_id, created_at=now)
        db.add(target)
    fields_updated = target.created_by == student_id
    if fields_updated:
        _apply_fields(target, data, student_id, now)

    if current_link is None:
        db.add(SchoolStudent(
            school=target,
            observation_id=observation_id,
            student_id=student_id,
            linked_at=now,
        ))

    try:
        db.flush()
        student_count = _link_count(db, target.id)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("School information was changed at the same time, please try again")

    logger.info(
        "School %s saved by %s in %s (new=%s, changed=%s)",
        target.id, student_id, observation_id, is_new_school, changing,
    )
    return {
        "schoolId": target.id,
        "isNewSchool": is_new_school,
        "studentCount": student_count,
        "fieldsUpdated": fields_updated,
        "message": _save_message(is_new_school, fields_updated),
    }


def _save_message(is_new_school: bool, fields_updated: bool) -> str:
    if is_new_school:
        return "New school information saved"
    if fields_updated:
        return "School information updated"
    return "Linked to the existing school record; only the student who created it can edit its details"

def get_my_school(db: Session, student_id: str, now: Optional[datetime] = None) -> Optional[dict]:
    """The student's school in the period they can currently edit, if any."""
    eligibility = resolve_eligibility(db, student_id, now)
    if not eligibility.eligible:
        return None
    link = (
        db.query(SchoolStudent)
        .filter(
            SchoolStudent.observation_id == eligibility.observation_id,
            SchoolStudent.student_id == student_id,
        )
        .first()
    )
    if not link:
        return None
    data = school_to_dict(link.school)
    data["schoolId"] = link.school_id
    data["isOwner"] = link.school.created_by == student_id
    return {"data": data, "observationId": eligibility.observation_id}


def search_schools(db: Session, query: Optional[str]) -> list[dict]:
    """Prefix search by school name for autofill."""
    query = (query or "").strip()
    if len(query) < SEARCH_MIN_LENGTH:
        return []
    schools = (
        db.query(School)
        .filter(School.name.startswith(query, autoescape=True))
        .order_by(School.name.asc())
        .limit(SEARCH_LIMIT)
        .all()
    )
    results = []
    for school in schools:
        item = school_to_dict(school)
        item["id"] = school.id
        item["submittedByCount"] = _link_count(db, school.id)
        results.append(item)
    return results
