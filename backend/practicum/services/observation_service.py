"""Observation periods — cohort practicum windows and their enrolled students."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from practicum.clock import ensure_utc, isoformat, parse_datetime, utcnow
from practicum.config import settings
from practicum.errors import ConflictError, NotFoundError, ValidationError
from practicum.models.observation import ObservationPeriod, StudentEnrollment
from practicum.models.user import User
from practicum.roles import STUDENT
from practicum.services.audit_service import log_activity

logger = logging.getLogger(__name__)

PERIOD_STATUSES = ("active", "completed")
ENROLLMENT_STATUSES = ("active", "inactive")


def _parse_date(value, field: str) -> datetime:
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} is not a valid date")


def _parse_year_level(value) -> int:
    try:
        year_level = int(value)
    except (TypeError, ValueError):
        raise ValidationError("yearLevel must be a number between 1 and 4")
    if not 1 <= year_level <= 4:
        raise ValidationError("yearLevel must be a number between 1 and 4")
    return year_level


def _progress(enrollments: list[StudentEnrollment]) -> dict:
    return {
        "totalStudents": len(enrollments),
        "completedEvaluations": sum(
            1 for e in enrollments if (e.evaluations_completed or 0) >= settings.MAX_EVALUATIONS
        ),
        "submittedLessonPlans": sum(1 for e in enrollments if e.lesson_plan_submitted),
    }


def period_to_dict(period: ObservationPeriod) -> dict:
    return {
        "id": period.id,
        "name": period.name,
        "academicYear": period.academic_year,
        "yearLevel": period.year_level,
        "startDate": isoformat(period.start_date),
        "endDate": isoformat(period.end_date),
        "description": period.description or "",
        "status": period.status,
        "createdBy": period.created_by,
        "createdAt": isoformat(period.created_at),
        "updatedAt": isoformat(period.updated_at),
    }


def enrollment_to_dict(enrollment: StudentEnrollment) -> dict:
    student = enrollment.student
    return {
        "id": enrollment.id,
        "studentId": enrollment.student_id,
        "name": student.full_name if student and student.full_name else "Unknown",
        "status": enrollment.status,
        "evaluationsCompleted": enrollment.evaluations_completed or 0,
        "lessonPlanSubmitted": bool(enrollment.lesson_plan_submitted),
        "notes": enrollment.notes or "",
    }


def close_expired_periods(db: Session, now: Optional[datetime] = None) -> int:
    """Mark active periods whose end date has passed as completed."""
    now = now or utcnow()
    closed = 0
    for period in db.query(ObservationPeriod).filter(ObservationPeriod.status == "active").all():
        if ensure_utc(period.end_date) < now:
            period.status = "completed"
            period.updated_at = now
            closed += 1
    if closed:
        db.commit()
        logger.info("Closed %d expired observation periods", closed)
    return closed


def list_periods(
    db: Session,
    academic_year: Optional[str] = None,
    year_level=None,
    status: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[dict]:
    close_expired_periods(db, now)
    query = db.query(ObservationPeriod)
    if academic_year:
        query = query.filter(ObservationPeriod.academic_year == str(academic_year))
    if year_level:
        query = query.filter(ObservationPeriod.year_level == _parse_year_level(year_level))
    if status:
        query = query.filter(ObservationPeriod.status == status)

    results = []
    for period in query.order_by(ObservationPeriod.created_at.desc()).all():
        item = period_to_dict(period)
        item.update(_progress(period.enrollments))
        results.append(item)
    return results


def get_period(db: Session, observation_id: str) -> ObservationPeriod:
    period = db.query(ObservationPeriod).filter(ObservationPeriod.id == observation_id).first()
    if not period:
        raise NotFoundError("Observation period not found")
    return period


def period_detail(db: Session, observation_id: str) -> dict:
    period = get_period(db, observation_id)
    enrollments = sorted(period.enrollments, key=lambda e: e.student_id)
    item = period_to_dict(period)
    item.update(_progress(enrollments))
    item["students"] = [enrollment_to_dict(e) for e in enrollments]
    return item


def create_period(db: Session, actor: User, data: dict, now: Optional[datetime] = None) -> dict:
    """Open a new period and enroll the selected students in it."""
    name = (data.get("name") or "").strip()
    academic_year = str(data.get("academicYear") or "").strip()
    if not name or not academic_year or not data.get("yearLevel") or not data.get("startDate") or not data.get("endDate"):
        raise ValidationError("Please fill in all required fields")
    student_ids = [str(s).strip() for s in (data.get("studentIds") or []) if str(s).strip()]
    if not student_ids:
        raise ValidationError("Please select at least one student")

    year_level = _parse_year_level(data.get("yearLevel"))
    start_date = _parse_date(data.get("startDate"), "startDate")
    end_date = _parse_date(data.get("endDate"), "endDate")
    if end_date < start_date:
        raise ValidationError("endDate must not be before startDate")

    duplicate = (
        db.query(ObservationPeriod)
        .filter(
            ObservationPeriod.academic_year == academic_year,
            ObservationPeriod.year_level == year_level,
            ObservationPeriod.status == "active",
        )
        .first()
    )
    if duplicate:
        raise ConflictError("An active observation period already exists for this year level and academic year")

    unique_ids = list(dict.fromkeys(student_ids))
    known = {u.id for u in db.query(User.id).filter(User.id.in_(unique_ids)).all()}
    missing = [s for s in unique_ids if s not in known]
    if missing:
        raise ValidationError(f"Unknown student ids: {', '.join(missing)}")

    now = now or utcnow()
    period = ObservationPeriod(
        name=name,
        academic_year=academic_year,
        year_level=year_level,
        start_date=start_date,
        end_date=end_date,
        description=data.get("description") or "",
        status="active",
        created_by=actor.email or actor.id,
        created_at=now,
        updated_at=now,
    )
    db.add(period)
    for student_id in unique_ids:
        period.enrollments.append(StudentEnrollment(
            student_id=student_id,
            status="active",
            evaluations_completed=0,
            lesson_plan_submitted=False,
            notes="",
            enrolled_at=now,
            updated_at=now,
        ))
    db.flush()
    log_activity(
        db,
        type="observation",
        title="Observation period created",
        description=f"{name} ({len(unique_ids)} students)",
        user_id=actor.id,
        user_name=actor.full_name,
        metadata={"observationId": period.id, "academicYear": academic_year, "yearLevel": year_level},
    )
    db.commit()
    logger.info("Observation period %s created by %s with %d students", period.id, actor.id, len(unique_ids))
    return {"observationId": period.id, "studentCount": len(unique_ids)}


def update_period(db: Session, observation_id: str, data: dict, now: Optional[datetime] = None) -> None:
    period = get_period(db, observation_id)
    status = data.get("status")
    if status:
        if status not in PERIOD_STATUSES:
            raise ValidationError("Invalid observation status")
        period.status = status
    if data.get("name"):
        period.name = data["name"]
    if data.get("description") is not None:
        period.description = data["description"]
    period.updated_at = now or utcnow()
    db.commit()
    logger.info("Observation period %s updated", observation_id)


def update_enrollment(
    db: Session, observation_id: str, enrollment_id: str, data: dict, now: Optional[datetime] = None
) -> None:
    enrollment = db.query(StudentEnrollment).filter(StudentEnrollment.id == enrollment_id).first()
    if not enrollment:
        raise NotFoundError("Student enrollment not found")
    if enrollment.observation_id != observation_id:
        raise ValidationError("Enrollment does not belong to this observation period")

    status = data.get("status")
    if status:
        if status not in ENROLLMENT_STATUSES:
            raise ValidationError("Invalid enrollment status")
        enrollment.status = status
    if data.get("evaluationsCompleted") is not None:
        enrollment.evaluations_completed = int(data["evaluationsCompleted"])
    if data.get("lessonPlanSubmitted") is not None:
        enrollment.lesson_plan_submitted = bool(data["lessonPlanSubmitted"])
    if data.get("notes") is not None:
        enrollment.notes = data["notes"]
    enrollment.updated_at = now or utcnow()
    db.commit()
    logger.info("Enrollment %s in %s updated", enrollment_id, observation_id)


def list_students(db: Session, year_level=None, search: Optional[str] = None) -> list[dict]:
    """Student picker for new periods."""
    query = db.query(User).filter(User.role == STUDENT)
    if year_level:
        query = query.filter(User.year == _parse_year_level(year_level))
    students = [
        {
            "id": user.id,
            "studentId": user.id,
            "name": user.full_name,
            "yearLevel": user.year,
            "status": "active" if user.is_active else "inactive",
        }
        for user in query.order_by(User.id.asc()).all()
    ]
    if search:
        needle = search.lower()
        students = [s for s in students if needle in f"{s['studentId']} {s['name']}".lower()]
    return students
