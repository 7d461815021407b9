"""Eligibility resolver — which observation period a student may fill in data for.

A student is eligible when enrolled (``active``) in an ``active`` period that
started at most ``SCHOOL_INFO_WINDOW_DAYS`` days ago. The mentor form adds one
prerequisite: the student must already have a school for that period.
Everything here is read-only.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from practicum.clock import days_between, isoformat, utcnow
from practicum.config import settings
from practicum.errors import ForbiddenError, NotFoundError
from practicum.models.observation import ObservationPeriod, StudentEnrollment
from practicum.models.school import School, SchoolStudent
from practicum.services.user_service import study_year_from_id

NO_ACTIVE_PERIOD = "no_active_period"
TOO_LATE = "window_closed"
NEED_SCHOOL_INFO = "needSchoolInfo"
STUDENT_ID_YEAR_RE = re.compile(r"^\d{11}$")


@dataclass
class Eligibility:
    eligible: bool
    observation_id: Optional[str] = None
    observation_name: Optional[str] = None
    start_date: Optional[datetime] = None
    days_passed: Optional[int] = None
    days_remaining: Optional[int] = None
    school_id: Optional[str] = None
    school_name: Optional[str] = None
    reason: Optional[str] = None
    message: Optional[str] = None
    need_school_info: bool = False

    def to_dict(self) -> dict:
        if not self.eligible:
            body = {"eligible": False, "reason": self.reason, "message": self.message}
            if self.need_school_info:
                body["needSchoolInfo"] = True
            return body
        observation = {
            "id": self.observation_id,
            "name": self.observation_name,
            "startDate": isoformat(self.start_date),
            "daysPassed": self.days_passed,
            "daysRemaining": self.days_remaining,
        }
        if self.school_id:
            observation["schoolId"] = self.school_id
            observation["schoolName"] = self.school_name
        return {"eligible": True, "observation": observation}


def find_student_school(db: Session, student_id: str, observation_id: str) -> Optional[School]:
    return (
        db.query(School)
        .join(SchoolStudent, SchoolStudent.school_id == School.id)
        .filter(SchoolStudent.student_id == student_id, SchoolStudent.observation_id == observation_id)
        .first()
    )


def resolve_eligibility(
    db: Session,
    student_id: str,
    now: Optional[datetime] = None,
    require_school: bool = False,
) -> Eligibility:
    """Find the first active period, by start date, still inside the entry window."""
    now = now or utcnow()
    window = settings.SCHOOL_INFO_WINDOW_DAYS

    candidates = (
        db.query(ObservationPeriod)
        .join(StudentEnrollment, StudentEnrollment.observation_id == ObservationPeriod.id)
        .filter(
            ObservationPeriod.status == "active",
            StudentEnrollment.student_id == student_id,
            StudentEnrollment.status == "active",
        )
        .order_by(ObservationPeriod.start_date.asc())
        .all()
    )

    if not candidates:
        return Eligibility(
            eligible=False,
            reason=NO_ACTIVE_PERIOD,
            message="No active observation period found for this student",
        )

    for period in candidates:
        days_passed = days_between(period.start_date, now)
        if days_passed > window:
            continue

        result = Eligibility(
            eligible=True,
            observation_id=period.id,
            observation_name=period.name,
            start_date=period.start_date,
            days_passed=days_passed,
            days_remaining=window - days_passed,
        )
        if require_school:
            school = find_student_school(db, student_id, period.id)
            if not school:
                return Eligibility(
                    eligible=False,
                    observation_id=period.id,
                    observation_name=period.name,
                    start_date=period.start_date,
                    days_passed=days_passed,
                    reason=NEED_SCHOOL_INFO,
                    message="Please fill in your school information first",
                    need_school_info=True,
                )
            result.school_id = school.id
            result.school_name = school.name
        return result

    return Eligibility(
        eligible=False,
        reason=TOO_LATE,
        message=f"The {window}-day entry window for your observation period has closed",
    )


def require_enrollment(db: Session, student_id: str, observation_id: str) -> ObservationPeriod:
    """Write guard for evaluation, lesson-plan and video submissions."""
    period = db.query(ObservationPeriod).filter(ObservationPeriod.id == observation_id).first()
    if not period:
        raise NotFoundError("Observation period not found")
    if period.status != "active":
        raise ForbiddenError("This observation period is no longer active")
    enrollment = (
        db.query(StudentEnrollment)
        .filter(
            StudentEnrollment.observation_id == observation_id,
            StudentEnrollment.student_id == student_id,
            StudentEnrollment.status == "active",
        )
        .first()
    )
    if not enrollment:
        raise ForbiddenError("You are not enrolled in this observation period")
    return period


def student_year(
    user, period: Optional[ObservationPeriod] = None, now: Optional[datetime] = None
) -> Optional[int]:
    """Study year of a student.

    The period's year level when there is one, else the year derived from the
    enrollment prefix of the student id, else the stored profile value.
    """
    if period is not None and period.year_level:
        return int(period.year_level)
    if user is None:
        return None
    if STUDENT_ID_YEAR_RE.match(user.id or ""):
        return study_year_from_id(user.id, now)
    if user.year:
        return int(user.year)
    return None
