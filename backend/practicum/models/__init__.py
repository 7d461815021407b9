"""SQLAlchemy ORM models."""

from practicum.models.user import User
from practicum.models.observation import ObservationPeriod, StudentEnrollment
from practicum.models.school import School, SchoolStudent
from practicum.models.mentor import Mentor
from practicum.models.evaluation import EvaluationAggregate, EvaluationAttempt
from practicum.models.feedback import WebsiteFeedback
from practicum.models.system import SystemSettings, SystemLog, SystemActivity, AcademicYearSnapshot
from practicum.models.session import UserSession, PasswordResetToken

__all__ = [
    "User",
    "ObservationPeriod",
    "StudentEnrollment",
    "School",
    "SchoolStudent",
    "Mentor",
    "EvaluationAggregate",
    "EvaluationAttempt",
    "WebsiteFeedback",
    "SystemSettings",
    "SystemLog",
    "SystemActivity",
    "AcademicYearSnapshot",
    "UserSession",
    "PasswordResetToken",
]
