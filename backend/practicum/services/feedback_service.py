"""Website feedback survey — one write-once response per user."""

import logging
import math
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practicum.clock import ensure_utc, utcnow
from practicum.config import settings
from practicum.errors import AlreadySubmittedError, ForbiddenError, NotFoundError, ValidationError
from practicum.models.feedback import WebsiteFeedback
from practicum.models.user import User

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = "already_submitted"
PROFILE_INCOMPLETE = "profile_incomplete"
TOO_NEW = "too_new"
NOT_ELIGIBLE_MESSAGES = {
    PROFILE_INCOMPLETE: "Please complete your first and last name before giving feedback",
    TOO_NEW: "Your account is too new to give feedback yet",
}


def account_age_days(created_at: datetime, now: datetime) -> int:
    """Whole days since registration, rounded up."""
    seconds = abs((ensure_utc(now) - ensure_utc(created_at)).total_seconds())
    return math.ceil(seconds / 86400)


def check_status(db: Session, user_id: str, now: Optional[datetime] = None) -> dict:
    if db.get(WebsiteFeedback, user_id) is not None:
        return {"eligible": False, "reason": ALREADY_SUBMITTED}

    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not user.first_name or not user.last_name:
        return {"eligible": False, "reason": PROFILE_INCOMPLETE}

    days = account_age_days(user.created_at, now or utcnow())
    if days <= settings.FEEDBACK_MIN_ACCOUNT_AGE_DAYS:
        return {"eligible": False, "reason": TOO_NEW, "days": days}
    return {"eligible": True}


def submit(
    db: Session,
    user_id: str,
    role: Optional[str],
    answers,
    suggestions: Optional[str] = None,
    ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    if not answers:
        raise ValidationError("Missing answers")
    status = check_status(db, user_id, now)
    if not status["eligible"]:
        if status["reason"] == ALREADY_SUBMITTED:
            raise AlreadySubmittedError("You have already submitted the evaluation")
        raise ForbiddenError(NOT_ELIGIBLE_MESSAGES[status["reason"]], reason=status["reason"])

    db.add(WebsiteFeedback(
        user_id=user_id,
        user_role=role,
        answers=answers,
        suggestions=suggestions or "",
        ip=ip,
        submitted_at=now or utcnow(),
    ))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise AlreadySubmittedError("You have already submitted the evaluation")
    logger.info("Website feedback submitted by %s", user_id)
