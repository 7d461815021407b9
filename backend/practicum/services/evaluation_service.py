"""Submission gatekeeper for evaluation attempts, lesson plans and video links.

Every slot is write-once. The "already submitted?" read is only a fast path
for a friendly error; the decisive check is done by the database itself:
  - attempts: the unique (aggregate, evaluation_num) key, so the insert is
    the compare-and-set
  - lesson plan / video: ``UPDATE ... WHERE <flag> = false`` and a row count
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs, urlparse

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from practicum import rubric
from practicum.clock import utcnow
from practicum.config import settings
from practicum.errors import AlreadySubmittedError, ForbiddenError, ValidationError
from practicum.models.evaluation import EvaluationAggregate, EvaluationAttempt
from practicum.models.observation import StudentEnrollment
from practicum.models.user import User
from practicum.services import evaluation_store
from practicum.services.audit_service import log_system
from practicum.services.eligibility import require_enrollment, student_year
from practicum.services.storage import LocalObjectStorage

logger = logging.getLogger(__name__)

YOUTUBE_URL_RE = re.compile(
    r"^(https?://)?(www\.)?(youtube\.com/(watch\?v=|embed/)|youtu\.be/)[\w-]+(&.*)?$"
)

LESSON_PLAN_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
}
LESSON_PLAN_PREFIX = "lesson_plans"
LESSON_PLAN_LABEL = "lesson_plan"
LESSON_PLAN_YEARS = (2, 3)
VIDEO_YEAR = 3


def _parse_int(value, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number")


def _refresh_enrollment_counters(db: Session, aggregate: EvaluationAggregate) -> int:
    completed = (
        db.query(func.count(EvaluationAttempt.id))
        .filter(EvaluationAttempt.aggregate_id == aggregate.id, EvaluationAttempt.submitted.is_(True))
        .scalar()
    )
    lesson_plan = (
        db.query(EvaluationAggregate.lesson_plan_uploaded)
        .filter(EvaluationAggregate.id == aggregate.id)
        .scalar()
    )
    db.query(StudentEnrollment).filter(
        StudentEnrollment.observation_id == aggregate.observation_id,
        StudentEnrollment.student_id == aggregate.student_id,
    ).update(
        {
            StudentEnrollment.evaluations_completed: completed,
            StudentEnrollment.lesson_plan_submitted: bool(lesson_plan),
            StudentEnrollment.updated_at: utcnow(),
        },
        synchronize_session=False,
    )
    return completed


# ── Evaluation attempts ─────────────────────────────────────────────────────


def save_evaluation_week(
    db: Session,
    student: User,
    observation_id: str,
    week,
    evaluation_num,
    answers,
    now: Optional[datetime] = None,
) -> dict:
    """Submit attempt ``evaluation_num`` (1..9) observed in ``week`` (1..3)."""
    if not observation_id or not week or not evaluation_num or not answers:
        raise ValidationError("Incomplete evaluation data")

    week = _parse_int(week, "week")
    evaluation_num = _parse_int(evaluation_num, "evaluationNum")
    if not 1 <= week <= settings.MAX_WEEKS:
        raise ValidationError(f"Week must be between 1 and {settings.MAX_WEEKS}")
    if not 1 <= evaluation_num <= settings.MAX_EVALUATIONS:
        raise ValidationError(f"Evaluation number must be between 1 and {settings.MAX_EVALUATIONS}")
    problem = rubric.validate_answers(answers)
    if problem:
        raise ValidationError(problem)

    now = now or utcnow()
    period = require_enrollment(db, student.id, observation_id)
    aggregate = evaluation_store.get_or_create_aggregate(
        db, student.id, observation_id, year=student_year(student, period)
    )

    if any(a.evaluation_num == evaluation_num and a.submitted for a in aggregate.attempts):
        raise AlreadySubmittedError("This evaluation has already been submitted and cannot be changed")

    attempt = EvaluationAttempt(
        aggregate_id=aggregate.id,
        evaluation_num=evaluation_num,
        week=week,
        date=now.isoformat(),
        answers=rubric.normalize_answers(answers),
        submitted=True,
        submitted_at=now,
    )
    db.add(attempt)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("Concurrent submission of evaluation %d by %s rejected", evaluation_num, student.id)
        raise AlreadySubmittedError("This evaluation has already been submitted and cannot be changed")

    aggregate.last_updated_at = now
    completed = _refresh_enrollment_counters(db, aggregate)
    db.commit()
    logger.info("Evaluation %d (week %d) saved for %s in %s", evaluation_num, week, student.id, observation_id)
    return {"evaluationNum": evaluation_num, "week": week, "evaluationsCompleted": completed}


def get_my_evaluation_data(db: Session, student_id: str, observation_id: str) -> Optional[dict]:
    if not observation_id:
        raise ValidationError("observationId is required")
    aggregate = evaluation_store.get_aggregate(db, student_id, observation_id)
    if not aggregate:
        return None
    return evaluation_store.aggregate_to_dict(aggregate)


# ── Lesson plan ─────────────────────────────────────────────────────────────


def lesson_plan_object_name(student_id: str, filename: str, now: datetime) -> str:
    ext = Path(filename or "").suffix.lower()
    stamp = now.strftime("%Y%m%d_%H%M%S")
    return f"{LESSON_PLAN_PREFIX}/{LESSON_PLAN_LABEL}_{student_id}_{stamp}{ext}"


def submit_lesson_plan(
    db: Session,
    storage: LocalObjectStorage,
    student: User,
    observation_id: str,
    filename: Optional[str],
    content_type: Optional[str],
    content: Optional[bytes],
    now: Optional[datetime] = None,
) -> dict:
    """Upload the student's lesson plan for the period (years 2 and 3, once)."""
    if not observation_id:
        raise ValidationError("Observation period is required")
    if not filename or content is None:
        raise ValidationError("Please choose a lesson plan file")

    period = require_enrollment(db, student.id, observation_id)
    year = student_year(student, period)
    if year not in LESSON_PLAN_YEARS:
        raise ForbiddenError("Only year 2 and 3 students submit a lesson plan")

    # Both checks run before anything is written anywhere
    if content_type not in LESSON_PLAN_MIME_TYPES:
        raise ValidationError("The file must be a PDF, Word or PowerPoint document")
    if len(content) > settings.LESSON_PLAN_MAX_BYTES:
        raise ValidationError(
            f"The file is larger than {settings.LESSON_PLAN_MAX_BYTES // (1024 * 1024)} MB"
        )

    existing = evaluation_store.get_aggregate(db, student.id, observation_id)
    if existing and existing.lesson_plan_uploaded:
        raise AlreadySubmittedError("Your lesson plan has already been submitted and cannot be changed")

    now = now or utcnow()
    aggregate = existing or evaluation_store.get_or_create_aggregate(db, student.id, observation_id, year=year)
    object_name = lesson_plan_object_name(student.id, filename, now)
    file_url = storage.put(object_name, content)

    try:
        claimed = (
            db.query(EvaluationAggregate)
            .filter(
                EvaluationAggregate.id == aggregate.id,
                EvaluationAggregate.lesson_plan_uploaded.is_(False),
            )
            .update(
                {
                    EvaluationAggregate.lesson_plan_uploaded: True,
                    EvaluationAggregate.lesson_plan_file_name: filename,
                    EvaluationAggregate.lesson_plan_storage_path: object_name,
                    EvaluationAggregate.lesson_plan_file_url: file_url,
                    EvaluationAggregate.lesson_plan_file_size: len(content),
                    EvaluationAggregate.lesson_plan_mime_type: content_type,
                    EvaluationAggregate.lesson_plan_submitted_date: now,
                    EvaluationAggregate.last_updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if claimed != 1:
            db.rollback()
            storage.delete(object_name)
            raise AlreadySubmittedError("Your lesson plan has already been submitted and cannot be changed")

        _refresh_enrollment_counters(db, aggregate)
        log_system(
            db,
            f"Lesson plan uploaded by {student.id}",
            category="lesson_plan_upload",
            user_id=student.id,
            details={
                "observationId": observation_id,
                "fileName": filename,
                "storagePath": object_name,
                "fileUrl": file_url,
            },
        )
        db.commit()
    except AlreadySubmittedError:
        raise
    except Exception:
        db.rollback()
        storage.delete(object_name)
        raise

    logger.info("Lesson plan %s stored for %s", object_name, student.id)
    return {
        "fileName": filename,
        "fileUrl": file_url,
        "submittedDate": now.isoformat(),
        "storagePath": object_name,
    }


# ── Video link ──────────────────────────────────────────────────────────────


def submit_video_link(
    db: Session,
    student: User,
    observation_id: str,
    video_url: str,
    now: Optional[datetime] = None,
) -> dict:
    """Record the teaching-video link (year 3, once)."""
    if not observation_id or not video_url:
        raise ValidationError("Incomplete data")
    period = require_enrollment(db, student.id, observation_id)
    if student_year(student, period) != VIDEO_YEAR:
        raise ForbiddenError("Only year 3 students submit a teaching video")
    video_url = video_url.strip()
    if not YOUTUBE_URL_RE.match(video_url):
        raise ValidationError("Invalid YouTube link, please check it again")

    aggregate = evaluation_store.get_or_create_aggregate(
        db, student.id, observation_id, year=student_year(student, period)
    )
    if aggregate.video_submitted:
        raise AlreadySubmittedError("Your video link has already been submitted and cannot be changed")

    now = now or utcnow()
    claimed = (
        db.query(EvaluationAggregate)
        .filter(EvaluationAggregate.id == aggregate.id, EvaluationAggregate.video_submitted.is_(False))
        .update(
            {
                EvaluationAggregate.video_submitted: True,
                EvaluationAggregate.video_url: video_url,
                EvaluationAggregate.video_submitted_at: now,
                EvaluationAggregate.last_updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if claimed != 1:
        db.rollback()
        raise AlreadySubmittedError("Your video link has already been submitted and cannot be changed")
    db.commit()
    logger.info("Video link saved for %s in %s", student.id, observation_id)
    return {"url": video_url, "submitted": True, "submittedAt": now.isoformat()}


def extract_video_id(video_url: str) -> Optional[str]:
    parsed = urlparse(video_url if "://" in video_url else f"https://{video_url}")
    host = parsed.netloc.lower()
    if host.endswith("youtu.be"):
        return parsed.path.strip("/").split("/")[0] or None
    if "youtube.com" in host:
        if parsed.path.startswith("/embed/"):
            return parsed.path[len("/embed/"):].split("/")[0] or None
        values = parse_qs(parsed.query).get("v")
        return values[0] if values else None
    return None


def validate_video_url(video_url: Optional[str]) -> dict:
    """Check a YouTube link and return its id and embed URL."""
    if not video_url:
        raise ValidationError("Please provide a URL")
    video_url = video_url.strip()
    if not YOUTUBE_URL_RE.match(video_url):
        return {
            "valid": False,
            "message": (
                "Invalid YouTube link, use one of:\n"
                "• https://www.youtube.com/watch?v=xxxxx\n"
                "• https://youtu.be/xxxxx"
            ),
        }
    video_id = extract_video_id(video_url)
    if not video_id:
        return {"valid": False, "message": "Could not determine the video id"}
    return {
        "valid": True,
        "videoId": video_id,
        "embedUrl": f"https://www.youtube.com/embed/{video_id}",
        "message": "Link is valid and ready to submit",
    }
