"""Evaluation aggregate store — lookups, lazy creation and the document-shaped view."""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from practicum.clock import isoformat, utcnow
from practicum.models.evaluation import EvaluationAggregate, EvaluationAttempt

logger = logging.getLogger(__name__)


def get_aggregate(db: Session, student_id: str, observation_id: str) -> Optional[EvaluationAggregate]:
    return (
        db.query(EvaluationAggregate)
        .options(selectinload(EvaluationAggregate.attempts))
        .filter(
            EvaluationAggregate.student_id == student_id,
            EvaluationAggregate.observation_id == observation_id,
        )
        .first()
    )


def list_aggregates(
    db: Session,
    observation_id: Optional[str] = None,
    student_id: Optional[str] = None,
) -> list[EvaluationAggregate]:
    query = db.query(EvaluationAggregate).options(selectinload(EvaluationAggregate.attempts))
    if observation_id:
        query = query.filter(EvaluationAggregate.observation_id == observation_id)
    if student_id:
        query = query.filter(EvaluationAggregate.student_id == student_id)
    return query.order_by(EvaluationAggregate.created_at.asc()).all()


def get_or_create_aggregate(
    db: Session,
    student_id: str,
    observation_id: str,
    year: Optional[int] = None,
) -> EvaluationAggregate:
    """Return the aggregate for (student, period), creating it on first write.

    Two first writes racing each other both try the insert; the unique key lets
    one win and the loser re-reads the winner's row.
    """
    aggregate = get_aggregate(db, student_id, observation_id)
    if aggregate:
        return aggregate

    aggregate = EvaluationAggregate(
        student_id=student_id,
        observation_id=observation_id,
        year=year,
        created_at=utcnow(),
        last_updated_at=utcnow(),
    )
    db.add(aggregate)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info("Aggregate for %s/%s created concurrently, re-reading", student_id, observation_id)
        aggregate = get_aggregate(db, student_id, observation_id)
        if aggregate is None:
            raise
    return aggregate


def submitted_attempts(aggregate: EvaluationAggregate) -> list[EvaluationAttempt]:
    return sorted(
        (a for a in aggregate.attempts if a.submitted),
        key=lambda a: a.evaluation_num,
    )


def week_status(aggregate: EvaluationAggregate) -> dict:
    """``{week: {count, lastUpdated}}`` derived from the attempt rows."""
    status: dict = {}
    for attempt in submitted_attempts(aggregate):
        key = str(attempt.week)
        entry = status.setdefault(key, {"count": 0, "lastUpdated": None})
        entry["count"] += 1
        stamp = isoformat(attempt.submitted_at)
        if stamp and (entry["lastUpdated"] is None or stamp > entry["lastUpdated"]):
            entry["lastUpdated"] = stamp
    return status


def attempt_to_dict(attempt: EvaluationAttempt) -> dict:
    return {
        "week": attempt.week,
        "answers": attempt.answers or {},
        "submitted": bool(attempt.submitted),
        "date": attempt.date,
        "submittedAt": isoformat(attempt.submitted_at),
    }


def lesson_plan_to_dict(aggregate: EvaluationAggregate) -> Optional[dict]:
    if not aggregate.lesson_plan_uploaded:
        return None
    return {
        "uploaded": True,
        "fileName": aggregate.lesson_plan_file_name,
        "storagePath": aggregate.lesson_plan_storage_path,
        "fileUrl": aggregate.lesson_plan_file_url,
        "fileSize": aggregate.lesson_plan_file_size,
        "mimeType": aggregate.lesson_plan_mime_type,
        "submittedDate": isoformat(aggregate.lesson_plan_submitted_date),
    }


def video_link_to_dict(aggregate: EvaluationAggregate) -> Optional[dict]:
    if not aggregate.video_submitted:
        return None
    return {
        "url": aggregate.video_url,
        "submitted": True,
        "submittedAt": isoformat(aggregate.video_submitted_at),
    }


def aggregate_to_dict(aggregate: EvaluationAggregate) -> dict:
    """Document-shaped view: attempts keyed "1".."9", derived week status, both slots."""
    return {
        "id": aggregate.id,
        "studentId": aggregate.student_id,
        "observationId": aggregate.observation_id,
        "year": aggregate.year,
        "evaluations": {str(a.evaluation_num): attempt_to_dict(a) for a in submitted_attempts(aggregate)},
        "weekStatus": week_status(aggregate),
        "lessonPlan": lesson_plan_to_dict(aggregate),
        "videoLink": video_link_to_dict(aggregate),
        "createdAt": isoformat(aggregate.created_at),
        "lastUpdatedAt": isoformat(aggregate.last_updated_at),
    }
