"""Audit trail service — writes to the system_logs and system_activities tables.

``log_system`` and ``log_activity`` add rows to the caller's session so they
commit (or roll back) together with the change they describe.
``record_error`` is for the request boundary: it uses its own session so that
the failed request's transaction does not take the log entry down with it.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from practicum.clock import isoformat
from practicum.database import SessionLocal
from practicum.models.system import SystemLog, SystemActivity

logger = logging.getLogger(__name__)


def log_system(
    db: Session,
    message: str,
    level: str = "info",
    category: str = "system",
    user_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> SystemLog:
    entry = SystemLog(
        level=level,
        category=category,
        message=message,
        user_id=user_id,
        details=details or {},
    )
    db.add(entry)
    return entry


def log_activity(
    db: Session,
    type: str,
    title: str,
    description: str = "",
    user_id: Optional[str] = None,
    user_name: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> SystemActivity:
    activity = SystemActivity(
        type=type,
        title=title,
        description=description,
        user_id=user_id,
        user_name=user_name,
        meta=metadata or {},
    )
    db.add(activity)
    return activity


def record_error(message: str, user_id: Optional[str] = None, details: Optional[dict] = None) -> None:
    """Persist an error-level log entry in a separate transaction.

    A failure here is reported to the process log and otherwise ignored, the
    caller is already handling a more important error.
    """
    db = SessionLocal()
    try:
        log_system(db, message, level="error", category="error", user_id=user_id, details=details)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Could not write error entry to system_logs")
    finally:
        db.close()


def log_to_dict(entry: SystemLog) -> dict:
    return {
        "id": entry.id,
        "level": entry.level,
        "category": entry.category,
        "message": entry.message,
        "userId": entry.user_id,
        "details": entry.details or {},
        "timestamp": isoformat(entry.timestamp),
    }


def activity_to_dict(activity: SystemActivity) -> dict:
    return {
        "id": activity.id,
        "type": activity.type,
        "title": activity.title,
        "description": activity.description or "",
        "userId": activity.user_id,
        "userName": activity.user_name,
        "metadata": activity.meta or {},
        "timestamp": isoformat(activity.timestamp),
    }
