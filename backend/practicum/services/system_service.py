"""System operations panel — status flag, audit viewers, academic-year backups and the full reset.

The reset endpoint trusts ``confirmed`` and a non-empty verification code sent
by the client; no server-held code is compared. The countdown that precedes
it runs in the browser only.
"""

import csv
import io
import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from practicum.clock import ensure_utc, isoformat, utcnow
from practicum.errors import InternalError, NotFoundError, ValidationError
from practicum.models.evaluation import EvaluationAggregate, EvaluationAttempt
from practicum.models.feedback import WebsiteFeedback
from practicum.models.mentor import Mentor
from practicum.models.observation import ObservationPeriod, StudentEnrollment
from practicum.models.school import School, SchoolStudent
from practicum.models.session import PasswordResetToken, UserSession
from practicum.models.system import AcademicYearSnapshot, SystemActivity, SystemLog, SystemSettings
from practicum.models.user import User
from practicum.roles import ADMIN, STUDENT
from practicum.services.audit_service import activity_to_dict, log_activity, log_system, log_to_dict

logger = logging.getLogger(__name__)

SETTINGS_ID = "main"
STATUSES = ("online", "maintenance", "offline")
BUDDHIST_OFFSET = 543
CSV_HEADERS = ["id", "firstName", "lastName", "year", "major", "room", "status", "createdAt"]


# ── Status ──────────────────────────────────────────────────────────────────


def _settings_row(db: Session) -> SystemSettings:
    row = db.query(SystemSettings).filter(SystemSettings.id == SETTINGS_ID).first()
    if row is None:
        row = SystemSettings(id=SETTINGS_ID, status="online", last_update=utcnow())
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def get_status(db: Session) -> dict:
    row = _settings_row(db)
    return {"status": row.status or "online", "lastUpdate": isoformat(row.last_update)}


def set_status(db: Session, actor: User, status: str) -> dict:
    if status not in STATUSES:
        raise ValidationError("Invalid system status")
    row = _settings_row(db)
    row.status = status
    row.last_update = utcnow()
    row.updated_by = actor.id
    log_activity(
        db,
        type="system",
        title="System status changed",
        description=f'System status set to "{status}" by {actor.full_name or actor.id}',
        user_id=actor.id,
        user_name=actor.full_name,
        metadata={"newStatus": status, "userRole": actor.role},
    )
    log_system(db, f"System status changed to {status}", category="system", user_id=actor.id)
    db.commit()
    logger.info("System status changed to %s by %s", status, actor.id)
    return {"status": status}


# ── Audit viewers ───────────────────────────────────────────────────────────


def _limit(value, default: int) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(limit, 1000))


def list_logs(db: Session, limit=100, level: Optional[str] = None, category: Optional[str] = None) -> list[dict]:
    query = db.query(SystemLog)
    if level:
        query = query.filter(SystemLog.level == level)
    if category:
        query = query.filter(SystemLog.category == category)
    rows = query.order_by(SystemLog.timestamp.desc()).limit(_limit(limit, 100)).all()
    return [log_to_dict(r) for r in rows]


def list_activities(db: Session, limit=50) -> list[dict]:
    rows = db.query(SystemActivity).order_by(SystemActivity.timestamp.desc()).limit(_limit(limit, 50)).all()
    return [activity_to_dict(r) for r in rows]


# ── Full reset ──────────────────────────────────────────────────────────────


def _delete_all(db: Session, model, *criteria) -> int:
    return db.query(model).filter(*criteria).delete(synchronize_session=False)


def reset_database(
    db: Session,
    admin: User,
    verification_code: Optional[str],
    confirmed: bool,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> dict:
    """Wipe cohort data, keep the acting admin and create a fresh admin account."""
    from practicum.middleware.auth import hash_password

    if not verification_code or confirmed is not True:
        raise ValidationError("Reset confirmation is incomplete")

    admin_id = admin.id
    admin_name = admin.full_name or admin_id
    log_activity(
        db,
        type="system",
        title="Database reset requested",
        description=f"{admin_name} requested a database reset with a verification code",
        user_id=admin_id,
        user_name=admin_name,
        metadata={"ipAddress": ip_address, "userAgent": user_agent},
    )
    log_system(db, f"Database reset requested by {admin_id}", level="warning", category="reset", user_id=admin_id)
    db.commit()
    logger.warning("Database reset requested by %s from %s", admin_id, ip_address)

    try:
        counts = {}
        # Children first, so the wipe does not depend on ON DELETE CASCADE
        _delete_all(db, EvaluationAttempt)
        counts["evaluations"] = _delete_all(db, EvaluationAggregate)
        _delete_all(db, SchoolStudent)
        counts["schools"] = _delete_all(db, School)
        counts["mentors"] = _delete_all(db, Mentor)
        _delete_all(db, StudentEnrollment)
        counts["observations"] = _delete_all(db, ObservationPeriod)
        _delete_all(db, UserSession, UserSession.user_id != admin_id)
        _delete_all(db, PasswordResetToken, PasswordResetToken.user_id != admin_id)
        counts["website_evaluations"] = _delete_all(db, WebsiteFeedback, WebsiteFeedback.user_id != admin_id)
        counts["users"] = _delete_all(db, User, User.id != admin_id)
        counts["system_activities"] = _delete_all(db, SystemActivity)

        password = secrets.token_urlsafe(12)
        username = "admin" if admin.username != "admin" else f"admin-{secrets.token_hex(3)}"
        new_admin = User(
            id=f"A{secrets.token_hex(4).upper()}",
            username=username,
            password_hash=hash_password(password),
            role=ADMIN,
            first_name="System",
            last_name="Administrator",
            email="admin@system.local",
            is_active=True,
            created_by="system_reset",
        )
        db.add(new_admin)

        now = utcnow()
        row = db.query(SystemSettings).filter(SystemSettings.id == SETTINGS_ID).first()
        if row is None:
            row = SystemSettings(id=SETTINGS_ID)
            db.add(row)
        row.status = "online"
        row.last_update = now
        row.last_reset = now
        row.reset_by = admin_id
        row.reset_from_ip = ip_address
        row.updated_by = admin_id

        deleted_collections = [
            {"name": name, "deletedCount": count} for name, count in counts.items() if count
        ]
        deleted_documents = sum(counts.values())

        log_activity(
            db,
            type="system",
            title="Database reset completed",
            description="All cohort data deleted and a new administrator created",
            user_id=admin_id,
            user_name=admin_name,
            metadata={"deletedCollections": deleted_collections, "ipAddress": ip_address},
        )
        log_system(
            db,
            f"Database reset completed by {admin_id}: {deleted_documents} records deleted",
            level="warning",
            category="reset",
            user_id=admin_id,
            details={"deletedCollections": deleted_collections},
        )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.exception("Database reset failed")
        log_activity(
            db,
            type="system",
            title="Database reset failed",
            description=f"Error: {exc}",
            user_id=admin_id,
            user_name=admin_name,
            metadata={"error": str(exc), "ipAddress": ip_address},
        )
        log_system(db, f"Database reset failed: {exc}", level="error", category="reset", user_id=admin_id)
        db.commit()
        raise InternalError(f"Database reset failed: {exc}")

    logger.warning("Database reset completed by %s (%d records)", admin_id, deleted_documents)
    return {
        "deletedCollections": deleted_collections,
        "deletedDocuments": deleted_documents,
        "newAdmin": {
            "username": username,
            "password": password,
            "note": "One-time password, change it right after logging in",
        },
    }


# ── Academic years ──────────────────────────────────────────────────────────


def academic_year_info(now: Optional[datetime] = None) -> dict:
    """Thai academic year (Buddhist calendar) running May 1 to March 31."""
    now = ensure_utc(now) if now else utcnow()
    thai_year = now.year + BUDDHIST_OFFSET
    academic_year = thai_year - 1 if now.month < 5 else thai_year
    return {"academicYear": academic_year, **academic_year_range(academic_year)}


def academic_year_range(academic_year: int) -> dict:
    start_year = academic_year - BUDDHIST_OFFSET
    return {
        "startDate": datetime(start_year, 5, 1, tzinfo=timezone.utc),
        "endDate": datetime(start_year + 1, 3, 31, 23, 59, 59, 999000, tzinfo=timezone.utc),
    }


def _jsonable(value):
    if isinstance(value, datetime):
        return isoformat(value)
    return value


def _row_to_dict(obj, exclude=()) -> dict:
    mapper = inspect(obj).mapper
    return {
        attr.key: _jsonable(getattr(obj, attr.key))
        for attr in mapper.column_attrs
        if attr.key not in exclude
    }


def _in_range(value, start: datetime, end: datetime) -> bool:
    if value is None:
        return True
    value = ensure_utc(value)
    return start <= value <= end


def _student_row(user: User) -> dict:
    return {
        "id": user.id,
        "firstName": user.first_name or "",
        "lastName": user.last_name or "",
        "year": user.year,
        "major": user.major or "",
        "room": user.room or "",
        "status": "active" if user.is_active else "inactive",
        "createdAt": isoformat(user.created_at),
    }


def _students_in_range(db: Session, start: datetime, end: datetime) -> list[dict]:
    users = db.query(User).filter(User.role == STUDENT).order_by(User.id.asc()).all()
    return [_student_row(u) for u in users if _in_range(u.created_at, start, end)]


def _rows_in_range(db: Session, model, field: str, start: datetime, end: datetime) -> list[dict]:
    return [
        _row_to_dict(row)
        for row in db.query(model).all()
        if _in_range(getattr(row, field), start, end)
    ]


def create_snapshot(db: Session, actor: User, now: Optional[datetime] = None) -> dict:
    """Copy the current academic year's data into a snapshot row (existing data untouched)."""
    info = academic_year_info(now)
    start, end = info["startDate"], info["endDate"]

    evaluations = []
    for aggregate in db.query(EvaluationAggregate).all():
        if not _in_range(aggregate.created_at, start, end):
            continue
        item = _row_to_dict(aggregate)
        item["attempts"] = [_row_to_dict(a) for a in aggregate.attempts]
        evaluations.append(item)

    students = _students_in_range(db, start, end)
    payload = {
        "academicYear": info["academicYear"],
        "startDate": isoformat(start),
        "endDate": isoformat(end),
        "studentCount": len(students),
        "students": students,
        "evaluations": evaluations,
        "observations": _rows_in_range(db, ObservationPeriod, "created_at", start, end),
        "observationStudents": _rows_in_range(db, StudentEnrollment, "enrolled_at", start, end),
        "schools": _rows_in_range(db, School, "created_at", start, end),
        "mentors": _rows_in_range(db, Mentor, "created_at", start, end),
        "systemLogs": _rows_in_range(db, SystemLog, "timestamp", start, end),
        "systemActivities": _rows_in_range(db, SystemActivity, "timestamp", start, end),
    }

    year_key = str(info["academicYear"])
    snapshot = db.query(AcademicYearSnapshot).filter(AcademicYearSnapshot.academic_year == year_key).first()
    if snapshot is None:
        snapshot = AcademicYearSnapshot(academic_year=year_key)
        db.add(snapshot)
    snapshot.payload = payload
    snapshot.created_by = actor.id
    snapshot.created_at = utcnow()

    counts = {
        key: len(payload[key])
        for key in ("evaluations", "observations", "observationStudents", "schools",
                    "mentors", "systemLogs", "systemActivities")
    }
    log_activity(
        db,
        type="system",
        title="Academic year snapshot saved",
        description=f"Academic year {year_key} saved ({len(students)} students)",
        user_id=actor.id,
        user_name=actor.full_name,
        metadata={"academicYear": info["academicYear"], "studentCount": len(students), **counts},
    )
    db.commit()
    logger.info("Snapshot of academic year %s saved by %s", year_key, actor.id)
    return {"academicYear": info["academicYear"], "studentCount": len(students), "counts": counts}


def list_snapshots(db: Session) -> list[dict]:
    rows = db.query(AcademicYearSnapshot).order_by(AcademicYearSnapshot.academic_year.desc()).all()
    return [
        {
            "id": row.id,
            "academicYear": int(row.academic_year) if row.academic_year.isdigit() else row.academic_year,
            "studentCount": (row.payload or {}).get("studentCount", 0),
            "startDate": (row.payload or {}).get("startDate"),
            "endDate": (row.payload or {}).get("endDate"),
            "createdBy": row.created_by,
            "createdAt": isoformat(row.created_at),
        }
        for row in rows
    ]


def export_academic_year(db: Session, year: str) -> dict:
    """Snapshot payload for ``year``, or live student data when none was saved."""
    snapshot = db.query(AcademicYearSnapshot).filter(AcademicYearSnapshot.academic_year == str(year)).first()
    if snapshot is not None:
        data = dict(snapshot.payload or {})
    else:
        try:
            academic_year = int(str(year))
        except ValueError:
            raise ValidationError("Invalid academic year")
        if academic_year <= BUDDHIST_OFFSET:
            raise NotFoundError("Academic year not found")
        period = academic_year_range(academic_year)
        students = _students_in_range(db, period["startDate"], period["endDate"])
        data = {
            "academicYear": academic_year,
            "startDate": isoformat(period["startDate"]),
            "endDate": isoformat(period["endDate"]),
            "students": students,
        }

    students = data.get("students") or []
    return {
        "academicYear": data.get("academicYear"),
        "startDate": data.get("startDate"),
        "endDate": data.get("endDate"),
        "studentCount": len(students),
        "students": students,
        "evaluations": data.get("evaluations") or [],
        "observations": data.get("observations") or [],
        "observationStudents": data.get("observationStudents") or [],
        "schools": data.get("schools") or [],
        "mentors": data.get("mentors") or [],
        "systemLogs": data.get("systemLogs") or [],
        "systemActivities": data.get("systemActivities") or [],
    }


def students_csv(students: list[dict]) -> str:
    """Student roster as CSV with a UTF-8 byte-order mark for spreadsheet apps."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for student in students:
        writer.writerow(["" if student.get(h) is None else student.get(h) for h in CSV_HEADERS])
    return "\ufeff" + buffer.getvalue()
