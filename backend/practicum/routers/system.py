"""System router — status flag, audit trail, academic-year backups and the full reset."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from practicum.clock import isoformat
from practicum.database import get_db
from practicum.errors import ValidationError
from practicum.middleware.auth import client_ip, get_session, require_admin
from practicum.schemas.system import ResetRequest, StatusUpdate
from practicum.services import system_service
from practicum.services.session_service import SessionContext

router = APIRouter(prefix="/api/system", tags=["system"])


@router.get("/status")
def get_status(db: Session = Depends(get_db), ctx: SessionContext = Depends(get_session)):
    return {"success": True, **system_service.get_status(db)}


@router.post("/status")
def set_status(
    req: StatusUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    result = system_service.set_status(db, ctx.user, req.status)
    return {"success": True, "message": f"System status set to {result['status']}", **result}


@router.get("/logs")
def logs(
    limit: int = 100,
    level: Optional[str] = None,
    category: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    return {"success": True, "logs": system_service.list_logs(db, limit, level, category)}


@router.get("/activities")
def activities(
    limit: int = 50,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    return {"success": True, "activities": system_service.list_activities(db, limit)}


@router.post("/reset-database")
def reset_database(
    req: ResetRequest,
    request: Request,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    """Delete all cohort data. Irreversible; the client runs the typed-code countdown."""
    result = system_service.reset_database(
        db,
        ctx.user,
        req.verification_code,
        req.confirmed,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return {"success": True, "message": "Database reset completed", **result}


@router.get("/academic-years")
def academic_years(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_admin)):
    info = system_service.academic_year_info()
    return {
        "success": True,
        "current": {
            "academicYear": info["academicYear"],
            "startDate": isoformat(info["startDate"]),
            "endDate": isoformat(info["endDate"]),
        },
        "snapshots": system_service.list_snapshots(db),
    }


@router.post("/academic-years/snapshot")
def snapshot(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_admin)):
    result = system_service.create_snapshot(db, ctx.user)
    return {
        "success": True,
        "message": f"Academic year {result['academicYear']} saved ({result['studentCount']} students)",
        **result,
    }


@router.get("/academic-years/{year}/export")
def export_year(
    year: str,
    format: str = "json",
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_admin),
):
    if format not in ("json", "csv"):
        raise ValidationError("format must be json or csv")
    data = system_service.export_academic_year(db, year)
    if format == "csv":
        return Response(
            content=system_service.students_csv(data["students"]),
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="academic-year-{year}.csv"'},
        )
    return {"success": True, "data": data}
