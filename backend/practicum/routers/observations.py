"""Observations router — observation periods, enrollments and the student picker."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import get_session, require_staff
from practicum.schemas.observation import EnrollmentUpdate, ObservationCreate, ObservationUpdate
from practicum.services import observation_service
from practicum.services.session_service import SessionContext

router = APIRouter(prefix="/api", tags=["observations"])


@router.get("/observations")
def list_observations(
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    year_level: Optional[str] = Query(None, alias="yearLevel"),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session),
):
    """Periods newest first with progress counters. Expired active periods are closed first."""
    observations = observation_service.list_periods(db, academic_year, year_level, status)
    return {"success": True, "observations": observations}


@router.get("/observations/{observation_id}")
def get_observation(
    observation_id: str,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session),
):
    return {"success": True, "observation": observation_service.period_detail(db, observation_id)}


@router.post("/observations")
def create_observation(
    req: ObservationCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    result = observation_service.create_period(db, ctx.user, req.model_dump(by_alias=True))
    return {
        "success": True,
        "message": f"Observation period created ({result['studentCount']} students)",
        **result,
    }


@router.patch("/observations/{observation_id}")
def update_observation(
    observation_id: str,
    req: ObservationUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    observation_service.update_period(db, observation_id, req.model_dump())
    return {"success": True, "message": "Observation period updated"}


@router.patch("/observations/{observation_id}/students/{enrollment_id}")
def update_enrollment(
    observation_id: str,
    enrollment_id: str,
    req: EnrollmentUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    observation_service.update_enrollment(db, observation_id, enrollment_id, req.model_dump(by_alias=True))
    return {"success": True, "message": "Student status updated"}


@router.get("/students")
def list_students(
    year_level: Optional[str] = Query(None, alias="yearLevel"),
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    return {"success": True, "students": observation_service.list_students(db, year_level, search)}
