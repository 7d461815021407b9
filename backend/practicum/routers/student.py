"""Student router — dashboard and the student's own evaluation charts."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import require_student
from practicum.services import report_service, student_service
from practicum.services.session_service import SessionContext

router = APIRouter(prefix="/api/student", tags=["student"])


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_student)):
    return {"success": True, "data": student_service.dashboard(db, ctx.user)}


@router.get("/evaluation-summary")
def evaluation_summary(
    observation_id: Optional[str] = Query(None, alias="observationId"),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_student),
):
    return {"success": True, **report_service.student_summary(db, ctx.user_id, observation_id)}
