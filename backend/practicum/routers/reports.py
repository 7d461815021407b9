"""Reports router — rubric summaries for teachers and admins."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import require_staff
from practicum.services import report_service
from practicum.services.session_service import SessionContext

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/observations")
def observations(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_staff)):
    return {"success": True, "observations": report_service.list_report_observations(db)}


@router.get("/evaluation-summary")
def evaluation_summary(
    observation_id: Optional[str] = Query(None, alias="observationId"),
    year_level: Optional[str] = Query(None, alias="yearLevel"),
    student_id: Optional[str] = Query(None, alias="studentId"),
    evaluation_num: Optional[str] = Query(None, alias="evaluationNum"),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    """Category averages, grand average and score statistics for the filtered students."""
    summary = report_service.build_summary(
        db,
        observation_id=observation_id,
        year_level=year_level,
        student_id=student_id,
        evaluation_num=evaluation_num,
    )
    return {"success": True, **summary}


@router.get("/student-evaluation-detail")
def student_evaluation_detail(
    student_id: Optional[str] = Query(None, alias="studentId"),
    observation_id: Optional[str] = Query(None, alias="observationId"),
    evaluation_num: Optional[str] = Query(None, alias="evaluationNum"),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    detail = report_service.student_evaluation_detail(db, student_id, observation_id, evaluation_num)
    return {"success": True, **detail}
