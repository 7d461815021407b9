"""School info router — the student's practicum school for the current period."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import require_student
from practicum.schemas.school import SchoolSaveRequest
from practicum.services import school_service
from practicum.services.eligibility import resolve_eligibility
from practicum.services.session_service import SessionContext

router = APIRouter(prefix="/api/school-info", tags=["school-info"])


@router.get("/check-eligibility")
def check_eligibility(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_student)):
    return {"success": True, **resolve_eligibility(db, ctx.user_id).to_dict()}


@router.get("/search-schools")
def search_schools(
    query: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_student),
):
    return {"success": True, "schools": school_service.search_schools(db, query)}


@router.post("/save")
def save_school(
    req: SchoolSaveRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_student),
):
    """Create, update or switch the student's school for the eligible period."""
    data = req.model_dump(by_alias=True, exclude={"confirm_change", "delete_evaluations"})
    result = school_service.save_school(
        db,
        ctx.user_id,
        data,
        confirm_change=req.confirm_change,
        delete_evaluations=req.delete_evaluations,
    )
    return {"success": True, **result}


@router.get("/my-submission")
def my_submission(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_student)):
    found = school_service.get_my_school(db, ctx.user_id)
    if not found:
        return {"success": True, "data": None}
    return {"success": True, **found}
