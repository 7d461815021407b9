"""Mentor info router — the supervising teacher at the student's school."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import require_student
from practicum.schemas.school import MentorSaveRequest
from practicum.services import mentor_service
from practicum.services.eligibility import resolve_eligibility
from practicum.services.session_service import SessionContext

router = APIRouter(prefix="/api/mentor-info", tags=["mentor-info"])


@router.get("/check-eligibility")
def check_eligibility(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_student)):
    result = resolve_eligibility(db, ctx.user_id, require_school=True)
    return {"success": True, **result.to_dict()}


@router.get("/search-mentors")
def search_mentors(
    query: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_student),
):
    return {"success": True, "mentors": mentor_service.search_mentors(db, ctx.user_id, query)}


@router.post("/save")
def save_mentor(
    req: MentorSaveRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_student),
):
    result = mentor_service.save_mentor(db, ctx.user_id, req.model_dump(by_alias=True))
    return {"success": True, **result}


@router.get("/my-submission")
def my_submission(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_student)):
    return {"success": True, "data": mentor_service.get_my_mentor(db, ctx.user_id)}
