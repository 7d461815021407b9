"""Website feedback router."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import client_ip, get_session
from practicum.schemas.feedback import FeedbackSubmit
from practicum.services import feedback_service
from practicum.services.session_service import SessionContext

router = APIRouter(prefix="/api/feedback", tags=["feedback"])


@router.get("/check-status")
def check_status(db: Session = Depends(get_db), ctx: SessionContext = Depends(get_session)):
    return {"success": True, **feedback_service.check_status(db, ctx.user_id)}


@router.post("/submit")
def submit(
    req: FeedbackSubmit,
    request: Request,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session),
):
    feedback_service.submit(db, ctx.user_id, ctx.role, req.answers, req.suggestions, ip=client_ip(request))
    return {"success": True, "message": "Evaluation submitted successfully"}
