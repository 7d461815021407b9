"""Evaluation router — weekly attempts, lesson plan upload and teaching video link."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import require_student
from practicum.schemas.evaluation import SaveWeekRequest, VideoSubmitRequest, VideoValidateRequest
from practicum.services import evaluation_service, report_service
from practicum.services.eligibility import student_year
from practicum.services.session_service import SessionContext
from practicum.services.storage import LocalObjectStorage, get_storage

router = APIRouter(prefix="/api/evaluation", tags=["evaluation"])


@router.get("/my-data")
def my_data(
    observation_id: Optional[str] = Query(None, alias="observationId"),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_student),
):
    data = evaluation_service.get_my_evaluation_data(db, ctx.user_id, observation_id)
    return {"success": True, "data": data}


@router.post("/save-week")
def save_week(
    req: SaveWeekRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_student),
):
    """Submit one evaluation attempt. Each attempt number is accepted once."""
    result = evaluation_service.save_evaluation_week(
        db, ctx.user, req.observation_id, req.week, req.evaluation_num, req.answers
    )
    return {
        "success": True,
        "message": f"Evaluation {result['evaluationNum']} (week {result['week']}) submitted",
        **result,
    }


@router.post("/submit-lesson-plan")
async def submit_lesson_plan(
    lesson_plan_file: Optional[UploadFile] = File(None, alias="lessonPlanFile"),
    observation_id: Optional[str] = Form(None, alias="observationId"),
    db: Session = Depends(get_db),
    storage: LocalObjectStorage = Depends(get_storage),
    ctx: SessionContext = Depends(require_student),
):
    content = await lesson_plan_file.read() if lesson_plan_file else None
    data = evaluation_service.submit_lesson_plan(
        db,
        storage,
        ctx.user,
        observation_id,
        lesson_plan_file.filename if lesson_plan_file else None,
        lesson_plan_file.content_type if lesson_plan_file else None,
        content,
    )
    return {"success": True, "message": "Lesson plan submitted", "data": data}


@router.post("/submit-video")
def submit_video(
    req: VideoSubmitRequest,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_student),
):
    data = evaluation_service.submit_video_link(db, ctx.user, req.observation_id, req.video_url)
    return {"success": True, "message": "Video link submitted", "data": data}


@router.post("/validate-video-url")
def validate_video_url(req: VideoValidateRequest, ctx: SessionContext = Depends(require_student)):
    return {"success": True, **evaluation_service.validate_video_url(req.video_url)}


@router.get("/lesson-plan-stats")
def lesson_plan_stats(db: Session = Depends(get_db), ctx: SessionContext = Depends(require_student)):
    stats = report_service.lesson_plan_stats(db, ctx.user_id, student_year(ctx.user))
    return {"success": True, **stats}
