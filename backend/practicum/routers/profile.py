"""Profile router — the caller's own account data, password and avatar."""

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import get_session
from practicum.schemas.profile import PasswordChange, ProfileUpdate
from practicum.services import user_service
from practicum.services.session_service import SessionContext
from practicum.services.storage import LocalObjectStorage, get_storage

router = APIRouter(prefix="/api/profile", tags=["profile"])


@router.get("")
def get_profile(db: Session = Depends(get_db), ctx: SessionContext = Depends(get_session)):
    return {"success": True, "data": user_service.get_profile(db, ctx.user_id)}


@router.put("")
def update_profile(
    req: ProfileUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session),
):
    """Update name, major, e-mail, phone and room. E-mail and room are set once."""
    data = user_service.update_profile(db, ctx.user_id, req.model_dump(by_alias=True))
    return {"success": True, "message": "Profile saved", "data": data}


@router.post("/change-password")
def change_password(
    req: PasswordChange,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session),
):
    user_service.change_password(db, ctx.user_id, req.current_password, req.new_password)
    return {"success": True, "message": "Password changed"}


@router.post("/avatar")
async def upload_avatar(
    avatar: UploadFile = File(...),
    db: Session = Depends(get_db),
    storage: LocalObjectStorage = Depends(get_storage),
    ctx: SessionContext = Depends(get_session),
):
    content = await avatar.read()
    url = user_service.upload_avatar(db, storage, ctx.user_id, avatar.filename, avatar.content_type, content)
    return {"success": True, "message": "Profile image uploaded", "avatarUrl": url}
