"""Admin router — user accounts for teachers and admins."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from practicum.database import get_db
from practicum.middleware.auth import require_staff
from practicum.schemas.admin import UserCreate, UserUpdate
from practicum.services import user_service
from practicum.services.session_service import SessionContext

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users")
def list_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    year_level: Optional[str] = Query(None, alias="yearLevel"),
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    return {"success": True, "users": user_service.list_users(db, search, role, year_level, status)}


@router.get("/users/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db), ctx: SessionContext = Depends(require_staff)):
    return {"success": True, "user": user_service.user_to_dict(user_service.get_user(db, user_id))}


@router.post("/users", status_code=201)
def create_user(
    req: UserCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    user = user_service.create_user(db, ctx.user, req.model_dump(by_alias=True))
    return {"success": True, "message": "User created", "user": user}


@router.put("/users/{user_id}")
def update_user(
    user_id: str,
    req: UserUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(require_staff),
):
    user = user_service.update_user(db, ctx.user, user_id, req.model_dump(by_alias=True))
    return {"success": True, "message": "User updated", "user": user}


@router.delete("/users/{user_id}")
def deactivate_user(user_id: str, db: Session = Depends(get_db), ctx: SessionContext = Depends(require_staff)):
    """Soft delete: the account is marked inactive."""
    user_service.deactivate_user(db, ctx.user, user_id)
    return {"success": True, "message": "User deactivated"}
