"""
User profile routes
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from routes.dependencies import current_user_id, get_db
from services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


class RegisterProfile(BaseModel):
    username: str
    email: str
    display_name: Optional[str] = None


@router.post("/me")
def register_profile(body: RegisterProfile,
                     user_id: str = Depends(current_user_id),
                     db: Session = Depends(get_db)):
    """Create the marketplace profile for an authenticated uid"""
    user = UserService(db).create_user(user_id, body.username, body.email, body.display_name)
    return {"ok": True, "user": user.to_dict()}


@router.get("/me")
def get_profile(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    service = UserService(db)
    user = service.get_user(user_id)
    return {"ok": True, "user": user.to_dict(), "level": service.level_summary(user_id)}


@router.get("/{profile_id}")
def get_public_profile(profile_id: str, db: Session = Depends(get_db)):
    service = UserService(db)
    user = service.get_user(profile_id)
    return {
        "ok": True,
        "user": {
            "id": user.id,
            "username": user.username,
            "display_name": user.display_name,
            "account_level": user.account_level,
            "total_trades": user.total_trades,
            "is_verified": user.is_verified,
        },
        "level": service.level_summary(profile_id),
    }
