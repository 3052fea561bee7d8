"""
Shared FastAPI dependencies

Authentication happens upstream: the gateway forwards the verified uid in
``X-User-Id``. Admin routes additionally require ``X-Admin-Token`` to match
the configured token.
"""

import hmac
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from config import Config
from database import get_db
from services.admin_notifications import AdminNotificationService

logger = logging.getLogger(__name__)

__all__ = ["get_db", "current_user_id", "require_admin", "get_notifier"]


def current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing user identity")
    return x_user_id.strip()


def require_admin(x_admin_token: Optional[str] = Header(None),
                  x_admin_id: Optional[str] = Header(None)) -> str:
    """Returns the acting admin's id (for audit fields)"""
    if not Config.ADMIN_API_TOKEN:
        logger.error("❌ ADMIN_API_TOKEN not configured - admin routes are disabled")
        raise HTTPException(status_code=503, detail="Admin access is not configured")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, Config.ADMIN_API_TOKEN):
        logger.warning("⚠️ Admin request rejected: invalid token")
        raise HTTPException(status_code=403, detail="Admin access denied")
    return (x_admin_id or "admin").strip() or "admin"


@lru_cache(maxsize=1)
def get_notifier() -> AdminNotificationService:
    return AdminNotificationService()
