"""
User Service - account lifecycle, admin enable/disable and level progression
"""

import logging
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_, select, func, update
from sqlalchemy.orm import Session

from models import User, UserRole
from utils.atomic_transactions import atomic_transaction
from utils.exception_handler import PermissionDeniedError, RecordNotFoundError, ValidationError
from utils.input_validation import InputValidator
from utils.level_system import (
    MAX_LEVEL,
    format_transaction_value,
    get_level_info,
    level_from_transaction_value,
    progress_to_next_level,
)

logger = logging.getLogger(__name__)

# Chat room ids are built by joining two user ids with '_'
USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]{1,128}$")


class UserService:
    """Service for user records and their level progression"""

    def __init__(self, db: Session):
        self.db = db

    def create_user(self,
                    user_id: str,
                    username: str,
                    email: str,
                    display_name: Optional[str] = None,
                    role: str = UserRole.USER.value) -> User:
        """Register a profile for an externally authenticated uid"""
        if not user_id or not USER_ID_PATTERN.match(user_id):
            raise ValidationError("User id may only contain letters, digits and '-'")
        username = InputValidator.validate_username(username)
        email = InputValidator.validate_email(email)
        if role not in {r.value for r in UserRole}:
            raise ValidationError(f"Unknown role: {role}")

        conflict = self.db.scalar(
            select(User.id).where(
                or_(User.id == user_id, func.lower(User.username) == username.lower(), User.email == email)
            )
        )
        if conflict:
            raise ValidationError("A user with this id, username or email already exists")

        with atomic_transaction(self.db):
            user = User(
                id=user_id,
                username=username,
                email=email,
                display_name=(display_name or username).strip(),
                role=role,
                wallet_balance=Decimal("0"),
                account_level=1,
                total_transaction_value=Decimal("0"),
            )
            self.db.add(user)

        logger.info(f"✅ USER_CREATED: {user_id} ({username})")
        return user

    def get_user(self, user_id: str, refresh: bool = False) -> User:
        user = self.db.get(User, user_id, populate_existing=refresh)
        if user is None:
            raise RecordNotFoundError(f"User {user_id} not found")
        return user

    def require_active_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if user.is_disabled:
            logger.warning(f"⚠️ DISABLED_USER_ACTION: {user_id}")
            raise PermissionDeniedError("This account has been disabled")
        return user

    def set_disabled(self, user_id: str, disabled: bool, admin_id: Optional[str] = None) -> User:
        """Admin toggle; a disabled user can no longer trade or submit requests"""
        user = self.get_user(user_id)
        with atomic_transaction(self.db):
            user.is_disabled = disabled
        logger.info(f"🔒 USER_{'DISABLED' if disabled else 'ENABLED'}: {user_id} by {admin_id or 'admin'}")
        return user

    def search_users(self, search: Optional[str] = None) -> List[User]:
        stmt = select(User).order_by(User.created_at.desc(), User.id)
        if search and search.strip():
            term = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(User.username).like(term),
                    func.lower(User.email).like(term),
                    func.lower(func.coalesce(User.display_name, "")).like(term),
                    func.lower(User.id).like(term),
                )
            )
        return list(self.db.scalars(stmt))

    def record_transaction_value(self, user_id: str, value: Decimal) -> Tuple[int, Decimal]:
        """
        Add a completed trade's value to the user's running total and
        recompute their level. Runs inside the caller's transaction.
        """
        value = Decimal(str(value))
        if value < 0:
            raise ValidationError("Transaction value cannot be negative")

        self.db.flush()
        result = self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(total_transaction_value=User.total_transaction_value + value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise RecordNotFoundError(f"User {user_id} not found")

        user = self.get_user(user_id, refresh=True)
        previous_level = user.account_level
        user.account_level = level_from_transaction_value(user.total_transaction_value)
        self.db.flush()

        if user.account_level != previous_level:
            logger.info(f"📈 LEVEL_UP: {user_id} {previous_level} -> {user.account_level}")
        logger.info(f"📊 TRANSACTION_VALUE: {user_id} +{value} = {user.total_transaction_value}")
        return user.account_level, user.total_transaction_value

    def initialize_level_system(self, user_id: str) -> User:
        """Fill in level data for profiles created before levels existed"""
        user = self.get_user(user_id)
        with atomic_transaction(self.db):
            if user.total_transaction_value is None:
                user.total_transaction_value = Decimal("0")
            user.account_level = level_from_transaction_value(user.total_transaction_value)
        return user

    def level_summary(self, user_id: str) -> Dict[str, Any]:
        user = self.get_user(user_id)
        info = get_level_info(user.account_level)
        progress = progress_to_next_level(user.account_level, user.total_transaction_value)
        summary: Dict[str, Any] = {
            "level": info.level,
            "rank": info.rank,
            "max_level": MAX_LEVEL,
            "total_transaction_value": str(user.total_transaction_value),
            "total_transaction_display": format_transaction_value(user.total_transaction_value),
            "progress": None,
        }
        if progress is not None:
            summary["progress"] = {
                "percent": round(progress.progress, 2),
                "current_level_transactions": str(progress.current_level_transactions),
                "next_level_required": progress.next_level_required,
                "remaining": str(progress.remaining),
            }
        return summary
