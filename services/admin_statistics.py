"""Admin dashboard statistics"""

import logging
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import DepositRequest, Order, RequestStatus, SupportTicket, TicketStatus, User, WithdrawRequest
from utils.order_state_machine import PENDING_MONEY_STATUSES

logger = logging.getLogger(__name__)


def _decimal(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


class AdminStatisticsService:
    """Headline figures for the admin dashboard"""

    def __init__(self, db: Session):
        self.db = db

    def _count(self, model, *conditions) -> int:
        stmt = select(func.count()).select_from(model)
        if conditions:
            stmt = stmt.where(*conditions)
        return int(self.db.scalar(stmt) or 0)

    def get_dashboard_statistics(self) -> Dict[str, Any]:
        """
        ``total_revenue`` is the sum of approved deposit credits;
        ``pending_money`` is the price of every order still in escrow.
        """
        total_revenue = self.db.scalar(
            select(func.sum(DepositRequest.amount)).where(DepositRequest.status == RequestStatus.APPROVED.value)
        )
        pending_money = self.db.scalar(
            select(func.sum(Order.price)).where(Order.status.in_(PENDING_MONEY_STATUSES))
        )

        stats = {
            "total_users": self._count(User),
            "total_deposits": self._count(DepositRequest),
            "total_withdrawals": self._count(WithdrawRequest),
            "pending_deposits": self._count(DepositRequest, DepositRequest.status == RequestStatus.PENDING.value),
            "pending_withdrawals": self._count(WithdrawRequest, WithdrawRequest.status == RequestStatus.PENDING.value),
            "pending_tickets": self._count(SupportTicket, SupportTicket.status == TicketStatus.PENDING.value),
            "total_orders": self._count(Order),
            "total_revenue": _decimal(total_revenue),
            "pending_money": _decimal(pending_money),
        }
        logger.debug(f"📊 ADMIN_STATS: {stats}")
        return stats
