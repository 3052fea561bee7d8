"""
Support Service - user tickets and admin handling
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import (
    SupportTicket, TicketCategory, TicketPriority, TicketStatus, User, parse_status, utcnow,
)
from services.chat_service import ChatService
from services.user_service import UserService
from utils.atomic_transactions import atomic_transaction
from utils.exception_handler import RecordNotFoundError, ValidationError
from utils.helpers import generate_ticket_code, matches_search
from utils.input_validation import InputValidator

logger = logging.getLogger(__name__)

CLOSING_STATUSES = {TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value}


def _require_choice(value: str, enum_cls, label: str) -> str:
    if value not in {member.value for member in enum_cls}:
        raise ValidationError(f"Invalid {label}: {value}")
    return value


class SupportService:
    """Tickets are opened by users and answered by the support desk"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserService(db)
        self.chat = ChatService(db)

    def create_ticket(self,
                      user_id: str,
                      subject: str,
                      message: str,
                      category: str = TicketCategory.OTHER.value,
                      priority: str = TicketPriority.MEDIUM.value,
                      order_code: Optional[str] = None) -> SupportTicket:
        subject = InputValidator.sanitize_input(InputValidator.validate_support_subject(subject))
        message = InputValidator.sanitize_input(InputValidator.validate_support_description(message))
        category = _require_choice(category, TicketCategory, "category")
        priority = _require_choice(priority, TicketPriority, "priority")
        self.users.get_user(user_id)

        with atomic_transaction(self.db):
            ticket = SupportTicket(
                ticket_code=generate_ticket_code(),
                user_id=user_id,
                subject=subject,
                message=message,
                category=category,
                priority=priority,
                status=TicketStatus.PENDING.value,
                order_code=(order_code or "").strip() or None,
            )
            self.db.add(ticket)

        logger.info(f"🎫 TICKET_CREATED: {ticket.ticket_code} user={user_id} priority={priority}")
        return ticket

    def get_ticket(self, ticket_id: int) -> SupportTicket:
        ticket = self.db.get(SupportTicket, ticket_id)
        if ticket is None:
            raise RecordNotFoundError(f"Support ticket {ticket_id} not found")
        parse_status(TicketStatus, ticket.status, f"SupportTicket {ticket_id}")
        return ticket

    def update_status(self, ticket_id: int, status: str) -> SupportTicket:
        status = _require_choice(status, TicketStatus, "status")
        ticket = self.get_ticket(ticket_id)
        with atomic_transaction(self.db):
            previous = ticket.status
            ticket.status = status
            ticket.updated_at = utcnow()
            ticket.resolved_at = utcnow() if status in CLOSING_STATUSES else None
        logger.info(f"🎫 TICKET_STATUS: {ticket.ticket_code} {previous} -> {status}")
        return ticket

    def respond(self, ticket_id: int, response: str) -> SupportTicket:
        """
        Store the admin response, move the ticket to in_progress and post
        the response into the user's support chat room.
        """
        if not response or not response.strip():
            raise ValidationError("Response cannot be empty")
        ticket = self.get_ticket(ticket_id)

        with atomic_transaction(self.db):
            ticket.admin_response = response.strip()
            ticket.status = TicketStatus.IN_PROGRESS.value
            ticket.updated_at = utcnow()
            ticket.resolved_at = None
            self.chat.send_support_reply(ticket.user_id, response)

        logger.info(f"💬 TICKET_RESPONDED: {ticket.ticket_code}")
        return ticket

    def update_admin_notes(self, ticket_id: int, notes: str) -> SupportTicket:
        if not notes or not notes.strip():
            raise ValidationError("Notes cannot be empty")
        ticket = self.get_ticket(ticket_id)
        with atomic_transaction(self.db):
            ticket.admin_notes = notes.strip()
            ticket.updated_at = utcnow()
        return ticket

    def list_tickets(self, status: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """All tickets newest first, with the requesting user's name and email"""
        stmt = (
            select(SupportTicket, User)
            .join(User, User.id == SupportTicket.user_id)
            .order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc())
        )
        if status and status != "all":
            stmt = stmt.where(SupportTicket.status == _require_choice(status, TicketStatus, "status"))

        rows = []
        for ticket, user in self.db.execute(stmt):
            parse_status(TicketStatus, ticket.status, f"SupportTicket {ticket.id}")
            if not matches_search(search, ticket.subject, ticket.message, ticket.ticket_code,
                                  user.display_name, user.email):
                continue
            data = ticket.to_dict()
            data["user"] = {"id": user.id, "display_name": user.display_name, "email": user.email}
            rows.append(data)
        return rows

    def list_user_tickets(self, user_id: str) -> List[SupportTicket]:
        stmt = (
            select(SupportTicket)
            .where(SupportTicket.user_id == user_id)
            .order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc())
        )
        return list(self.db.scalars(stmt))

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in TicketStatus}
        for status, count in self.db.execute(
            select(SupportTicket.status, func.count()).group_by(SupportTicket.status)
        ):
            counts[parse_status(TicketStatus, status, "SupportTicket").value] = count
        return counts
