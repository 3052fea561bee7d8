"""
Support ticket routes for end users
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from models import TicketCategory, TicketPriority
from routes.dependencies import current_user_id, get_db, get_notifier
from services.admin_notifications import AdminNotificationService
from services.support_service import SupportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/support", tags=["support"])


class TicketBody(BaseModel):
    subject: str
    message: str
    category: str = TicketCategory.OTHER.value
    priority: str = TicketPriority.MEDIUM.value
    order_code: Optional[str] = None


@router.post("/tickets")
def create_ticket(body: TicketBody,
                  background_tasks: BackgroundTasks,
                  user_id: str = Depends(current_user_id),
                  db: Session = Depends(get_db),
                  notifier: AdminNotificationService = Depends(get_notifier)):
    ticket = SupportService(db).create_ticket(
        user_id,
        body.subject,
        body.message,
        category=body.category,
        priority=body.priority,
        order_code=body.order_code,
    )
    data = ticket.to_dict()
    background_tasks.add_task(notifier.notify_new_support_ticket, data)
    return {"ok": True, "ticket": data}


@router.get("/tickets")
def list_my_tickets(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    tickets = SupportService(db).list_user_tickets(user_id)
    return {"ok": True, "tickets": [ticket.to_dict() for ticket in tickets]}
