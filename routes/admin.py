"""
Admin routes

Every endpoint requires the admin token; the acting admin id is written to
the audit fields of processed requests.
"""

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from models import utcnow
from routes.dependencies import get_db, require_admin
from services.admin_statistics import AdminStatisticsService
from services.export_service import build_download
from services.order_service import OrderService
from services.support_service import SupportService
from services.user_service import UserService
from services.wallet_service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

RequestKind = Literal["deposit", "withdraw"]
ExportDataset = Literal["deposits", "withdrawals", "tickets", "users", "pending-money"]


class ReviewBody(BaseModel):
    notes: Optional[str] = None


class NotesBody(BaseModel):
    notes: str


class TicketStatusBody(BaseModel):
    status: str


class TicketResponseBody(BaseModel):
    response: str


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------

@router.get("/stats")
def dashboard_statistics(admin_id: str = Depends(require_admin), db: Session = Depends(get_db)):
    return {"ok": True, "stats": AdminStatisticsService(db).get_dashboard_statistics()}


# ----------------------------------------------------------------------
# Wallet requests
# ----------------------------------------------------------------------

@router.get("/requests/{kind}")
def list_requests(kind: RequestKind,
                  status: Optional[str] = None,
                  search: Optional[str] = None,
                  admin_id: str = Depends(require_admin),
                  db: Session = Depends(get_db)):
    return {"ok": True, "requests": WalletService(db).list_requests(kind, status, search)}


@router.post("/requests/{kind}/{request_id}/approve")
def approve_request(kind: RequestKind,
                    request_id: int,
                    body: Optional[ReviewBody] = None,
                    admin_id: str = Depends(require_admin),
                    db: Session = Depends(get_db)):
    service = WalletService(db)
    notes = body.notes if body else None
    if kind == "deposit":
        request = service.approve_deposit(request_id, admin_id, notes)
    else:
        request = service.approve_withdrawal(request_id, admin_id, notes)
    return {"ok": True, "request": request.to_dict()}


@router.post("/requests/{kind}/{request_id}/reject")
def reject_request(kind: RequestKind,
                   request_id: int,
                   body: Optional[ReviewBody] = None,
                   admin_id: str = Depends(require_admin),
                   db: Session = Depends(get_db)):
    request = WalletService(db).reject_request(kind, request_id, admin_id, body.notes if body else None)
    return {"ok": True, "request": request.to_dict()}


@router.put("/requests/{kind}/{request_id}/notes")
def update_request_notes(kind: RequestKind,
                         request_id: int,
                         body: NotesBody,
                         admin_id: str = Depends(require_admin),
                         db: Session = Depends(get_db)):
    request = WalletService(db).update_admin_notes(kind, request_id, body.notes)
    return {"ok": True, "request": request.to_dict()}


# ----------------------------------------------------------------------
# Support tickets
# ----------------------------------------------------------------------

@router.get("/tickets")
def list_tickets(status: Optional[str] = None,
                 search: Optional[str] = None,
                 admin_id: str = Depends(require_admin),
                 db: Session = Depends(get_db)):
    service = SupportService(db)
    return {"ok": True, "tickets": service.list_tickets(status, search), "counts": service.status_counts()}


@router.put("/tickets/{ticket_id}/status")
def update_ticket_status(ticket_id: int,
                         body: TicketStatusBody,
                         admin_id: str = Depends(require_admin),
                         db: Session = Depends(get_db)):
    ticket = SupportService(db).update_status(ticket_id, body.status)
    return {"ok": True, "ticket": ticket.to_dict()}


@router.post("/tickets/{ticket_id}/respond")
def respond_to_ticket(ticket_id: int,
                      body: TicketResponseBody,
                      admin_id: str = Depends(require_admin),
                      db: Session = Depends(get_db)):
    ticket = SupportService(db).respond(ticket_id, body.response)
    return {"ok": True, "ticket": ticket.to_dict()}


@router.put("/tickets/{ticket_id}/notes")
def update_ticket_notes(ticket_id: int,
                        body: NotesBody,
                        admin_id: str = Depends(require_admin),
                        db: Session = Depends(get_db)):
    ticket = SupportService(db).update_admin_notes(ticket_id, body.notes)
    return {"ok": True, "ticket": ticket.to_dict()}


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------

@router.get("/users")
def search_users(search: Optional[str] = None,
                 admin_id: str = Depends(require_admin),
                 db: Session = Depends(get_db)):
    return {"ok": True, "users": [user.to_dict() for user in UserService(db).search_users(search)]}


@router.post("/users/{user_id}/disable")
def disable_user(user_id: str, admin_id: str = Depends(require_admin), db: Session = Depends(get_db)):
    user = UserService(db).set_disabled(user_id, True, admin_id)
    return {"ok": True, "user": user.to_dict()}


@router.post("/users/{user_id}/enable")
def enable_user(user_id: str, admin_id: str = Depends(require_admin), db: Session = Depends(get_db)):
    user = UserService(db).set_disabled(user_id, False, admin_id)
    return {"ok": True, "user": user.to_dict()}


# ----------------------------------------------------------------------
# Escrow money
# ----------------------------------------------------------------------

@router.get("/pending-money")
def pending_money(status: Optional[str] = None,
                  search: Optional[str] = None,
                  admin_id: str = Depends(require_admin),
                  db: Session = Depends(get_db)):
    service = OrderService(db)
    return {
        "ok": True,
        "orders": service.list_pending_money(status, search),
        "total": str(service.pending_money_total()),
    }


# ----------------------------------------------------------------------
# Exports
# ----------------------------------------------------------------------

def _export_data(dataset: str, db: Session):
    if dataset == "deposits":
        return WalletService(db).list_requests("deposit")
    if dataset == "withdrawals":
        return WalletService(db).list_requests("withdraw")
    if dataset == "tickets":
        return SupportService(db).list_tickets()
    if dataset == "users":
        return [user.to_dict() for user in UserService(db).search_users()]
    return OrderService(db).list_pending_money()


@router.get("/export/{dataset}")
def export_dataset(dataset: ExportDataset, admin_id: str = Depends(require_admin), db: Session = Depends(get_db)):
    """Download a dataset as an indented JSON attachment"""
    filename = f"{dataset}-{utcnow():%Y-%m-%d}.json"
    export = build_download(_export_data(dataset, db), filename)
    logger.info(f"📁 ADMIN_EXPORT: {dataset} by admin={admin_id}")
    return Response(
        content=export.payload,
        media_type=export.content_type,
        headers={"Content-Disposition": export.content_disposition},
    )
