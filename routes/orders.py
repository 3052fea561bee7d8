"""
Escrow order routes
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from routes.dependencies import current_user_id, get_db
from services.order_service import OrderService
from utils.exception_handler import PermissionDeniedError
from utils.order_state_machine import ORDER_CONFIRMATION_DISCLAIMERS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


class PlaceOrder(BaseModel):
    account_id: int


class AccountDetails(BaseModel):
    username: str
    password: str
    email: str
    recovery_email: Optional[str] = None
    phone_number: Optional[str] = None
    additional_info: Optional[str] = None
    security_questions: Optional[str] = None
    two_factor_auth: Optional[str] = None


class ConfirmOrder(BaseModel):
    accepted_disclaimers: List[str] = Field(default_factory=list)


@router.post("")
def place_order(body: PlaceOrder, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    order = OrderService(db).place_order(user_id, body.account_id)
    return {"ok": True, "order": order.to_dict()}


@router.get("")
def list_my_orders(role: Optional[str] = None,
                   user_id: str = Depends(current_user_id),
                   db: Session = Depends(get_db)):
    orders = OrderService(db).list_user_orders(user_id, role)
    return {"ok": True, "orders": [order.to_dict() for order in orders]}


@router.get("/confirmation-terms")
def confirmation_terms():
    """Disclaimers the buyer must accept, keyed by the id to send back"""
    return {"ok": True, "disclaimers": ORDER_CONFIRMATION_DISCLAIMERS}


@router.get("/{order_id}")
def get_order(order_id: int, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    order = OrderService(db).get_order(order_id)
    if user_id not in (order.buyer_id, order.seller_id):
        raise PermissionDeniedError("You are not a party to this order")
    return {"ok": True, "order": order.to_dict()}


@router.post("/{order_id}/account-details")
def add_account_details(order_id: int,
                        body: AccountDetails,
                        user_id: str = Depends(current_user_id),
                        db: Session = Depends(get_db)):
    order = OrderService(db).add_account_details(order_id, user_id, body.model_dump(exclude_none=True))
    return {"ok": True, "order": order.to_dict()}


@router.get("/{order_id}/account-details")
def get_account_details(order_id: int, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    details = OrderService(db).get_credentials(order_id, user_id)
    return {"ok": True, "account_details": details}


@router.post("/{order_id}/review")
def start_review(order_id: int, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    order = OrderService(db).mark_awaiting_confirmation(order_id, user_id)
    return {"ok": True, "order": order.to_dict()}


@router.post("/{order_id}/confirm")
def confirm_order(order_id: int,
                  body: ConfirmOrder,
                  user_id: str = Depends(current_user_id),
                  db: Session = Depends(get_db)):
    """Irreversible: releases the escrowed price to the seller"""
    order = OrderService(db).confirm_order(order_id, user_id, body.accepted_disclaimers)
    return {
        "ok": True,
        "message": "The order has been confirmed and money will be transferred to the seller",
        "order": order.to_dict(),
    }
