"""
Wallet routes: balance, history and manual top-up / withdrawal requests
"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from routes.dependencies import current_user_id, get_db, get_notifier
from services.admin_notifications import AdminNotificationService
from services.wallet_service import WalletService
from utils.fee_calculator import FeeCalculator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["wallet"])


class DepositBody(BaseModel):
    amount: Decimal
    phone_number: str
    country: Optional[str] = None
    payment_method: Optional[str] = None
    instapay_user: Optional[str] = None
    receipt_image: Optional[str] = None


class WithdrawBody(BaseModel):
    amount: Decimal
    phone_number: str
    country: Optional[str] = None
    payment_method: Optional[str] = None
    instapay_user: Optional[str] = None


@router.get("")
def get_wallet(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    return {
        "ok": True,
        "balance": str(WalletService(db).get_balance(user_id)),
        "fee_percentage": str(FeeCalculator.get_fee_percentage()),
    }


@router.get("/transactions")
def list_transactions(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    transactions = WalletService(db).list_transactions(user_id)
    return {"ok": True, "transactions": [tx.to_dict() for tx in transactions]}


@router.get("/fee-quote")
def fee_quote(amount: Decimal):
    """Preview what a payment of ``amount`` yields after the wallet fee"""
    return {"ok": True, "quote": FeeCalculator.calculate_fee(amount).to_dict()}


@router.post("/deposits")
def request_deposit(body: DepositBody,
                    background_tasks: BackgroundTasks,
                    user_id: str = Depends(current_user_id),
                    db: Session = Depends(get_db),
                    notifier: AdminNotificationService = Depends(get_notifier)):
    request = WalletService(db).submit_deposit_request(
        user_id,
        body.amount,
        body.phone_number,
        country=body.country,
        payment_method=body.payment_method,
        instapay_user=body.instapay_user,
        receipt_image=body.receipt_image,
    )
    data = request.to_dict()
    background_tasks.add_task(notifier.notify_new_deposit_request, data)
    return {"ok": True, "request": data}


@router.post("/withdrawals")
def request_withdrawal(body: WithdrawBody,
                       background_tasks: BackgroundTasks,
                       user_id: str = Depends(current_user_id),
                       db: Session = Depends(get_db),
                       notifier: AdminNotificationService = Depends(get_notifier)):
    request = WalletService(db).submit_withdraw_request(
        user_id,
        body.amount,
        body.phone_number,
        country=body.country,
        payment_method=body.payment_method,
        instapay_user=body.instapay_user,
    )
    data = request.to_dict()
    background_tasks.add_task(notifier.notify_new_withdraw_request, data)
    return {"ok": True, "request": data}
