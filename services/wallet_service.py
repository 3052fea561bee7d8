"""
Wallet Service - deposit and withdrawal requests with admin review

Every approve/reject is a single conditional update: the request row only
changes if it is still ``pending``, and the balance change happens in the
same transaction. A second approval of the same request matches no rows and
is rejected instead of applying the balance change twice.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type, Union

from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from models import (
    DepositRequest, RequestStatus, User, WalletTransaction, WalletTransactionType,
    WithdrawRequest, parse_status, utcnow,
)
from services.user_service import UserService
from utils.atomic_transactions import atomic_transaction
from utils.exception_handler import (
    InsufficientBalanceError, RecordNotFoundError, RequestAlreadyProcessedError, ValidationError,
)
from utils.fee_calculator import FeeCalculator
from utils.helpers import matches_search
from utils.input_validation import InputValidator

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_NOTE = "Request rejected by admin"

WalletRequest = Union[DepositRequest, WithdrawRequest]
REQUEST_MODELS: Dict[str, Type[WalletRequest]] = {
    "deposit": DepositRequest,
    "withdraw": WithdrawRequest,
}


def compute_deposit_balance(current: Decimal, amount: Decimal) -> Decimal:
    return current + amount


def compute_withdrawal_balance(current: Decimal, amount: Decimal) -> Decimal:
    """Withdrawals never drive a balance below zero"""
    return max(Decimal("0"), current - amount)


def _request_model(kind: str) -> Type[WalletRequest]:
    try:
        return REQUEST_MODELS[kind]
    except KeyError:
        raise ValidationError(f"Unknown request type: {kind}")


def _clean_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class WalletService:
    """Service for handling wallet operations with atomic guarantees"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserService(db)

    # ------------------------------------------------------------------
    # User side
    # ------------------------------------------------------------------

    def get_balance(self, user_id: str) -> Decimal:
        return self.users.get_user(user_id).wallet_balance

    def list_transactions(self, user_id: str) -> List[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        )
        return list(self.db.scalars(stmt))

    def submit_deposit_request(self,
                               user_id: str,
                               amount_paid: Any,
                               phone_number: str,
                               country: Optional[str] = None,
                               payment_method: Optional[str] = None,
                               instapay_user: Optional[str] = None,
                               receipt_image: Optional[str] = None) -> DepositRequest:
        """
        Record a top-up the user says they paid. The wallet fee is taken
        from the paid amount; only the remainder is credited on approval.
        """
        amount_paid = InputValidator.validate_wallet_amount(amount_paid)
        phone_number = InputValidator.validate_phone_number(phone_number)
        self.users.require_active_user(user_id)

        fee = FeeCalculator.calculate_fee(amount_paid)
        with atomic_transaction(self.db):
            request = DepositRequest(
                user_id=user_id,
                amount=fee.amount_after_fee,
                amount_paid=amount_paid,
                fee_amount=fee.fee_amount,
                phone_number=phone_number,
                country=_clean_optional(country),
                payment_method=_clean_optional(payment_method),
                instapay_user=_clean_optional(instapay_user),
                receipt_image=_clean_optional(receipt_image),
                status=RequestStatus.PENDING.value,
            )
            self.db.add(request)

        logger.info(
            f"📥 DEPOSIT_REQUESTED: #{request.id} user={user_id} paid={amount_paid} credit={request.amount}"
        )
        return request

    def submit_withdraw_request(self,
                                user_id: str,
                                amount: Any,
                                phone_number: str,
                                country: Optional[str] = None,
                                payment_method: Optional[str] = None,
                                instapay_user: Optional[str] = None) -> WithdrawRequest:
        amount = InputValidator.validate_wallet_amount(amount)
        phone_number = InputValidator.validate_phone_number(phone_number)
        user = self.users.require_active_user(user_id)
        if amount > user.wallet_balance:
            logger.warning(f"⚠️ WITHDRAW_INSUFFICIENT: user={user_id} amount={amount} balance={user.wallet_balance}")
            raise InsufficientBalanceError("Insufficient wallet balance")

        fee = FeeCalculator.calculate_fee(amount)
        with atomic_transaction(self.db):
            request = WithdrawRequest(
                user_id=user_id,
                amount=amount,
                fee_amount=fee.fee_amount,
                amount_after_fee=fee.amount_after_fee,
                phone_number=phone_number,
                country=_clean_optional(country),
                payment_method=_clean_optional(payment_method),
                instapay_user=_clean_optional(instapay_user),
                status=RequestStatus.PENDING.value,
            )
            self.db.add(request)

        logger.info(f"📤 WITHDRAW_REQUESTED: #{request.id} user={user_id} amount={amount}")
        return request

    # ------------------------------------------------------------------
    # Admin review
    # ------------------------------------------------------------------

    def get_request(self, kind: str, request_id: int, refresh: bool = False) -> WalletRequest:
        model = _request_model(kind)
        request = self.db.get(model, request_id, populate_existing=refresh)
        if request is None:
            raise RecordNotFoundError(f"{kind.capitalize()} request {request_id} not found")
        parse_status(RequestStatus, request.status, f"{model.__name__} {request_id}")
        return request

    def _transition_pending(self,
                            kind: str,
                            request_id: int,
                            new_status: RequestStatus,
                            admin_id: Optional[str],
                            notes: Optional[str]) -> WalletRequest:
        """Compare-and-set ``pending -> new_status``; raises when no row matched"""
        model = _request_model(kind)
        now = utcnow()
        values: Dict[str, Any] = {
            "status": new_status.value,
            "processed_by": admin_id,
            "processed_at": now,
            "updated_at": now,
        }
        if notes is not None:
            values["admin_notes"] = notes

        self.db.flush()
        result = self.db.execute(
            update(model)
            .where(model.id == request_id, model.status == RequestStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self.db.scalar(select(model.status).where(model.id == request_id))
            if current is None:
                raise RecordNotFoundError(f"{kind.capitalize()} request {request_id} not found")
            logger.warning(
                f"⚠️ REQUEST_ALREADY_PROCESSED: {kind} #{request_id} is {current}, wanted {new_status.value}"
            )
            raise RequestAlreadyProcessedError(kind, request_id, current, new_status.value)

        return self.get_request(kind, request_id, refresh=True)

    def _record_transaction(self, user_id: str, tx_type: WalletTransactionType, amount: Decimal,
                            description: str, reference_type: str, reference_id: str) -> WalletTransaction:
        entry = WalletTransaction(
            user_id=user_id,
            transaction_type=tx_type.value,
            amount=amount,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
        )
        self.db.add(entry)
        return entry

    def approve_deposit(self, request_id: int, admin_id: Optional[str] = None, notes: Optional[str] = None) -> DepositRequest:
        """Credit exactly ``amount`` to the user and mark the request approved"""
        with atomic_transaction(self.db):
            request = self._transition_pending("deposit", request_id, RequestStatus.APPROVED, admin_id, notes)
            result = self.db.execute(
                update(User)
                .where(User.id == request.user_id)
                .values(wallet_balance=User.wallet_balance + request.amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise RecordNotFoundError(f"User {request.user_id} not found")
            self._record_transaction(
                request.user_id, WalletTransactionType.DEPOSIT, request.amount,
                "Wallet top-up approved", "deposit_request", str(request.id),
            )

        logger.info(f"✅ DEPOSIT_APPROVED: #{request_id} user={request.user_id} +{request.amount} by {admin_id}")
        return request

    def approve_withdrawal(self, request_id: int, admin_id: Optional[str] = None, notes: Optional[str] = None) -> WithdrawRequest:
        """Debit ``amount`` from the user, flooring the balance at zero"""
        with atomic_transaction(self.db):
            request = self._transition_pending("withdraw", request_id, RequestStatus.APPROVED, admin_id, notes)
            balance = self.db.scalar(
                select(User.wallet_balance).where(User.id == request.user_id).with_for_update()
            )
            if balance is None:
                raise RecordNotFoundError(f"User {request.user_id} not found")

            self.db.execute(
                update(User)
                .where(User.id == request.user_id)
                .values(
                    wallet_balance=case(
                        (User.wallet_balance > request.amount, User.wallet_balance - request.amount),
                        else_=Decimal("0"),
                    )
                )
                .execution_options(synchronize_session=False)
            )
            removed = balance - compute_withdrawal_balance(balance, request.amount)
            if removed < request.amount:
                logger.warning(
                    f"⚠️ WITHDRAW_FLOORED: #{request_id} user={request.user_id} "
                    f"balance={balance} requested={request.amount}"
                )
            self._record_transaction(
                request.user_id, WalletTransactionType.WITHDRAW, -removed,
                "Withdrawal approved", "withdraw_request", str(request.id),
            )

        logger.info(f"✅ WITHDRAW_APPROVED: #{request_id} user={request.user_id} -{request.amount} by {admin_id}")
        return request

    def reject_request(self, kind: str, request_id: int, admin_id: Optional[str] = None,
                       notes: Optional[str] = None) -> WalletRequest:
        """Mark rejected with notes; balances are untouched"""
        notes = (notes or "").strip() or DEFAULT_REJECTION_NOTE
        with atomic_transaction(self.db):
            request = self._transition_pending(kind, request_id, RequestStatus.REJECTED, admin_id, notes)
        logger.info(f"❌ {kind.upper()}_REJECTED: #{request_id} by {admin_id}: {notes}")
        return request

    def reject_deposit(self, request_id: int, admin_id: Optional[str] = None, notes: Optional[str] = None) -> DepositRequest:
        return self.reject_request("deposit", request_id, admin_id, notes)

    def reject_withdrawal(self, request_id: int, admin_id: Optional[str] = None, notes: Optional[str] = None) -> WithdrawRequest:
        return self.reject_request("withdraw", request_id, admin_id, notes)

    def update_admin_notes(self, kind: str, request_id: int, notes: str) -> WalletRequest:
        """Notes are the one field that stays editable after review"""
        request = self.get_request(kind, request_id)
        with atomic_transaction(self.db):
            request.admin_notes = (notes or "").strip() or None
            request.updated_at = utcnow()
        logger.info(f"📝 {kind.upper()}_NOTES_UPDATED: #{request_id}")
        return request

    def list_requests(self, kind: str, status: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Requests newest first, joined with the requesting user.

        ``status`` is ``all``/None or one request status. ``search`` is a
        case-insensitive substring over amount, user name and email, phone,
        InstaPay handle and country.
        """
        model = _request_model(kind)
        stmt = (
            select(model, User)
            .join(User, User.id == model.user_id)
            .order_by(model.created_at.desc(), model.id.desc())
        )
        if status and status != "all":
            if status not in {s.value for s in RequestStatus}:
                raise ValidationError(f"Unknown status filter: {status}")
            stmt = stmt.where(model.status == status)

        rows = []
        for request, user in self.db.execute(stmt):
            if not matches_search(search, request.amount, user.display_name, user.email,
                                  request.phone_number, request.instapay_user, request.country):
                continue
            data = request.to_dict()
            data["user"] = {
                "id": user.id,
                "display_name": user.display_name,
                "email": user.email,
                "wallet_balance": str(user.wallet_balance),
            }
            rows.append(data)
        return rows
