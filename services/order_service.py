"""
Order Service - escrow order lifecycle

    escrow -> delivering -> [awaiting_confirmation ->] completed

Purchase moves the price from the buyer's wallet into escrow. The seller
delivers the account credentials, then the buyer confirms, which releases
the escrowed price to the seller. Confirmation is irreversible: there is no
refund or cancellation path.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session, aliased

from models import (
    AccountStatus, GameAccount, Order, OrderStatus, User, WalletTransaction,
    WalletTransactionType, parse_status, utcnow,
)
from services.user_service import UserService
from utils.atomic_transactions import atomic_transaction
from utils.exception_handler import (
    InsufficientBalanceError, InvalidStateTransitionError, PermissionDeniedError,
    RecordNotFoundError, ValidationError,
)
from utils.helpers import generate_order_code, matches_search
from utils.input_validation import InputValidator
from utils.order_state_machine import (
    PENDING_MONEY_STATUSES, OrderStateValidator, require_disclaimers,
)

logger = logging.getLogger(__name__)

REQUIRED_ACCOUNT_FIELDS = ("username", "password", "email")
OPTIONAL_ACCOUNT_FIELDS = (
    "recovery_email", "phone_number", "additional_info", "security_questions", "two_factor_auth",
)
ACCOUNT_FIELD_LABELS = {"username": "Username", "password": "Password", "email": "Email"}


def clean_account_details(details: Mapping[str, Any]) -> Dict[str, str]:
    """
    Validate the credentials payload a seller delivers.

    Required fields must be non-blank after trimming; blank optional fields
    are dropped. Unknown keys are ignored.
    """
    InputValidator.validate_required_fields(details, REQUIRED_ACCOUNT_FIELDS, ACCOUNT_FIELD_LABELS)
    cleaned = {name: str(details[name]).strip() for name in REQUIRED_ACCOUNT_FIELDS}
    for name in OPTIONAL_ACCOUNT_FIELDS:
        value = details.get(name)
        if value is not None and str(value).strip():
            cleaned[name] = str(value).strip()
    return cleaned


class OrderService:
    """Escrow orders between a buyer and a listing's seller"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserService(db)

    def get_order(self, order_id: int, refresh: bool = False) -> Order:
        order = self.db.get(Order, order_id, populate_existing=refresh)
        if order is None:
            raise RecordNotFoundError(f"Order {order_id} not found")
        # Fail fast on rows written with an unknown status
        parse_status(OrderStatus, order.status, f"Order {order.order_code}")
        return order

    def _advance(self, order: Order, new_status: OrderStatus, **values: Any) -> Order:
        """
        Compare-and-set the order status from any valid source state.
        Losing a race (row no longer in a source state) raises.
        """
        OrderStateValidator.ensure_transition(order.status, new_status.value)
        sources = OrderStateValidator.sources_for(new_status.value)

        self.db.flush()
        result = self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status.in_(sources))
            .values(status=new_status.value, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self.db.scalar(select(Order.status).where(Order.id == order.id))
            logger.warning(f"⚠️ ORDER_TRANSITION_LOST: {order.order_code} is {current}, wanted {new_status.value}")
            raise InvalidStateTransitionError("order", current, new_status.value)
        return self.get_order(order.id, refresh=True)

    def place_order(self, buyer_id: str, account_id: int) -> Order:
        """Buy a listing: reserve it, move the price into escrow, open the order"""
        listing = self.db.get(GameAccount, account_id)
        if listing is None:
            raise RecordNotFoundError(f"Listing {account_id} not found")
        if listing.status_enum != AccountStatus.ACTIVE:
            raise ValidationError("This account is no longer available")
        if listing.seller_id == buyer_id:
            raise ValidationError("You cannot buy your own account")
        buyer = self.users.require_active_user(buyer_id)
        price = listing.price
        if buyer.wallet_balance < price:
            raise InsufficientBalanceError(
                f"Insufficient wallet balance. You need {price - buyer.wallet_balance} more."
            )

        with atomic_transaction(self.db):
            reserved = self.db.execute(
                update(GameAccount)
                .where(GameAccount.id == account_id, GameAccount.status == AccountStatus.ACTIVE.value)
                .values(status=AccountStatus.PENDING.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if reserved.rowcount != 1:
                raise ValidationError("This account is no longer available")

            debited = self.db.execute(
                update(User)
                .where(User.id == buyer_id, User.wallet_balance >= price)
                .values(wallet_balance=User.wallet_balance - price)
                .execution_options(synchronize_session=False)
            )
            if debited.rowcount != 1:
                raise InsufficientBalanceError("Insufficient wallet balance")

            OrderStateValidator.ensure_transition(None, OrderStatus.ESCROW.value)
            order = Order(
                order_code=generate_order_code(),
                buyer_id=buyer_id,
                seller_id=listing.seller_id,
                account_id=account_id,
                price=price,
                escrow_amount=price,
                status=OrderStatus.ESCROW.value,
            )
            self.db.add(order)
            self.db.flush()
            self.db.add(WalletTransaction(
                user_id=buyer_id,
                transaction_type=WalletTransactionType.PURCHASE.value,
                amount=-price,
                description=f"Purchase: {listing.title}",
                reference_type="order",
                reference_id=order.order_code,
            ))

        self.db.refresh(listing)
        logger.info(f"🛒 ORDER_PLACED: {order.order_code} buyer={buyer_id} listing={account_id} price={price}")
        return order

    def add_account_details(self, order_id: int, seller_id: str, details: Mapping[str, Any]) -> Order:
        """Seller delivers credentials: ``escrow -> delivering``"""
        cleaned = clean_account_details(details)
        order = self.get_order(order_id)
        if order.seller_id != seller_id:
            raise PermissionDeniedError("Only the seller can provide account details")

        with atomic_transaction(self.db):
            now = utcnow()
            order = self._advance(order, OrderStatus.DELIVERING, account_details=cleaned, delivered_at=now)

        logger.info(f"📦 ORDER_DELIVERING: {order.order_code} seller={seller_id}")
        return order

    def mark_awaiting_confirmation(self, order_id: int, buyer_id: str) -> Order:
        """Buyer has picked up the credentials and is checking the account"""
        order = self.get_order(order_id)
        if order.buyer_id != buyer_id:
            raise PermissionDeniedError("Only the buyer can review this order")

        with atomic_transaction(self.db):
            order = self._advance(order, OrderStatus.AWAITING_CONFIRMATION)

        logger.info(f"🔍 ORDER_AWAITING_CONFIRMATION: {order.order_code}")
        return order

    def confirm_order(self, order_id: int, buyer_id: str, accepted_disclaimers: Optional[List[str]]) -> Order:
        """
        Buyer confirms receipt and releases escrow to the seller.

        Every confirmation disclaimer must be accepted. The status change,
        seller credit, listing sale and level updates commit together; a
        repeated confirmation finds the order already completed and fails
        without paying the seller again.
        """
        require_disclaimers(accepted_disclaimers)
        order = self.get_order(order_id)
        if order.buyer_id != buyer_id:
            raise PermissionDeniedError("Only the buyer can confirm this order")

        with atomic_transaction(self.db):
            order = self._advance(order, OrderStatus.COMPLETED, completed_at=utcnow())

            self.db.execute(
                update(User)
                .where(User.id == order.seller_id)
                .values(
                    wallet_balance=User.wallet_balance + order.escrow_amount,
                    total_trades=User.total_trades + 1,
                )
                .execution_options(synchronize_session=False)
            )
            self.db.execute(
                update(User)
                .where(User.id == order.buyer_id)
                .values(total_trades=User.total_trades + 1)
                .execution_options(synchronize_session=False)
            )
            self.db.execute(
                update(GameAccount)
                .where(GameAccount.id == order.account_id)
                .values(status=AccountStatus.SOLD.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            self.db.add(WalletTransaction(
                user_id=order.seller_id,
                transaction_type=WalletTransactionType.SALE.value,
                amount=order.escrow_amount,
                description="Sale completed",
                reference_type="order",
                reference_id=order.order_code,
            ))

            self.users.record_transaction_value(order.buyer_id, order.price)
            self.users.record_transaction_value(order.seller_id, order.price)

        logger.info(
            f"✅ ORDER_CONFIRMED: {order.order_code} released {order.escrow_amount} to seller={order.seller_id}"
        )
        return order

    def get_credentials(self, order_id: int, user_id: str) -> Dict[str, Any]:
        order = self.get_order(order_id)
        if user_id not in (order.buyer_id, order.seller_id):
            raise PermissionDeniedError("You are not a party to this order")
        if order.account_details is None:
            raise RecordNotFoundError("Account details have not been provided yet")
        return dict(order.account_details)

    def list_user_orders(self, user_id: str, role: Optional[str] = None) -> List[Order]:
        """Orders where the user is buyer and/or seller, newest first"""
        if role == "buyer":
            condition = Order.buyer_id == user_id
        elif role == "seller":
            condition = Order.seller_id == user_id
        elif role in (None, "all"):
            condition = or_(Order.buyer_id == user_id, Order.seller_id == user_id)
        else:
            raise ValidationError(f"Unknown role filter: {role}")

        stmt = select(Order).where(condition).order_by(Order.created_at.desc(), Order.id.desc())
        orders = list(self.db.scalars(stmt))
        for order in orders:
            parse_status(OrderStatus, order.status, f"Order {order.order_code}")
        return orders

    def list_pending_money(self, status: Optional[str] = None, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Orders still holding buyer funds, for the admin pending-money view.
        ``search`` matches order code, listing title and buyer/seller names.
        """
        statuses = set(PENDING_MONEY_STATUSES)
        if status and status != "all":
            if status not in PENDING_MONEY_STATUSES:
                raise ValidationError(f"Unknown status filter: {status}")
            statuses = {status}

        buyer = aliased(User)
        seller = aliased(User)
        stmt = (
            select(Order, GameAccount, buyer, seller)
            .join(GameAccount, GameAccount.id == Order.account_id)
            .join(buyer, buyer.id == Order.buyer_id)
            .join(seller, seller.id == Order.seller_id)
            .where(Order.status.in_(statuses))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )

        rows = []
        for order, listing, buyer_row, seller_row in self.db.execute(stmt):
            parse_status(OrderStatus, order.status, f"Order {order.order_code}")
            if not matches_search(search, order.order_code, listing.title,
                                  buyer_row.display_name, buyer_row.username,
                                  seller_row.display_name, seller_row.username):
                continue
            data = order.to_dict()
            data.update({
                "title": listing.title,
                "game": listing.game,
                "buyer_name": buyer_row.display_name or buyer_row.username,
                "seller_name": seller_row.display_name or seller_row.username,
            })
            rows.append(data)
        return rows

    def pending_money_total(self) -> Decimal:
        total = self.db.scalar(
            select(func.coalesce(func.sum(Order.price), 0)).where(Order.status.in_(PENDING_MONEY_STATUSES))
        )
        return Decimal(str(total)).quantize(Decimal("0.01"))
