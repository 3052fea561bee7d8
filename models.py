"""
GameVault Marketplace - Database Schema
=======================================

Relational schema for the peer-to-peer game account marketplace:
- Users with wallet balances and level progression
- Game account listings and escrow orders
- Admin reviewed deposit and withdrawal requests with a wallet ledger
- Support tickets and one-to-one chat rooms

Status columns store the enum ``.value`` strings and are constrained in the
database; reads go through ``parse_status`` so an unknown value fails loudly.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, JSON,
    Numeric, String, Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from utils.exception_handler import MalformedRecordError


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the timezone-less DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# ENUMS - Business Logic Constants
# ============================================================================

class OrderStatus(Enum):
    """Escrow order lifecycle states"""
    ESCROW = "escrow"
    DELIVERING = "delivering"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RequestStatus(Enum):
    """Deposit / withdrawal request review states"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TicketStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketCategory(Enum):
    ACCOUNT = "account"
    PAYMENT = "payment"
    ORDER = "order"
    TECHNICAL = "technical"
    SECURITY = "security"
    OTHER = "other"


class AccountStatus(Enum):
    """Listing availability"""
    ACTIVE = "active"
    PENDING = "pending"  # Reserved by an order in escrow
    SOLD = "sold"
    REMOVED = "removed"


class GameType(Enum):
    FIFA = "fifa"
    VALORANT = "valorant"
    LOL = "lol"
    PUBG = "pubg"
    COD = "cod"


class WalletTransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    PURCHASE = "purchase"
    SALE = "sale"


class UserRole(Enum):
    USER = "user"
    VIP = "vip"
    ADMIN = "admin"


E = TypeVar("E", bound=Enum)


def parse_status(enum_cls: Type[E], value: Any, entity: str = "record") -> E:
    """Parse a stored status string into its enum, failing on unknown values"""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise MalformedRecordError(
            f"{entity} has unknown {enum_cls.__name__} value {value!r}"
        )


def _in_clause(enum_cls: Type[Enum]) -> str:
    return ", ".join(f"'{member.value}'" for member in enum_cls)


def _money(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ============================================================================
# CORE MODELS
# ============================================================================

class User(Base):
    """Wallet-bearing marketplace user, keyed by the external auth uid"""
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    username: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    role: Mapped[str] = mapped_column(String(10), default=UserRole.USER.value, nullable=False)

    # Wallet and level progression
    wallet_balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    account_level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_transaction_value: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    total_trades: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Status flags
    is_disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, onupdate=utcnow, nullable=False)
    last_active: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    listings: Mapped[List["GameAccount"]] = relationship("GameAccount", back_populates="seller")

    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="ck_users_wallet_balance_positive"),
        CheckConstraint("account_level >= 1", name="ck_users_account_level_min"),
        CheckConstraint(f"role IN ({_in_clause(UserRole)})", name="ck_users_role_valid"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "wallet_balance": _money(self.wallet_balance),
            "account_level": self.account_level,
            "total_transaction_value": _money(self.total_transaction_value),
            "total_trades": self.total_trades,
            "is_disabled": self.is_disabled,
            "is_verified": self.is_verified,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<User(id={self.id}, username={self.username}, balance={self.wallet_balance})>"


class GameAccount(Base):
    """A game account listed for sale"""
    __tablename__ = "game_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    seller_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    game: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    images: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    game_data: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=AccountStatus.ACTIVE.value, nullable=False)
    views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, onupdate=utcnow, nullable=False)

    seller: Mapped["User"] = relationship("User", back_populates="listings")

    __table_args__ = (
        CheckConstraint(f"status IN ({_in_clause(AccountStatus)})", name="ck_game_accounts_status_valid"),
        CheckConstraint(f"game IN ({_in_clause(GameType)})", name="ck_game_accounts_game_valid"),
        CheckConstraint("price > 0", name="ck_game_accounts_price_positive"),
        Index("ix_game_accounts_game_status", "game", "status"),
        Index("ix_game_accounts_status_created", "status", "created_at"),
    )

    @property
    def status_enum(self) -> AccountStatus:
        return parse_status(AccountStatus, self.status, f"GameAccount {self.id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "seller_id": self.seller_id,
            "game": self.game,
            "title": self.title,
            "description": self.description,
            "price": _money(self.price),
            "images": list(self.images or []),
            "game_data": dict(self.game_data or {}),
            "status": self.status,
            "views": self.views,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<GameAccount(id={self.id}, game={self.game}, status={self.status})>"


class Order(Base):
    """Escrow order for one listing between a buyer and its seller"""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)  # Public facing ID
    buyer_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False)
    seller_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False)
    account_id: Mapped[int] = mapped_column(Integer, ForeignKey("game_accounts.id"), nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    escrow_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(30), default=OrderStatus.ESCROW.value, nullable=False)

    # Credentials payload, only present once the seller has delivered
    account_details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON(none_as_null=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    buyer: Mapped["User"] = relationship("User", foreign_keys=[buyer_id])
    seller: Mapped["User"] = relationship("User", foreign_keys=[seller_id])
    account: Mapped["GameAccount"] = relationship("GameAccount")

    __table_args__ = (
        CheckConstraint(f"status IN ({_in_clause(OrderStatus)})", name="ck_orders_status_valid"),
        CheckConstraint("price > 0", name="ck_orders_price_positive"),
        CheckConstraint("buyer_id <> seller_id", name="ck_orders_distinct_parties"),
        CheckConstraint(
            f"status <> '{OrderStatus.ESCROW.value}' OR account_details IS NULL",
            name="ck_orders_details_after_escrow",
        ),
        Index("ix_orders_buyer_status", "buyer_id", "status"),
        Index("ix_orders_seller_status", "seller_id", "status"),
        Index("ix_orders_status_created", "status", "created_at"),
    )

    @property
    def status_enum(self) -> OrderStatus:
        return parse_status(OrderStatus, self.status, f"Order {self.order_code}")

    def to_dict(self, include_credentials: bool = False) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "order_code": self.order_code,
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "account_id": self.account_id,
            "price": _money(self.price),
            "escrow_amount": _money(self.escrow_amount),
            "status": self.status,
            "has_account_details": self.account_details is not None,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "delivered_at": _iso(self.delivered_at),
            "completed_at": _iso(self.completed_at),
        }
        if include_credentials:
            data["account_details"] = self.account_details
        return data

    def __repr__(self):
        return f"<Order(code={self.order_code}, status={self.status}, price={self.price})>"


class DepositRequest(Base):
    """User submitted deposit awaiting admin review"""
    __tablename__ = "deposit_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False, index=True)

    # amount is what gets credited; amount_paid is what the user transferred
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    fee_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)

    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    instapay_user: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    receipt_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=RequestStatus.PENDING.value, nullable=False)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    user: Mapped["User"] = relationship("User")

    __table_args__ = (
        CheckConstraint(f"status IN ({_in_clause(RequestStatus)})", name="ck_deposit_requests_status_valid"),
        CheckConstraint("amount > 0", name="ck_deposit_requests_amount_positive"),
        Index("ix_deposit_requests_status_created", "status", "created_at"),
    )

    @property
    def status_enum(self) -> RequestStatus:
        return parse_status(RequestStatus, self.status, f"DepositRequest {self.id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": "deposit",
            "user_id": self.user_id,
            "amount": _money(self.amount),
            "amount_paid": _money(self.amount_paid),
            "fee_amount": _money(self.fee_amount),
            "phone_number": self.phone_number,
            "country": self.country,
            "payment_method": self.payment_method,
            "instapay_user": self.instapay_user,
            "receipt_image": self.receipt_image,
            "status": self.status,
            "admin_notes": self.admin_notes,
            "processed_by": self.processed_by,
            "processed_at": _iso(self.processed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<DepositRequest(id={self.id}, user_id={self.user_id}, status={self.status})>"


class WithdrawRequest(Base):
    """User submitted withdrawal awaiting admin review"""
    __tablename__ = "withdraw_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False, index=True)

    # amount leaves the wallet; amount_after_fee reaches the user
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    fee_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    amount_after_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    phone_number: Mapped[str] = mapped_column(String(20), nullable=False)
    country: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    instapay_user: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default=RequestStatus.PENDING.value, nullable=False)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    user: Mapped["User"] = relationship("User")

    __table_args__ = (
        CheckConstraint(f"status IN ({_in_clause(RequestStatus)})", name="ck_withdraw_requests_status_valid"),
        CheckConstraint("amount > 0", name="ck_withdraw_requests_amount_positive"),
        Index("ix_withdraw_requests_status_created", "status", "created_at"),
    )

    @property
    def status_enum(self) -> RequestStatus:
        return parse_status(RequestStatus, self.status, f"WithdrawRequest {self.id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": "withdraw",
            "user_id": self.user_id,
            "amount": _money(self.amount),
            "fee_amount": _money(self.fee_amount),
            "amount_after_fee": _money(self.amount_after_fee),
            "phone_number": self.phone_number,
            "country": self.country,
            "payment_method": self.payment_method,
            "instapay_user": self.instapay_user,
            "status": self.status,
            "admin_notes": self.admin_notes,
            "processed_by": self.processed_by,
            "processed_at": _iso(self.processed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<WithdrawRequest(id={self.id}, user_id={self.user_id}, status={self.status})>"


class WalletTransaction(Base):
    """Ledger row for every wallet balance change"""
    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)  # Signed
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reference_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    reference_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            f"transaction_type IN ({_in_clause(WalletTransactionType)})",
            name="ck_wallet_transactions_type_valid",
        ),
        Index("ix_wallet_transactions_user_created", "user_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.transaction_type,
            "amount": _money(self.amount),
            "description": self.description,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "created_at": _iso(self.created_at),
        }


class SupportTicket(Base):
    """Support ticket system"""
    __tablename__ = "support_tickets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(128), ForeignKey("users.id"), nullable=False)
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), default=TicketCategory.OTHER.value, nullable=False)
    priority: Mapped[str] = mapped_column(String(10), default=TicketPriority.MEDIUM.value, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TicketStatus.PENDING.value, nullable=False)
    order_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Admin handling
    admin_response: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=False), nullable=True)

    user: Mapped["User"] = relationship("User")

    __table_args__ = (
        CheckConstraint(f"status IN ({_in_clause(TicketStatus)})", name="ck_support_tickets_status_valid"),
        CheckConstraint(f"priority IN ({_in_clause(TicketPriority)})", name="ck_support_tickets_priority_valid"),
        CheckConstraint(f"category IN ({_in_clause(TicketCategory)})", name="ck_support_tickets_category_valid"),
        Index("ix_support_tickets_user", "user_id"),
        Index("ix_support_tickets_status", "status"),
        Index("ix_support_tickets_created", "created_at"),
    )

    @property
    def status_enum(self) -> TicketStatus:
        return parse_status(TicketStatus, self.status, f"SupportTicket {self.ticket_code}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ticket_code": self.ticket_code,
            "user_id": self.user_id,
            "subject": self.subject,
            "message": self.message,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "order_code": self.order_code,
            "admin_response": self.admin_response,
            "admin_notes": self.admin_notes,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "resolved_at": _iso(self.resolved_at),
        }

    def __repr__(self):
        return f"<SupportTicket(id={self.id}, user_id={self.user_id}, status={self.status})>"


class ChatMessage(Base):
    """Message in a deterministic two-party chat room"""
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[str] = mapped_column(String(300), nullable=False)
    # Not a foreign key: the support desk posts as a pseudo sender
    sender_id: Mapped[str] = mapped_column(String(128), nullable=False)
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    is_filtered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    filtered_reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    read_by: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_chat_messages_room_created", "room_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "sender_id": self.sender_id,
            "content": self.content,
            "is_filtered": self.is_filtered,
            "filtered_reason": self.filtered_reason,
            "read_by": list(self.read_by or []),
            "timestamp": _iso(self.created_at),
        }
