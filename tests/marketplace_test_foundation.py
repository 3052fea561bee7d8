"""
Shared test data for the marketplace suites: valid payloads and a record
factory that goes through the services where the flow matters.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from models import (
    AccountStatus, DepositRequest, GameAccount, RequestStatus, User, WithdrawRequest,
)
from services.order_service import OrderService
from utils.order_state_machine import ORDER_CONFIRMATION_DISCLAIMERS

VALID_PHONE = "+201012345678"

FIFA_DATA = {
    "platform": "PS5",
    "coins": 500000,
    "level": 80,
    "overallRating": 90,
    "region": "EU",
}

LISTING_DESCRIPTION = "Well kept account with rare players, full squad and plenty of coins saved up."

ACCOUNT_DETAILS = {
    "username": "pro_player",
    "password": "s3cret-pass",
    "email": "pro.player@example.com",
}

ALL_DISCLAIMERS = list(ORDER_CONFIRMATION_DISCLAIMERS)


class TestDataFactory:
    """Factory for creating test database records"""

    __test__ = False

    def __init__(self, session):
        self.session = session
        self._user_counter = 0

    def create_user(self,
                    user_id: Optional[str] = None,
                    balance: Decimal = Decimal("0"),
                    display_name: Optional[str] = None,
                    is_disabled: bool = False) -> User:
        self._user_counter += 1
        user_id = user_id or f"user-{self._user_counter}"
        handle = user_id.replace("-", "_")
        user = User(
            id=user_id,
            username=handle[:20],
            email=f"{handle}@example.com",
            display_name=display_name or f"Player {self._user_counter}",
            wallet_balance=Decimal(str(balance)),
            account_level=1,
            total_transaction_value=Decimal("0"),
            is_disabled=is_disabled,
        )
        self.session.add(user)
        self.session.commit()
        return user

    def create_listing(self,
                       seller: User,
                       price: Decimal = Decimal("250"),
                       title: str = "Ultimate Team account with icons",
                       game: str = "fifa",
                       game_data: Optional[Dict[str, Any]] = None,
                       status: str = AccountStatus.ACTIVE.value) -> GameAccount:
        listing = GameAccount(
            seller_id=seller.id,
            game=game,
            title=title,
            description=LISTING_DESCRIPTION,
            price=Decimal(str(price)),
            game_data=dict(game_data if game_data is not None else FIFA_DATA),
            images=[],
            status=status,
        )
        self.session.add(listing)
        self.session.commit()
        return listing

    def create_order(self, buyer: User, seller: User, price: Decimal = Decimal("250"), stage: str = "escrow"):
        """Place an order through the service and advance it to ``stage``"""
        listing = self.create_listing(seller, price=price)
        service = OrderService(self.session)
        order = service.place_order(buyer.id, listing.id)
        if stage in ("delivering", "awaiting_confirmation", "completed"):
            order = service.add_account_details(order.id, seller.id, ACCOUNT_DETAILS)
        if stage in ("awaiting_confirmation", "completed"):
            order = service.mark_awaiting_confirmation(order.id, buyer.id)
        if stage == "completed":
            order = service.confirm_order(order.id, buyer.id, ALL_DISCLAIMERS)
        return order

    def create_deposit_request(self,
                               user: User,
                               amount: Decimal = Decimal("95"),
                               status: str = RequestStatus.PENDING.value) -> DepositRequest:
        request = DepositRequest(
            user_id=user.id,
            amount=Decimal(str(amount)),
            amount_paid=Decimal(str(amount)),
            fee_amount=Decimal("0"),
            phone_number=VALID_PHONE,
            country="Egypt",
            payment_method="instapay",
            instapay_user="player@instapay",
            status=status,
        )
        self.session.add(request)
        self.session.commit()
        return request

    def create_withdraw_request(self,
                                user: User,
                                amount: Decimal = Decimal("100"),
                                status: str = RequestStatus.PENDING.value) -> WithdrawRequest:
        amount = Decimal(str(amount))
        request = WithdrawRequest(
            user_id=user.id,
            amount=amount,
            fee_amount=Decimal("0"),
            amount_after_fee=amount,
            phone_number=VALID_PHONE,
            country="Egypt",
            payment_method="vodafone_cash",
            status=status,
        )
        self.session.add(request)
        self.session.commit()
        return request

    def reload_user(self, user_id: str) -> User:
        return self.session.get(User, user_id, populate_existing=True)
