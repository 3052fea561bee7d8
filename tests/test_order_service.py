"""
Escrow order lifecycle: purchase, delivery, confirmation and admin views
"""

from decimal import Decimal

import pytest

from models import AccountStatus, GameAccount, Order, OrderStatus, WalletTransaction
from services.order_service import OrderService, clean_account_details
from utils.exception_handler import (
    AcknowledgmentRequiredError, InsufficientBalanceError, InvalidStateTransitionError,
    PermissionDeniedError, RecordNotFoundError, ValidationError,
)

from tests.marketplace_test_foundation import ACCOUNT_DETAILS, ALL_DISCLAIMERS


@pytest.fixture
def parties(factory):
    buyer = factory.create_user("buyer-1", balance=Decimal("1000"), display_name="Buyer One")
    seller = factory.create_user("seller-1", display_name="Seller One")
    return buyer, seller


class TestPlaceOrder:
    """Buying a listing moves the price into escrow"""

    def test_debits_buyer_and_reserves_listing(self, db_session, factory, parties):
        buyer, seller = parties
        listing = factory.create_listing(seller, price=Decimal("300"))

        order = OrderService(db_session).place_order(buyer.id, listing.id)

        assert order.status == OrderStatus.ESCROW.value
        assert order.price == Decimal("300")
        assert order.escrow_amount == Decimal("300")
        assert order.account_details is None
        assert factory.reload_user(buyer.id).wallet_balance == Decimal("700")
        assert db_session.get(GameAccount, listing.id, populate_existing=True).status == AccountStatus.PENDING.value

        ledger = db_session.query(WalletTransaction).filter_by(user_id=buyer.id).one()
        assert ledger.transaction_type == "purchase"
        assert ledger.amount == Decimal("-300")
        assert ledger.reference_id == order.order_code

    def test_insufficient_balance(self, db_session, factory, parties):
        buyer, seller = parties
        listing = factory.create_listing(seller, price=Decimal("1500"))

        with pytest.raises(InsufficientBalanceError):
            OrderService(db_session).place_order(buyer.id, listing.id)

        assert factory.reload_user(buyer.id).wallet_balance == Decimal("1000")
        assert db_session.query(Order).count() == 0

    def test_cannot_buy_own_listing(self, db_session, factory, parties):
        _, seller = parties
        listing = factory.create_listing(seller)
        with pytest.raises(ValidationError, match="your own"):
            OrderService(db_session).place_order(seller.id, listing.id)

    def test_listing_sold_only_once(self, db_session, factory, parties):
        buyer, seller = parties
        other = factory.create_user("buyer-2", balance=Decimal("1000"))
        listing = factory.create_listing(seller)
        service = OrderService(db_session)
        service.place_order(buyer.id, listing.id)

        with pytest.raises(ValidationError, match="no longer available"):
            service.place_order(other.id, listing.id)
        assert factory.reload_user(other.id).wallet_balance == Decimal("1000")

    def test_disabled_buyer(self, db_session, factory, parties):
        _, seller = parties
        buyer = factory.create_user("blocked-1", balance=Decimal("1000"), is_disabled=True)
        listing = factory.create_listing(seller)
        with pytest.raises(PermissionDeniedError):
            OrderService(db_session).place_order(buyer.id, listing.id)

    def test_missing_listing(self, db_session, parties):
        buyer, _ = parties
        with pytest.raises(RecordNotFoundError):
            OrderService(db_session).place_order(buyer.id, 999)


class TestAccountDetails:
    """Seller delivers credentials: escrow -> delivering"""

    def test_clean_details_drops_blank_optionals(self):
        cleaned = clean_account_details({**ACCOUNT_DETAILS, "recovery_email": "  ", "additional_info": " 2FA off "})
        assert cleaned == {**ACCOUNT_DETAILS, "additional_info": "2FA off"}

    def test_blank_required_field_rejected_without_write(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller)
        with pytest.raises(ValidationError, match="Password"):
            OrderService(db_session).add_account_details(order.id, seller.id, {**ACCOUNT_DETAILS, "password": "   "})
        refreshed = OrderService(db_session).get_order(order.id, refresh=True)
        assert refreshed.status == OrderStatus.ESCROW.value
        assert refreshed.account_details is None

    def test_seller_delivers(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller)
        order = OrderService(db_session).add_account_details(order.id, seller.id, ACCOUNT_DETAILS)
        assert order.status == OrderStatus.DELIVERING.value
        assert order.account_details == ACCOUNT_DETAILS
        assert order.delivered_at is not None

    def test_only_seller_delivers(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller)
        with pytest.raises(PermissionDeniedError):
            OrderService(db_session).add_account_details(order.id, buyer.id, ACCOUNT_DETAILS)

    def test_cannot_deliver_twice(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller, stage="delivering")
        with pytest.raises(InvalidStateTransitionError):
            OrderService(db_session).add_account_details(order.id, seller.id, ACCOUNT_DETAILS)

    def test_credentials_visible_to_parties_only(self, db_session, factory, parties):
        buyer, seller = parties
        outsider = factory.create_user("outsider-1")
        order = factory.create_order(buyer, seller)
        service = OrderService(db_session)

        with pytest.raises(RecordNotFoundError):
            service.get_credentials(order.id, buyer.id)
        service.add_account_details(order.id, seller.id, ACCOUNT_DETAILS)
        assert service.get_credentials(order.id, buyer.id)["password"] == ACCOUNT_DETAILS["password"]
        with pytest.raises(PermissionDeniedError):
            service.get_credentials(order.id, outsider.id)


class TestConfirmOrder:
    """Buyer releases escrow to the seller"""

    def test_requires_every_disclaimer(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller, stage="awaiting_confirmation")
        with pytest.raises(AcknowledgmentRequiredError) as exc_info:
            OrderService(db_session).confirm_order(order.id, buyer.id, ALL_DISCLAIMERS[:-1])
        assert exc_info.value.missing == ALL_DISCLAIMERS[-1:]
        assert OrderService(db_session).get_order(order.id, refresh=True).status == OrderStatus.AWAITING_CONFIRMATION.value
        assert factory.reload_user(seller.id).wallet_balance == Decimal("0")

    def test_releases_funds_and_updates_levels(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller, price=Decimal("600"), stage="awaiting_confirmation")

        order = OrderService(db_session).confirm_order(order.id, buyer.id, ALL_DISCLAIMERS)

        assert order.status == OrderStatus.COMPLETED.value
        assert order.completed_at is not None
        seller_row = factory.reload_user(seller.id)
        buyer_row = factory.reload_user(buyer.id)
        assert seller_row.wallet_balance == Decimal("600")
        assert buyer_row.wallet_balance == Decimal("400")
        assert seller_row.total_trades == 1 and buyer_row.total_trades == 1
        assert seller_row.total_transaction_value == Decimal("600")
        # 600 passes the 500 threshold of level 2
        assert seller_row.account_level == 2
        assert buyer_row.account_level == 2
        listing = db_session.get(GameAccount, order.account_id, populate_existing=True)
        assert listing.status == AccountStatus.SOLD.value
        sale = db_session.query(WalletTransaction).filter_by(user_id=seller.id, transaction_type="sale").one()
        assert sale.amount == Decimal("600")

    def test_confirm_straight_from_delivering(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller, stage="delivering")
        order = OrderService(db_session).confirm_order(order.id, buyer.id, ALL_DISCLAIMERS)
        assert order.status == OrderStatus.COMPLETED.value

    def test_cannot_confirm_in_escrow(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller)
        with pytest.raises(InvalidStateTransitionError):
            OrderService(db_session).confirm_order(order.id, buyer.id, ALL_DISCLAIMERS)

    def test_double_confirmation_pays_once(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller, price=Decimal("250"), stage="completed")

        with pytest.raises(InvalidStateTransitionError):
            OrderService(db_session).confirm_order(order.id, buyer.id, ALL_DISCLAIMERS)

        assert factory.reload_user(seller.id).wallet_balance == Decimal("250")
        assert db_session.query(WalletTransaction).filter_by(transaction_type="sale").count() == 1

    def test_stale_copy_loses_race(self, db_session, factory, parties):
        """A second confirmation working from an outdated status still fails"""
        buyer, seller = parties
        order = factory.create_order(buyer, seller, stage="awaiting_confirmation")
        service = OrderService(db_session)
        stale = Order(id=order.id, order_code=order.order_code, status=OrderStatus.AWAITING_CONFIRMATION.value)
        service.confirm_order(order.id, buyer.id, ALL_DISCLAIMERS)

        with pytest.raises(InvalidStateTransitionError):
            service._advance(stale, OrderStatus.COMPLETED)
        db_session.rollback()
        assert factory.reload_user(seller.id).wallet_balance == Decimal("250")

    def test_only_buyer_confirms(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller, stage="awaiting_confirmation")
        with pytest.raises(PermissionDeniedError):
            OrderService(db_session).confirm_order(order.id, seller.id, ALL_DISCLAIMERS)


class TestOrderQueries:
    def test_list_user_orders_by_role(self, db_session, factory, parties):
        buyer, seller = parties
        factory.create_order(buyer, seller, price=Decimal("100"))
        factory.create_order(buyer, seller, price=Decimal("200"))
        service = OrderService(db_session)

        assert len(service.list_user_orders(buyer.id)) == 2
        assert len(service.list_user_orders(buyer.id, "buyer")) == 2
        assert service.list_user_orders(buyer.id, "seller") == []
        assert len(service.list_user_orders(seller.id, "seller")) == 2
        with pytest.raises(ValidationError):
            service.list_user_orders(buyer.id, "broker")

    def test_pending_money_excludes_completed(self, db_session, factory, parties):
        buyer, seller = parties
        factory.create_order(buyer, seller, price=Decimal("100"))
        factory.create_order(buyer, seller, price=Decimal("150"), stage="delivering")
        factory.create_order(buyer, seller, price=Decimal("200"), stage="completed")
        service = OrderService(db_session)

        rows = service.list_pending_money()
        assert {row["price"] for row in rows} == {"100.00", "150.00"}
        assert rows[0]["buyer_name"] == "Buyer One"
        assert service.pending_money_total() == Decimal("250.00")
        assert len(service.list_pending_money(status="delivering")) == 1

    def test_pending_money_search(self, db_session, factory, parties):
        buyer, seller = parties
        order = factory.create_order(buyer, seller)
        service = OrderService(db_session)
        assert len(service.list_pending_money(search=order.order_code.lower())) == 1
        assert len(service.list_pending_money(search="seller one")) == 1
        assert service.list_pending_money(search="nobody") == []

    def test_pending_money_total_empty(self, db_session):
        assert OrderService(db_session).pending_money_total() == Decimal("0.00")
