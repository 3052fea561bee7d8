"""
Admin dashboard headline figures
"""

from decimal import Decimal

from services.admin_statistics import AdminStatisticsService
from services.support_service import SupportService
from services.wallet_service import WalletService


class TestDashboardStatistics:
    def test_empty_database(self, db_session):
        stats = AdminStatisticsService(db_session).get_dashboard_statistics()
        assert stats["total_users"] == 0
        assert stats["total_revenue"] == Decimal("0.00")
        assert stats["pending_money"] == Decimal("0.00")

    def test_counts_and_totals(self, db_session, factory):
        buyer = factory.create_user("stat-buyer", balance=Decimal("1000"))
        seller = factory.create_user("stat-seller")
        approved = factory.create_deposit_request(buyer, amount=Decimal("95"))
        factory.create_deposit_request(buyer, amount=Decimal("190"))
        factory.create_withdraw_request(buyer, amount=Decimal("50"))
        WalletService(db_session).approve_deposit(approved.id)
        factory.create_order(buyer, seller, price=Decimal("120"))
        factory.create_order(buyer, seller, price=Decimal("80"), stage="completed")
        SupportService(db_session).create_ticket(
            buyer.id, "Where is my account", "The seller has not sent the login details yet.",
        )

        stats = AdminStatisticsService(db_session).get_dashboard_statistics()

        assert stats["total_users"] == 2
        assert stats["total_deposits"] == 2
        assert stats["pending_deposits"] == 1
        assert stats["total_withdrawals"] == 1
        assert stats["pending_withdrawals"] == 1
        assert stats["pending_tickets"] == 1
        assert stats["total_orders"] == 2
        assert stats["total_revenue"] == Decimal("95.00")
        assert stats["pending_money"] == Decimal("120.00")
