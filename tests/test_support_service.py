"""
Support tickets: creation, admin handling and the support chat reply
"""

import re

import pytest

from models import ChatMessage, TicketStatus
from services.chat_service import support_room_id
from services.support_service import SupportService
from utils.exception_handler import RecordNotFoundError, ValidationError

SUBJECT = "Seller never delivered"
MESSAGE = "I paid for the account two days ago and nothing has arrived yet."


class TestCreateTicket:
    def test_opens_pending_ticket(self, db_session, factory):
        user = factory.create_user("ticket-1")
        ticket = SupportService(db_session).create_ticket(
            user.id, SUBJECT, MESSAGE, category="order", priority="high", order_code="GV-123456-ABCDEF",
        )
        assert ticket.status == TicketStatus.PENDING.value
        assert re.fullmatch(r"ST-\d{4}-\w{8}", ticket.ticket_code)
        assert ticket.category == "order"
        assert ticket.priority == "high"
        assert ticket.order_code == "GV-123456-ABCDEF"

    @pytest.mark.parametrize("subject,message", [
        ("Hi", MESSAGE),
        (SUBJECT, "Too short"),
    ])
    def test_length_validation(self, db_session, factory, subject, message):
        user = factory.create_user("ticket-2")
        with pytest.raises(ValidationError):
            SupportService(db_session).create_ticket(user.id, subject, message)

    def test_unknown_priority(self, db_session, factory):
        user = factory.create_user("ticket-3")
        with pytest.raises(ValidationError, match="priority"):
            SupportService(db_session).create_ticket(user.id, SUBJECT, MESSAGE, priority="asap")

    def test_unknown_user(self, db_session):
        with pytest.raises(RecordNotFoundError):
            SupportService(db_session).create_ticket("ghost", SUBJECT, MESSAGE)


class TestAdminHandling:
    """Support desk workflow"""

    @pytest.fixture
    def ticket(self, db_session, factory):
        user = factory.create_user("ticket-user")
        return SupportService(db_session).create_ticket(user.id, SUBJECT, MESSAGE)

    def test_respond_posts_into_support_room(self, db_session, ticket):
        service = SupportService(db_session)
        updated = service.respond(ticket.id, "We contacted the seller.")

        assert updated.status == TicketStatus.IN_PROGRESS.value
        assert updated.admin_response == "We contacted the seller."
        message = db_session.query(ChatMessage).one()
        assert message.room_id == support_room_id("ticket-user") == "admin-support_ticket-user"
        assert message.sender_id == "admin-support"
        assert message.content == "Support Response: We contacted the seller."
        assert message.is_filtered is False

    def test_empty_response_rejected(self, db_session, ticket):
        with pytest.raises(ValidationError):
            SupportService(db_session).respond(ticket.id, "   ")

    def test_resolving_sets_resolved_at(self, db_session, ticket):
        service = SupportService(db_session)
        resolved = service.update_status(ticket.id, "resolved")
        assert resolved.resolved_at is not None
        reopened = service.update_status(ticket.id, "in_progress")
        assert reopened.resolved_at is None

    def test_invalid_status(self, db_session, ticket):
        with pytest.raises(ValidationError):
            SupportService(db_session).update_status(ticket.id, "archived")

    def test_notes(self, db_session, ticket):
        assert SupportService(db_session).update_admin_notes(ticket.id, " refund? ").admin_notes == "refund?"

    def test_listing_and_counts(self, db_session, factory, ticket):
        other = factory.create_user("ticket-other", display_name="Karim")
        service = SupportService(db_session)
        second = service.create_ticket(other.id, "Cannot log in", "The password I received does not work at all.")
        service.update_status(second.id, "closed")

        assert len(service.list_tickets()) == 2
        assert [row["id"] for row in service.list_tickets(status="pending")] == [ticket.id]
        assert [row["user"]["display_name"] for row in service.list_tickets(search="karim")] == ["Karim"]
        assert len(service.list_user_tickets(other.id)) == 1
        assert service.status_counts() == {"pending": 1, "in_progress": 0, "resolved": 0, "closed": 1}
