"""
Two-party chat rooms, contact filtering and read tracking
"""

import pytest

from services.chat_service import FILTERED_REASON, ChatService, room_participants, support_room_id
from utils.exception_handler import PermissionDeniedError, RecordNotFoundError, ValidationError


@pytest.fixture(autouse=True)
def participants(factory):
    return [factory.create_user(uid) for uid in ("alice", "bob", "carol")]


class TestSendMessage:
    def test_room_shared_by_both_participants(self, db_session):
        service = ChatService(db_session)
        first = service.send_message("bob", "alice", "Is the account still for sale?")
        reply = service.send_message("alice", "bob", "Yes it is")
        assert first.room_id == reply.room_id == "alice_bob"
        assert first.read_by == ["bob"]

    def test_contact_info_flagged_but_stored(self, db_session):
        message = ChatService(db_session).send_message("bob", "alice", "add me on whatsapp")
        assert message.id is not None
        assert message.is_filtered is True
        assert message.filtered_reason == FILTERED_REASON

    def test_cannot_message_self(self, db_session):
        with pytest.raises(ValidationError):
            ChatService(db_session).send_message("bob", "bob", "hello")

    def test_message_length(self, db_session):
        with pytest.raises(ValidationError):
            ChatService(db_session).send_message("bob", "alice", "x" * 501)

    def test_outsider_cannot_post(self, db_session):
        with pytest.raises(PermissionDeniedError):
            ChatService(db_session).post_to_room("alice_bob", "eve", "hi")

    def test_unknown_recipient_rejected(self, db_session):
        with pytest.raises(RecordNotFoundError):
            ChatService(db_session).send_message("bob", "nobody", "hi")
        assert ChatService(db_session).list_messages("bob_nobody") == []

    def test_unknown_sender_rejected(self, db_session):
        with pytest.raises(RecordNotFoundError):
            ChatService(db_session).send_message("ghost", "alice", "hi")

    def test_disabled_sender_rejected(self, db_session, factory):
        factory.create_user("mallory", is_disabled=True)
        with pytest.raises(PermissionDeniedError):
            ChatService(db_session).send_message("mallory", "alice", "hi")


class TestReading:
    def test_list_and_mark_read(self, db_session):
        service = ChatService(db_session)
        service.send_message("bob", "alice", "first")
        service.send_message("bob", "alice", "second")

        messages = service.list_messages("alice_bob", participant_id="alice")
        assert [m.content for m in messages] == ["first", "second"]
        assert service.mark_read("alice_bob", "alice") == 2
        assert service.mark_read("alice_bob", "alice") == 0
        assert all("alice" in m.read_by for m in service.list_messages("alice_bob"))

    def test_outsider_cannot_read(self, db_session):
        with pytest.raises(PermissionDeniedError):
            ChatService(db_session).list_messages("alice_bob", participant_id="eve")

    def test_empty_room_is_empty(self, db_session):
        assert ChatService(db_session).list_messages("alice_bob") == []

    def test_user_rooms_summary(self, db_session):
        service = ChatService(db_session)
        service.send_message("bob", "alice", "hello alice")
        service.send_message("carol", "alice", "hello from carol")
        service.send_message("alice", "bob", "hi bob")

        rooms = service.list_user_rooms("alice")
        assert [room["room_id"] for room in rooms] == ["alice_bob", "alice_carol"]
        assert rooms[0]["other_participant"] == "bob"
        assert rooms[0]["last_message"]["content"] == "hi bob"
        assert rooms[0]["unread_count"] == 1
        assert rooms[1]["unread_count"] == 1
        assert service.list_user_rooms("dave") == []


class TestSupportRoom:
    def test_support_room_layout(self):
        assert support_room_id("user-9") == "admin-support_user-9"
        assert room_participants("admin-support_user-9") == ["admin-support", "user-9"]

    def test_support_reply_skips_filter(self, db_session):
        message = ChatService(db_session).send_support_reply("user-9", "email us at help@example.com")
        assert message.is_filtered is False
        assert message.content.startswith("Support Response: ")
