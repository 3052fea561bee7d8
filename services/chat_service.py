"""
Chat Service - two-party rooms with contact-information filtering
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import ChatMessage
from services.user_service import UserService
from utils.atomic_transactions import atomic_transaction
from utils.exception_handler import PermissionDeniedError, ValidationError
from utils.helpers import SUPPORT_SENDER_ID, chat_room_id
from utils.input_validation import InputValidator

logger = logging.getLogger(__name__)

FILTERED_REASON = "Contact information detected"


def support_room_id(user_id: str) -> str:
    """Support desk room for a user; the desk id always comes first"""
    return f"{SUPPORT_SENDER_ID}_{user_id}"


def room_participants(room_id: str) -> List[str]:
    return room_id.split("_")


class ChatService:
    """Stores chat messages and derives per-user room summaries"""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserService(db)

    def send_message(self, sender_id: str, recipient_id: str, content: str) -> ChatMessage:
        """Send to the room shared by sender and recipient; both must be registered"""
        if sender_id == recipient_id:
            raise ValidationError("You cannot message yourself")
        self.users.require_active_user(sender_id)
        self.users.get_user(recipient_id)
        return self.post_to_room(chat_room_id(sender_id, recipient_id), sender_id, content)

    def post_to_room(self, room_id: str, sender_id: str, content: str, filter_contact: bool = True) -> ChatMessage:
        """
        Validate and store a message.

        Messages that look like an attempt to share contact details are still
        stored, but flagged so the UI can hide them and admins can review.
        """
        content = InputValidator.validate_chat_message(content)
        if sender_id not in room_participants(room_id):
            raise PermissionDeniedError("You are not a participant of this chat")

        is_filtered = filter_contact and InputValidator.contains_contact_info(content)
        with atomic_transaction(self.db):
            message = ChatMessage(
                room_id=room_id,
                sender_id=sender_id,
                content=content,
                is_filtered=is_filtered,
                filtered_reason=FILTERED_REASON if is_filtered else None,
                read_by=[sender_id],
            )
            self.db.add(message)

        if is_filtered:
            logger.warning(f"🚫 CHAT_FILTERED: room={room_id} sender={sender_id}")
        else:
            logger.info(f"💬 CHAT_MESSAGE: room={room_id} sender={sender_id}")
        return message

    def send_support_reply(self, user_id: str, response: str) -> ChatMessage:
        """Post an admin answer into the user's support room"""
        return self.post_to_room(
            support_room_id(user_id),
            SUPPORT_SENDER_ID,
            f"Support Response: {response.strip()}",
            filter_contact=False,
        )

    def list_messages(self, room_id: str, participant_id: Optional[str] = None) -> List[ChatMessage]:
        """Messages oldest first; a room with no messages is simply empty"""
        if participant_id is not None and participant_id not in room_participants(room_id):
            raise PermissionDeniedError("You are not a participant of this chat")
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.room_id == room_id)
            .order_by(ChatMessage.created_at, ChatMessage.id)
        )
        return list(self.db.scalars(stmt))

    def mark_read(self, room_id: str, user_id: str) -> int:
        """Mark every message in the room as read by ``user_id``; returns how many changed"""
        if user_id not in room_participants(room_id):
            raise PermissionDeniedError("You are not a participant of this chat")

        changed = 0
        with atomic_transaction(self.db):
            for message in self.list_messages(room_id):
                readers = list(message.read_by or [])
                if user_id not in readers:
                    # Reassign so the JSON column change is detected
                    message.read_by = readers + [user_id]
                    changed += 1
        return changed

    def list_user_rooms(self, user_id: str) -> List[Dict[str, Any]]:
        """Rooms the user participates in, most recently active first"""
        room_ids = self.db.scalars(
            select(ChatMessage.room_id).where(ChatMessage.room_id.contains(user_id)).distinct()
        )

        rooms = []
        for room_id in room_ids:
            participants = room_participants(room_id)
            if user_id not in participants:
                continue
            messages = self.list_messages(room_id)
            last_message = messages[-1] if messages else None
            unread = sum(
                1 for m in messages
                if m.sender_id != user_id and user_id not in (m.read_by or [])
            )
            rooms.append({
                "room_id": room_id,
                "participants": participants,
                "other_participant": next((p for p in participants if p != user_id), user_id),
                "last_message": last_message.to_dict() if last_message else None,
                "unread_count": unread,
                "_sort_key": (last_message.created_at, last_message.id) if last_message else None,
            })

        rooms.sort(key=lambda r: r["_sort_key"], reverse=True)
        for room in rooms:
            room.pop("_sort_key")
        return rooms
