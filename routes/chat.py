"""
Chat routes: direct rooms between two users plus the support room
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from routes.dependencies import current_user_id, get_db
from services.chat_service import ChatService, support_room_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


class MessageBody(BaseModel):
    content: str


class DirectMessageBody(MessageBody):
    recipient_id: str


@router.get("/rooms")
def list_rooms(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    return {"ok": True, "rooms": ChatService(db).list_user_rooms(user_id)}


@router.post("/messages")
def send_message(body: DirectMessageBody, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    message = ChatService(db).send_message(user_id, body.recipient_id, body.content)
    return {"ok": True, "message": message.to_dict()}


@router.get("/support")
def get_support_room(user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    room_id = support_room_id(user_id)
    messages = ChatService(db).list_messages(room_id, participant_id=user_id)
    return {"ok": True, "room_id": room_id, "messages": [m.to_dict() for m in messages]}


@router.post("/support")
def message_support(body: MessageBody, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    message = ChatService(db).post_to_room(support_room_id(user_id), user_id, body.content)
    return {"ok": True, "message": message.to_dict()}


@router.get("/rooms/{room_id}/messages")
def list_messages(room_id: str, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    messages = ChatService(db).list_messages(room_id, participant_id=user_id)
    return {"ok": True, "messages": [m.to_dict() for m in messages]}


@router.post("/rooms/{room_id}/read")
def mark_read(room_id: str, user_id: str = Depends(current_user_id), db: Session = Depends(get_db)):
    return {"ok": True, "marked": ChatService(db).mark_read(room_id, user_id)}
