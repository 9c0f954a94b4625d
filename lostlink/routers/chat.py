import uuid
from typing import Literal
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlmodel import Session

from lostlink.db.db import get_session
from lostlink.db.repositories import ChatRepository, MatchRepository
from lostlink.models.chat_message import ChatMessage
from lostlink.utils.auth_helper import get_current_user_id


router = APIRouter()
inbox_router = APIRouter()

NEW_MESSAGE_EVENT = "new_message"
MESSAGE_STATUS_EVENT = "message_status_updated"


class ChatMessageCreateRequest(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class MessageStatusUpdateRequest(BaseModel):
    status: Literal["delivered", "read"]


def get_match_for_party(session: Session, match_id: uuid.UUID, user_id: str):
    match = MatchRepository(session).find_by_id(match_id)
    if not match:
        raise HTTPException(status_code=404, detail="Match not found")

    if not match.is_party(user_id):
        raise HTTPException(status_code=403, detail="Not a participant of this chat")

    return match


@router.get("/{match_id}/messages")
async def get_messages(
    match_id: uuid.UUID,
    limit: int = 100,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    get_match_for_party(session, match_id, user_id)

    messages = ChatRepository(session).find_for_match(match_id, limit=limit)

    return {"messages": messages}


@router.post("/{match_id}/messages")
async def send_message(
    match_id: uuid.UUID,
    payload: ChatMessageCreateRequest,
    request: Request,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    match = get_match_for_party(session, match_id, user_id)

    receiver_id = match.user_id2 if user_id == match.user_id1 else match.user_id1

    message = ChatRepository(session).create(ChatMessage(
        match_id=match.id,
        sender_id=user_id,
        receiver_id=receiver_id,
        content=payload.content.strip(),
    ))

    await request.app.state.realtime.publish(
        receiver_id, NEW_MESSAGE_EVENT, message.model_dump(mode="json")
    )

    return {"message": message}


@router.patch("/{match_id}/messages/{message_id}/status")
async def update_message_status(
    match_id: uuid.UUID,
    message_id: uuid.UUID,
    payload: MessageStatusUpdateRequest,
    request: Request,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    get_match_for_party(session, match_id, user_id)

    chats = ChatRepository(session)

    message = chats.find_by_id(message_id)
    if not message or message.match_id != match_id:
        raise HTTPException(status_code=404, detail="Message not found")

    # only the receiver acknowledges delivery or reading
    if message.receiver_id != user_id:
        raise HTTPException(status_code=403, detail="Only the receiver can update message status")

    message = chats.update_status(message_id, payload.status)

    await request.app.state.realtime.publish(
        message.sender_id,
        MESSAGE_STATUS_EVENT,
        {"message_id": str(message.id), "match_id": str(match_id), "status": message.status},
    )

    return {"message": message}


@inbox_router.get("/")
async def get_my_chats(
    request: Request,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    conversations = ChatRepository(session).find_conversations(user_id)

    for conversation in conversations:
        conversation["is_online"] = request.app.state.realtime.is_online(conversation["other_user_id"])

    return {"chats": conversations}
