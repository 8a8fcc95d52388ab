from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ..accounts import User
from ..conversation.models import ChatMessage
from ..conversation.session import ChatSession
from ..conversation.storage import ConversationStore
from .deps import current_user

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


class ReplaceMessagesRequest(BaseModel):
    messages: list[ChatMessage]


def _store(request: Request) -> ConversationStore:
    return request.app.state.conversation_store


@router.get("")
async def list_conversations(request: Request, user: User = Depends(current_user)):
    metas = _store(request).list_conversations(user.id)
    return {"conversations": [m.model_dump() for m in metas]}


@router.post("")
async def create_conversation(request: Request, user: User = Depends(current_user)):
    conv_id = _store(request).create_conversation(user.id)
    return {"id": conv_id}


@router.post("/open")
async def open_session(request: Request, user: User = Depends(current_user)):
    """Pick the conversation to show first, creating one if the user has none."""
    session = ChatSession(_store(request), user.id)
    return {"active_id": session.open()}


@router.get("/{conv_id}")
async def get_conversation(conv_id: str, request: Request, user: User = Depends(current_user)):
    messages = _store(request).get_messages(user.id, conv_id)
    return {"id": conv_id, "messages": [m.model_dump() for m in messages]}


@router.put("/{conv_id}")
async def replace_messages(
    conv_id: str,
    req: ReplaceMessagesRequest,
    request: Request,
    user: User = Depends(current_user),
):
    _store(request).append_messages(user.id, conv_id, req.messages)
    return {"id": conv_id, "message_count": len(req.messages)}


@router.delete("/{conv_id}")
async def delete_conversation(
    conv_id: str,
    request: Request,
    active_id: Optional[str] = None,
    user: User = Depends(current_user),
):
    session = ChatSession(_store(request), user.id)
    if active_id:
        session.select(active_id)
    next_active = session.delete(conv_id)
    return {"status": "deleted", "active_id": next_active}
