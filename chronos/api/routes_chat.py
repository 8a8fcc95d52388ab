from dataclasses import asdict

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from ..accounts import User
from ..chat import ChatService
from ..context import ContextAssembler
from ..forum.client import ForumClient, ForumSource, LocalForumSource
from ..llm.gemini_client import GeminiClient
from ..settings import Settings
from .deps import current_user, forwarded_auth_headers, get_config

router = APIRouter(prefix="/api/chat", tags=["chat"])

# Base URL for calling this app's own proxy route in-process.
_INTERNAL_BASE = "http://chronos.internal"


class SendRequest(BaseModel):
    conversation_id: str
    content: str


def build_gemini_client(request: Request, settings: Settings) -> GeminiClient:
    config = get_config(request)
    if config.proxy_url:
        return GeminiClient(
            settings,
            config.proxy_url,
            headers=forwarded_auth_headers(request),
            timeout=config.upstream_timeout + 5,
            transport=request.app.state.proxy_transport,
        )
    return GeminiClient(
        settings,
        f"{_INTERNAL_BASE}/api/gemini",
        headers=forwarded_auth_headers(request),
        timeout=config.upstream_timeout + 5,
        transport=httpx.ASGITransport(app=request.app),
    )


def build_forum_source(request: Request) -> ForumSource:
    config = get_config(request)
    if config.forum_url:
        return ForumClient(config.forum_url)
    return LocalForumSource(request.app.state.forum_store)


def build_chat_service(request: Request, user: User) -> ChatService:
    state = request.app.state
    settings = state.settings_store.get()
    lang = settings.default_response_language
    return ChatService(
        user=user,
        conversations=state.conversation_store,
        forum=state.forum_store,
        assembler=ContextAssembler(build_forum_source(request), lang=lang),
        generator=build_gemini_client(request, settings),
        lang=lang,
        in_flight=state.in_flight,
    )


@router.post("/send")
async def send_message(req: SendRequest, request: Request, user: User = Depends(current_user)):
    service = build_chat_service(request, user)
    result = await service.send(req.conversation_id, req.content)
    if result is None:
        raise HTTPException(status_code=400, detail="Nothing to send")
    return {
        "conversation_id": req.conversation_id,
        "messages": [m.model_dump() for m in result.messages],
        "reply": result.reply.model_dump() if result.reply else None,
        "error": result.error,
        "notifications": [asdict(n) for n in result.notifications],
    }
