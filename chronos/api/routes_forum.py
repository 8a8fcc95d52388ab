from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from ..accounts import User
from ..chat import ShareDraft
from ..forum.storage import ForumStore
from .deps import current_user
from .routes_chat import build_chat_service

router = APIRouter(prefix="/api/forum", tags=["forum"])


class ShareRequest(BaseModel):
    conversation_id: str
    title: Optional[str] = None


def _store(request: Request) -> ForumStore:
    return request.app.state.forum_store


@router.get("/posts")
async def list_posts(request: Request, author: Optional[str] = None):
    store = _store(request)
    posts = store.posts_by_author(author) if author else store.list_posts()
    return {"posts": [p.model_dump() for p in posts]}


@router.get("/share/{conv_id}")
async def share_draft(conv_id: str, request: Request, user: User = Depends(current_user)):
    """Prefill for the share dialog: the conversation's last model reply."""
    draft = build_chat_service(request, user).prepare_share(conv_id)
    if draft is None:
        raise HTTPException(status_code=404, detail="No model reply to share")
    return {"title": draft.title, "content": draft.content}


@router.post("/share")
async def share(req: ShareRequest, request: Request, user: User = Depends(current_user)):
    service = build_chat_service(request, user)
    draft = service.prepare_share(req.conversation_id)
    if draft is None:
        raise HTTPException(status_code=400, detail="No model reply to share")
    if req.title is not None:
        draft = ShareDraft(conversation_id=draft.conversation_id, title=req.title, content=draft.content)
    post = service.submit_share(draft)
    if post is None:
        raise HTTPException(status_code=400, detail="Post title must not be empty")
    return {"post": post.model_dump()}
