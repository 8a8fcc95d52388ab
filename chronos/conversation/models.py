import time
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["user", "model"]


def now_ms() -> int:
    return int(time.time() * 1000)


class ChatMessage(BaseModel):
    role: Role
    content: str
    created_at: int = Field(default_factory=now_ms)  # epoch milliseconds


class ConversationRecord(BaseModel):
    """What is stored per conversation id."""

    created_at: int = Field(default_factory=now_ms)
    messages: list[ChatMessage] = []


class ConversationMeta(BaseModel):
    """Sidebar entry, rebuilt from the stored messages on every read."""

    id: str
    title: str
    updated_at: int
