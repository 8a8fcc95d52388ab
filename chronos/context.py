"""Builds the message sequence sent to the model.

The user's own forum posts are summarized into one instruction message that is
placed in front of the conversation, so the model keeps them in mind.
"""

import re
from dataclasses import dataclass
from typing import Optional

from google.genai import types
from pydantic import BaseModel

from .conversation.models import ChatMessage
from .errors import InvalidRequestError
from .forum.client import ForumSource
from .i18n import DEFAULT_LANGUAGE, t

SNIPPET_MAX_CHARS = 150
SNIPPET_MARKER = "..."
MAX_CONTEXT_POSTS = 10

_WHITESPACE = re.compile(r"\s+")


class UserContext(BaseModel):
    user_id: str
    name: str
    forum_posts: list[str] = []  # post contents


@dataclass
class PreparedRequest:
    prompt: types.Content
    history: list[types.Content]

    @property
    def prompt_text(self) -> str:
        return "".join(part.text or "" for part in self.prompt.parts or [])

    @property
    def contents(self) -> list[types.Content]:
        return [*self.history, self.prompt]


def snippet(content: str) -> str:
    if len(content) > SNIPPET_MAX_CHARS:
        return content[:SNIPPET_MAX_CHARS] + SNIPPET_MARKER
    return content


def to_content(message: ChatMessage) -> types.Content:
    return types.Content(role=message.role, parts=[types.Part(text=message.content)])


def build_context_message(ctx: UserContext, lang: str = DEFAULT_LANGUAGE) -> types.Content:
    """One ``user`` message describing who is talking, whitespace collapsed."""
    snippets = "\n".join(f'- "{snippet(p)}"' for p in ctx.forum_posts[:MAX_CONTEXT_POSTS])
    text = (
        "---\n"
        f"{t('contextHeader', lang)}\n"
        f"- {t('contextUserId', lang)} {ctx.user_id}\n"
        f"- {t('contextUserName', lang)} {ctx.name}\n"
        f"- {t('contextPosts', lang)}\n"
        f"{snippets or t('noForumPosts', lang)}\n"
        "---"
    )
    return types.Content(
        role="user",
        parts=[types.Part(text=_WHITESPACE.sub(" ", text).strip())],
    )


class ContextAssembler:
    def __init__(self, forum: Optional[ForumSource] = None, lang: str = DEFAULT_LANGUAGE) -> None:
        self.forum = forum
        self.lang = lang

    async def gather(self, user_id: str, name: str) -> Optional[UserContext]:
        """Collect the user's forum snippets.

        Raises ``ForumUnavailableError`` when the forum cannot be read; callers
        treat the context as optional and send without it.
        """
        if self.forum is None:
            return None
        posts = await self.forum.fetch_posts(user_id)
        return UserContext(
            user_id=user_id,
            name=name,
            forum_posts=[p.content for p in posts],
        )

    def assemble(
        self, messages: list[ChatMessage], user_context: Optional[UserContext] = None
    ) -> PreparedRequest:
        filtered = [m for m in messages if m.content.strip()]
        if not filtered:
            raise InvalidRequestError(t("noValidMessages", self.lang))

        contents = [to_content(m) for m in filtered]
        if user_context is not None:
            contents.insert(0, build_context_message(user_context, self.lang))

        return PreparedRequest(prompt=contents[-1], history=contents[:-1])
