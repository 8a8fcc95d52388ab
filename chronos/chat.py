"""Send and share flows for one user's chat.

Sending persists the user's message first, then the model reply. Failures
become an ``Error: ...`` model turn plus a transient notification, so the
conversation history is never lost.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .accounts import User
from .context import ContextAssembler, PreparedRequest, UserContext
from .conversation.models import ChatMessage
from .conversation.storage import ConversationStore, derive_title, TITLE_PLACEHOLDER
from .errors import ChatBusyError, ChronosError
from .forum.models import ForumPost
from .forum.storage import ForumStore
from .i18n import DEFAULT_LANGUAGE, t

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 20


class Generator(Protocol):
    async def generate_response(self, prepared: PreparedRequest) -> str: ...


@dataclass
class Notification:
    title: str
    description: str
    variant: str = "destructive"


@dataclass
class SendResult:
    messages: list[ChatMessage]
    reply: Optional[ChatMessage] = None
    error: Optional[str] = None
    notifications: list[Notification] = field(default_factory=list)


@dataclass
class ShareDraft:
    conversation_id: str
    title: str
    content: str


class ChatService:
    def __init__(
        self,
        user: User,
        conversations: ConversationStore,
        forum: ForumStore,
        assembler: ContextAssembler,
        generator: Generator,
        lang: str = DEFAULT_LANGUAGE,
        in_flight: Optional[set[str]] = None,
    ) -> None:
        self.user = user
        self.conversations = conversations
        self.forum = forum
        self.assembler = assembler
        self.generator = generator
        self.lang = lang
        # Users with a generation request outstanding; may be shared between services.
        self._in_flight = in_flight if in_flight is not None else set()
        self.notifications: deque[Notification] = deque(maxlen=MAX_NOTIFICATIONS)

    @property
    def loading(self) -> bool:
        return self.user.id in self._in_flight

    def _notify(self, description: str) -> Notification:
        note = Notification(title=t("error", self.lang), description=description)
        self.notifications.append(note)
        return note

    async def _user_context(self, result: SendResult) -> Optional[UserContext]:
        try:
            return await self.assembler.gather(self.user.id, self.user.display_name)
        except ChronosError as e:
            logger.warning("Sending without user context for %s: %s", self.user.id, e.message)
            result.notifications.append(
                self._notify(f"{t('failedToLoadForumPosts', self.lang)}: {e.message}")
            )
            return None

    async def send(self, conversation_id: str, text: str) -> Optional[SendResult]:
        """Send *text* in *conversation_id*; None when there is nothing to send."""
        if not text.strip() or not conversation_id:
            return None
        if self.loading:
            raise ChatBusyError("A response is already being generated")

        self._in_flight.add(self.user.id)
        try:
            history = self.conversations.get_messages(self.user.id, conversation_id)
            result = SendResult(messages=history)
            user_context = await self._user_context(result)

            user_msg = ChatMessage(role="user", content=text.strip())
            pending = [*history, user_msg]
            self.conversations.append_messages(self.user.id, conversation_id, pending)

            try:
                prepared = self.assembler.assemble(pending, user_context)
                reply_text = await self.generator.generate_response(prepared)
            except ChronosError as e:
                error = e.message or t("unknownError", self.lang)
                logger.error("Generation failed for %s: %s", self.user.id, error)
                result.error = error
                result.notifications.append(
                    self._notify(f"{t('failedToGetResponse', self.lang)}: {error}")
                )
                reply = ChatMessage(role="model", content=f"Error: {error}")
            else:
                reply = ChatMessage(role="model", content=reply_text)

            result.reply = reply
            result.messages = [*pending, reply]
            self.conversations.append_messages(self.user.id, conversation_id, result.messages)
            return result
        finally:
            self._in_flight.discard(self.user.id)

    # ---- Share to forum ----

    def prepare_share(self, conversation_id: str) -> Optional[ShareDraft]:
        """Draft a post from the last model reply; None if there is none."""
        messages = self.conversations.get_messages(self.user.id, conversation_id)
        last_model = next((m for m in reversed(messages) if m.role == "model"), None)
        if last_model is None or not last_model.content.strip():
            return None
        title = derive_title(messages)
        if title == TITLE_PLACEHOLDER:
            title = t("defaultShareTitle", self.lang)
        return ShareDraft(conversation_id=conversation_id, title=title, content=last_model.content)

    def submit_share(self, draft: ShareDraft) -> Optional[ForumPost]:
        if not draft.title.strip() or not draft.content.strip():
            return None
        return self.forum.create_post(
            title=draft.title,
            content=draft.content,
            author_id=self.user.id,
            author_name=self.user.display_name,
        )
