import logging
import re
import uuid
from typing import Iterable, Optional

from pydantic import ValidationError

from ..storage import CHATS_KEY_PREFIX, KeyValueStore, read_json, write_json
from .models import ChatMessage, ConversationMeta, ConversationRecord, now_ms

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 40
TITLE_PLACEHOLDER = "New chat"
ELLIPSIS = "…"

_WHITESPACE = re.compile(r"\s+")


def derive_title(messages: Iterable[ChatMessage]) -> str:
    """Short title from the first user message."""
    first_user = next((m for m in messages if m.role == "user"), None)
    if first_user is None:
        return TITLE_PLACEHOLDER
    raw = _WHITESPACE.sub(" ", first_user.content.strip())
    if len(raw) > TITLE_MAX_CHARS:
        return raw[:TITLE_MAX_CHARS] + ELLIPSIS
    return raw


def last_updated(record: ConversationRecord) -> int:
    if record.messages:
        return record.messages[-1].created_at
    return record.created_at


def new_id() -> str:
    return uuid.uuid4().hex[:12]


class ConversationStore:
    """Per-user conversations, all of a user's chats under one key."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def _key(self, user_id: str) -> str:
        return CHATS_KEY_PREFIX + user_id

    def _load(self, user_id: str) -> dict[str, ConversationRecord]:
        raw = read_json(self.kv, self._key(user_id), default={}, expect=dict)
        store: dict[str, ConversationRecord] = {}
        for conv_id, value in raw.items():
            # Older data stored the bare message list without a creation time.
            if isinstance(value, list):
                value = {"created_at": 0, "messages": value}
            try:
                store[conv_id] = ConversationRecord(**value)
            except (TypeError, ValidationError):
                logger.warning("Dropping unreadable conversation %s for %s", conv_id, user_id)
        return store

    def _save(self, user_id: str, store: dict[str, ConversationRecord]) -> None:
        write_json(
            self.kv,
            self._key(user_id),
            {conv_id: record.model_dump() for conv_id, record in store.items()},
        )

    # ---- Reads ----

    def list_conversations(self, user_id: str) -> list[ConversationMeta]:
        """Sidebar metadata, most recently updated first."""
        store = self._load(user_id)
        metas = [
            ConversationMeta(
                id=conv_id,
                title=derive_title(record.messages),
                updated_at=last_updated(record),
            )
            for conv_id, record in store.items()
        ]
        metas.sort(key=lambda m: m.updated_at, reverse=True)
        return metas

    def get_messages(self, user_id: str, conversation_id: str) -> list[ChatMessage]:
        record = self._load(user_id).get(conversation_id)
        if record is None:
            return []
        return list(record.messages)

    def exists(self, user_id: str, conversation_id: str) -> bool:
        return conversation_id in self._load(user_id)

    # ---- Writes ----

    def create_conversation(self, user_id: str) -> str:
        store = self._load(user_id)
        conv_id = new_id()
        while conv_id in store:
            conv_id = new_id()
        store[conv_id] = ConversationRecord(created_at=now_ms())
        self._save(user_id, store)
        logger.info("Created conversation %s for %s", conv_id, user_id)
        return conv_id

    def append_messages(
        self, user_id: str, conversation_id: str, messages: list[ChatMessage]
    ) -> None:
        """Persist the full message list for *conversation_id* (replaces it)."""
        store = self._load(user_id)
        record = store.get(conversation_id)
        if record is None:
            record = ConversationRecord()
        record.messages = list(messages)
        store[conversation_id] = record
        self._save(user_id, store)

    def delete_conversation(self, user_id: str, conversation_id: str) -> bool:
        store = self._load(user_id)
        if conversation_id not in store:
            return False
        del store[conversation_id]
        self._save(user_id, store)
        logger.info("Deleted conversation %s for %s", conversation_id, user_id)
        return True

    def most_recent(self, user_id: str) -> Optional[str]:
        metas = self.list_conversations(user_id)
        return metas[0].id if metas else None
