from typing import Optional

from .storage import ConversationStore


class ChatSession:
    """Tracks which conversation a user has open.

    A user always has an active conversation: opening the session picks the
    most recently updated one, or creates an empty one when there is none.
    """

    def __init__(self, store: ConversationStore, user_id: str) -> None:
        self.store = store
        self.user_id = user_id
        self.active_id: Optional[str] = None

    def open(self) -> str:
        self.active_id = self.store.most_recent(self.user_id) or self.store.create_conversation(
            self.user_id
        )
        return self.active_id

    def select(self, conversation_id: str) -> str:
        self.active_id = conversation_id
        return conversation_id

    def new_conversation(self) -> str:
        self.active_id = self.store.create_conversation(self.user_id)
        return self.active_id

    def delete(self, conversation_id: str) -> Optional[str]:
        """Delete a conversation; move the selection if it was the active one."""
        self.store.delete_conversation(self.user_id, conversation_id)
        if self.active_id == conversation_id:
            self.open()
        return self.active_id
