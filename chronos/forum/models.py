from datetime import datetime, timezone

from pydantic import BaseModel, Field

from ..conversation.models import now_ms


class ForumPost(BaseModel):
    """A shared model reply. Immutable once created."""

    id: str
    title: str
    content: str
    author_id: str
    author_name: str = ""
    created_at: int = Field(default_factory=now_ms)


class ForumListing(BaseModel):
    """Wire shape of the forum listing endpoint."""

    id: str
    userId: str
    username: str = ""
    title: str = ""
    content: str
    timestamp: str = ""

    @classmethod
    def from_post(cls, post: ForumPost) -> "ForumListing":
        return cls(
            id=post.id,
            userId=post.author_id,
            username=post.author_name or post.author_id,
            title=post.title,
            content=post.content,
            timestamp=datetime.fromtimestamp(post.created_at / 1000, tz=timezone.utc).isoformat(),
        )
