import logging
import secrets

from pydantic import ValidationError

from ..errors import InvalidRequestError
from ..storage import FORUM_KEY, KeyValueStore, read_json, write_json
from .models import ForumPost

logger = logging.getLogger(__name__)


def new_post_id() -> str:
    return secrets.token_urlsafe(9)


class ForumStore:
    """Flat list of shared posts, stored newest first under one key."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv

    def _load(self) -> list[ForumPost]:
        posts: list[ForumPost] = []
        for item in read_json(self.kv, FORUM_KEY, default=[], expect=list):
            try:
                posts.append(ForumPost(**item))
            except (TypeError, ValidationError):
                logger.warning("Skipping unreadable forum post: %r", item)
        return posts

    def list_posts(self) -> list[ForumPost]:
        posts = self._load()
        posts.sort(key=lambda p: p.created_at, reverse=True)
        return posts

    def create_post(
        self, title: str, content: str, author_id: str, author_name: str = ""
    ) -> ForumPost:
        if not title.strip():
            raise InvalidRequestError("Post title must not be empty")
        if not content.strip():
            raise InvalidRequestError("Post content must not be empty")
        posts = self._load()
        existing = {p.id for p in posts}
        post_id = new_post_id()
        while post_id in existing:
            post_id = new_post_id()
        post = ForumPost(
            id=post_id,
            title=title.strip(),
            content=content,
            author_id=author_id,
            author_name=author_name,
        )
        write_json(self.kv, FORUM_KEY, [p.model_dump() for p in [post, *posts]])
        logger.info("Forum post %s shared by %s", post.id, author_id)
        return post

    def posts_by_author(self, author_id: str) -> list[ForumPost]:
        return [p for p in self.list_posts() if p.author_id == author_id]
