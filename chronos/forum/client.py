"""Sources of a user's forum posts, consumed by the context assembler."""

import logging
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from ..errors import ForumUnavailableError
from .models import ForumListing
from .storage import ForumStore

logger = logging.getLogger(__name__)


class ForumSource(Protocol):
    async def fetch_posts(self, user_id: str) -> list[ForumListing]: ...


class LocalForumSource:
    """Reads posts straight from the in-process forum store."""

    def __init__(self, store: ForumStore) -> None:
        self.store = store

    async def fetch_posts(self, user_id: str) -> list[ForumListing]:
        return [ForumListing.from_post(p) for p in self.store.posts_by_author(user_id)]


class ForumClient:
    """Reads posts from a forum listing endpoint (``GET <url>?userId=<id>``)."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self._transport = transport

    async def fetch_posts(self, user_id: str) -> list[ForumListing]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.url, params={"userId": user_id})
        except httpx.HTTPError as e:
            logger.error("Error fetching forum posts: %s", e)
            raise ForumUnavailableError(f"Failed to fetch forum posts: {e}") from e

        if resp.status_code >= 400:
            message = f"Failed to fetch forum posts: {resp.status_code} {resp.reason_phrase}"
            try:
                message = resp.json().get("error") or message
            except (ValueError, AttributeError):
                pass
            raise ForumUnavailableError(message)

        try:
            return [ForumListing(**item) for item in resp.json()]
        except (ValueError, TypeError, ValidationError) as e:
            raise ForumUnavailableError(f"Malformed forum listing: {e}") from e
