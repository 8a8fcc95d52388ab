from typing import Optional

from ..forum.models import ForumListing
from ..forum.storage import ForumStore
from .cors import CorsPolicy
from .http import ProxyRequest, ProxyResponse


class ForumListingHandler:
    """Read-only forum listing: ``GET ?userId=<id>`` filters by author."""

    def __init__(self, store: ForumStore, cors: Optional[CorsPolicy] = None) -> None:
        self.store = store
        self.cors = (cors or CorsPolicy()).with_methods("GET", "OPTIONS")

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        cors_headers = self.cors.headers(request.origin)
        method = request.method.upper()

        if method == "OPTIONS":
            return ProxyResponse.empty(204, cors_headers)
        if method != "GET":
            return ProxyResponse.error(405, "Method not allowed", cors_headers)

        user_id = request.query.get("userId")
        posts = self.store.posts_by_author(user_id) if user_id else self.store.list_posts()
        return ProxyResponse.json(
            200,
            [ForumListing.from_post(p).model_dump() for p in posts],
            cors_headers,
        )
