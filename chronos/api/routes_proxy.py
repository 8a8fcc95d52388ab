from typing import Optional

import httpx
from fastapi import APIRouter, FastAPI, Request

from ..config import ServerConfig
from ..forum.storage import ForumStore
from ..proxy.auth import TokenCodec, build_auth_policy
from ..proxy.cors import CorsPolicy
from ..proxy.forum import ForumListingHandler
from ..proxy.handler import GenerationProxy
from .deps import to_proxy_request, to_response

router = APIRouter(tags=["proxy"])

# Method checks (405) happen inside the handlers, so accept everything here.
_ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def attach_proxy(
    app: FastAPI,
    config: ServerConfig,
    forum_store: ForumStore,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> None:
    """Wire the generation proxy and forum listing handlers onto *app*."""
    cors = CorsPolicy(
        allowed_origins=config.allowed_origins,
        allow_credentials=config.allow_credentials,
    )
    app.state.config = config
    app.state.auth_policy = build_auth_policy(config)
    app.state.token_codec = TokenCodec(config.session_secret, config.session_ttl_hours)
    app.state.proxy = GenerationProxy(config, app.state.auth_policy, cors, transport=transport)
    app.state.forum_listing = ForumListingHandler(forum_store, cors)
    app.state.forum_store = forum_store


@router.api_route("/api/gemini", methods=_ALL_METHODS)
async def gemini_proxy(request: Request):
    resp = await request.app.state.proxy.handle(await to_proxy_request(request))
    return to_response(resp)


@router.api_route("/api/forum", methods=_ALL_METHODS)
async def forum_listing(request: Request):
    resp = await request.app.state.forum_listing.handle(await to_proxy_request(request))
    return to_response(resp)
