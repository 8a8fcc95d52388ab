"""Request-scoped helpers shared by the route modules."""

from typing import Optional

from fastapi import HTTPException, Request
from starlette.responses import Response

from ..accounts import User, UserStore
from ..config import ServerConfig
from ..proxy.auth import BearerTokenPolicy, Identity, SessionCookiePolicy, TokenCodec
from ..proxy.http import ProxyRequest, ProxyResponse


async def to_proxy_request(request: Request) -> ProxyRequest:
    return ProxyRequest(
        method=request.method,
        headers={k.lower(): v for k, v in request.headers.items()},
        body=await request.body(),
        query=dict(request.query_params),
        cookies=dict(request.cookies),
    )


def to_response(resp: ProxyResponse) -> Response:
    return Response(content=resp.body, status_code=resp.status_code, headers=resp.headers)


def get_config(request: Request) -> ServerConfig:
    return request.app.state.config


def caller_identity(request: Request) -> Optional[Identity]:
    """Identity from the signed session cookie or bearer token, if any.

    Accepted in every auth mode: the mode only decides who may call the
    generation proxy, not who is signed in to the store routes.
    """
    codec: TokenCodec = request.app.state.token_codec
    signed = ProxyRequest(
        method=request.method,
        headers={k.lower(): v for k, v in request.headers.items()},
        cookies=dict(request.cookies),
    )
    for policy in (SessionCookiePolicy(codec, get_config(request).session_cookie_name), BearerTokenPolicy(codec)):
        identity = policy.authenticate(signed)
        if identity is not None:
            return identity
    return None


def current_user(request: Request) -> User:
    users: UserStore = request.app.state.user_store
    identity = caller_identity(request)
    user = users.get_user(identity.user_id) if identity else None
    if user is None:
        raise HTTPException(status_code=401, detail="Please log in to continue")
    return user


def require_admin(request: Request, user: User) -> None:
    """Admin-only when admins are configured; otherwise any logged-in user."""
    if get_config(request).admin_emails and not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")


def forwarded_auth_headers(request: Request) -> dict[str, str]:
    """Credentials to pass along when calling our own proxy endpoint."""
    headers = {}
    for name in ("cookie", "authorization"):
        value = request.headers.get(name)
        if value:
            headers[name] = value
    return headers
