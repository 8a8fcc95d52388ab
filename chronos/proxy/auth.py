"""Caller authentication for the proxy.

Which policy applies is a deployment choice (``CHRONOS_AUTH_MODE``):

- ``none``: anyone may call (the standalone serverless-style deployment).
- ``session``: a signed session cookie issued at login.
- ``token``: a bearer token in the ``Authorization`` header.

Session cookies and bearer tokens are both HS256 JWTs signed with the
server's session secret.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

import jwt

from ..config import ServerConfig
from ..errors import AuthError
from .http import ProxyRequest

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"


@dataclass
class Identity:
    user_id: str
    name: str = ""

    @property
    def is_anonymous(self) -> bool:
        return self.user_id == ANONYMOUS


class TokenCodec:
    def __init__(self, secret_key: str, ttl_hours: int = 24, leeway_seconds: int = 10) -> None:
        self.secret_key = secret_key
        self.ttl = timedelta(hours=ttl_hours)
        # Allow small clock skew when decoding tokens
        self.leeway_seconds = leeway_seconds

    def issue(self, user_id: str, name: str = "") -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "name": name,
            "iat": int(now.timestamp()),
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self.secret_key, algorithm="HS256")

    def decode(self, token: str) -> Identity:
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=["HS256"],
                leeway=self.leeway_seconds,
            )
        except jwt.ExpiredSignatureError:
            raise AuthError("Session has expired")
        except jwt.InvalidTokenError:
            raise AuthError("Invalid session")
        if not payload.get("sub"):
            raise AuthError("Invalid session")
        return Identity(user_id=payload["sub"], name=payload.get("name") or "")


class AuthPolicy(Protocol):
    mode: str

    def authenticate(self, request: ProxyRequest) -> Optional[Identity]:
        """Return the caller's identity, or None when the caller is unknown."""
        ...


class AnonymousPolicy:
    mode = "none"

    def authenticate(self, request: ProxyRequest) -> Optional[Identity]:
        return Identity(user_id=ANONYMOUS)


class SessionCookiePolicy:
    mode = "session"

    def __init__(self, codec: TokenCodec, cookie_name: str) -> None:
        self.codec = codec
        self.cookie_name = cookie_name

    def authenticate(self, request: ProxyRequest) -> Optional[Identity]:
        token = request.cookies.get(self.cookie_name)
        if not token:
            return None
        try:
            return self.codec.decode(token)
        except AuthError as e:
            logger.info("Rejected session cookie: %s", e.message)
            return None


class BearerTokenPolicy:
    mode = "token"

    def __init__(self, codec: TokenCodec) -> None:
        self.codec = codec

    def authenticate(self, request: ProxyRequest) -> Optional[Identity]:
        header = request.header("authorization") or ""
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return None
        try:
            return self.codec.decode(token.strip())
        except AuthError as e:
            logger.info("Rejected bearer token: %s", e.message)
            return None


def build_auth_policy(config: ServerConfig) -> AuthPolicy:
    codec = TokenCodec(config.session_secret, config.session_ttl_hours)
    if config.auth_mode == "session":
        return SessionCookiePolicy(codec, config.session_cookie_name)
    if config.auth_mode == "token":
        return BearerTokenPolicy(codec)
    return AnonymousPolicy()
