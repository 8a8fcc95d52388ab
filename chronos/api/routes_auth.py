import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..accounts import User, UserStore
from ..proxy.auth import TokenCodec
from .deps import current_user, get_config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    name: str = ""
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


def _signed_in(request: Request, user: User) -> JSONResponse:
    """Login response carrying the signed identity.

    Token mode returns a bearer token in the body; the other modes set the
    session cookie.
    """
    config = get_config(request)
    codec: TokenCodec = request.app.state.token_codec
    body: dict = {"user": user.model_dump()}
    token = codec.issue(user.id, user.display_name)
    if config.auth_mode == "token":
        body["token"] = token
        return JSONResponse(body)
    response = JSONResponse(body)
    response.set_cookie(
        config.session_cookie_name,
        token,
        max_age=config.session_ttl_hours * 3600,
        httponly=True,
        secure=config.allow_credentials,
        samesite="none" if config.allow_credentials else "lax",
    )
    return response


@router.post("/register")
async def register(req: RegisterRequest, request: Request):
    users: UserStore = request.app.state.user_store
    user = users.register(req.name, req.email, req.password)
    return _signed_in(request, user)


@router.post("/login")
async def login(req: LoginRequest, request: Request):
    users: UserStore = request.app.state.user_store
    user = users.login(req.email, req.password)
    logger.info("User %s logged in", user.id)
    return _signed_in(request, user)


@router.post("/logout")
async def logout(request: Request):
    response = JSONResponse({"status": "ok"})
    response.delete_cookie(get_config(request).session_cookie_name)
    return response


@router.get("/me")
async def me(user: User = Depends(current_user)):
    return {"user": user.model_dump()}
