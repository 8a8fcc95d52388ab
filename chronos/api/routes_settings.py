from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field, field_validator

from ..accounts import User
from ..i18n import SUPPORTED_LANGUAGES
from ..settings import MAX_OUTPUT_TOKENS_RANGE, MODEL_CHOICES, TEMPERATURE_RANGE, SettingsStore
from .deps import current_user, require_admin
from .routes_chat import build_gemini_client

router = APIRouter(prefix="/api/settings", tags=["settings"])


class SettingsUpdateRequest(BaseModel):
    persona: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=TEMPERATURE_RANGE[0], le=TEMPERATURE_RANGE[1])
    max_output_tokens: Optional[int] = Field(
        None, ge=MAX_OUTPUT_TOKENS_RANGE[0], le=MAX_OUTPUT_TOKENS_RANGE[1]
    )
    default_response_language: Optional[str] = None
    model: Optional[str] = None

    @field_validator("default_response_language")
    @classmethod
    def _known_language(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"language must be one of {', '.join(SUPPORTED_LANGUAGES)}")
        return v

    @field_validator("model")
    @classmethod
    def _known_model(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in MODEL_CHOICES:
            raise ValueError(f"model must be one of {', '.join(MODEL_CHOICES)}")
        return v


class LanguageRequest(BaseModel):
    language: str


def _store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


@router.get("")
async def get_settings(request: Request, user: User = Depends(current_user)):
    return _store(request).get().model_dump()


@router.get("/models")
async def list_models():
    return {"models": MODEL_CHOICES}


@router.patch("")
async def update_settings(
    req: SettingsUpdateRequest, request: Request, user: User = Depends(current_user)
):
    partial = req.model_dump(exclude_none=True)
    # Switching the model is open to everyone (chat toolbar); the rest is admin-only.
    if set(partial) - {"model"}:
        require_admin(request, user)
    return _store(request).update(partial).model_dump()


@router.post("/reset")
async def reset_settings(request: Request, user: User = Depends(current_user)):
    require_admin(request, user)
    return _store(request).reset().model_dump()


@router.put("/language")
async def set_language(req: LanguageRequest, request: Request, user: User = Depends(current_user)):
    if req.language not in SUPPORTED_LANGUAGES:
        raise HTTPException(status_code=400, detail=f"Unsupported language: {req.language}")
    return _store(request).set_language(req.language).model_dump()


@router.post("/validate")
async def validate_access(request: Request, user: User = Depends(current_user)):
    client = build_gemini_client(request, _store(request).get())
    valid, error = await client.validate_access()
    return {"valid": valid, "error": error}
