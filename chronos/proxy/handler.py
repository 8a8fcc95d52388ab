import json
import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import quote

import httpx
from google.genai import types
from pydantic import ValidationError

from ..config import ServerConfig
from ..errors import InvalidRequestError, UpstreamTransportError
from ..llm.response import block_reason, candidate_text
from .auth import AnonymousPolicy, AuthPolicy
from .cors import CorsPolicy
from .http import ProxyRequest, ProxyResponse

logger = logging.getLogger(__name__)

_RICH_FIELDS = ("model", "contents", "generationConfig")


@dataclass
class UpstreamCall:
    """A validated generation request, ready to forward."""

    variant: str  # "simple" -> {"text": ...} reply, "rich" -> upstream JSON verbatim
    model: str
    payload: dict[str, Any]


def _validate_contents(items: Any, field: str) -> None:
    if not isinstance(items, list):
        raise InvalidRequestError(f"'{field}' must be a list")
    try:
        for item in items:
            types.Content.model_validate(item)
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid '{field}': {e.errors()[0]['msg']}") from e


def parse_generation_body(body: bytes, config: ServerConfig) -> UpstreamCall:
    """Validate a proxy request body in either accepted shape.

    Rich: ``{model, contents, generationConfig, systemInstruction?}``.
    Simple: ``{prompt, history?}``, answered with the server's default model.
    """
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidRequestError("Invalid JSON")
    if not isinstance(data, dict):
        raise InvalidRequestError("Invalid JSON")

    if any(name in data for name in _RICH_FIELDS):
        model = data.get("model")
        contents = data.get("contents")
        generation_config = data.get("generationConfig")
        if not isinstance(model, str) or not model.strip() or not contents or not isinstance(generation_config, dict):
            raise InvalidRequestError("Missing required fields")
        _validate_contents(contents, "contents")
        # generationConfig is forwarded untouched; the upstream knows newer fields.
        payload: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        system_instruction = data.get("systemInstruction")
        if system_instruction:
            _validate_contents([system_instruction], "systemInstruction")
            payload["systemInstruction"] = system_instruction
        return UpstreamCall(variant="rich", model=model.strip(), payload=payload)

    prompt = data.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidRequestError("Missing prompt parameter")
    history = data.get("history") or []
    _validate_contents(history, "history")
    return UpstreamCall(
        variant="simple",
        model=config.default_model,
        payload={
            "contents": [*history, {"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": config.default_max_output_tokens},
        },
    )


class GenerationProxy:
    """Relays generation requests to Gemini with the server-held API key.

    Per request: method check, CORS preflight, authentication, body
    validation, credential check, forward, relay. Every response carries the
    CORS headers; all but the preflight are JSON.
    """

    def __init__(
        self,
        config: ServerConfig,
        auth: Optional[AuthPolicy] = None,
        cors: Optional[CorsPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.auth = auth or AnonymousPolicy()
        self.cors = cors or CorsPolicy(
            allowed_origins=config.allowed_origins,
            allow_credentials=config.allow_credentials,
        )
        self._transport = transport

    async def handle(self, request: ProxyRequest) -> ProxyResponse:
        cors_headers = self.cors.headers(request.origin)
        method = request.method.upper()

        if method == "OPTIONS":
            return ProxyResponse.empty(204, cors_headers)
        if method != "POST":
            return ProxyResponse.error(405, "Method not allowed", cors_headers)

        identity = self.auth.authenticate(request)
        if identity is None:
            return ProxyResponse.error(401, "Unauthorized - Please log in", cors_headers)

        try:
            call = parse_generation_body(request.body, self.config)
        except InvalidRequestError as e:
            return ProxyResponse.error(400, e.message, cors_headers)

        api_key = self.config.gemini_api_key
        if not api_key:
            logger.error("GEMINI_API_KEY is not configured; rejecting generation request")
            return ProxyResponse.error(500, "API key not configured on the server", cors_headers)

        logger.info("Forwarding %s request for %s (model %s)", call.variant, identity.user_id, call.model)
        try:
            resp = await self._forward(call, api_key)
        except UpstreamTransportError as e:
            return ProxyResponse.error(500, e.message, cors_headers)

        return self._relay(call, resp, cors_headers)

    def _upstream_url(self, model: str) -> str:
        if model.startswith("models/"):
            model = model[len("models/"):]
        return f"{self.config.gemini_base_url}/models/{quote(model, safe='')}:generateContent"

    async def _forward(self, call: UpstreamCall, api_key: str) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.config.upstream_timeout, transport=self._transport
            ) as client:
                return await client.post(
                    self._upstream_url(call.model),
                    json=call.payload,
                    headers={"x-goog-api-key": api_key},
                )
        except httpx.TimeoutException:
            logger.error("Gemini request timed out after %.0fs", self.config.upstream_timeout)
            raise UpstreamTransportError(
                f"Proxy error: upstream did not respond within {self.config.upstream_timeout:.0f} seconds"
            )
        except httpx.HTTPError as e:
            detail = str(e).replace(api_key, "***") or type(e).__name__
            logger.error("Gemini transport error: %s", detail)
            raise UpstreamTransportError(f"Proxy error: {detail}")

    def _relay(self, call: UpstreamCall, resp: httpx.Response, cors_headers: dict[str, str]) -> ProxyResponse:
        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.is_success:
            logger.warning("Gemini returned %d for model %s", resp.status_code, call.model)
            if not isinstance(data, dict) or "error" not in data:
                data = {"error": data if data is not None else (resp.text or resp.reason_phrase)}
            return ProxyResponse.json(resp.status_code, data, cors_headers)

        if data is None:
            return ProxyResponse.error(500, "Invalid response from Gemini API", cors_headers)

        if call.variant == "rich":
            return ProxyResponse.json(resp.status_code, data, cors_headers)

        text = candidate_text(data)
        if text is None:
            reason = block_reason(data)
            message = "Failed to get response from Gemini API"
            if reason:
                message = f"Content blocked: {reason}"
            return ProxyResponse.error(500, message, cors_headers)
        return ProxyResponse.json(200, {"text": text}, cors_headers)
