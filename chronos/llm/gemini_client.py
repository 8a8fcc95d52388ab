"""Client side of the generation proxy.

Sends assembled conversations to the proxy endpoint with the model settings
(persona, temperature, token limit, model) and turns the reply into text.
"""

import logging
from typing import Any, Optional

import httpx
from google.genai import types

from ..context import PreparedRequest
from ..errors import UpstreamError, UpstreamTransportError
from ..i18n import lang_instruction
from ..settings import Settings
from .response import block_reason, candidate_text, finish_reason

logger = logging.getLogger(__name__)

TOP_P = 0.8
TOP_K = 40


def dump_content(content: types.Content) -> dict[str, Any]:
    return content.model_dump(mode="json", exclude_none=True)


def _error_message(resp: httpx.Response) -> str:
    message = f"API error: {resp.status_code} {resp.reason_phrase}"
    try:
        data = resp.json()
    except ValueError:
        return resp.text or message
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("message") or message
    if isinstance(error, str) and error:
        return error
    return message


class GeminiClient:
    def __init__(
        self,
        settings: Settings,
        proxy_url: str,
        variant: str = "rich",
        headers: Optional[dict[str, str]] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self.proxy_url = proxy_url
        self.variant = variant
        self.headers = dict(headers or {})
        self.timeout = timeout
        self._transport = transport

    def system_instruction(self) -> Optional[dict[str, Any]]:
        text = " ".join(
            s for s in (self.settings.persona.strip(), lang_instruction(self.settings.default_response_language)) if s
        )
        if not text:
            return None
        return {"parts": [{"text": text}]}

    def build_body(self, prepared: PreparedRequest) -> dict[str, Any]:
        if self.variant == "simple":
            # The server picks model and limits for the simple shape.
            return {
                "prompt": prepared.prompt_text,
                "history": [dump_content(c) for c in prepared.history],
            }
        body: dict[str, Any] = {
            "model": self.settings.model,
            "contents": [dump_content(c) for c in prepared.contents],
            "generationConfig": {
                "temperature": self.settings.temperature,
                "maxOutputTokens": self.settings.max_output_tokens,
                "topP": TOP_P,
                "topK": TOP_K,
            },
        }
        system_instruction = self.system_instruction()
        if system_instruction:
            body["systemInstruction"] = system_instruction
        return body

    async def generate_response(self, prepared: PreparedRequest) -> str:
        body = self.build_body(prepared)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.proxy_url, json=body, headers=self.headers)
        except httpx.HTTPError as e:
            logger.error("Generation proxy unreachable: %s", e)
            raise UpstreamTransportError(f"Generation proxy unreachable: {e}") from e

        if not resp.is_success:
            try:
                payload = resp.json()
            except ValueError:
                payload = resp.text
            raise UpstreamError(_error_message(resp), resp.status_code, payload)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("Invalid response from the generation proxy", 502) from e

        if isinstance(data, dict) and isinstance(data.get("text"), str):
            return data["text"]

        reason = block_reason(data)
        if reason:
            raise UpstreamError(f"Content blocked: {reason}", 502, data)

        text = candidate_text(data)
        if text is None:
            raise UpstreamError("No response candidates from Gemini", 502, data)

        finish = finish_reason(data)
        if finish != "STOP":
            logger.warning("Generation finished with reason: %s", finish)

        return text or "No response generated"

    async def validate_access(self) -> tuple[bool, Optional[str]]:
        """Send a tiny prompt to check that the proxy, key and model work."""
        hello = types.Content(role="user", parts=[types.Part(text="Hello")])
        try:
            await self.generate_response(PreparedRequest(prompt=hello, history=[]))
        except (UpstreamError, UpstreamTransportError) as e:
            return False, e.message
        return True, None
