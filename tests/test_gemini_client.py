import asyncio

import httpx
import pytest
from google.genai import types

from chronos.context import PreparedRequest
from chronos.errors import UpstreamError, UpstreamTransportError
from chronos.llm.gemini_client import GeminiClient
from chronos.settings import Settings

from .helpers import UpstreamRecorder, gemini_reply

PROXY_URL = "http://proxy.test/api/gemini"


def _settings(**overrides):
    values = {"persona": "You are Chronos.", "default_response_language": "en", "model": "gemini-1.5-pro"}
    values.update(overrides)
    return Settings(**values)


def _prepared(*texts):
    contents = [
        types.Content(role="user" if i % 2 == 0 else "model", parts=[types.Part(text=text)])
        for i, text in enumerate(texts)
    ]
    return PreparedRequest(prompt=contents[-1], history=contents[:-1])


def _client(responder, **kwargs):
    recorder = UpstreamRecorder(responder)
    return GeminiClient(_settings(), PROXY_URL, transport=recorder.transport, **kwargs), recorder


def test_rich_body_carries_settings():
    client = GeminiClient(_settings(temperature=0.3, max_output_tokens=2048), PROXY_URL)
    body = client.build_body(_prepared("Hi", "Hello", "How are you?"))

    assert body["model"] == "gemini-1.5-pro"
    assert body["generationConfig"] == {"temperature": 0.3, "maxOutputTokens": 2048, "topP": 0.8, "topK": 40}
    assert body["systemInstruction"] == {"parts": [{"text": "You are Chronos. Always respond in English."}]}
    assert [c["role"] for c in body["contents"]] == ["user", "model", "user"]
    assert body["contents"][-1]["parts"] == [{"text": "How are you?"}]


def test_simple_body_sends_prompt_and_history():
    client = GeminiClient(_settings(), PROXY_URL, variant="simple")
    body = client.build_body(_prepared("Hi", "Hello", "Again"))

    assert body["prompt"] == "Again"
    assert [c["parts"][0]["text"] for c in body["history"]] == ["Hi", "Hello"]
    assert "model" not in body


def test_generate_response_reads_candidates():
    client, recorder = _client(lambda r: httpx.Response(200, json=gemini_reply("The answer")))

    assert asyncio.run(client.generate_response(_prepared("Q"))) == "The answer"
    assert recorder.last_json["model"] == "gemini-1.5-pro"


def test_generate_response_reads_simple_text_reply():
    client, _ = _client(lambda r: httpx.Response(200, json={"text": "plain"}))
    assert asyncio.run(client.generate_response(_prepared("Q"))) == "plain"


def test_generate_response_forwards_headers():
    client, recorder = _client(
        lambda r: httpx.Response(200, json=gemini_reply()), headers={"authorization": "Bearer abc"}
    )
    asyncio.run(client.generate_response(_prepared("Q")))
    assert recorder.requests[0].headers["authorization"] == "Bearer abc"


def test_empty_text_becomes_placeholder():
    client, _ = _client(lambda r: httpx.Response(200, json=gemini_reply("", finish_reason="MAX_TOKENS")))
    assert asyncio.run(client.generate_response(_prepared("Q"))) == "No response generated"


def test_blocked_prompt_raises():
    client, _ = _client(lambda r: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))
    with pytest.raises(UpstreamError, match="Content blocked: SAFETY"):
        asyncio.run(client.generate_response(_prepared("Q")))


def test_missing_candidates_raise():
    client, _ = _client(lambda r: httpx.Response(200, json={"candidates": []}))
    with pytest.raises(UpstreamError, match="No response candidates"):
        asyncio.run(client.generate_response(_prepared("Q")))


def test_error_status_uses_upstream_message():
    payload = {"error": {"code": 429, "message": "Resource exhausted"}}
    client, _ = _client(lambda r: httpx.Response(429, json=payload))

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(client.generate_response(_prepared("Q")))

    assert exc_info.value.message == "Resource exhausted"
    assert exc_info.value.status_code == 429
    assert exc_info.value.payload == payload


def test_proxy_error_string_is_used():
    client, _ = _client(lambda r: httpx.Response(401, json={"error": "Unauthorized - Please log in"}))
    with pytest.raises(UpstreamError, match="Unauthorized - Please log in"):
        asyncio.run(client.generate_response(_prepared("Q")))


def test_unreachable_proxy():
    def fail(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = GeminiClient(_settings(), PROXY_URL, transport=httpx.MockTransport(fail))
    with pytest.raises(UpstreamTransportError):
        asyncio.run(client.generate_response(_prepared("Q")))


def test_validate_access():
    ok, _ = _client(lambda r: httpx.Response(200, json=gemini_reply()))
    bad, _ = _client(lambda r: httpx.Response(500, json={"error": "API key not configured on the server"}))

    assert asyncio.run(ok.validate_access()) == (True, None)
    assert asyncio.run(bad.validate_access()) == (False, "API key not configured on the server")
