import json
from typing import Callable

import httpx

API_KEY = "test-gemini-key-123"


def gemini_reply(text: str = "Hello from Gemini", finish_reason: str = "STOP") -> dict:
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": finish_reason,
            }
        ]
    }


class UpstreamRecorder:
    """An httpx mock transport that records requests and answers via *responder*."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.responder = responder
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)
