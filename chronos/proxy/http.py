import json
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class ProxyRequest:
    method: str
    headers: dict[str, str] = field(default_factory=dict)  # lower-cased names
    body: bytes = b""
    query: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def origin(self) -> Optional[str]:
        return self.header("origin")


@dataclass
class ProxyResponse:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    # None means no body at all (preflight).
    body: Optional[bytes] = None

    @classmethod
    def json(cls, status_code: int, payload: Any, headers: Optional[dict[str, str]] = None) -> "ProxyResponse":
        return cls(
            status_code=status_code,
            headers={**(headers or {}), "Content-Type": "application/json"},
            body=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
        )

    @classmethod
    def error(cls, status_code: int, message: str, headers: Optional[dict[str, str]] = None) -> "ProxyResponse":
        return cls.json(status_code, {"error": message}, headers)

    @classmethod
    def empty(cls, status_code: int = 204, headers: Optional[dict[str, str]] = None) -> "ProxyResponse":
        return cls(status_code=status_code, headers=dict(headers or {}), body=None)

    def json_body(self) -> Any:
        return json.loads(self.body) if self.body else None
