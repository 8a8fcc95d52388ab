from dataclasses import dataclass, field
from typing import Optional


@dataclass
class CorsPolicy:
    """CORS headers for every proxy response, preflight included."""

    allowed_origins: list[str] = field(default_factory=lambda: ["*"])
    allow_methods: tuple[str, ...] = ("POST", "OPTIONS")
    allow_headers: tuple[str, ...] = ("Content-Type", "Authorization")
    allow_credentials: bool = False

    def resolve_origin(self, origin: Optional[str]) -> str:
        if "*" in self.allowed_origins:
            # Credentialed requests cannot use the wildcard.
            if self.allow_credentials and origin:
                return origin
            return "*"
        if origin and origin in self.allowed_origins:
            return origin
        # Unknown origins get the primary origin, which the browser will reject.
        return self.allowed_origins[0] if self.allowed_origins else "*"

    def headers(self, origin: Optional[str]) -> dict[str, str]:
        allow_origin = self.resolve_origin(origin)
        headers = {
            "Access-Control-Allow-Origin": allow_origin,
            "Access-Control-Allow-Methods": ", ".join(self.allow_methods),
            "Access-Control-Allow-Headers": ", ".join(self.allow_headers),
        }
        if allow_origin != "*":
            headers["Vary"] = "Origin"
            if self.allow_credentials:
                headers["Access-Control-Allow-Credentials"] = "true"
        return headers

    def with_methods(self, *methods: str) -> "CorsPolicy":
        return CorsPolicy(
            allowed_origins=list(self.allowed_origins),
            allow_methods=methods,
            allow_headers=self.allow_headers,
            allow_credentials=self.allow_credentials,
        )
