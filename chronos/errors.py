"""Error taxonomy shared by the stores, the chat flow and the proxy.

Every error carries the HTTP status it maps to; the API layer renders them
as ``{"error": message}``.
"""

from typing import Any, Optional


class ChronosError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidRequestError(ChronosError):
    """Malformed or missing request fields, or nothing to send."""

    status_code = 400


class AuthError(ChronosError):
    status_code = 401


class UserExistsError(ChronosError):
    status_code = 409


class ChatBusyError(ChronosError):
    """A generation request is already in flight for this user."""

    status_code = 409


class UpstreamError(ChronosError):
    """The model API answered with a non-success status."""

    def __init__(self, message: str, status_code: int, payload: Any = None) -> None:
        super().__init__(message, status_code)
        self.payload = payload


class UpstreamTransportError(ChronosError):
    """No response reached us from the upstream (connect error, timeout)."""

    status_code = 500


class ForumUnavailableError(ChronosError):
    status_code = 502


class StorageCorruptionError(ChronosError):
    """Stored JSON could not be parsed. Always recovered, never surfaced."""
