"""Helpers for reading ``generateContent`` responses."""

from typing import Any, Optional


def first_candidate(data: Any) -> Optional[dict]:
    if not isinstance(data, dict):
        return None
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return None
    return candidates[0]


def candidate_text(data: Any) -> Optional[str]:
    """Concatenated text of the first candidate, None when there is none."""
    candidate = first_candidate(data)
    if candidate is None:
        return None
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


def block_reason(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    return (data.get("promptFeedback") or {}).get("blockReason")


def finish_reason(data: Any) -> Optional[str]:
    candidate = first_candidate(data)
    return candidate.get("finishReason") if candidate else None
