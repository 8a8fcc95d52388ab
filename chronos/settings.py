"""Model-invocation settings: persona, sampling parameters, language, model.

Settings are loaded once, patched with defaults on every load so that new
fields show up for old stores, and persisted synchronously on every update.
"""

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import InvalidRequestError
from .i18n import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES, t
from .storage import SETTINGS_KEY, KeyValueStore, read_json, write_json

logger = logging.getLogger(__name__)

MODEL_CHOICES: list[str] = [
    "gemini-1.5-flash",
    "gemini-1.5-flash-8b",
    "gemini-1.5-pro",
    "gemini-2.0-flash-exp",
    "gemini-2.0-flash-thinking-exp",
]

TEMPERATURE_RANGE = (0.0, 1.5)
MAX_OUTPUT_TOKENS_RANGE = (128, 8192)


class Settings(BaseModel):
    # Unknown keys written by newer versions survive a load/save cycle.
    model_config = ConfigDict(extra="allow")

    persona: str
    temperature: float = 0.7
    max_output_tokens: int = 1024
    default_response_language: str = DEFAULT_LANGUAGE
    # The key lives on the server; the field stays for stored-data compatibility.
    api_key: str = ""
    model: str = "gemini-2.0-flash-exp"


def default_settings(language: str = DEFAULT_LANGUAGE) -> dict[str, Any]:
    """The current default record. Field order here is the on-disk order."""
    if language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE
    return {
        "persona": t("chronosPersona", language),
        "temperature": 0.7,
        "max_output_tokens": 1024,
        "default_response_language": language,
        "api_key": "",
        "model": "gemini-2.0-flash-exp",
    }


def fill_missing(defaults: dict[str, Any], stored: dict[str, Any]) -> dict[str, Any]:
    """Return *stored* with every key absent from it taken from *defaults*.

    Stored values always win, including keys the defaults no longer know.
    """
    merged = dict(defaults)
    merged.update(stored)
    return merged


class SettingsStore:
    def __init__(self, kv: KeyValueStore, language: str = DEFAULT_LANGUAGE) -> None:
        self.kv = kv
        self.language = language
        self._current: Optional[Settings] = None

    def load(self) -> Settings:
        defaults = default_settings(self.language)
        stored = read_json(self.kv, SETTINGS_KEY, default=None, expect=dict)
        merged = defaults if stored is None else fill_missing(defaults, stored)
        try:
            settings = Settings(**merged)
        except ValidationError as e:
            logger.warning("Stored settings are invalid, resetting to defaults: %s", e)
            settings = Settings(**defaults)
        # Keep storage up to date with the patched structure.
        return self.save(settings)

    def get(self) -> Settings:
        if self._current is None:
            return self.load()
        return self._current

    def save(self, settings: Settings) -> Settings:
        write_json(self.kv, SETTINGS_KEY, settings.model_dump())
        self._current = settings
        return settings

    def update(self, partial: dict[str, Any]) -> Settings:
        """Shallow-merge *partial* over the current settings and persist."""
        current = self.get().model_dump()
        current.update(partial)
        try:
            settings = Settings(**current)
        except ValidationError as e:
            raise InvalidRequestError(f"Invalid settings: {e.errors()[0]['msg']}") from e
        return self.save(settings)

    def reset(self) -> Settings:
        logger.info("Resetting settings to defaults")
        return self.save(Settings(**default_settings(self.language)))

    def set_language(self, language: str) -> Settings:
        """Switch the UI language: patch in localized defaults, keep user values."""
        self.language = language
        return self.load()
