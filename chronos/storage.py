"""Key-value persistence used by every store.

Stores never touch files directly: they read and write JSON blobs under fixed
string keys through a ``KeyValueStore``. ``MemoryKeyValueStore`` backs tests,
``FileKeyValueStore`` keeps one JSON file per key in the data directory.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional, Protocol

from .errors import StorageCorruptionError

logger = logging.getLogger(__name__)

USERS_DB_KEY = "chronos.users.db"
CHATS_KEY_PREFIX = "chronos.chats."
FORUM_KEY = "chronos.forum.posts"
SETTINGS_KEY = "chronos.settings"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._@+-]")


class FileKeyValueStore:
    """One ``<key>.json`` file per key under *root*."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _ensure_dir(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error("Failed to read %s: %s", path, e)
            return None

    def set(self, key: str, value: str) -> None:
        self._ensure_dir()
        self._path(key).write_text(value, encoding="utf-8")

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


def dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def parse_json(raw: str, key: str = "") -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise StorageCorruptionError(f"Unparsable JSON under {key!r}: {e}") from e


def read_json(kv: KeyValueStore, key: str, default: Any = None, expect: type = object) -> Any:
    """Read and decode *key*; missing, corrupted or mistyped data yields *default*."""
    raw = kv.get(key)
    if raw is None:
        return default
    try:
        value = parse_json(raw, key)
    except StorageCorruptionError as e:
        logger.warning("%s; resetting to defaults", e)
        return default
    if not isinstance(value, expect):
        logger.warning("Unexpected %s stored under %r; resetting to defaults", type(value).__name__, key)
        return default
    return value


def write_json(kv: KeyValueStore, key: str, value: Any) -> None:
    kv.set(key, dump_json(value))
