import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

logger = logging.getLogger(__name__)

AuthMode = Literal["none", "session", "token"]

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class ServerConfig(BaseModel):
    # Provider credential, read from the process environment only.
    gemini_api_key: str = ""
    gemini_base_url: str = GEMINI_BASE_URL
    upstream_timeout: float = 30.0
    default_model: str = "gemini-1.5-flash"
    default_max_output_tokens: int = 1024

    allowed_origins: list[str] = ["*"]
    allow_credentials: bool = False

    auth_mode: AuthMode = "none"
    session_secret: str = "dev-session-secret"
    session_cookie_name: str = "chronos_session"
    session_ttl_hours: int = 24

    admin_emails: list[str] = []
    data_dir: Path = Path.home() / ".chronos"

    forum_url: str = ""  # Empty -> read posts from the local forum store
    proxy_url: str = ""  # Empty -> call the in-process proxy route


def _split_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def load_config() -> ServerConfig:
    """Build the server config from environment variables (and ``.env``)."""
    load_dotenv()
    data: dict = {
        "gemini_api_key": _env("GEMINI_API_KEY"),
        "auth_mode": _env("CHRONOS_AUTH_MODE", "none") or "none",
        "forum_url": _env("CHRONOS_FORUM_URL"),
        "proxy_url": _env("CHRONOS_PROXY_URL"),
        "admin_emails": _split_list(_env("CHRONOS_ADMIN_EMAILS")),
    }
    if _env("GEMINI_BASE_URL"):
        data["gemini_base_url"] = _env("GEMINI_BASE_URL").rstrip("/")
    if _env("CHRONOS_UPSTREAM_TIMEOUT"):
        data["upstream_timeout"] = float(_env("CHRONOS_UPSTREAM_TIMEOUT"))
    if _env("CHRONOS_DEFAULT_MODEL"):
        data["default_model"] = _env("CHRONOS_DEFAULT_MODEL")
    if _env("CHRONOS_DEFAULT_MAX_OUTPUT_TOKENS"):
        data["default_max_output_tokens"] = int(_env("CHRONOS_DEFAULT_MAX_OUTPUT_TOKENS"))
    if _env("CHRONOS_ALLOWED_ORIGINS"):
        data["allowed_origins"] = _split_list(_env("CHRONOS_ALLOWED_ORIGINS"))
    if _env("CHRONOS_ALLOW_CREDENTIALS"):
        data["allow_credentials"] = _env("CHRONOS_ALLOW_CREDENTIALS").lower() == "true"
    if _env("CHRONOS_SESSION_SECRET"):
        data["session_secret"] = _env("CHRONOS_SESSION_SECRET")
    if _env("CHRONOS_SESSION_TTL_HOURS"):
        data["session_ttl_hours"] = int(_env("CHRONOS_SESSION_TTL_HOURS"))
    if _env("CHRONOS_DATA_DIR"):
        data["data_dir"] = Path(_env("CHRONOS_DATA_DIR")).expanduser()
    return ServerConfig(**data)


def log_config_summary(config: ServerConfig) -> None:
    """Log the effective configuration with the credential masked."""
    if config.gemini_api_key:
        logger.info("GEMINI_API_KEY: ***MASKED*** (length: %d)", len(config.gemini_api_key))
    else:
        logger.error("GEMINI_API_KEY is not set; generation requests will fail with 500")
    logger.info("Auth mode: %s", config.auth_mode)
    logger.info("Allowed origins: %s", ", ".join(config.allowed_origins))
    logger.info("Data directory: %s", config.data_dir)
    if config.auth_mode != "none" and config.session_secret == "dev-session-secret":
        logger.warning("CHRONOS_SESSION_SECRET not set, using the development secret")


_current_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    global _current_config
    if _current_config is None:
        _current_config = load_config()
    return _current_config


def reset_config() -> None:
    """Drop the cached config so the next ``get_config()`` re-reads the env."""
    global _current_config
    _current_config = None
