import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .accounts import UserStore
from .api.routes_auth import router as auth_router
from .api.routes_chat import router as chat_router
from .api.routes_conversation import router as conversation_router
from .api.routes_forum import router as forum_router
from .api.routes_proxy import attach_proxy, router as proxy_router
from .api.routes_settings import router as settings_router
from .config import ServerConfig, get_config, log_config_summary
from .conversation.storage import ConversationStore
from .errors import ChronosError
from .forum.storage import ForumStore
from .settings import SettingsStore
from .storage import FileKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )


async def chronos_error_handler(request: Request, exc: ChronosError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def create_app(
    config: Optional[ServerConfig] = None,
    kv: Optional[KeyValueStore] = None,
    upstream_transport: Optional[httpx.AsyncBaseTransport] = None,
    proxy_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    config = config or get_config()
    kv = kv or FileKeyValueStore(config.data_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Chronos %s starting up...", __version__)
        log_config_summary(config)
        yield
        logger.info("Chronos shutting down...")

    app = FastAPI(title="Chronos Backend", version=__version__, lifespan=lifespan)
    app.add_exception_handler(ChronosError, chronos_error_handler)

    attach_proxy(app, config, ForumStore(kv), transport=upstream_transport)
    app.state.kv = kv
    app.state.user_store = UserStore(kv, config.admin_emails)
    app.state.settings_store = SettingsStore(kv)
    app.state.conversation_store = ConversationStore(kv)
    app.state.in_flight = set()
    # Transport for an external proxy (CHRONOS_PROXY_URL); None uses the network.
    app.state.proxy_transport = proxy_transport

    app.include_router(proxy_router)
    app.include_router(auth_router)
    app.include_router(settings_router)
    app.include_router(conversation_router)
    app.include_router(chat_router)
    app.include_router(forum_router)

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "ok",
            "version": __version__,
            "credential_configured": bool(config.gemini_api_key),
        }

    return app


setup_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8765)
