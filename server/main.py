"""Chronos generation proxy: standalone deployment.

Exposes only the generation proxy and the forum listing, for hosts that run
the proxy apart from the rest of the backend (serverless platforms, a small
VM). Auth policy and allowed origins come from the environment as usual.

Run locally: uvicorn server.main:app --host 0.0.0.0 --port 8000
"""

import logging
import os

from fastapi import FastAPI

from chronos import __version__
from chronos.api.routes_proxy import attach_proxy, router as proxy_router
from chronos.config import get_config, log_config_summary
from chronos.forum.storage import ForumStore
from chronos.storage import FileKeyValueStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("chronos-proxy")

config = get_config()
log_config_summary(config)

app = FastAPI(title="Chronos Proxy", version=__version__)
attach_proxy(app, config, ForumStore(FileKeyValueStore(config.data_dir)))
app.include_router(proxy_router)
logger.info("Chronos proxy %s ready (auth mode: %s)", __version__, config.auth_mode)


@app.get("/health")
async def health():
    return {"status": "ok", "credential_configured": bool(config.gemini_api_key)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
