"""Backend launcher: ``python -m chronos.run``."""
import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "chronos.main:app",
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8765")),
    )
