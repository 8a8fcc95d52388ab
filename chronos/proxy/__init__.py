"""Framework-independent HTTP handlers: the generation proxy and forum listing.

Both are plain request -> response objects so they can sit behind the main
FastAPI app, the standalone proxy app in ``server/``, or any other host.
"""
