#!/usr/bin/env python3
"""
Workout MCP Server - Remote HTTP wrapper

Runs the FastMCP instance from workout_mcp with Streamable HTTP transport,
adding the protocol-discovery HEAD endpoint that remote MCP connectors
require, a health check, and admin endpoints to back up and restore the
SQLite store.

Production: `uvicorn deploy.server:app`
"""

import hmac
import logging
import os
import shutil
import tempfile
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import FileResponse, JSONResponse, Response
from starlette.routing import Mount, Route

import workout_config
from workout_mcp import mcp

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Configuration from environment
# ---------------------------------------------------------------------------
PORT = int(os.environ.get("PORT", 8000))
HOST = os.environ.get("HOST", "0.0.0.0")

# Optional bearer token for the admin endpoints. The MCP endpoint itself
# stays authless: remote connectors only do OAuth or no-auth.
AUTH_TOKEN = os.environ.get("MCP_AUTH_TOKEN", "")

PROTECTED_PATHS = {"/backup", "/restore"}
MCP_PROTOCOL_VERSION = "2025-06-18"
SQLITE_MAGIC = b"SQLite format 3"


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Bearer-token gate for admin endpoints only."""

    def __init__(self, app, token: str):
        super().__init__(app)
        self.token = token

    async def dispatch(self, request: Request, call_next):
        if self.token and request.url.path in PROTECTED_PATHS:
            auth = request.headers.get("authorization", "")
            if not hmac.compare_digest(auth, f"Bearer {self.token}"):
                return JSONResponse(
                    {"error": "unauthorized"},
                    status_code=401,
                    headers={"WWW-Authenticate": 'Bearer realm="workout-mcp"'},
                )
        return await call_next(request)


async def head_root(request: Request) -> Response:
    """Remote connectors send HEAD / to discover the MCP protocol version."""
    return Response(status_code=200, headers={"MCP-Protocol-Version": MCP_PROTOCOL_VERSION})


async def health(request: Request) -> Response:
    return JSONResponse({"status": "ok"})


async def backup_db(request: Request) -> Response:
    """GET /backup streams the raw SQLite file."""
    db_path = request.app.state.db_path
    if not os.path.exists(db_path):
        return JSONResponse({"error": "database not found"}, status_code=404)
    return FileResponse(db_path, filename="workouts.db", media_type="application/x-sqlite3")


async def restore_db(request: Request) -> Response:
    """POST /restore replaces the SQLite file with an uploaded one."""
    db_path = request.app.state.db_path

    form = await request.form()
    upload = form.get("file")
    if upload is None or isinstance(upload, str):
        return JSONResponse(
            {"error": "no file provided, use: curl -F 'file=@path/to/workouts.db'"},
            status_code=400,
        )

    contents = await upload.read()
    if not contents.startswith(SQLITE_MAGIC):
        return JSONResponse({"error": "uploaded file is not a valid SQLite database"}, status_code=400)

    # Write next to the target, then move into place
    db_dir = os.path.dirname(db_path) or "."
    os.makedirs(db_dir, exist_ok=True)
    tmp_fd, tmp_path = tempfile.mkstemp(suffix=".db", dir=db_dir)
    try:
        with os.fdopen(tmp_fd, "wb") as tmp:
            tmp.write(contents)
        shutil.move(tmp_path, db_path)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        logger.error("Restore failed: %s", e)
        return JSONResponse({"error": str(e)}, status_code=500)

    logger.info("Restored database at %s (%d bytes)", db_path, len(contents))
    return JSONResponse({"status": "restored", "size_kb": round(len(contents) / 1024, 1)})


@asynccontextmanager
async def lifespan(app: Starlette):
    """Run the MCP session manager. Lifespans of mounted sub-apps never run."""
    async with app.state.session_manager.run():
        yield


def create_app(auth_token: str = AUTH_TOKEN, db_path: str = workout_config.DB_PATH) -> Starlette:
    """Assemble the ASGI app. The MCP sub-app handles POST /mcp."""
    middleware = []
    if auth_token:
        middleware.append(Middleware(BearerAuthMiddleware, token=auth_token))

    # A session manager can only be run once, so every app gets a fresh one
    mcp._session_manager = None
    mcp_app = mcp.streamable_http_app()

    app = Starlette(
        routes=[
            Route("/", head_root, methods=["HEAD"]),
            Route("/health", health, methods=["GET"]),
            Route("/backup", backup_db, methods=["GET"]),
            Route("/restore", restore_db, methods=["POST"]),
            Mount("/", app=mcp_app),
        ],
        middleware=middleware,
        lifespan=lifespan,
    )
    app.state.db_path = db_path
    app.state.session_manager = mcp.session_manager
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    workout_config.configure_logging()
    logger.info("Starting workout-mcp HTTP server on %s:%s", HOST, PORT)
    logger.info("Auth: %s", "bearer token" if AUTH_TOKEN else "authless (no MCP_AUTH_TOKEN set)")
    uvicorn.run(app, host=HOST, port=PORT)
