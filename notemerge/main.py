"""FastAPI entrypoint for the notemerge MCP server."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from notemerge.config import load_config
from notemerge.errors import McpError, error_response
from notemerge.log import configure_logging, get_logger
from notemerge.mcp import register_mcp_handlers
from notemerge.user_scope import AUTH_EXEMPT_PATHS, verify_request_identity

logger = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 18170

# Identity failures are answered by the middleware; handler errors default to 400.
_AUTH_STATUS = {"AUTH_FORBIDDEN": 403}
_ERROR_STATUS = {"LOCK_TIMEOUT": 409}


def _error_json(exc: McpError, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_response(exc.error))


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = load_config()
        configure_logging(config.log_level)
        app.state.config = config
        app.state.library_path = config.library_path
        logger.info("serving library at %s", config.library_path)
        yield

    app = FastAPI(lifespan=lifespan)

    @app.middleware("http")
    async def enforce_request_identity(request: Request, call_next):
        if request.url.path not in AUTH_EXEMPT_PATHS:
            try:
                verify_request_identity(request)
            except McpError as exc:
                logger.info("rejected %s: %s", request.url.path, exc.error.code)
                return _error_json(exc, _AUTH_STATUS.get(exc.error.code, 401))
        return await call_next(request)

    @app.exception_handler(McpError)
    def handle_mcp_error(request: Request, exc: McpError) -> JSONResponse:
        logger.debug("%s: %s", exc.error.code, exc.error.message)
        return _error_json(exc, _ERROR_STATUS.get(exc.error.code, 400))

    @app.get("/health", status_code=200)
    def health() -> dict[str, str]:
        return {"status": "ok"}

    register_mcp_handlers(app)
    return app


def run() -> None:
    """Serve the app with uvicorn on NOTEMERGE_HOST and NOTEMERGE_PORT."""
    host = os.environ.get("NOTEMERGE_HOST", DEFAULT_HOST)
    port = int(os.environ.get("NOTEMERGE_PORT", DEFAULT_PORT))
    uvicorn.run("notemerge.main:app", host=host, port=port)


app = create_app()
