"""
Gateway edge router.

Serves static assets for every path outside /api/, and forwards
POST /api/chat to an AI gateway dynamic route, streaming the gateway's
response back to the caller untouched.

Upstream failures never leak to the client: both a rejected call and an
unreachable gateway surface as HTTP 500 with a generic {"error": ...} body.
The real upstream status and error body only go to the logs.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from starlette.background import BackgroundTask
from starlette.types import Receive, Scope, Send

from config import AppConfig, load_config
from forwarder import ForwardFailure, Forwarder, ForwardResult
from logger import LOGGER_NAME, setup_logging
from router import CHAT_PATH, dispatch
from utils import dump_config, load_env_files

log = logging.getLogger(LOGGER_NAME)

ROUTE_NOT_CONFIGURED_MESSAGE = "AI gateway route is not configured"


def get_request_id(request: Request) -> str:
    return (
        (request.headers.get("x-request-id") or "").strip()
        or (request.headers.get("x-correlation-id") or "").strip()
        or uuid.uuid4().hex
    )


def to_response(result: ForwardResult) -> Response:
    """Map a forwarding outcome onto the client-facing HTTP response."""
    if isinstance(result, ForwardFailure):
        return JSONResponse({"error": result.message}, status_code=500)

    # The background close also runs when the client disconnects mid-stream.
    response = StreamingResponse(
        result.body,
        status_code=result.status_code,
        background=BackgroundTask(result.close),
    )
    response.raw_headers = [
        (k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in result.headers
    ]
    return response


def create_app(
    config: AppConfig,
    forwarder: Forwarder | None = None,
    static_files: StaticFiles | None = None,
) -> FastAPI:
    """Build the application around a fixed configuration."""
    forwarder = forwarder or Forwarder(config)
    static_files = static_files or StaticFiles(
        directory=config.static_dir, html=True, check_dir=False
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if config.route.is_complete:
            log.info("Forwarding %s to %s", CHAT_PATH, config.route.endpoint_url)
        else:
            log.warning("Gateway route not configured; /api/chat requests will fail")
        yield
        log.info("Edge router shutting down")

    # Docs routes off: every non-API path belongs to the static site.
    app = FastAPI(
        title="gateway-edge-router",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    async def serve_asset(request: Request) -> Response:
        path = static_files.get_path(request.scope)
        return await static_files.get_response(path, request.scope)

    async def handle_chat(request: Request) -> Response:
        req_id = get_request_id(request)
        client_ip = request.client.host if request.client else "unknown"
        log.info("Incoming chat req_id=%s from=%s", req_id, client_ip)

        if not config.route.is_complete:
            log.error("Chat request req_id=%s rejected: gateway route incomplete", req_id)
            return JSONResponse({"error": ROUTE_NOT_CONFIGURED_MESSAGE}, status_code=500)

        raw_body = await request.body()
        result = await forwarder.forward(raw_body, req_id)
        return to_response(result)

    async def entrypoint(scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        response = await dispatch(request, assets=serve_asset, chat=handle_chat)
        await response(scope, receive, send)

    # A raw ASGI mount sees every HTTP method, not just the ones a route lists.
    app.mount("/", entrypoint, name="edge-router")

    return app


# Load environment
load_env_files()

# Load configuration
config = load_config()
config.validate(require_route=False)

# Initialize logging
log = setup_logging(config.log_path, level_name=config.log_level, color=config.log_color)
dump_config(config)

app = create_app(config)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.port, reload=False)
