"""Path/method dispatch between static assets and the chat API."""

from __future__ import annotations

import enum
from typing import Awaitable, Callable

from fastapi import Request
from fastapi.responses import PlainTextResponse, Response

API_PREFIX = "/api/"
CHAT_PATH = "/api/chat"

Handler = Callable[[Request], Awaitable[Response]]


class Route(enum.Enum):
    ASSETS = "assets"
    CHAT = "chat"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    NOT_FOUND = "not_found"


def resolve_route(path: str, method: str) -> Route:
    """Decide what handles a request. First match wins."""
    if path == "/" or not path.startswith(API_PREFIX):
        return Route.ASSETS
    if path == CHAT_PATH:
        if method.upper() == "POST":
            return Route.CHAT
        return Route.METHOD_NOT_ALLOWED
    return Route.NOT_FOUND


async def dispatch(request: Request, assets: Handler, chat: Handler) -> Response:
    """
    Hand the request to the matching handler.

    The body is left unread here so whichever handler gets the request reads it once.
    """
    route = resolve_route(request.url.path, request.method)
    if route is Route.ASSETS:
        return await assets(request)
    if route is Route.CHAT:
        return await chat(request)
    if route is Route.METHOD_NOT_ALLOWED:
        return PlainTextResponse("Method not allowed", status_code=405)
    return PlainTextResponse("Not found", status_code=404)
