"""Forward chat requests to the AI gateway and report the outcome."""

from __future__ import annotations

import contextlib
import enum
import functools
import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Tuple, Union

import httpx

from config import AppConfig
from logger import LOGGER_NAME
from models import normalize_conversation
from passthrough import close_upstream, relay_upstream
from upstream import UpstreamClient

log = logging.getLogger(LOGGER_NAME)

CONNECTION_FAILURE_MESSAGE = "connection failure"


class FailureKind(enum.Enum):
    UPSTREAM_REJECTED = "upstream_rejected"
    UPSTREAM_UNREACHABLE = "upstream_unreachable"


@dataclass
class ForwardSuccess:
    """Upstream accepted the request; `body` relays its stream, `close` releases it."""

    status_code: int
    headers: List[Tuple[str, str]]
    body: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]]


@dataclass
class ForwardFailure:
    """The request could not be served. `message` is safe to show a client."""

    kind: FailureKind
    message: str
    upstream_status: int | None = field(default=None)


ForwardResult = Union[ForwardSuccess, ForwardFailure]

ClientFactory = Callable[[], httpx.AsyncClient]


class Forwarder:
    """
    Turn an incoming chat body into exactly one gateway call.

    There are no retries and no fallback route: one upstream failure is one
    client-visible failure.
    """

    def __init__(
        self,
        config: AppConfig,
        upstream: UpstreamClient | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._upstream = upstream or UpstreamClient(config)
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._upstream.build_timeout())

    async def forward(self, raw_body: bytes, req_id: str = "-") -> ForwardResult:
        messages = normalize_conversation(raw_body, self._config.system_prompt)
        log.info("Forwarding chat req_id=%s messages=%d", req_id, len(messages))

        client = self._client_factory()
        try:
            resp = await self._upstream.chat_completion(client, messages, req_id)
        except (httpx.HTTPError, OSError):
            log.exception("Error connecting to AI gateway req_id=%s url=%s", req_id, self._upstream.url)
            with contextlib.suppress(Exception):
                await client.aclose()
            return ForwardFailure(FailureKind.UPSTREAM_UNREACHABLE, CONNECTION_FAILURE_MESSAGE)
        except Exception:
            with contextlib.suppress(Exception):
                await client.aclose()
            raise

        if not resp.is_success:
            return await self._reject(client, resp, req_id)

        return ForwardSuccess(
            status_code=resp.status_code,
            headers=self._upstream.passthrough_headers(resp),
            body=relay_upstream(client, resp, req_id),
            close=functools.partial(close_upstream, client, resp),
        )

    async def _reject(
        self, client: httpx.AsyncClient, resp: httpx.Response, req_id: str
    ) -> ForwardFailure:
        details = await self._upstream.read_error_body(resp)
        log.warning(
            "AI gateway error req_id=%s status=%s content-type=%s body=%s",
            req_id,
            resp.status_code,
            resp.headers.get("content-type", ""),
            details,
        )
        with contextlib.suppress(Exception):
            await resp.aclose()
        with contextlib.suppress(Exception):
            await client.aclose()
        reason = resp.reason_phrase or f"status {resp.status_code}"
        return ForwardFailure(
            FailureKind.UPSTREAM_REJECTED,
            f"AI service failed: {reason}",
            upstream_status=resp.status_code,
        )
