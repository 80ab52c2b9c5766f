"""Upstream AI gateway communication."""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Tuple

import httpx

from config import AppConfig
from logger import LOGGER_NAME

log = logging.getLogger(LOGGER_NAME)

# Connection-level headers that must not be relayed to the client.
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


class UpstreamClient:
    """Build and send chat-completion requests to the AI gateway."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config

    @property
    def url(self) -> str:
        return self._config.route.endpoint_url

    def get_headers(self) -> Dict[str, str]:
        """Get headers for the gateway request."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self._config.user_agent,
        }
        if self._config.gateway_api_token:
            headers["Authorization"] = f"Bearer {self._config.gateway_api_token}"
        if self._config.gateway_auth_token:
            headers["cf-aig-authorization"] = f"Bearer {self._config.gateway_auth_token}"
        return headers

    def build_payload(self, messages: List[Any]) -> Dict[str, Any]:
        """
        Build the gateway payload.

        `model` is a dynamic-route directive read by the gateway, not a model id.
        """
        payload: Dict[str, Any] = {
            "model": self._config.route.model_directive,
            "messages": messages,
            "max_tokens": self._config.max_tokens,
            "stream": True,
        }
        if self._config.metadata:
            payload["metadata"] = dict(self._config.metadata)
        return payload

    def build_timeout(self) -> httpx.Timeout:
        """No read timeout: a long generation may pause between chunks."""
        t = float(self._config.connect_timeout_s)
        return httpx.Timeout(connect=t, write=t, pool=t, read=None)

    async def chat_completion(
        self,
        client: httpx.AsyncClient,
        messages: List[Any],
        req_id: str,
    ) -> httpx.Response:
        """
        POST the conversation to the gateway.

        The response is opened in streaming mode; the caller owns it and must
        close it.
        """
        t0 = time.time()
        req = client.build_request(
            "POST",
            self.url,
            headers=self.get_headers(),
            json=self.build_payload(messages),
        )
        resp = await client.send(req, stream=True)

        dt = (time.time() - t0) * 1000
        log.info(
            "Upstream chat req_id=%s model=%s status=%s ms=%.1f",
            req_id,
            self._config.route.model_directive,
            resp.status_code,
            dt,
        )
        return resp

    @staticmethod
    async def read_error_body(resp: httpx.Response) -> str:
        """Read the full upstream error body for diagnostics."""
        try:
            raw = await resp.aread()
        except httpx.HTTPError as e:
            return f"<unreadable error body: {type(e).__name__}>"
        return raw.decode("utf-8", errors="replace")

    @staticmethod
    def passthrough_headers(resp: httpx.Response) -> List[Tuple[str, str]]:
        """Upstream headers minus hop-by-hop framing headers, duplicates kept."""
        return [
            (k, v) for k, v in resp.headers.multi_items() if k.lower() not in HOP_BY_HOP_HEADERS
        ]
