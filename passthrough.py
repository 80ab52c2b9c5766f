"""Chunk-by-chunk relay of an upstream response body to the client."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncGenerator

import httpx

from logger import LOGGER_NAME

log = logging.getLogger(LOGGER_NAME)


async def close_upstream(client: httpx.AsyncClient, resp: httpx.Response) -> None:
    """Close the upstream response and its client. Safe to call more than once."""
    with contextlib.suppress(Exception):
        await resp.aclose()
    with contextlib.suppress(Exception):
        await client.aclose()


async def relay_upstream(
    client: httpx.AsyncClient,
    resp: httpx.Response,
    req_id: str,
) -> AsyncGenerator[bytes, None]:
    """
    Yield the upstream body exactly as received.

    Raw chunks are used so content-encoding and SSE framing reach the client
    untouched. Each chunk is read only after the previous one was consumed, so a
    slow client throttles the upstream read. If the client goes away the
    generator is cancelled and the upstream response is closed without being
    drained.
    """
    total = 0
    chunks = 0
    cancelled = False
    try:
        async for chunk in resp.aiter_raw():
            total += len(chunk)
            chunks += 1
            yield chunk
    except asyncio.CancelledError:
        cancelled = True
        raise
    except httpx.HTTPError as e:
        # Headers are already sent; all we can do is end the stream.
        log.warning("Upstream stream ended with error req_id=%s err=%r", req_id, e)
    finally:
        await close_upstream(client, resp)
        log.info(
            "Passthrough finished req_id=%s chunks=%d bytes=%d cancelled=%s",
            req_id,
            chunks,
            total,
            cancelled,
        )
