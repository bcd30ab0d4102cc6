from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from .constants import LOGGER
from .env import request_timeout
from .errors import RequestTimeoutError, TransportFailureError


async def log_request(request: httpx.Request) -> None:
    LOGGER.debug("Request %s %s", request.method, request.url)


async def log_response(response: httpx.Response) -> None:
    LOGGER.debug(
        "Response %s %s -> %s",
        response.request.method,
        response.request.url,
        response.status_code,
    )
    if response.status_code >= 400:
        body = await response.aread()
        text = body.decode("utf-8", errors="replace")
        if len(text) > 1000:
            text = text[:1000] + "...<truncated>"
        LOGGER.debug("Error body: %s", text)


def create_http_client(
    *,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=request_timeout() if timeout is None else timeout,
        transport=transport,
        event_hooks={
            "request": [log_request],
            "response": [log_response],
        },
    )


@asynccontextmanager
async def client_scope(client: httpx.AsyncClient | None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield *client*, or a temporary client that is closed afterwards."""
    own_client = client is None
    http_client = client or create_http_client()
    try:
        yield http_client
    finally:
        if own_client:
            await http_client.aclose()


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float | None = None,
    **kwargs,
) -> httpx.Response:
    """Issue a request bounded by the process-wide request timeout.

    The whole exchange (connect, upload and download) must finish within the
    limit; otherwise the request is cancelled and
    :class:`~nxauth.errors.RequestTimeoutError` is raised.  Any other transport
    failure is raised as :class:`~nxauth.errors.TransportFailureError`.
    """
    limit = request_timeout() if timeout is None else timeout
    try:
        return await asyncio.wait_for(client.request(method, url, **kwargs), limit)
    except (asyncio.TimeoutError, httpx.TimeoutException) as error:
        LOGGER.warning("Request timed out after %ss (%s %s)", limit, method, url)
        raise RequestTimeoutError(f"{method} {url} timed out after {limit}s") from error
    except httpx.TransportError as error:
        LOGGER.warning("Request failed (%s %s): %r", method, url, error)
        raise TransportFailureError(f"{method} {url} failed: {error}") from error
