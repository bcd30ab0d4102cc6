"""Nintendo Account requests: session token, id/access tokens and profile."""

from __future__ import annotations

from typing import Callable, TypeVar

import httpx

from naauth.models import NintendoAccountToken, NintendoAccountUser, SessionToken
from nxauth.constants import (
    LOGGER,
    NA_JWT_BEARER_GRANT,
    NA_SESSION_TOKEN_URL,
    NA_SESSION_USER_AGENT,
    NA_TOKEN_URL,
    NA_TOKEN_USER_AGENT,
    NA_USER_URL,
)
from nxauth.errors import ServiceErrorResponse, unwrap
from nxauth.http import client_scope, send
from nxauth.results import Success, decode_na

M = TypeVar("M")


def _build(model: Callable[[dict], M], success: Success[dict]) -> M:
    try:
        return model(success.value)
    except ValueError as error:
        raise ServiceErrorResponse(
            f"[na] {error}", response=success.response, data=success.value
        ) from error


async def _na_request(
    method: str,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    **kwargs,
) -> Success[dict]:
    async with client_scope(client) as http_client:
        response = await send(http_client, method, url, **kwargs)

    LOGGER.debug("[na] %s %s -> %s", method, url, response.status_code)
    return unwrap(decode_na(response), "na")


async def get_session_token(
    code: str,
    verifier: str,
    client_id: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> SessionToken:
    LOGGER.debug("Getting Nintendo Account session token")
    success = await _na_request(
        "POST",
        NA_SESSION_TOKEN_URL,
        headers={
            "Accept": "application/json",
            "User-Agent": NA_SESSION_USER_AGENT,
        },
        data={
            "client_id": client_id,
            "session_token_code": code,
            "session_token_code_verifier": verifier,
        },
        client=client,
    )
    return _build(SessionToken.from_payload, success)


async def get_token(
    session_token: str,
    client_id: str,
    *,
    client: httpx.AsyncClient | None = None,
) -> NintendoAccountToken:
    LOGGER.debug("Getting Nintendo Account token")
    success = await _na_request(
        "POST",
        NA_TOKEN_URL,
        headers={
            "Accept": "application/json",
            "User-Agent": NA_TOKEN_USER_AGENT,
        },
        json={
            "client_id": client_id,
            "session_token": session_token,
            "grant_type": NA_JWT_BEARER_GRANT,
        },
        client=client,
    )
    return _build(NintendoAccountToken.from_payload, success)


async def get_user(
    token: NintendoAccountToken,
    *,
    client: httpx.AsyncClient | None = None,
) -> NintendoAccountUser:
    if not token.access_token:
        raise ValueError("Nintendo Account token has no access_token; cannot fetch profile.")

    LOGGER.debug("Getting Nintendo Account user info")
    success = await _na_request(
        "GET",
        NA_USER_URL,
        headers={
            "Accept": "application/json",
            "Accept-Language": "en-GB",
            "User-Agent": NA_SESSION_USER_AGENT,
            "Authorization": f"Bearer {token.access_token}",
        },
        client=client,
    )
    return _build(NintendoAccountUser.from_payload, success)


class IdentityTokenExchanger:
    """Stateless request/response operations against Nintendo Account."""

    def __init__(self, client_id: str, *, client: httpx.AsyncClient | None = None) -> None:
        self.client_id = client_id
        self._client = client

    async def exchange_session_code(self, code: str, verifier: str) -> SessionToken:
        return await get_session_token(code, verifier, self.client_id, client=self._client)

    async def session_to_jwt_tokens(self, session_token: str) -> NintendoAccountToken:
        return await get_token(session_token, self.client_id, client=self._client)

    async def fetch_profile(self, token: NintendoAccountToken) -> NintendoAccountUser:
        return await get_user(token, client=self._client)
