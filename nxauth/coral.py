"""Authenticated Coral API client with shared, single-flight token renewal.

The client owns exactly one current bearer token.  When a response reports
that the token has expired, the first caller to notice starts a renewal
through the ``on_token_expired`` handler; every other caller that notices
while it runs waits for the same renewal and sees the same new token, or the
same failure.  Each call is retried at most ``retry_policy.max_attempts``
times, so a service that keeps rejecting fresh tokens cannot cause a
renewal loop.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Awaitable, Callable, Union

import httpx

from naauth.models import NintendoAccountUser
from .constants import (
    LOGGER,
    ZNC_URL,
    ZNCA_PLATFORM,
    ZNCA_VERSION,
    additional_useragent,
)
from .constants import znca_useragent as default_znca_useragent
from .device_proof import DeviceProofProvider, HashMethod
from .errors import TokenExpiredDomainError, classify
from .http import create_http_client, send
from .login import ServiceLoginFlow
from .models import CoralResult, PartialAuthData, SavedTokenBundle
from .renewal import NO_RETRY, RetryPolicy, SingleFlight
from .results import Success, decode_coral

AuthData = Union[SavedTokenBundle, PartialAuthData]
TokenExpiredHandler = Callable[[TokenExpiredDomainError], Awaitable[Union[AuthData, None]]]


class CoralApi:
    def __init__(
        self,
        token: str,
        *,
        useragent: str | None = None,
        znca_version: str = ZNCA_VERSION,
        znca_useragent: str | None = None,
        base_url: str = ZNC_URL,
        client: httpx.AsyncClient | None = None,
        proof_provider: DeviceProofProvider | None = None,
        retry_policy: RetryPolicy = RetryPolicy(),
        on_token_expired: TokenExpiredHandler | None = None,
    ) -> None:
        self._token = token
        self.useragent = useragent or additional_useragent()
        self.znca_version = znca_version
        self.znca_useragent = znca_useragent or default_znca_useragent(znca_version)
        self.base_url = base_url.rstrip("/")
        self.proof_provider = proof_provider
        self.retry_policy = retry_policy
        self.on_token_expired = on_token_expired

        self._own_client = client is None
        self._client = client or create_http_client()
        self._renewal: SingleFlight[AuthData | None] = SingleFlight()

    @property
    def token(self) -> str:
        return self._token

    @property
    def renewing(self) -> bool:
        return self._renewal.pending

    async def aclose(self) -> None:
        if self._own_client:
            await self._client.aclose()

    async def __aenter__(self) -> "CoralApi":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -- requests ----------------------------------------------------------------

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: str | bytes | None = None,
        headers: dict[str, str] | None = None,
        *,
        auto_renew: bool = True,
    ) -> CoralResult[Any]:
        policy = self.retry_policy if auto_renew else NO_RETRY
        attempt = 0

        while True:
            if auto_renew:
                await self._renewal.wait()

            token = self._token
            outcome = await self._send(path, method, body, headers, token)

            if isinstance(outcome, Success):
                return CoralResult(
                    result=outcome.value,
                    correlation_id=outcome.correlation_id,
                    response=outcome.response,
                )

            error = classify(outcome, "znc")
            if (
                isinstance(error, TokenExpiredDomainError)
                and policy.allows(attempt)
                and self.on_token_expired is not None
            ):
                LOGGER.info("Token expired during %s %s, renewing before retrying", method, path)
                await self._renew(error, token)
                attempt += 1
                continue

            raise error

    async def call(
        self,
        path: str,
        parameter: dict[str, Any] | None = None,
        *,
        auto_renew: bool = True,
    ) -> CoralResult[Any]:
        body = json.dumps({"parameter": parameter or {}, "requestId": str(uuid.uuid4())})
        return await self.request(path, "POST", body, {}, auto_renew=auto_renew)

    async def get_web_service_token(self, web_service_id: int) -> CoralResult[Any]:
        """Get a token for a web service; needs a fresh device proof per attempt."""
        if self.proof_provider is None:
            raise RuntimeError("A device proof provider is required for web service tokens.")

        attempt = 0
        while True:
            await self._renewal.wait()
            token = self._token

            proof = await self.proof_provider(
                token,
                HashMethod.WEB_SERVICE,
                platform=ZNCA_PLATFORM,
                version=self.znca_version,
                useragent=self.useragent,
            )
            parameter = {
                "id": web_service_id,
                "registrationToken": "",
                "f": proof.f,
                "requestId": proof.request_id,
                "timestamp": proof.timestamp,
            }

            try:
                return await self.call("/v2/Game/GetWebServiceToken", parameter, auto_renew=False)
            except TokenExpiredDomainError as error:
                if not self.retry_policy.allows(attempt) or self.on_token_expired is None:
                    raise
                LOGGER.info("Error getting web service token, renewing token before retrying")
                await self._renew(error, token)
                attempt += 1

    # -- token lifecycle ---------------------------------------------------------

    async def renew_token(
        self,
        session_token: str,
        user: NintendoAccountUser,
        login_flow: ServiceLoginFlow,
    ) -> AuthData | None:
        """Mint a new credential through the shared renewal slot.

        If a renewal is already running this joins it and returns what that
        renewal produced instead of minting a second credential.
        """

        async def operation() -> PartialAuthData:
            data = await login_flow.get_token(session_token, user, bearer=self._token)
            self.set_token_with_saved_token(data)
            return data

        return await self._renewal.join_or_become_leader(operation)

    def set_token_with_saved_token(self, data: AuthData) -> None:
        self._token = data.credential.access_token

    async def _renew(self, error: TokenExpiredDomainError, used_token: str) -> None:
        if self._token != used_token:
            # Renewed by another caller since this request was sent.
            return
        await self._renewal.join_or_become_leader(lambda: self._run_renewal(error))

    async def _run_renewal(self, error: TokenExpiredDomainError) -> AuthData | None:
        handler = self.on_token_expired
        if handler is None:
            raise error
        data = await handler(error)
        if data is not None:
            self.set_token_with_saved_token(data)
            LOGGER.info("Coral token renewed")
        return data

    async def _send(
        self,
        path: str,
        method: str,
        body: str | bytes | None,
        headers: dict[str, str] | None,
        token: str,
    ):
        request_headers = {
            "X-Platform": ZNCA_PLATFORM,
            "X-ProductVersion": self.znca_version,
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json; charset=utf-8",
            "User-Agent": self.znca_useragent,
        }
        request_headers.update(headers or {})

        response = await send(
            self._client,
            method,
            self.base_url + path,
            headers=request_headers,
            content=body,
        )
        LOGGER.debug("fetch %s %s, response %s", method, path, response.status_code)
        return decode_coral(response)

    # -- construction ------------------------------------------------------------

    @classmethod
    def create_with_saved_token(cls, data: SavedTokenBundle, **kwargs) -> "CoralApi":
        return cls(
            data.credential.access_token,
            znca_version=data.znca_version,
            znca_useragent=data.znca_useragent,
            **kwargs,
        )

    @classmethod
    async def create_with_session_token(
        cls,
        session_token: str,
        login_flow: ServiceLoginFlow,
        **kwargs,
    ) -> tuple["CoralApi", SavedTokenBundle]:
        data = await login_flow.login(session_token)
        return cls.create_with_saved_token(data, **kwargs), data
