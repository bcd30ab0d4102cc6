"""Coral login: Nintendo Account tokens + device proof -> service credential."""

from __future__ import annotations

import json
import time
import uuid
from typing import Any

import httpx

from naauth.na import IdentityTokenExchanger
from naauth.models import NintendoAccountUser
from .constants import (
    LOGGER,
    ZNC_URL,
    ZNCA_CLIENT_ID,
    ZNCA_PLATFORM,
    additional_useragent,
    znca_useragent,
)
from .device_proof import DeviceProofProvider, HashMethod
from .env import RemoteConfig
from .errors import LoginNotPermittedError, MembershipRequiredError, ServiceErrorResponse, unwrap
from .http import client_scope, send
from .models import DeviceProof, PartialAuthData, SavedTokenBundle, ServiceCredential
from .results import Success, decode_coral


class ServiceLoginFlow:
    def __init__(
        self,
        config: RemoteConfig,
        *,
        proof_provider: DeviceProofProvider,
        exchanger: IdentityTokenExchanger | None = None,
        client: httpx.AsyncClient | None = None,
        base_url: str = ZNC_URL,
        useragent: str | None = None,
    ) -> None:
        if config.coral is None:
            raise LoginNotPermittedError("Remote configuration prevents Coral authentication")

        self.znca_version = config.coral.znca_version
        self.znca_useragent = znca_useragent(self.znca_version)
        self.base_url = base_url.rstrip("/")
        self.useragent = useragent or additional_useragent()
        self.exchanger = exchanger or IdentityTokenExchanger(ZNCA_CLIENT_ID, client=client)
        self._proof_provider = proof_provider
        self._client = client

    async def login(self, session_token: str) -> SavedTokenBundle:
        na_token = await self.exchanger.session_to_jwt_tokens(session_token)
        user = await self.exchanger.fetch_profile(na_token)
        proof = await self._compute_proof(na_token.id_token)

        LOGGER.debug("Getting Nintendo Switch Online app token")
        success = await self._account_call(
            "/v3/Account/Login",
            {
                "naIdToken": na_token.id_token,
                "naBirthday": user.birthday,
                "naCountry": user.country,
                "language": user.language,
                "timestamp": proof.timestamp,
                "requestId": proof.request_id,
                "f": proof.f,
            },
        )
        credential = _credential(success)
        LOGGER.info("Logged in to Coral as Nintendo Account %s", user.id)

        return SavedTokenBundle(
            na_token=na_token,
            user=user,
            device_proof=proof,
            nso_account=success.value,
            credential=credential,
            znca_version=self.znca_version,
            znca_useragent=self.znca_useragent,
            expires_at=time.time() + credential.expires_in,
        )

    async def get_token(
        self,
        session_token: str,
        user: NintendoAccountUser,
        *,
        bearer: str | None = None,
    ) -> PartialAuthData:
        """Mint a new credential reusing the cached profile snapshot."""
        na_token = await self.exchanger.session_to_jwt_tokens(session_token)
        proof = await self._compute_proof(na_token.id_token)

        success = await self._account_call(
            "/v3/Account/GetToken",
            {
                "naBirthday": user.birthday,
                "timestamp": proof.timestamp,
                "f": proof.f,
                "requestId": proof.request_id,
                "naIdToken": na_token.id_token,
            },
            bearer=bearer,
        )

        return PartialAuthData(
            na_token=na_token,
            device_proof=proof,
            nso_account=success.value,
            credential=_credential(success),
        )

    async def _compute_proof(self, id_token: str) -> DeviceProof:
        return await self._proof_provider(
            id_token,
            HashMethod.CORAL,
            platform=ZNCA_PLATFORM,
            version=self.znca_version,
            useragent=self.useragent,
        )

    async def _account_call(
        self,
        path: str,
        parameter: dict[str, Any],
        *,
        bearer: str | None = None,
    ) -> Success[dict]:
        body: dict[str, Any] = {"parameter": parameter}
        headers = {
            "X-Platform": ZNCA_PLATFORM,
            "X-ProductVersion": self.znca_version,
            "Content-Type": "application/json; charset=utf-8",
            "User-Agent": self.znca_useragent,
        }
        if bearer:
            body["requestId"] = str(uuid.uuid4())
            headers["Authorization"] = f"Bearer {bearer}"

        async with client_scope(self._client) as http_client:
            response = await send(
                http_client,
                "POST",
                self.base_url + path,
                headers=headers,
                content=json.dumps(body),
            )

        LOGGER.debug("fetch POST %s, response %s", path, response.status_code)
        return unwrap(decode_coral(response), "znc")


def _credential(success: Success[dict]) -> ServiceCredential:
    try:
        return ServiceCredential.from_payload(success.value.get("webApiServerCredential") or {})
    except ValueError as error:
        raise ServiceErrorResponse(
            f"[znc] {error}", response=success.response, data=success.value
        ) from error


def check_membership_active(bundle: SavedTokenBundle) -> None:
    user = bundle.nso_account.get("user") or {}
    network = (user.get("links") or {}).get("nintendoNetwork") or {}
    membership = network.get("membership") or {}

    if not membership.get("active"):
        raise MembershipRequiredError(
            "Nintendo Switch Online membership required",
            data=bundle.nso_account,
        )
