from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Mapping

import httpx

from naauth.authorize import AuthorizationFlow
from naauth.models import NintendoAccountUser
from naauth.na import IdentityTokenExchanger
from naauth.token_store import FileStore, KeyValueStore, na_session_key, nso_token_key
from nxauth.constants import LOGGER, TOKEN_EXPIRY_MARGIN_SECONDS, ZNCA_CLIENT_ID, ZNCA_SCOPES
from nxauth.coral import CoralApi, TokenExpiredHandler
from nxauth.device_proof import DeviceProofProvider, RemoteDeviceProofProvider
from nxauth.env import (
    f_api_url,
    load_env,
    load_remote_config,
    setup_logging,
    token_store_path,
    validate_env,
)
from nxauth.errors import TokenExpiredDomainError
from nxauth.login import ServiceLoginFlow
from nxauth.models import PartialAuthData, SavedTokenBundle
from nxauth.renewal import RetryPolicy


def start_authorization(*, client: httpx.AsyncClient | None = None) -> AuthorizationFlow:
    return AuthorizationFlow.create(ZNCA_CLIENT_ID, ZNCA_SCOPES, client=client)


async def complete_authorization(
    flow: AuthorizationFlow,
    callback: str | Mapping[str, str],
    storage: KeyValueStore,
    *,
    exchanger: IdentityTokenExchanger | None = None,
) -> tuple[str, NintendoAccountUser]:
    """Redeem a redirect callback and remember the session token per user."""
    token = await flow.complete_with_callback(callback)
    exchanger = exchanger or IdentityTokenExchanger(flow.client_id)

    na_token = await exchanger.session_to_jwt_tokens(token.session_token)
    user = await exchanger.fetch_profile(na_token)

    await storage.set(na_session_key(user.id), token.session_token)
    LOGGER.info("Authenticated as Nintendo Account %s (%s)", user.screen_name or user.nickname, user.id)
    return token.session_token, user


async def load_saved_bundle(storage: KeyValueStore, session_token: str) -> SavedTokenBundle | None:
    payload = await storage.get(nso_token_key(session_token))
    if not payload:
        return None
    try:
        return SavedTokenBundle.from_dict(payload)
    except (KeyError, TypeError, ValueError) as error:
        LOGGER.warning("Ignoring unreadable saved Coral token: %s", error)
        return None


async def get_token(
    storage: KeyValueStore,
    session_token: str,
    *,
    login_flow: ServiceLoginFlow,
    proof_provider: DeviceProofProvider | None = None,
    client: httpx.AsyncClient | None = None,
    retry_policy: RetryPolicy = RetryPolicy(),
) -> tuple[CoralApi, SavedTokenBundle]:
    bundle = await load_saved_bundle(storage, session_token)

    if bundle is None or bundle.is_expiring(TOKEN_EXPIRY_MARGIN_SECONDS):
        LOGGER.info("Authenticating to Coral")
        bundle = await login_flow.login(session_token)
        await storage.set(nso_token_key(session_token), bundle.to_dict())
    else:
        LOGGER.debug("Using existing Coral token")

    api = CoralApi.create_with_saved_token(
        bundle,
        client=client,
        proof_provider=proof_provider,
        retry_policy=retry_policy,
    )
    api.on_token_expired = create_token_expired_handler(
        storage, session_token, api, bundle, login_flow
    )
    return api, bundle


def create_token_expired_handler(
    storage: KeyValueStore,
    session_token: str,
    api: CoralApi,
    bundle: SavedTokenBundle,
    login_flow: ServiceLoginFlow,
) -> TokenExpiredHandler:
    current = bundle

    async def on_token_expired(error: TokenExpiredDomainError) -> PartialAuthData:
        nonlocal current
        LOGGER.info("Coral token expired, renewing (%s)", error)

        data = await login_flow.get_token(session_token, current.user, bearer=api.token)
        current = current.merge(data, expires_at=time.time() + data.credential.expires_in)
        await storage.set(nso_token_key(session_token), current.to_dict())
        return data

    return on_token_expired


@dataclass
class Session:
    storage: KeyValueStore
    login_flow: ServiceLoginFlow
    proof_provider: DeviceProofProvider
    client: httpx.AsyncClient | None = None

    async def get_token(self, session_token: str) -> tuple[CoralApi, SavedTokenBundle]:
        return await get_token(
            self.storage,
            session_token,
            login_flow=self.login_flow,
            proof_provider=self.proof_provider,
            client=self.client,
        )


def create_session(
    *,
    storage: KeyValueStore | None = None,
    client: httpx.AsyncClient | None = None,
) -> Session:
    load_env()
    setup_logging()
    validate_env()

    proof_provider = RemoteDeviceProofProvider(f_api_url(), client=client)
    login_flow = ServiceLoginFlow(
        load_remote_config(),
        proof_provider=proof_provider,
        client=client,
    )
    return Session(
        storage=storage or FileStore(token_store_path()),
        login_flow=login_flow,
        proof_provider=proof_provider,
        client=client,
    )
