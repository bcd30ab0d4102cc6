"""Authorization-code-with-PKCE flow against Nintendo Account.

A flow object is single use: it hands out one authorize URL and redeems at
most one callback.  Callbacks that fail validation (wrong ``state``, a
provider ``error`` or no code) are rejected before any network call and
leave the flow pending.  Once an exchange has been attempted the verifier is
discarded and every further call raises
:class:`~nxauth.errors.AlreadyCompletedError`.
"""

from __future__ import annotations

import enum
import hmac
import urllib.parse
from typing import Awaitable, Callable, Iterable, Mapping

import httpx

from naauth import na
from naauth.models import AuthorizationResult, PkceChallenge, SessionToken
from naauth.pkce import generate_challenge
from naauth.urls import default_redirect_uri, is_callback, parse_callback_params
from nxauth.constants import LOGGER, NA_AUTHORIZE_URL
from nxauth.errors import (
    AlreadyCompletedError,
    AuthorizationDeniedError,
    InvalidCodeError,
    InvalidStateError,
)

ExchangeFn = Callable[..., Awaitable[SessionToken]]


def build_authorization_url(
    client_id: str,
    scopes: str | Iterable[str],
    redirect_uri: str,
    state: str,
    challenge: str,
    *,
    challenge_method: str = "S256",
) -> str:
    query = {
        "state": state,
        "redirect_uri": redirect_uri,
        "client_id": client_id,
        "scope": scopes if isinstance(scopes, str) else " ".join(scopes),
        "response_type": "session_token_code",
        "session_token_code_challenge": challenge,
        "session_token_code_challenge_method": challenge_method,
        "theme": "login_form",
    }
    return f"{NA_AUTHORIZE_URL}?{urllib.parse.urlencode(query)}"


class FlowState(enum.Enum):
    PENDING = "pending"
    REDEEMING = "redeeming"
    COMPLETED = "completed"
    FAILED = "failed"


class AuthorizationFlow:
    def __init__(
        self,
        client_id: str,
        scopes: str | Iterable[str],
        *,
        redirect_uri: str | None = None,
        challenge: PkceChallenge | None = None,
        client: httpx.AsyncClient | None = None,
        exchange_code_fn: ExchangeFn = na.get_session_token,
    ) -> None:
        self.client_id = client_id
        self.scope = scopes if isinstance(scopes, str) else " ".join(scopes)
        self.redirect_uri = redirect_uri or default_redirect_uri(client_id)

        challenge = challenge or generate_challenge()
        self._state = challenge.state
        self._verifier: str | None = challenge.verifier
        self.authorize_url = build_authorization_url(
            client_id,
            self.scope,
            self.redirect_uri,
            challenge.state,
            challenge.challenge,
            challenge_method=challenge.challenge_method,
        )

        self.status = FlowState.PENDING
        self.result: AuthorizationResult | None = None
        self._client = client
        self._exchange_code_fn = exchange_code_fn

    @classmethod
    def create(
        cls,
        client_id: str,
        scopes: str | Iterable[str],
        redirect_uri: str | None = None,
        **kwargs,
    ) -> "AuthorizationFlow":
        return cls(client_id, scopes, redirect_uri=redirect_uri, **kwargs)

    @property
    def state(self) -> str:
        return self._state

    @property
    def completed(self) -> bool:
        return self.status is FlowState.COMPLETED

    async def complete_with_callback(
        self,
        code: str | Mapping[str, str],
        state: str | None = None,
    ) -> SessionToken:
        """Validate a redirect callback and redeem it for a session token.

        *code* is either the ``session_token_code`` itself (with *state*
        passed separately) or the callback parameters as a mapping, query
        string or full redirect URL.
        """
        if self.status is not FlowState.PENDING:
            raise AlreadyCompletedError()

        if is_callback(code):
            params = parse_callback_params(code)
            state = params.get("state")
            self._check_state(state)
            if params.get("error"):
                raise AuthorizationDeniedError.from_params(params)
            code = params.get("session_token_code", "")
        else:
            self._check_state(state)

        if not code:
            raise InvalidCodeError()

        verifier = self._verifier
        self.status = FlowState.REDEEMING
        self.result = AuthorizationResult(state=self._state, code=code)
        self._verifier = None

        try:
            session_token = await self._exchange_code_fn(
                code, verifier, self.client_id, client=self._client
            )
        except BaseException:
            self.status = FlowState.FAILED
            raise

        self.status = FlowState.COMPLETED
        LOGGER.info("Nintendo Account authorization completed for client %s", self.client_id)
        return session_token

    def _check_state(self, state: str | None) -> None:
        if not state or not hmac.compare_digest(state.encode(), self._state.encode()):
            raise InvalidStateError()
