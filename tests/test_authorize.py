import asyncio
import urllib.parse

import pytest

from naauth.authorize import AuthorizationFlow, FlowState, build_authorization_url
from naauth.models import PkceChallenge, SessionToken
from naauth.urls import is_callback, parse_callback_params
from nxauth.constants import NA_SESSION_TOKEN_URL
from nxauth.errors import (
    AlreadyCompletedError,
    AuthorizationDeniedError,
    InvalidCodeError,
    InvalidStateError,
    ServiceErrorResponse,
)

CHALLENGE = PkceChallenge(
    state="state-value-0123456789-0123456789-0123456789",
    verifier="verifier-value",
    challenge="challenge-value",
)


def _flow(**kwargs) -> tuple[AuthorizationFlow, list[dict]]:
    calls: list[dict] = []

    async def _exchange(code, verifier, client_id, *, client=None):
        calls.append({"code": code, "verifier": verifier, "client_id": client_id})
        return SessionToken(session_token="session-token-1", code=code)

    kwargs.setdefault("exchange_code_fn", _exchange)
    flow = AuthorizationFlow("abc", ["openid", "user"], challenge=CHALLENGE, **kwargs)
    return flow, calls


def test_authorization_url_example() -> None:
    flow = AuthorizationFlow.create("abc", ["openid", "user"])
    query = urllib.parse.parse_qs(urllib.parse.urlparse(flow.authorize_url).query)

    assert "client_id=abc&scope=openid+user&response_type=session_token_code" in flow.authorize_url
    assert len(query["state"][0]) >= 43
    assert query["redirect_uri"] == ["npfabc://auth"]
    assert query["session_token_code_challenge_method"] == ["S256"]
    assert query["theme"] == ["login_form"]


def test_build_authorization_url_contains_required_params() -> None:
    url = build_authorization_url(
        "client123",
        "openid user",
        "npfclient123://auth",
        "state123",
        "challenge123",
    )
    query = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)

    assert query["client_id"] == ["client123"]
    assert query["state"] == ["state123"]
    assert query["session_token_code_challenge"] == ["challenge123"]
    assert query["response_type"] == ["session_token_code"]
    assert query["scope"] == ["openid user"]


@pytest.mark.asyncio
async def test_complete_with_code_and_state() -> None:
    flow, calls = _flow()

    token = await flow.complete_with_callback("code-1", CHALLENGE.state)

    assert token.session_token == "session-token-1"
    assert calls == [{"code": "code-1", "verifier": "verifier-value", "client_id": "abc"}]
    assert flow.status is FlowState.COMPLETED
    assert flow.result is not None and flow.result.code == "code-1"


@pytest.mark.asyncio
async def test_complete_with_redirect_url_fragment() -> None:
    flow, calls = _flow()
    callback = (
        "npfabc://auth#session_token_code=code-2"
        f"&state={CHALLENGE.state}&session_state=abc"
    )

    await flow.complete_with_callback(callback)

    assert calls[0]["code"] == "code-2"


@pytest.mark.asyncio
async def test_bare_code_with_padding_is_not_parsed_as_callback() -> None:
    flow, calls = _flow()

    await flow.complete_with_callback("Y29kZS0x==", CHALLENGE.state)

    assert calls[0]["code"] == "Y29kZS0x=="
    assert flow.status is FlowState.COMPLETED


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("code-1", False),
        ("Y29kZS0x==", False),
        ("session_token_code=c&state=s", True),
        ("#error=access_denied", True),
        ("npfabc://auth", True),
        ({"state": "s"}, True),
    ],
)
def test_is_callback(value, expected) -> None:
    assert is_callback(value) is expected


@pytest.mark.asyncio
async def test_second_call_is_rejected_regardless_of_arguments() -> None:
    flow, calls = _flow()
    await flow.complete_with_callback("code-1", CHALLENGE.state)

    with pytest.raises(AlreadyCompletedError):
        await flow.complete_with_callback("code-1", CHALLENGE.state)
    with pytest.raises(AlreadyCompletedError):
        await flow.complete_with_callback({"state": "other", "session_token_code": "x"})

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_state_mismatch_fails_before_network(httpx_mock) -> None:
    flow = AuthorizationFlow("abc", ["openid"], challenge=CHALLENGE)

    with pytest.raises(InvalidStateError):
        await flow.complete_with_callback("code-1", "wrong-state")
    with pytest.raises(InvalidStateError):
        await flow.complete_with_callback({"session_token_code": "code-1"})

    assert httpx_mock.get_requests() == []
    assert flow.status is FlowState.PENDING


@pytest.mark.asyncio
async def test_state_is_checked_before_provider_error() -> None:
    flow, calls = _flow()

    with pytest.raises(InvalidStateError):
        await flow.complete_with_callback("error=access_denied&state=forged")

    assert calls == []


@pytest.mark.asyncio
async def test_denied_callback() -> None:
    flow, calls = _flow()

    with pytest.raises(AuthorizationDeniedError) as exc_info:
        await flow.complete_with_callback(
            f"state={CHALLENGE.state}&error=access_denied&error_description=User+cancelled"
        )

    assert exc_info.value.error == "access_denied"
    assert exc_info.value.description == "User cancelled"
    assert calls == []
    assert flow.status is FlowState.PENDING


@pytest.mark.asyncio
async def test_missing_code() -> None:
    flow, calls = _flow()

    with pytest.raises(InvalidCodeError):
        await flow.complete_with_callback("", CHALLENGE.state)
    with pytest.raises(InvalidCodeError):
        await flow.complete_with_callback({"state": CHALLENGE.state})

    assert calls == []
    await flow.complete_with_callback("code-1", CHALLENGE.state)
    assert flow.completed


@pytest.mark.asyncio
async def test_failed_exchange_is_terminal(httpx_mock) -> None:
    httpx_mock.add_response(
        url=NA_SESSION_TOKEN_URL,
        method="POST",
        status_code=400,
        json={"error": "invalid_request", "error_description": "bad verifier"},
    )
    flow = AuthorizationFlow("abc", ["openid"], challenge=CHALLENGE)

    with pytest.raises(ServiceErrorResponse):
        await flow.complete_with_callback("code-1", CHALLENGE.state)

    assert flow.status is FlowState.FAILED
    with pytest.raises(AlreadyCompletedError):
        await flow.complete_with_callback("code-1", CHALLENGE.state)


@pytest.mark.asyncio
async def test_exchange_uses_identity_provider(httpx_mock) -> None:
    httpx_mock.add_response(
        url=NA_SESSION_TOKEN_URL,
        method="POST",
        json={"session_token": "session-token-1", "code": "code-1"},
    )
    flow = AuthorizationFlow("abc", ["openid"], challenge=CHALLENGE)

    token = await flow.complete_with_callback("code-1", CHALLENGE.state)

    request = httpx_mock.get_request()
    form = urllib.parse.parse_qs(request.content.decode())
    assert token.session_token == "session-token-1"
    assert form["session_token_code_verifier"] == ["verifier-value"]
    assert form["client_id"] == ["abc"]


def test_parse_callback_params_prefers_fragment() -> None:
    params = parse_callback_params("npfabc://auth?state=query#state=fragment&session_token_code=c")

    assert params == {"state": "fragment", "session_token_code": "c"}


@pytest.mark.asyncio
async def test_concurrent_callback_during_exchange() -> None:
    release = asyncio.Event()

    async def _slow_exchange(code, verifier, client_id, *, client=None):
        await release.wait()
        return SessionToken(session_token="session-token-1", code=code)

    flow, _ = _flow(exchange_code_fn=_slow_exchange)
    first = asyncio.create_task(flow.complete_with_callback("code-1", CHALLENGE.state))
    await asyncio.sleep(0)

    assert flow.status is FlowState.REDEEMING
    with pytest.raises(AlreadyCompletedError):
        await flow.complete_with_callback("code-1", CHALLENGE.state)

    release.set()
    assert (await first).session_token == "session-token-1"
