"""Tagged outcomes produced once, at the transport boundary.

Every response from the identity provider, the Coral API or the device proof
service is decoded into exactly one of :class:`Success`, :class:`AuthFailure`,
:class:`DomainFailure` or :class:`HttpFailure`.  Callers branch on the type;
nothing downstream inspects raw payloads for error fields again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

import httpx

from .constants import CoralStatus

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T
    response: httpx.Response
    correlation_id: str | None = None


@dataclass(frozen=True)
class AuthFailure:
    """An OAuth style ``{"error": ..., "error_description": ...}`` payload."""

    error: str
    description: str | None
    response: httpx.Response
    data: dict


@dataclass(frozen=True)
class DomainFailure:
    """A well-formed payload that reports an application level error."""

    code: int | str | None
    message: str | None
    response: httpx.Response
    data: dict

    @property
    def token_expired(self) -> bool:
        return self.code == CoralStatus.TOKEN_EXPIRED


@dataclass(frozen=True)
class HttpFailure:
    """Unexpected status code or a body that could not be understood."""

    reason: str
    response: httpx.Response
    body: Any


Outcome = Union[Success[Any], AuthFailure, DomainFailure, HttpFailure]


def read_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _coral_status(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def decode_json(response: httpx.Response) -> Outcome:
    body = read_body(response)
    if not response.is_success:
        return HttpFailure(f"Non-2xx status code {response.status_code}", response, body)
    if not isinstance(body, dict):
        return HttpFailure("Response body is not a JSON object", response, body)
    return Success(body, response)


def decode_na(response: httpx.Response) -> Outcome:
    body = read_body(response)

    if isinstance(body, dict):
        if "error" in body:
            return AuthFailure(
                error=str(body["error"]),
                description=body.get("error_description"),
                response=response,
                data=body,
            )
        if "errorCode" in body:
            return DomainFailure(
                code=str(body["errorCode"]),
                message=body.get("detail") or body.get("title"),
                response=response,
                data=body,
            )

    if response.status_code != 200:
        return HttpFailure(f"Non-200 status code {response.status_code}", response, body)
    if not isinstance(body, dict):
        return HttpFailure("Response body is not a JSON object", response, body)
    return Success(body, response)


def decode_coral(response: httpx.Response) -> Outcome:
    body = read_body(response)
    if not response.is_success:
        return HttpFailure(f"Non-2xx status code {response.status_code}", response, body)
    if not isinstance(body, dict):
        return HttpFailure("Response body is not a JSON object", response, body)

    status = _coral_status(body.get("status"))

    # Checked before errorMessage: expired envelopes may carry a message too.
    if status == CoralStatus.TOKEN_EXPIRED:
        return DomainFailure(CoralStatus.TOKEN_EXPIRED, body.get("errorMessage"), response, body)

    if "errorMessage" in body or status != CoralStatus.OK:
        return DomainFailure(status, body.get("errorMessage"), response, body)

    if "result" not in body:
        return HttpFailure("Success envelope is missing result", response, body)

    return Success(body["result"], response, body.get("correlationId"))
