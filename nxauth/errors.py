"""Exception types raised by nxauth.

Flow errors are raised before any network call is made.  Everything that
comes back from a server is a :class:`ClassifiedError`, which always keeps the
original :class:`httpx.Response` and parsed payload for diagnostics.
"""

from __future__ import annotations

from typing import Any, Mapping

import httpx

from .constants import CoralStatus
from .results import AuthFailure, DomainFailure, HttpFailure, Outcome, Success


class NxAuthError(Exception):
    """Base class for every error raised by this package."""


# -- authorization flow --------------------------------------------------------


class FlowError(NxAuthError):
    pass


class InvalidStateError(FlowError):
    def __init__(self, message: str = "Invalid state") -> None:
        super().__init__(message)


class InvalidCodeError(FlowError):
    def __init__(self, message: str = "Invalid code") -> None:
        super().__init__(message)


class AlreadyCompletedError(FlowError):
    def __init__(self, message: str = "Authorization flow already completed") -> None:
        super().__init__(message)


class AuthorizationDeniedError(FlowError):
    def __init__(self, error: str, description: str | None = None) -> None:
        super().__init__(description or error)
        self.error = error
        self.description = description

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "AuthorizationDeniedError":
        error = params.get("error") or "unknown_error"
        return cls(error, params.get("error_description"))


class LoginNotPermittedError(NxAuthError):
    pass


class RequestTimeoutError(NxAuthError, TimeoutError):
    kind = "timeout"
    retriable = True


# -- classified server responses -----------------------------------------------


class ClassifiedError(NxAuthError):
    kind = "error"
    retriable = False

    def __init__(
        self,
        message: str,
        *,
        response: httpx.Response | None = None,
        data: Any = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.response = response
        self.data = data
        self._user_message = user_message

    @property
    def http_status(self) -> int | None:
        return None if self.response is None else self.response.status_code

    @property
    def raw_body(self) -> str | None:
        return None if self.response is None else self.response.text

    @property
    def user_message(self) -> str | None:
        return self._user_message

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {
            "error": self.kind,
            "message": str(self),
            "status": self.http_status,
            "retriable": self.retriable,
            "user_message": self.user_message,
            "data": self.data,
        }


class TransportFailureError(ClassifiedError):
    """The request failed before any response arrived."""

    kind = "transport"
    retriable = True


class ServiceErrorResponse(ClassifiedError):
    kind = "service_error"

    @property
    def retriable(self) -> bool:  # type: ignore[override]
        status = self.http_status
        return status is not None and (status == 429 or status >= 500)


class IdentityProviderError(ServiceErrorResponse):
    """An OAuth error other than ``invalid_grant``; the session may still be good."""

    kind = "identity_provider_error"

    def __init__(self, message: str, *, error: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.error = error

    @property
    def retriable(self) -> bool:  # type: ignore[override]
        return True


class SessionExpiredError(ClassifiedError):
    kind = "session_expired"

    @property
    def user_message(self) -> str:
        return (
            "Your Nintendo Account session token has expired or was revoked. "
            "You need to sign in again."
        )


class TokenExpiredDomainError(ClassifiedError):
    kind = "token_expired"
    retriable = True


class MembershipRequiredError(ClassifiedError):
    kind = "membership_required"

    @property
    def user_message(self) -> str:
        return self._user_message or "A Nintendo Switch Online membership is required."


def friendly_error_message(status_code: int) -> str:
    if status_code == 401:
        return "Authentication failed. Your token may have expired."
    if status_code == 403:
        return "You don't have permission to perform this action."
    if status_code == 404:
        return "The requested resource was not found."
    if status_code == 429:
        return "Rate limit exceeded. Please wait before trying again."
    if status_code >= 500:
        return "The service is experiencing issues. Please try again later."
    return f"Request failed with status {status_code}."


def classify(outcome: Outcome, prefix: str) -> ClassifiedError:
    if isinstance(outcome, AuthFailure):
        message = f"[{prefix}] {outcome.description or outcome.error}"
        if outcome.error == "invalid_grant":
            return SessionExpiredError(message, response=outcome.response, data=outcome.data)
        return IdentityProviderError(
            message, error=outcome.error, response=outcome.response, data=outcome.data
        )

    if isinstance(outcome, DomainFailure):
        if outcome.code == CoralStatus.TOKEN_EXPIRED:
            return TokenExpiredDomainError(
                f"[{prefix}] {outcome.message or 'Token expired'}",
                response=outcome.response,
                data=outcome.data,
            )
        if outcome.code == CoralStatus.MEMBERSHIP_REQUIRED:
            return MembershipRequiredError(
                f"[{prefix}] {outcome.message or 'Membership required'}",
                response=outcome.response,
                data=outcome.data,
                user_message=outcome.message,
            )
        return ServiceErrorResponse(
            f"[{prefix}] {outcome.message or 'Unknown error'}",
            response=outcome.response,
            data=outcome.data,
        )

    if isinstance(outcome, HttpFailure):
        return ServiceErrorResponse(
            f"[{prefix}] {outcome.reason}",
            response=outcome.response,
            data=outcome.body,
            user_message=friendly_error_message(outcome.response.status_code)
            if not outcome.response.is_success
            else None,
        )

    raise TypeError(f"Cannot classify {type(outcome).__name__}")


def unwrap(outcome: Outcome, prefix: str) -> Success[Any]:
    if isinstance(outcome, Success):
        return outcome
    raise classify(outcome, prefix)
