import httpx
import pytest

from nxauth.errors import (
    MembershipRequiredError,
    ServiceErrorResponse,
    SessionExpiredError,
    classify,
    friendly_error_message,
)
from nxauth.results import decode_coral, decode_na


@pytest.mark.parametrize(
    ("status", "message"),
    [
        (401, "Authentication failed. Your token may have expired."),
        (403, "You don't have permission to perform this action."),
        (404, "The requested resource was not found."),
        (429, "Rate limit exceeded. Please wait before trying again."),
        (503, "The service is experiencing issues. Please try again later."),
        (418, "Request failed with status 418."),
    ],
)
def test_friendly_messages(status, message) -> None:
    assert friendly_error_message(status) == message


def test_payload_keeps_machine_readable_error() -> None:
    response = httpx.Response(
        200,
        request=httpx.Request("POST", "https://coral.example.com/v3/Account/Login"),
        json={"status": 9450, "errorMessage": "Membership required", "correlationId": "c"},
    )

    error = classify(decode_coral(response), "znc")
    payload = error.to_payload()

    assert isinstance(error, MembershipRequiredError)
    assert payload["error"] == "membership_required"
    assert payload["status"] == 200
    assert payload["data"]["status"] == 9450
    assert payload["retriable"] is False


def test_session_expired_payload_has_user_message() -> None:
    response = httpx.Response(
        400,
        request=httpx.Request("POST", "https://accounts.nintendo.com/connect/1.0.0/api/token"),
        json={"error": "invalid_grant", "error_description": "The provided grant is invalid."},
    )

    error = classify(decode_na(response), "na")

    assert isinstance(error, SessionExpiredError)
    assert str(error) == "[na] The provided grant is invalid."
    assert error.to_payload()["user_message"].startswith("Your Nintendo Account session token")


def test_service_error_without_response() -> None:
    error = ServiceErrorResponse("[znc] broken")

    assert error.http_status is None
    assert error.raw_body is None
    assert not error.retriable
