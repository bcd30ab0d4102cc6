import pytest

NXAUTH_ENV_VARS = (
    "NXAUTH_REQUEST_TIMEOUT",
    "NXAUTH_ZNCA_VERSION",
    "NXAUTH_CORAL_DISABLED",
    "NXAUTH_F_API_URL",
    "NXAUTH_TOKEN_STORE_PATH",
    "NXAUTH_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_nxauth_env(monkeypatch) -> None:
    for key in NXAUTH_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
