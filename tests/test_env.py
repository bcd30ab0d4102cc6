import logging
from pathlib import Path

import pytest

from nxauth.constants import LOGGER, ZNCA_VERSION
from nxauth.env import (
    load_env,
    load_remote_config,
    request_timeout,
    setup_logging,
    token_store_path,
    validate_env,
)


def test_request_timeout_default(monkeypatch) -> None:
    monkeypatch.delenv("NXAUTH_REQUEST_TIMEOUT", raising=False)

    assert request_timeout() == 60.0


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_request_timeout_invalid(monkeypatch, value) -> None:
    monkeypatch.setenv("NXAUTH_REQUEST_TIMEOUT", value)

    with pytest.raises(RuntimeError, match="NXAUTH_REQUEST_TIMEOUT"):
        request_timeout()


def test_remote_config_default(monkeypatch) -> None:
    monkeypatch.delenv("NXAUTH_CORAL_DISABLED", raising=False)
    monkeypatch.delenv("NXAUTH_ZNCA_VERSION", raising=False)

    config = load_remote_config()

    assert config.coral is not None
    assert config.coral.znca_version == ZNCA_VERSION


def test_remote_config_disabled(monkeypatch) -> None:
    monkeypatch.setenv("NXAUTH_CORAL_DISABLED", "yes")

    assert load_remote_config().coral is None


def test_remote_config_version_override(monkeypatch) -> None:
    monkeypatch.delenv("NXAUTH_CORAL_DISABLED", raising=False)
    monkeypatch.setenv("NXAUTH_ZNCA_VERSION", "2.9.0")

    assert load_remote_config().coral.znca_version == "2.9.0"


def test_validate_env_requires_f_api_url(monkeypatch) -> None:
    monkeypatch.delenv("NXAUTH_F_API_URL", raising=False)

    with pytest.raises(RuntimeError, match="NXAUTH_F_API_URL"):
        validate_env()


def test_validate_env_rejects_non_http_url(monkeypatch) -> None:
    monkeypatch.setenv("NXAUTH_F_API_URL", "ftp://f.example.com")

    with pytest.raises(RuntimeError, match="HTTP"):
        validate_env()


def test_validate_env_accepts_valid_config(monkeypatch) -> None:
    monkeypatch.setenv("NXAUTH_F_API_URL", "https://f.example.com/api/znca/f")
    monkeypatch.delenv("NXAUTH_REQUEST_TIMEOUT", raising=False)

    validate_env()


def test_token_store_path(monkeypatch) -> None:
    monkeypatch.delenv("NXAUTH_TOKEN_STORE_PATH", raising=False)
    assert token_store_path() == Path(".nxauth-tokens.json")

    monkeypatch.setenv("NXAUTH_TOKEN_STORE_PATH", "/tmp/tokens.json")
    assert token_store_path() == Path("/tmp/tokens.json")


def test_load_env_reads_dotenv(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("NXAUTH_ZNCA_VERSION", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("NXAUTH_ZNCA_VERSION=3.0.1\n", encoding="utf-8")

    assert load_env(env_file)
    assert load_remote_config().coral.znca_version == "3.0.1"


def test_load_env_missing_file(tmp_path) -> None:
    assert load_env(tmp_path / ".env") is False


def test_setup_logging(monkeypatch) -> None:
    monkeypatch.setenv("NXAUTH_DEBUG", "1")
    level = LOGGER.level

    try:
        assert setup_logging() is True
        assert LOGGER.level == logging.INFO
    finally:
        LOGGER.setLevel(level)
