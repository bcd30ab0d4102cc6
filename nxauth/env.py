from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

from .constants import DEFAULT_REQUEST_TIMEOUT, DEFAULT_TOKEN_STORE_PATH, LOGGER, ZNCA_VERSION


@dataclass(frozen=True)
class CoralConfig:
    znca_version: str = ZNCA_VERSION


@dataclass(frozen=True)
class RemoteConfig:
    """Process-wide switches gating which logins are permitted.

    ``coral`` is ``None`` when Coral authentication has been disabled.
    """

    coral: CoralConfig | None = CoralConfig()


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")
    if value <= 0:
        raise RuntimeError(f"{key} must be greater than zero.")
    return value


def request_timeout() -> float:
    return _get_env_float("NXAUTH_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)


def load_remote_config() -> RemoteConfig:
    if is_truthy(os.getenv("NXAUTH_CORAL_DISABLED")):
        LOGGER.warning("Coral authentication disabled by NXAUTH_CORAL_DISABLED")
        return RemoteConfig(coral=None)
    version = os.getenv("NXAUTH_ZNCA_VERSION", "").strip() or ZNCA_VERSION
    return RemoteConfig(coral=CoralConfig(znca_version=version))


def load_env(path: str | Path | None = None) -> bool:
    env_path = Path(path) if path else Path.cwd() / ".env"
    if not env_path.exists():
        return False
    return load_dotenv(env_path, override=False)


def validate_env() -> None:
    required = ("NXAUTH_F_API_URL",)
    missing = [key for key in required if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    f_api_url = os.getenv("NXAUTH_F_API_URL", "").strip()
    parsed = urlparse(f_api_url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise RuntimeError(
            "NXAUTH_F_API_URL must be a valid HTTP(S) URL (for example: "
            "https://nxapi-znca-api.fancy.org.uk/api/znca/f)."
        )

    request_timeout()


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("NXAUTH_DEBUG"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled


def token_store_path() -> Path:
    return Path(os.getenv("NXAUTH_TOKEN_STORE_PATH", "").strip() or DEFAULT_TOKEN_STORE_PATH)


def f_api_url() -> str:
    return os.getenv("NXAUTH_F_API_URL", "").strip()
