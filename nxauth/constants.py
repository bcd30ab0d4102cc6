from __future__ import annotations

import logging
from enum import IntEnum

LOGGER = logging.getLogger("nxauth")
APP_VERSION = "0.1.0"

NA_AUTHORIZE_URL = "https://accounts.nintendo.com/connect/1.0.0/authorize"
NA_SESSION_TOKEN_URL = "https://accounts.nintendo.com/connect/1.0.0/api/session_token"
NA_TOKEN_URL = "https://accounts.nintendo.com/connect/1.0.0/api/token"
NA_USER_URL = "https://api.accounts.nintendo.com/2.0.0/users/me"
NA_SESSION_USER_AGENT = "NASDKAPI; Android"
NA_TOKEN_USER_AGENT = "Dalvik/2.1.0 (Linux; U; Android 8.0.0)"
NA_JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer-session-token"

ZNC_URL = "https://api-lp1.znc.srv.nintendo.net"
ZNCA_CLIENT_ID = "71b963c1b7b6d119"
ZNCA_PLATFORM = "Android"
ZNCA_PLATFORM_VERSION = "8.0.0"
ZNCA_VERSION = "2.2.0"

DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_TOKEN_STORE_PATH = ".nxauth-tokens.json"
# Saved credentials this close to expiry are replaced at startup.
TOKEN_EXPIRY_MARGIN_SECONDS = 5 * 60

ZNCA_SCOPES = ["openid", "user", "user.birthday", "user.mii", "user.screenName"]


class CoralStatus(IntEnum):
    OK = 0
    BAD_REQUEST = 9400
    INVALID_TOKEN = 9403
    INVALID_SESSION_TOKEN = 9404
    MEMBERSHIP_REQUIRED = 9450
    TOKEN_EXPIRED = 9999


def znca_useragent(version: str = ZNCA_VERSION) -> str:
    return f"com.nintendo.znca/{version}({ZNCA_PLATFORM}/{ZNCA_PLATFORM_VERSION})"


def additional_useragent() -> str:
    return f"nxauth/{APP_VERSION}"
