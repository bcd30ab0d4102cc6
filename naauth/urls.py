from __future__ import annotations

import urllib.parse
from typing import Mapping


def default_redirect_uri(client_id: str) -> str:
    return f"npf{client_id}://auth"


CALLBACK_KEYS = frozenset({"state", "session_token_code", "error"})


def is_callback(value: str | Mapping[str, str]) -> bool:
    """Whether *value* holds redirect parameters rather than a bare code."""
    if isinstance(value, Mapping):
        return True
    raw = value.strip()
    if "://" in raw:
        return True
    keys = {pair.partition("=")[0] for pair in raw.lstrip("?#").split("&")}
    return not keys.isdisjoint(CALLBACK_KEYS)


def parse_callback_params(value: str | Mapping[str, str]) -> dict[str, str]:
    """Return the parameters carried by an authorization redirect.

    Accepts a mapping, a bare query string (with or without a leading ``?`` or
    ``#``) or the full redirect URL.  The identity provider returns its
    parameters in the fragment, so the fragment wins over the query.
    """
    if isinstance(value, Mapping):
        return {str(key): str(item) for key, item in value.items()}

    raw = value.strip()
    if "://" in raw:
        parsed = urllib.parse.urlparse(raw)
        raw = parsed.fragment or parsed.query
    raw = raw.lstrip("?#")

    params: dict[str, str] = {}
    for key, item in urllib.parse.parse_qsl(raw, keep_blank_values=True):
        params.setdefault(key, item)
    return params
