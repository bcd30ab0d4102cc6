from __future__ import annotations

import base64
import hashlib
import secrets

from naauth.models import PkceChallenge

STATE_BYTES = 36
VERIFIER_BYTES = 32


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_state() -> str:
    return _b64url(secrets.token_bytes(STATE_BYTES))


def generate_code_verifier() -> str:
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return _b64url(digest)


def generate_challenge() -> PkceChallenge:
    verifier = generate_code_verifier()
    return PkceChallenge(
        state=generate_state(),
        verifier=verifier,
        challenge=generate_code_challenge(verifier),
        challenge_method="S256",
    )
