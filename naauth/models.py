from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class PkceChallenge:
    state: str = field(repr=False)
    verifier: str = field(repr=False)
    challenge: str
    challenge_method: str = "S256"


@dataclass(frozen=True)
class AuthorizationResult:
    state: str = field(repr=False)
    code: str = field(repr=False)


@dataclass(frozen=True)
class SessionToken:
    session_token: str = field(repr=False)
    code: str = field(repr=False)

    @classmethod
    def from_payload(cls, payload: dict) -> "SessionToken":
        session_token = payload.get("session_token")
        if not isinstance(session_token, str) or not session_token:
            raise ValueError("Session token response missing session_token.")
        return cls(session_token=session_token, code=str(payload.get("code", "")))


@dataclass(frozen=True)
class NintendoAccountToken:
    id_token: str = field(repr=False)
    expires_in: int
    access_token: str | None = field(default=None, repr=False)
    scope: list[str] = field(default_factory=list)
    token_type: str = "Bearer"

    @classmethod
    def from_payload(cls, payload: dict) -> "NintendoAccountToken":
        id_token = payload.get("id_token")
        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in", 900)

        if not isinstance(id_token, str) or not id_token:
            raise ValueError("Token response missing id_token.")
        if access_token is not None and not isinstance(access_token, str):
            raise ValueError("Token response access_token must be a string.")
        if not isinstance(expires_in, int):
            raise ValueError("Token response expires_in must be an integer.")

        scope = payload.get("scope") or []
        if isinstance(scope, str):
            scope = scope.split()

        return cls(
            id_token=id_token,
            access_token=access_token,
            expires_in=expires_in,
            scope=list(scope),
            token_type=str(payload.get("token_type", "Bearer")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id_token": self.id_token,
            "access_token": self.access_token,
            "expires_in": self.expires_in,
            "scope": list(self.scope),
            "token_type": self.token_type,
        }


@dataclass(frozen=True)
class NintendoAccountUser:
    """Profile snapshot; ``raw`` keeps the provider payload verbatim."""

    id: str
    nickname: str = ""
    country: str = ""
    language: str = ""
    birthday: str | None = None
    screen_name: str | None = None
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_payload(cls, payload: dict) -> "NintendoAccountUser":
        user_id = payload.get("id")
        if not isinstance(user_id, str) or not user_id:
            raise ValueError("User response missing id.")
        return cls(
            id=user_id,
            nickname=str(payload.get("nickname") or ""),
            country=str(payload.get("country") or ""),
            language=str(payload.get("language") or ""),
            birthday=payload.get("birthday"),
            screen_name=payload.get("screenName"),
            raw=dict(payload),
        )

    def to_dict(self) -> dict[str, Any]:
        if self.raw:
            return dict(self.raw)
        return {
            "id": self.id,
            "nickname": self.nickname,
            "country": self.country,
            "language": self.language,
            "birthday": self.birthday,
            "screenName": self.screen_name,
        }
