from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

import httpx

from naauth.models import NintendoAccountToken, NintendoAccountUser

T = TypeVar("T")


@dataclass(frozen=True)
class DeviceProof:
    f: str = field(repr=False)
    request_id: str
    timestamp: int

    @classmethod
    def from_payload(cls, payload: dict) -> "DeviceProof":
        f = payload.get("f")
        request_id = payload.get("request_id")
        timestamp = payload.get("timestamp")
        if not isinstance(f, str) or not f:
            raise ValueError("Device proof response missing f.")
        if not isinstance(request_id, str) or not request_id:
            raise ValueError("Device proof response missing request_id.")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, str)):
            raise ValueError("Device proof response missing timestamp.")
        return cls(f=f, request_id=request_id, timestamp=int(timestamp))

    def to_dict(self) -> dict[str, Any]:
        return {"f": self.f, "request_id": self.request_id, "timestamp": self.timestamp}


@dataclass(frozen=True)
class ServiceCredential:
    access_token: str = field(repr=False)
    expires_in: int

    @classmethod
    def from_payload(cls, payload: dict) -> "ServiceCredential":
        access_token = payload.get("accessToken")
        expires_in = payload.get("expiresIn")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Credential missing accessToken.")
        if not isinstance(expires_in, int):
            raise ValueError("Credential missing expiresIn.")
        return cls(access_token=access_token, expires_in=expires_in)

    def to_dict(self) -> dict[str, Any]:
        return {"accessToken": self.access_token, "expiresIn": self.expires_in}


@dataclass(frozen=True)
class PartialAuthData:
    na_token: NintendoAccountToken
    device_proof: DeviceProof
    nso_account: dict = field(repr=False)
    credential: ServiceCredential


@dataclass(frozen=True)
class SavedTokenBundle:
    """The unit persisted in the key-value store after a login or renewal.

    The profile and device proof snapshots are reused as-is on later runs;
    only ``credential`` has to be fresh.
    """

    na_token: NintendoAccountToken
    user: NintendoAccountUser
    device_proof: DeviceProof
    nso_account: dict = field(repr=False)
    credential: ServiceCredential
    znca_version: str
    znca_useragent: str
    expires_at: float = 0.0

    def is_expiring(self, margin_seconds: float, *, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return self.expires_at - margin_seconds < current

    def merge(self, data: PartialAuthData, *, expires_at: float) -> "SavedTokenBundle":
        return replace(
            self,
            na_token=data.na_token,
            device_proof=data.device_proof,
            nso_account=data.nso_account,
            credential=data.credential,
            expires_at=expires_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "nintendoAccountToken": self.na_token.to_dict(),
            "user": self.user.to_dict(),
            "f": self.device_proof.to_dict(),
            "nsoAccount": self.nso_account,
            "credential": self.credential.to_dict(),
            "znca_version": self.znca_version,
            "znca_useragent": self.znca_useragent,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, payload: dict) -> "SavedTokenBundle":
        return cls(
            na_token=NintendoAccountToken.from_payload(payload["nintendoAccountToken"]),
            user=NintendoAccountUser.from_payload(payload["user"]),
            device_proof=DeviceProof.from_payload(payload["f"]),
            nso_account=dict(payload.get("nsoAccount") or {}),
            credential=ServiceCredential.from_payload(payload["credential"]),
            znca_version=str(payload["znca_version"]),
            znca_useragent=str(payload["znca_useragent"]),
            expires_at=float(payload.get("expires_at", 0)),
        )


@dataclass(frozen=True)
class CoralResult(Generic[T]):
    result: T
    correlation_id: str | None
    response: httpx.Response = field(repr=False)
