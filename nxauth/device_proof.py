"""Device proof (``f``) capability.

The proof algorithm itself is opaque to this package; it is obtained from a
provider implementing :class:`DeviceProofProvider`.  The bundled
:class:`RemoteDeviceProofProvider` asks an HTTP service for it.
"""

from __future__ import annotations

import enum
import time
import uuid
from typing import Protocol

import httpx

from .constants import LOGGER, ZNCA_PLATFORM, additional_useragent
from .errors import ServiceErrorResponse, unwrap
from .http import client_scope, send
from .models import DeviceProof
from .results import decode_json


class HashMethod(enum.IntEnum):
    CORAL = 1
    WEB_SERVICE = 2


class DeviceProofProvider(Protocol):
    async def __call__(
        self,
        token: str,
        hash_method: HashMethod,
        *,
        platform: str,
        version: str,
        useragent: str,
    ) -> DeviceProof: ...


class RemoteDeviceProofProvider:
    def __init__(self, url: str, *, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._client = client

    async def __call__(
        self,
        token: str,
        hash_method: HashMethod,
        *,
        platform: str = ZNCA_PLATFORM,
        version: str,
        useragent: str | None = None,
    ) -> DeviceProof:
        request_id = str(uuid.uuid4())
        timestamp = int(time.time() * 1000)

        LOGGER.debug("Requesting device proof hash_method=%s", int(hash_method))
        async with client_scope(self._client) as http_client:
            response = await send(
                http_client,
                "POST",
                self.url,
                headers={
                    "User-Agent": useragent or additional_useragent(),
                    "X-znca-Platform": platform,
                    "X-znca-Version": version,
                },
                json={
                    "hash_method": int(hash_method),
                    "token": token,
                    "request_id": request_id,
                    "timestamp": timestamp,
                },
            )

        success = unwrap(decode_json(response), "f")
        try:
            return DeviceProof.from_payload(success.value)
        except ValueError as error:
            raise ServiceErrorResponse(
                f"[f] {error}", response=success.response, data=success.value
            ) from error
