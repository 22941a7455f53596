from __future__ import annotations

from loguru import logger

from kis_gateway.core.errors import CredentialRejected, MalformedAuthResponse
from .envelope import parse_json_object
from .settings import KISSettings
from .transport import Transport

HASHKEY_PATH = "/uapi/hashkey"


class HashkeySigner:
    """Generate the hashkey header for a POST body.

    KIS requires it on every order-mutating call. The signature is computed over
    the exact bytes later sent as the request body, so callers serialize once and
    pass the same bytes to both `sign` and the transport.
    """

    def __init__(self, settings: KISSettings, transport: Transport):
        self.settings = settings
        self.transport = transport

    def sign(self, body: bytes) -> str:
        url = f"{self.settings.base_url}{HASHKEY_PATH}"
        headers = {
            "appkey": self.settings.app_key,
            "appsecret": self.settings.app_secret,
            "content-type": "application/json; charset=utf-8",
        }
        status, raw = self.transport.perform("POST", url, headers, body)
        if not 200 <= status < 300:
            logger.error(f"KIS hashkey rejected: HTTP {status}")
            raise CredentialRejected(status, raw.decode("utf-8", errors="replace")[:500])

        data = parse_json_object(raw)
        if data is None:
            raise MalformedAuthResponse("hashkey response is not a JSON object")

        inner = data.get("BODY")
        hk = inner.get("HASH") if isinstance(inner, dict) else None
        hk = hk or data.get("HASH")
        if not isinstance(hk, str) or not hk:
            raise MalformedAuthResponse(f"hashkey response has no HASH: {sorted(data)}")
        return hk
