from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from loguru import logger

from kis_gateway.core.errors import BusinessFailure, TransportError
from kis_gateway.core.types import Action, AssetClass, Exchange
from .auth import KISTokenProvider
from .envelope import BusinessRejection, Success, classify, parse_json_object, unwrap
from .hashkey import HashkeySigner
from .routing import TransactionDescriptor, TransactionKey, TransactionRouter
from .settings import KISSettings
from .transport import RequestsTransport, Transport

# 기간이 만료된 token / 유효하지 않은 token
EXPIRED_TOKEN_CODES = frozenset({"EGW00123", "EGW00121"})


def encode_body(body: Mapping[str, Any]) -> bytes:
    """Serialize a request body once; the same bytes are signed and sent."""
    return json.dumps(body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


class KISClient:
    """REST client for KIS OpenAPI.

    - Resolves method/path/TR_ID through the router
    - Adds OAuth2 bearer token and appkey/appsecret headers
    - Adds hashkey for order-mutating bodies
    - Classifies the envelope and raises typed errors

    For one call the order is always: token -> hashkey -> send.
    """

    def __init__(
        self,
        settings: KISSettings,
        transport: Optional[Transport] = None,
        token_provider: Optional[KISTokenProvider] = None,
        signer: Optional[HashkeySigner] = None,
        router: Optional[TransactionRouter] = None,
    ):
        self.settings = settings
        self.transport = transport or RequestsTransport()
        self.token_provider = token_provider or KISTokenProvider(settings, self.transport)
        self.signer = signer or HashkeySigner(settings, self.transport)
        self.router = router or TransactionRouter()

    def describe(
        self, asset_class: AssetClass, action: Action, exchange: Optional[Exchange] = None
    ) -> TransactionDescriptor:
        return self.router.resolve(TransactionKey(asset_class, action, self.settings.environment, exchange))

    def call(
        self,
        asset_class: AssetClass,
        action: Action,
        *,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Mapping[str, Any]] = None,
        exchange: Optional[Exchange] = None,
    ) -> Success:
        desc = self.describe(asset_class, action, exchange)
        return self.send(desc, params=params, body=body)

    def send(
        self,
        desc: TransactionDescriptor,
        *,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Mapping[str, Any]] = None,
    ) -> Success:
        tok = self.token_provider.get()
        headers = self._headers(tok.access_token, desc.tr_id)

        payload: Optional[bytes] = None
        if desc.method.upper() != "GET":
            payload = encode_body(body or {})
            if desc.mutating:
                headers["hashkey"] = self.signer.sign(payload)

        url = f"{self.settings.base_url}{desc.path}"
        if params:
            url = f"{url}?{urlencode(params)}"

        status, raw = self.transport.perform(desc.method, url, headers, payload)
        return self._interpret(desc, status, raw)

    def _headers(self, access_token: str, tr_id: str) -> Dict[str, str]:
        return {
            "authorization": f"Bearer {access_token}",
            "appkey": self.settings.app_key,
            "appsecret": self.settings.app_secret,
            "tr_id": tr_id,
            "custtype": "P",
            "content-type": "application/json; charset=utf-8",
        }

    def _interpret(self, desc: TransactionDescriptor, status: int, raw: bytes) -> Success:
        outcome = classify(raw)
        if isinstance(outcome, BusinessRejection):
            if outcome.code in EXPIRED_TOKEN_CODES:
                self.token_provider.invalidate()
            if 200 <= status < 300 or "rt_cd" in (parse_json_object(raw) or {}):
                logger.warning(f"KIS {desc.tr_id} rejected: [{outcome.code}] {outcome.message}")
                raise BusinessFailure(outcome.code, outcome.message)

        if not 200 <= status < 300:
            snippet = raw[:300].decode("utf-8", errors="replace") if raw else ""
            logger.error(f"KIS {desc.tr_id} {desc.path} failed: HTTP {status} {snippet}")
            raise TransportError(f"HTTP {status}: {snippet}", status=status)

        return unwrap(outcome)
