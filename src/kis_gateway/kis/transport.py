from __future__ import annotations

from typing import FrozenSet, Mapping, Optional, Protocol, Tuple
from urllib.parse import urlsplit

import requests
from loguru import logger

from kis_gateway.core.errors import TransportError
from .settings import PROD_BASE_URL, VPS_BASE_URL

ALLOWED_HOSTS: FrozenSet[str] = frozenset(urlsplit(u).netloc for u in (PROD_BASE_URL, VPS_BASE_URL))


class Transport(Protocol):
    """The only way the gateway talks to the network.

    Returns (status_code, body_bytes) for any HTTP reply, including non-2xx.
    Raises TransportError when no reply was obtained. Retry and timeout policy
    belong to the implementation.
    """

    def perform(
        self, method: str, url: str, headers: Mapping[str, str], body: Optional[bytes]
    ) -> Tuple[int, bytes]: ...


class RequestsTransport:
    """`requests`-backed transport restricted to the KIS live/paper hosts."""

    def __init__(
        self,
        *,
        timeout_sec: float = 10,
        allowed_hosts: FrozenSet[str] = ALLOWED_HOSTS,
        session: Optional[requests.Session] = None,
    ):
        self.timeout_sec = timeout_sec
        self.allowed_hosts = allowed_hosts
        self.session = session or requests.Session()

    def perform(
        self, method: str, url: str, headers: Mapping[str, str], body: Optional[bytes]
    ) -> Tuple[int, bytes]:
        parts = urlsplit(url)
        if parts.scheme != "https" or parts.netloc not in self.allowed_hosts:
            raise TransportError(f"Destination not allowed: {parts.scheme}://{parts.netloc}")

        try:
            resp = self.session.request(
                method.upper(), url, headers=dict(headers), data=body, timeout=self.timeout_sec
            )
        except requests.RequestException as e:
            logger.warning(f"KIS transport failure {method.upper()} {parts.path}: {e}")
            raise TransportError(f"{type(e).__name__}: {e}") from e

        return int(resp.status_code), resp.content
