from __future__ import annotations

import json
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from loguru import logger

from kis_gateway.core.errors import CredentialRejected, MalformedAuthResponse, RateLimited
from kis_gateway.utils.logger import mask
from .envelope import parse_json_object
from .settings import KISSettings
from .transport import Transport

TOKEN_PATH = "/oauth2/tokenP"

# Renew once less than this much lifetime is left.
RENEWAL_MARGIN_SEC = 5 * 60
# KIS issues at most one token per minute per app key.
ISSUE_COOLDOWN_SEC = 60


@dataclass(frozen=True)
class Token:
    access_token: str
    token_type: str
    issued_at: float
    expires_at: float

    def is_usable(self, now: float, margin_sec: float = RENEWAL_MARGIN_SEC) -> bool:
        return bool(self.access_token) and now < (self.expires_at - margin_sec)


@dataclass
class SessionState:
    """The cached session slot.

    Owned by one token provider; the lock covers both the token and the cooldown
    clock so check-then-renew is a single critical section.
    """

    token: Optional[Token] = None
    last_attempt_at: Optional[float] = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class KISTokenProvider:
    """Issues and caches KIS OAuth2 access tokens in memory.

    - Reuses the cached token while more than RENEWAL_MARGIN_SEC of lifetime is left.
    - Renews synchronously otherwise, but never more than once per ISSUE_COOLDOWN_SEC;
      inside a closed window a not-yet-expired token is still returned, and a
      caller with no valid token gets RateLimited.
    - Failed attempts count against the window too.
    """

    def __init__(
        self,
        settings: KISSettings,
        transport: Transport,
        *,
        state: Optional[SessionState] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.transport = transport
        self.state = state or SessionState()
        self.clock = clock

    def get(self) -> Token:
        with self.state.lock:
            now = self.clock()
            tok = self.state.token
            if tok is not None and tok.is_usable(now):
                return tok

            last = self.state.last_attempt_at
            if last is not None and now - last < ISSUE_COOLDOWN_SEC:
                if tok is not None and now < tok.expires_at:
                    # 갱신 구간이지만 아직 만료 전
                    return tok
                wait = ISSUE_COOLDOWN_SEC - (now - last)
                logger.warning(f"KIS token issuance suppressed; next attempt allowed in {wait:.1f}s")
                raise RateLimited(f"token issuance cooldown active ({wait:.1f}s left)", retry_after=wait)

            if tok is not None:
                logger.info(f"KIS token renewal: {tok.expires_at - now:.0f}s left (margin {RENEWAL_MARGIN_SEC}s)")
            self.state.last_attempt_at = now
            tok = self.fetch_new(now)
            self.state.token = tok
            return tok

    def ensure_valid_token(self) -> str:
        return self.get().access_token

    def invalidate(self) -> None:
        """Drop the cached token (e.g. the venue reported it expired). Cooldown is kept."""
        with self.state.lock:
            if self.state.token is not None:
                logger.info("KIS cached token invalidated")
            self.state.token = None

    def fetch_new(self, now: float) -> Token:
        url = f"{self.settings.base_url}{TOKEN_PATH}"
        payload = {
            "grant_type": "client_credentials",
            "appkey": self.settings.app_key,
            "appsecret": self.settings.app_secret,
        }
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        status, raw = self.transport.perform(
            "POST", url, {"content-type": "application/json; charset=utf-8"}, body
        )
        if not 200 <= status < 300:
            logger.error(f"KIS token issuance rejected: HTTP {status}")
            raise CredentialRejected(status, raw.decode("utf-8", errors="replace")[:500])

        data = parse_json_object(raw)
        if data is None:
            raise MalformedAuthResponse("token response is not a JSON object")

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise MalformedAuthResponse("token response has no access_token")
        try:
            expires_in = float(data.get("expires_in"))
        except (TypeError, ValueError):
            raise MalformedAuthResponse(f"token response has invalid expires_in: {data.get('expires_in')!r}")
        if not math.isfinite(expires_in) or expires_in <= 0:
            raise MalformedAuthResponse(f"token response has invalid expires_in: {expires_in}")

        logger.info(
            f"KIS access token issued env={self.settings.environment.value} "
            f"key={mask(self.settings.app_key)} token={mask(access_token)} expires_in={expires_in:.0f}s"
        )
        return Token(
            access_token=access_token,
            token_type=str(data.get("token_type") or "Bearer"),
            issued_at=now,
            expires_at=now + expires_in,
        )
