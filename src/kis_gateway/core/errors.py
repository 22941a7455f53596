from __future__ import annotations

from typing import Optional


class KISError(Exception):
    """Base gateway error."""

    def __init__(self, msg: str = ""):
        super().__init__(msg)
        self.msg = msg

    def __str__(self):
        return self.msg or self.__class__.__name__


# -------------------- auth --------------------
class AuthError(KISError):
    """Token issuance or hashkey signing failed."""


class RateLimited(AuthError):
    """Token issuance refused locally: the per-minute issuance window is still closed."""

    def __init__(self, msg: str = "", retry_after: float = 0.0):
        super().__init__(msg)
        self.retry_after = float(retry_after)


class CredentialRejected(AuthError):
    """Venue answered a token/hashkey request with a non-2xx status."""

    def __init__(self, status: int, body: str = ""):
        super().__init__(f"HTTP {status}: {body}")
        self.status = int(status)
        self.body = body


# -------------------- config --------------------
class ConfigError(KISError):
    """Caller or configuration problem (never retried)."""


class UnsupportedInEnvironment(ConfigError):
    """No routing entry for the requested (asset class, action, environment)."""


class UnknownInstrumentClass(ConfigError):
    """Asset class is not one of the five supported classes."""


class ValidationError(KISError):
    """Request shape rejected before any network call."""


# -------------------- transport / venue --------------------
class TransportError(KISError):
    """Network-level failure, or a non-2xx reply that carries no venue envelope."""

    def __init__(self, msg: str = "", status: Optional[int] = None):
        super().__init__(msg)
        self.status = status


class BusinessFailure(KISError):
    """Venue accepted the request but rejected it (rt_cd != "0").

    `code` and `message` are the venue's msg_cd / msg1, unmodified.
    """

    def __init__(self, code: str, message: str):
        super().__init__(f"KIS[{code}]: {message}")
        self.code = code
        self.message = message


class MalformedResponse(KISError):
    """Response body does not match the expected envelope shape."""


class MalformedAuthResponse(AuthError, MalformedResponse):
    """Token/hashkey reply parsed but lacks the fields we need."""
