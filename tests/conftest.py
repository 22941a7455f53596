# tests/conftest.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import hashlib
import json
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlsplit

import pytest

from kis_gateway.core.types import Environment
from kis_gateway.kis.auth import TOKEN_PATH, KISTokenProvider
from kis_gateway.kis.client import KISClient
from kis_gateway.kis.hashkey import HASHKEY_PATH
from kis_gateway.kis.settings import KISSettings


def envelope(output=None, *, rt_cd="0", msg_cd="MCA00000", msg1="정상처리 되었습니다.", **extra) -> Dict[str, Any]:
    body = {"rt_cd": rt_cd, "msg_cd": msg_cd, "msg1": msg1}
    if output is not None:
        body["output"] = output
    body.update(extra)
    return body


def fake_hash(body: Optional[bytes]) -> str:
    return hashlib.sha256(body or b"").hexdigest()


@dataclass
class Call:
    method: str
    url: str
    path: str
    query: Dict[str, str]
    headers: Dict[str, str]
    body: Optional[bytes]

    def json(self) -> Dict[str, Any]:
        return json.loads(self.body.decode("utf-8"))


class FakeTransport:
    """In-memory transport.

    Responses are queued per path; token and hashkey endpoints answer with
    defaults when nothing is queued. The default hashkey is sha256 of the
    exact request bytes, so tests can check what was signed.
    """

    def __init__(self):
        self.calls = []
        self.queues = defaultdict(deque)
        self.issued = 0

    def add(self, path: str, body: Any = None, *, status: int = 200, raw: Optional[bytes] = None):
        if raw is None:
            raw = json.dumps(body if body is not None else envelope(), ensure_ascii=False).encode("utf-8")
        self.queues[path].append((status, raw))
        return self

    def fail(self, path: str, exc: Exception):
        self.queues[path].append(exc)
        return self

    def perform(self, method, url, headers, body):
        parts = urlsplit(url)
        self.calls.append(
            Call(method, url, parts.path, dict(parse_qsl(parts.query, keep_blank_values=True)), dict(headers), body)
        )
        q = self.queues.get(parts.path)
        if q:
            resp = q.popleft()
            if isinstance(resp, Exception):
                raise resp
            return resp
        if parts.path == TOKEN_PATH:
            self.issued += 1
            tok = {"access_token": f"tok-{self.issued}", "token_type": "Bearer", "expires_in": 86400}
            return 200, json.dumps(tok).encode("utf-8")
        if parts.path == HASHKEY_PATH:
            return 200, json.dumps({"BODY": {"HASH": fake_hash(body)}}).encode("utf-8")
        raise AssertionError(f"unexpected call: {method} {parts.path}")

    @property
    def paths(self):
        return [c.path for c in self.calls]

    def calls_to(self, path: str):
        return [c for c in self.calls if c.path == path]

    def last(self, path: str) -> Call:
        return self.calls_to(path)[-1]


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, sec: float) -> None:
        self.now += sec


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def paper_settings():
    return KISSettings(
        app_key="PSabcdefghijklmn",
        app_secret="secret-0123456789abcdef",
        cano="12345678",
        acnt_prdt_cd="01",
        environment=Environment.PAPER,
    )


@pytest.fixture
def live_settings():
    return KISSettings(
        app_key="PLabcdefghijklmn",
        app_secret="secret-fedcba9876543210",
        cano="87654321",
        acnt_prdt_cd="01",
        environment=Environment.LIVE,
    )


@pytest.fixture
def make_client(transport, clock):
    def _make(settings: KISSettings) -> KISClient:
        provider = KISTokenProvider(settings, transport, clock=clock)
        return KISClient(settings, transport=transport, token_provider=provider)
    return _make


@pytest.fixture
def paper_client(make_client, paper_settings):
    return make_client(paper_settings)


@pytest.fixture
def live_client(make_client, live_settings):
    return make_client(live_settings)
