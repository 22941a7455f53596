# tests/test_auth.py
import threading

import pytest

from conftest import envelope
from kis_gateway.core.errors import (
    CredentialRejected,
    MalformedAuthResponse,
    RateLimited,
    TransportError,
)
from kis_gateway.kis.auth import (
    ISSUE_COOLDOWN_SEC,
    RENEWAL_MARGIN_SEC,
    TOKEN_PATH,
    KISTokenProvider,
    SessionState,
    Token,
)


@pytest.fixture
def provider(paper_settings, transport, clock):
    return KISTokenProvider(paper_settings, transport, clock=clock)


def test_first_get_issues_token_with_client_credentials(provider, transport, clock):
    tok = provider.get()
    assert tok.access_token == "tok-1"
    assert tok.issued_at == clock.now
    assert tok.expires_at == clock.now + 86400

    call = transport.last(TOKEN_PATH)
    assert call.method == "POST"
    assert call.url.startswith("https://openapivts.koreainvestment.com:29443")
    assert call.json() == {
        "grant_type": "client_credentials",
        "appkey": "PSabcdefghijklmn",
        "appsecret": "secret-0123456789abcdef",
    }


def test_usable_token_is_reused_without_network(provider, transport, clock):
    first = provider.get()
    clock.advance(3600)
    assert provider.get() is first
    assert provider.ensure_valid_token() == "tok-1"
    assert len(transport.calls_to(TOKEN_PATH)) == 1


def test_token_within_renewal_margin_is_renewed(paper_settings, transport, clock):
    old = Token("old", "Bearer", clock.now - 86000, clock.now + 240)  # 4분 남음
    provider = KISTokenProvider(paper_settings, transport, state=SessionState(token=old), clock=clock)

    tok = provider.get()
    assert tok.access_token == "tok-1"
    assert tok.expires_at > old.expires_at
    assert len(transport.calls_to(TOKEN_PATH)) == 1


def test_unexpired_token_is_served_while_issuance_window_is_closed(paper_settings, transport, clock):
    old = Token("old", "Bearer", clock.now - 86000, clock.now + 120)
    state = SessionState(token=old, last_attempt_at=clock.now - 10)
    provider = KISTokenProvider(paper_settings, transport, state=state, clock=clock)

    assert provider.get() is old
    assert transport.calls == []

    clock.advance(130)  # 만료 후, 창은 아직 닫힘
    state.last_attempt_at = clock.now - 10
    with pytest.raises(RateLimited):
        provider.get()
    assert transport.calls == []

    clock.advance(ISSUE_COOLDOWN_SEC)
    assert provider.get().access_token == "tok-1"


def test_token_just_outside_margin_is_kept(paper_settings, transport, clock):
    cur = Token("cur", "Bearer", clock.now - 1000, clock.now + RENEWAL_MARGIN_SEC + 1)
    provider = KISTokenProvider(paper_settings, transport, state=SessionState(token=cur), clock=clock)
    assert provider.get() is cur
    assert transport.calls == []


def test_failed_attempt_closes_issuance_window(provider, transport, clock):
    transport.add(TOKEN_PATH, {"error_code": "EGW00133", "error_description": "접근토큰 발급 잠시 후 다시 시도하세요(1분당 1회)"}, status=403)

    with pytest.raises(CredentialRejected) as ei:
        provider.get()
    assert ei.value.status == 403

    clock.advance(30)
    with pytest.raises(RateLimited) as rl:
        provider.get()
    assert rl.value.retry_after == pytest.approx(30)
    assert len(transport.calls_to(TOKEN_PATH)) == 1

    clock.advance(ISSUE_COOLDOWN_SEC - 30)
    assert provider.get().access_token == "tok-1"
    assert len(transport.calls_to(TOKEN_PATH)) == 2


def test_invalidate_drops_token_but_keeps_cooldown(provider, transport, clock):
    provider.get()
    provider.invalidate()
    assert provider.state.token is None

    with pytest.raises(RateLimited):
        provider.get()

    clock.advance(ISSUE_COOLDOWN_SEC)
    assert provider.get().access_token == "tok-2"


@pytest.mark.parametrize(
    "body",
    [
        {"token_type": "Bearer", "expires_in": 86400},
        {"access_token": "", "expires_in": 86400},
        {"access_token": "abc"},
        {"access_token": "abc", "expires_in": 0},
        {"access_token": "abc", "expires_in": "soon"},
    ],
)
def test_incomplete_token_response_is_malformed(provider, transport, body):
    transport.add(TOKEN_PATH, body)
    with pytest.raises(MalformedAuthResponse):
        provider.get()
    assert provider.state.token is None


@pytest.mark.parametrize("raw", [b'{"access_token": "abc", "expires_in": NaN}', b'{"access_token": "abc", "expires_in": Infinity}'])
def test_non_finite_expiry_is_malformed(provider, transport, raw):
    transport.add(TOKEN_PATH, raw=raw)
    with pytest.raises(MalformedAuthResponse):
        provider.get()
    assert provider.state.token is None


def test_non_json_token_response_is_malformed(provider, transport):
    transport.add(TOKEN_PATH, raw=b"<html>gateway</html>")
    with pytest.raises(MalformedAuthResponse):
        provider.get()


def test_transport_failure_propagates_and_counts_as_attempt(provider, transport):
    transport.fail(TOKEN_PATH, TransportError("connection reset"))
    with pytest.raises(TransportError):
        provider.get()
    with pytest.raises(RateLimited):
        provider.get()


def test_concurrent_callers_share_one_issuance(provider, transport):
    barrier = threading.Barrier(8)
    tokens, errors = [], []

    def worker():
        barrier.wait()
        try:
            tokens.append(provider.get().access_token)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert set(tokens) == {"tok-1"}
    assert len(transport.calls_to(TOKEN_PATH)) == 1


def test_envelope_on_token_path_is_malformed(provider, transport):
    # a venue envelope on the token path is not a token
    transport.add(TOKEN_PATH, envelope(rt_cd="1", msg_cd="EGW00002", msg1="서버 에러"))
    with pytest.raises(MalformedAuthResponse):
        provider.get()
