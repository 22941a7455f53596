# tests/test_hashkey.py
import pytest

from conftest import fake_hash
from kis_gateway.core.errors import CredentialRejected, MalformedAuthResponse
from kis_gateway.kis.hashkey import HASHKEY_PATH, HashkeySigner


@pytest.fixture
def signer(paper_settings, transport):
    return HashkeySigner(paper_settings, transport)


def test_sign_posts_exact_bytes(signer, transport):
    body = '{"CANO":"12345678","PDNO":"005930"}'.encode("utf-8")
    assert signer.sign(body) == fake_hash(body)

    call = transport.last(HASHKEY_PATH)
    assert call.method == "POST"
    assert call.body == body
    assert call.headers["appkey"] == "PSabcdefghijklmn"
    assert call.headers["appsecret"] == "secret-0123456789abcdef"
    assert call.headers["content-type"].startswith("application/json")
    assert "authorization" not in call.headers


def test_top_level_hash_is_accepted(signer, transport):
    transport.add(HASHKEY_PATH, {"HASH": "abc123"})
    assert signer.sign(b"{}") == "abc123"


def test_no_caching_between_calls(signer, transport):
    signer.sign(b"{}")
    signer.sign(b"{}")
    assert len(transport.calls_to(HASHKEY_PATH)) == 2


def test_missing_hash_is_malformed(signer, transport):
    transport.add(HASHKEY_PATH, {"BODY": {}, "HEADER": {}})
    with pytest.raises(MalformedAuthResponse):
        signer.sign(b"{}")


def test_non_json_is_malformed(signer, transport):
    transport.add(HASHKEY_PATH, raw=b"")
    with pytest.raises(MalformedAuthResponse):
        signer.sign(b"{}")


def test_non_2xx_is_credential_rejected(signer, transport):
    transport.add(HASHKEY_PATH, {"error": "invalid appkey"}, status=401)
    with pytest.raises(CredentialRejected) as ei:
        signer.sign(b"{}")
    assert ei.value.status == 401
    assert "invalid appkey" in ei.value.body
