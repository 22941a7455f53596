# tests/test_settings.py
import pytest

from kis_gateway.core.errors import ConfigError
from kis_gateway.core.types import Environment
from kis_gateway.kis.settings import PROD_BASE_URL, VPS_BASE_URL, KISSettings


@pytest.fixture
def kis_env(monkeypatch):
    for name in ("APP_KEY", "APP_SECRET", "ACCOUNT_NO", "CANO", "ACNT_PRDT_CD", "ENV"):
        monkeypatch.delenv("KIS_" + name, raising=False)
    monkeypatch.setenv("KIS_APP_KEY", "PSabcdefghijklmn")
    monkeypatch.setenv("KIS_APP_SECRET", "secret-0123456789abcdef")
    return monkeypatch


def test_from_env_with_account_no(kis_env):
    kis_env.setenv("KIS_ACCOUNT_NO", "12345678-01")
    s = KISSettings.from_env()
    assert (s.cano, s.acnt_prdt_cd) == ("12345678", "01")
    assert s.environment == Environment.PAPER
    assert s.base_url == VPS_BASE_URL


def test_from_env_split_fields_live(kis_env):
    kis_env.setenv("KIS_CANO", "87654321")
    kis_env.setenv("KIS_ACNT_PRDT_CD", "03")
    kis_env.setenv("KIS_ENV", "real")
    s = KISSettings.from_env()
    assert s.account_no == "8765432103"
    assert s.base_url == PROD_BASE_URL


def test_from_env_missing_key(kis_env):
    kis_env.delenv("KIS_APP_SECRET")
    kis_env.setenv("KIS_ACCOUNT_NO", "1234567801")
    with pytest.raises(ConfigError, match="KIS_APP_SECRET"):
        KISSettings.from_env()


def test_from_env_bad_environment(kis_env):
    kis_env.setenv("KIS_ACCOUNT_NO", "1234567801")
    kis_env.setenv("KIS_ENV", "staging")
    with pytest.raises(ConfigError):
        KISSettings.from_env()


@pytest.mark.parametrize("acct", ["123456789", "12345678901", "1234567a01", ""])
def test_split_account_no_rejects(acct):
    with pytest.raises(ConfigError):
        KISSettings.split_account_no(acct)


def test_from_mapping():
    s = KISSettings.from_mapping({"app_key": "k", "app_secret": "s", "account_no": "1234567801", "is_paper": False})
    assert s.environment == Environment.LIVE
    with pytest.raises(ConfigError, match="is_paper"):
        KISSettings.from_mapping({"app_key": "k", "app_secret": "s", "account_no": "1234567801", "is_paper": 1})


def test_repr_hides_secret():
    s = KISSettings("key", "top-secret", "12345678", "01")
    assert "top-secret" not in repr(s)


@pytest.mark.parametrize("v, env", [("vps", Environment.PAPER), (" Live ", Environment.LIVE), (Environment.PAPER, Environment.PAPER)])
def test_environment_parse(v, env):
    assert Environment.parse(v) == env
