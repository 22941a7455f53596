from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any, Mapping

from kis_gateway.core.errors import ConfigError
from kis_gateway.core.types import Environment

PROD_BASE_URL = "https://openapi.koreainvestment.com:9443"
VPS_BASE_URL = "https://openapivts.koreainvestment.com:29443"


@dataclass(frozen=True)
class KISSettings:
    """Venue identity for one client instance.

    Values come from environment variables or the plugin host config; secrets are
    never hard-coded. The base URL is derived from `environment` and cannot be
    overridden, so requests can only ever reach the live or the paper host.
    """

    app_key: str
    app_secret: str = field(repr=False)
    cano: str           # 계좌번호 앞 8자리
    acnt_prdt_cd: str   # 계좌상품코드 2자리
    environment: Environment = Environment.PAPER

    def __post_init__(self) -> None:
        if not self.app_key or not self.app_secret:
            raise ConfigError("app_key and app_secret are required")
        if len(self.cano) != 8 or not self.cano.isdigit():
            raise ConfigError("CANO must be 8 digits")
        if len(self.acnt_prdt_cd) != 2 or not self.acnt_prdt_cd.isdigit():
            raise ConfigError("ACNT_PRDT_CD must be 2 digits")

    @property
    def base_url(self) -> str:
        return VPS_BASE_URL if self.is_paper else PROD_BASE_URL

    @property
    def is_paper(self) -> bool:
        return self.environment == Environment.PAPER

    @property
    def account_no(self) -> str:
        return self.cano + self.acnt_prdt_cd

    @staticmethod
    def split_account_no(account_no: str) -> tuple[str, str]:
        acct = str(account_no).replace("-", "").strip()
        if len(acct) != 10 or not acct.isdigit():
            raise ConfigError("account_no must be 10 digits (CANO 8 + ACNT_PRDT_CD 2)")
        return acct[:8], acct[8:]

    @staticmethod
    def from_env(prefix: str = "KIS_") -> "KISSettings":
        def req(name: str) -> str:
            v = os.getenv(prefix + name)
            if not v:
                raise ConfigError(f"Missing env var: {prefix}{name}")
            return v

        account_no = os.getenv(prefix + "ACCOUNT_NO", "")
        if account_no:
            cano, prdt = KISSettings.split_account_no(account_no)
        else:
            cano, prdt = req("CANO"), req("ACNT_PRDT_CD")

        try:
            env = Environment.parse(os.getenv(prefix + "ENV", "paper"))
        except ValueError as e:
            raise ConfigError(str(e)) from e

        return KISSettings(
            app_key=req("APP_KEY"),
            app_secret=req("APP_SECRET"),
            cano=cano,
            acnt_prdt_cd=prdt,
            environment=env,
        )

    @staticmethod
    def from_mapping(cfg: Mapping[str, Any]) -> "KISSettings":
        """Build from the plugin host config: {app_key, app_secret, account_no, is_paper}."""
        app_key = str(cfg.get("app_key") or "")
        app_secret = str(cfg.get("app_secret") or "")
        account_no = str(cfg.get("account_no") or "")
        if not app_key or not app_secret or not account_no:
            raise ConfigError("Missing required configuration: app_key, app_secret, or account_no")
        cano, prdt = KISSettings.split_account_no(account_no)

        is_paper = cfg.get("is_paper", True)
        if not isinstance(is_paper, bool):
            raise ConfigError("is_paper must be a boolean")

        return KISSettings(
            app_key=app_key,
            app_secret=app_secret,
            cano=cano,
            acnt_prdt_cd=prdt,
            environment=Environment.PAPER if is_paper else Environment.LIVE,
        )
