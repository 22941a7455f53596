from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from kis_gateway.core.errors import ValidationError
from kis_gateway.core.types import Action, BalanceSummary, Holding, OrderRequest, PriceKind
from .client import KISClient
from .domestic_stock import DomesticStock
from .settings import KISSettings
from .transport import Transport


@dataclass
class AccountSnapshot:
    account_no: str
    nav: float
    cash_available: float
    summary: BalanceSummary
    positions: Dict[str, Holding] = field(default_factory=dict)  # symbol -> holding


class Broker(Protocol):
    def get_account_snapshot(self) -> AccountSnapshot: ...
    def place_market_order(self, symbol: str, side: str, qty: int) -> str: ...
    def place_limit_order(self, symbol: str, side: str, qty: int, price: float) -> str: ...
    def cancel_order(self, order_id: str, org_no: str = "") -> str: ...


def parse_side(side: str) -> Action:
    s = str(side).strip().lower()
    if s in {"buy", "long", "b"}:
        return Action.BUY
    if s in {"sell", "short", "s"}:
        return Action.SELL
    raise ValidationError(f"Unknown order side: {side!r}")


class KISBroker(Broker):
    """Domestic-equity cash broker over KIS (paper or live, per settings)."""

    def __init__(self, settings: KISSettings, *, client: Optional[KISClient] = None, transport: Optional[Transport] = None):
        self.settings = settings
        self.client = client or KISClient(settings, transport=transport)
        self.stocks = DomesticStock(self.client)

    def get_account_snapshot(self) -> AccountSnapshot:
        bal = self.stocks.get_balance()
        return AccountSnapshot(
            account_no=self.settings.account_no,
            nav=bal.summary.total_equity,
            cash_available=bal.summary.available_cash,
            summary=bal.summary,
            positions={str(h.symbol).zfill(6): h for h in bal.positions if h.symbol},
        )

    def place_market_order(self, symbol: str, side: str, qty: int) -> str:
        req = OrderRequest(str(symbol).zfill(6), qty, 0.0, PriceKind.MARKET, parse_side(side))
        return self.stocks.place_order(req).order_id

    def place_limit_order(self, symbol: str, side: str, qty: int, price: float) -> str:
        req = OrderRequest(str(symbol).zfill(6), qty, price, PriceKind.LIMIT, parse_side(side))
        return self.stocks.place_order(req).order_id

    def cancel_order(self, order_id: str, org_no: str = "") -> str:
        return self.stocks.cancel(order_id, org_no=org_no).order_id
