from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd


class Environment(str, Enum):
    """Trading venue selector: base host + TR_ID family."""

    LIVE = "LIVE"    # 실전투자
    PAPER = "PAPER"  # 모의투자

    @classmethod
    def parse(cls, v: Any) -> "Environment":
        if isinstance(v, cls):
            return v
        s = str(v).strip().upper()
        if s in {"LIVE", "REAL", "PROD", "PRODUCTION"}:
            return cls.LIVE
        if s in {"PAPER", "VPS", "DEMO", "VIRTUAL"}:
            return cls.PAPER
        raise ValueError(f"Unknown environment: {v!r}")


class AssetClass(str, Enum):
    DOMESTIC_EQUITY = "DOMESTIC_EQUITY"          # 국내주식
    OVERSEAS_EQUITY = "OVERSEAS_EQUITY"          # 해외주식
    DOMESTIC_DERIVATIVE = "DOMESTIC_DERIVATIVE"  # 국내선물옵션
    OVERSEAS_DERIVATIVE = "OVERSEAS_DERIVATIVE"  # 해외선물옵션
    BOND = "BOND"                                # 장내채권


class Action(str, Enum):
    # order-mutating actions (hashkey required)
    BUY = "BUY"
    SELL = "SELL"
    LIQUIDATE_BUY = "LIQUIDATE_BUY"    # 청산매수 (derivatives)
    LIQUIDATE_SELL = "LIQUIDATE_SELL"  # 청산매도 (derivatives)
    REVISE = "REVISE"
    CANCEL = "CANCEL"

    # read-only queries
    BALANCE = "BALANCE"
    QUOTE = "QUOTE"
    PRICE = "PRICE"
    DEPOSIT = "DEPOSIT"
    EXECUTIONS = "EXECUTIONS"

    @property
    def is_mutating(self) -> bool:
        return self in _MUTATING

    @property
    def is_buy(self) -> bool:
        return self in (Action.BUY, Action.LIQUIDATE_BUY)


_MUTATING = frozenset(
    {Action.BUY, Action.SELL, Action.LIQUIDATE_BUY, Action.LIQUIDATE_SELL, Action.REVISE, Action.CANCEL}
)


class Exchange(str, Enum):
    """Overseas exchange codes as used by the order endpoints (OVRS_EXCG_CD)."""

    # 미국
    NASD = "NASD"
    NYSE = "NYSE"
    AMEX = "AMEX"
    # 홍콩
    SEHK = "SEHK"
    # 중국 (상해/심천)
    SHAA = "SHAA"
    SZAA = "SZAA"
    # 일본
    TKSE = "TKSE"
    # 베트남 (하노이/호치민)
    HASE = "HASE"
    VNSE = "VNSE"

    @property
    def is_us(self) -> bool:
        return self in (Exchange.NASD, Exchange.NYSE, Exchange.AMEX)

    @property
    def quote_code(self) -> str:
        # Quotation endpoints use a different 3-letter code (EXCD).
        return _QUOTE_CODES[self]


_QUOTE_CODES = {
    Exchange.NASD: "NAS",
    Exchange.NYSE: "NYS",
    Exchange.AMEX: "AMS",
    Exchange.SEHK: "HKS",
    Exchange.SHAA: "SHS",
    Exchange.SZAA: "SZS",
    Exchange.TKSE: "TSE",
    Exchange.HASE: "HNX",
    Exchange.VNSE: "HSX",
}


class PriceKind(str, Enum):
    LIMIT = "LIMIT"                          # 지정가
    MARKET = "MARKET"                        # 시장가
    CONDITIONAL_LIMIT = "CONDITIONAL_LIMIT"  # 조건부지정가
    BEST_LIMIT = "BEST_LIMIT"                # 최유리지정가
    PRIORITY_LIMIT = "PRIORITY_LIMIT"        # 최우선지정가
    PRE_MARKET = "PRE_MARKET"                # 장전시간외
    AFTER_MARKET = "AFTER_MARKET"            # 장후시간외
    # US-only session orders
    MOO = "MOO"
    LOO = "LOO"
    MOC = "MOC"

    @property
    def needs_price(self) -> bool:
        """Whether a positive limit price must accompany the order."""
        return self in (PriceKind.LIMIT, PriceKind.CONDITIONAL_LIMIT, PriceKind.LOO)


# -------------------- requests --------------------
@dataclass(frozen=True)
class OrderRequest:
    """New order.

    `symbol` is passed through opaque: stock code (005930), futures code
    (101S3000) or bond serial number depending on the asset class.
    Derivative new/liquidate is carried by `action`.
    """

    symbol: str
    quantity: int
    price: float = 0.0
    price_kind: PriceKind = PriceKind.LIMIT
    action: Action = Action.BUY


@dataclass(frozen=True)
class OverseasOrderRequest(OrderRequest):
    exchange: Exchange = Exchange.NASD


# -------------------- results --------------------
@dataclass(frozen=True)
class Confirmation:
    """Venue acknowledgement of an order/revise/cancel."""

    order_id: str
    order_time: str = ""
    org_no: str = ""  # KRX_FWDG_ORD_ORGNO, needed for some revise/cancel calls
    message: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass
class Holding:
    symbol: str
    name: str = ""
    quantity: float = 0.0
    average_price: float = 0.0
    current_price: float = 0.0
    pnl: float = 0.0
    pnl_rate: float = 0.0
    market_value: float = 0.0
    currency: str = "KRW"
    side: str = ""         # derivatives: "BUY" | "SELL"
    expiry: str = ""       # bonds: YYYYMMDD


@dataclass
class BalanceSummary:
    total_equity: float = 0.0
    buying_power: float = 0.0
    available_cash: float = 0.0
    pnl: float = 0.0
    pnl_rate: float = 0.0
    currency: str = "KRW"


@dataclass
class BalanceResult:
    """Positions + account summary. An empty `positions` list is a valid state."""

    positions: List[Holding]
    summary: BalanceSummary

    def to_frame(self) -> pd.DataFrame:
        cols = list(Holding.__dataclass_fields__.keys())
        if not self.positions:
            return pd.DataFrame(columns=cols)
        return pd.DataFrame([asdict(h) for h in self.positions], columns=cols).set_index("symbol", drop=False)


@dataclass
class Quote:
    symbol: str
    last: Optional[float] = None
    change: Optional[float] = None
    change_rate: Optional[float] = None
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None
    turnover: Optional[float] = None
    # order book ladders, best first: (price, size)
    asks: List[Tuple[float, float]] = field(default_factory=list)
    bids: List[Tuple[float, float]] = field(default_factory=list)
    name: str = ""
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass
class Deposit:
    """Derivative margin account (증거금/예탁금)."""

    total_deposit: float = 0.0
    available: float = 0.0
    margin: float = 0.0
    margin_rate: float = 0.0
    withdrawable: float = 0.0
    pnl: float = 0.0
    currency: str = "KRW"


@dataclass
class Execution:
    order_id: str
    symbol: str
    name: str = ""
    side: str = ""
    quantity: float = 0.0
    price: float = 0.0
    amount: float = 0.0
    time: str = ""
