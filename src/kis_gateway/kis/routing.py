from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from kis_gateway.core.errors import ConfigError, UnknownInstrumentClass, UnsupportedInEnvironment
from kis_gateway.core.types import Action, AssetClass, Environment, Exchange


@dataclass(frozen=True)
class TransactionKey:
    asset_class: AssetClass
    action: Action
    environment: Environment
    exchange: Optional[Exchange] = None  # overseas equity order actions only


@dataclass(frozen=True)
class TransactionDescriptor:
    method: str
    path: str
    tr_id: str
    mutating: bool


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    live: str
    paper: Optional[str]  # None: not offered in the paper environment


RouteKey = Tuple[AssetClass, Action, Optional[Exchange]]

_DS = "/uapi/domestic-stock/v1"
_OS = "/uapi/overseas-stock/v1"
_DF = "/uapi/domestic-futureoption/v1"
_OF = "/uapi/overseas-futureoption/v1"
_BD = "/uapi/domestic-bond/v1"

_US = (Exchange.NASD, Exchange.NYSE, Exchange.AMEX)
_VN = (Exchange.HASE, Exchange.VNSE)

_ORDER_ACTIONS = (Action.BUY, Action.SELL, Action.LIQUIDATE_BUY, Action.LIQUIDATE_SELL)


def _v(tr_id: str) -> str:
    # 모의투자 TR_ID: 실전 코드의 첫 글자를 V로 치환
    return "V" + tr_id[1:]


def _both(method: str, path: str, tr_id: str) -> Route:
    """Same code in both environments (quotations)."""
    return Route(method, path, tr_id, tr_id)


def _pair(method: str, path: str, tr_id: str) -> Route:
    return Route(method, path, tr_id, _v(tr_id))


def _live_only(method: str, path: str, tr_id: str) -> Route:
    return Route(method, path, tr_id, None)


def _overseas_equity() -> Dict[RouteKey, Route]:
    order = f"{_OS}/trading/order"
    rvsecncl = f"{_OS}/trading/order-rvsecncl"
    # (buy, sell) per exchange
    orders = {
        _US: ("TTTT1002U", "TTTT1006U"),
        (Exchange.SEHK,): ("TTTS1002U", "TTTS1001U"),
        (Exchange.SHAA,): ("TTTS0202U", "TTTS1005U"),
        (Exchange.SZAA,): ("TTTS0305U", "TTTS0304U"),
        (Exchange.TKSE,): ("TTTS0308U", "TTTS0307U"),
        _VN: ("TTTS0311U", "TTTS0310U"),
    }
    # (revise, cancel); None where the venue only offers cancellation
    amends = {
        _US: ("TTTT1004U", "TTTT1004U"),
        (Exchange.SEHK,): ("TTTS1003U", "TTTS1003U"),
        (Exchange.TKSE,): ("TTTS0309U", "TTTS0309U"),
        (Exchange.SHAA,): (None, "TTTS0302U"),
        (Exchange.SZAA,): (None, "TTTS0306U"),
        _VN: (None, "TTTS0312U"),
    }

    table: Dict[RouteKey, Route] = {}
    for exchanges, (buy, sell) in orders.items():
        for ex in exchanges:
            table[(AssetClass.OVERSEAS_EQUITY, Action.BUY, ex)] = _pair("POST", order, buy)
            table[(AssetClass.OVERSEAS_EQUITY, Action.SELL, ex)] = _pair("POST", order, sell)
    for exchanges, (revise, cancel) in amends.items():
        for ex in exchanges:
            if revise:
                table[(AssetClass.OVERSEAS_EQUITY, Action.REVISE, ex)] = _pair("POST", rvsecncl, revise)
            table[(AssetClass.OVERSEAS_EQUITY, Action.CANCEL, ex)] = _pair("POST", rvsecncl, cancel)

    table[(AssetClass.OVERSEAS_EQUITY, Action.BALANCE, None)] = _pair(
        "GET", f"{_OS}/trading/inquire-balance", "TTTS3012R"
    )
    table[(AssetClass.OVERSEAS_EQUITY, Action.QUOTE, None)] = _both(
        "GET", f"{_OS}/quotations/price", "HHDFS00000300"
    )
    return table


def _build() -> Dict[RouteKey, Route]:
    D, F, O, B = (
        AssetClass.DOMESTIC_EQUITY,
        AssetClass.DOMESTIC_DERIVATIVE,
        AssetClass.OVERSEAS_DERIVATIVE,
        AssetClass.BOND,
    )
    table: Dict[RouteKey, Route] = {
        # 국내주식
        (D, Action.BUY, None): _pair("POST", f"{_DS}/trading/order-cash", "TTTC0802U"),
        (D, Action.SELL, None): _pair("POST", f"{_DS}/trading/order-cash", "TTTC0801U"),
        (D, Action.REVISE, None): _pair("POST", f"{_DS}/trading/order-rvsecncl", "TTTC0803U"),
        (D, Action.CANCEL, None): _pair("POST", f"{_DS}/trading/order-rvsecncl", "TTTC0803U"),
        (D, Action.BALANCE, None): _pair("GET", f"{_DS}/trading/inquire-balance", "TTTC8434R"),
        (D, Action.QUOTE, None): _both("GET", f"{_DS}/quotations/inquire-price", "FHKST01010100"),
        # 국내선물옵션
        (F, Action.REVISE, None): _pair("POST", f"{_DF}/trading/order-rvsecncl", "TTTO0105U"),
        (F, Action.CANCEL, None): _pair("POST", f"{_DF}/trading/order-rvsecncl", "TTTO0106U"),
        (F, Action.BALANCE, None): _pair("GET", f"{_DF}/trading/inquire-balance", "TTTO5201R"),
        (F, Action.DEPOSIT, None): _pair("GET", f"{_DF}/trading/inquire-deposit", "TTTO5300R"),
        (F, Action.EXECUTIONS, None): _pair("GET", f"{_DF}/trading/inquire-ccnl", "TTTO5107R"),
        (F, Action.QUOTE, None): _both("GET", f"{_DF}/quotations/inquire-price", "FHMIF10000000"),
        # 해외선물옵션 (실전 전용)
        (O, Action.REVISE, None): _live_only("POST", f"{_OF}/trading/order-rvsecncl", "OTFM3005U"),
        (O, Action.CANCEL, None): _live_only("POST", f"{_OF}/trading/order-rvsecncl", "OTFM3005U"),
        (O, Action.BALANCE, None): _live_only("GET", f"{_OF}/trading/inquire-unpd", "OTFM3304R"),
        (O, Action.DEPOSIT, None): _live_only("GET", f"{_OF}/trading/inquire-deposit", "OTFM3306R"),
        (O, Action.EXECUTIONS, None): _live_only("GET", f"{_OF}/trading/inquire-ccld", "OTFM3307R"),
        (O, Action.QUOTE, None): _live_only("GET", f"{_OF}/quotations/inquire-price", "HHDFC55010000"),
        # 장내채권
        (B, Action.BUY, None): _pair("POST", f"{_BD}/trading/buy", "TTCB1101U"),
        (B, Action.SELL, None): _pair("POST", f"{_BD}/trading/sell", "TTCB1201U"),
        (B, Action.REVISE, None): _pair("POST", f"{_BD}/trading/order-rvsecncl", "TTCB1301U"),
        (B, Action.CANCEL, None): _pair("POST", f"{_BD}/trading/order-rvsecncl", "TTCB1301U"),
        (B, Action.BALANCE, None): _pair("GET", f"{_BD}/trading/inquire-balance", "CTCB8001R"),
        (B, Action.QUOTE, None): _pair("GET", f"{_BD}/quotations/inquire-asking-price", "CTCB3001R"),
        (B, Action.PRICE, None): _pair("GET", f"{_BD}/quotations/inquire-price", "CTCB3002R"),
    }
    # 신규매수/신규매도/청산매수/청산매도 -> 0101..0104, 3001..3004
    for i, action in enumerate(_ORDER_ACTIONS, start=1):
        table[(F, action, None)] = _pair("POST", f"{_DF}/trading/order", f"TTTO010{i}U")
        table[(O, action, None)] = _live_only("POST", f"{_OF}/trading/order", f"OTFM300{i}U")

    table.update(_overseas_equity())
    return table


ROUTES: Mapping[RouteKey, Route] = _build()

_EXCHANGE_KEYED = frozenset({Action.BUY, Action.SELL, Action.REVISE, Action.CANCEL})


def resolve(key: TransactionKey, table: Mapping[RouteKey, Route] = ROUTES) -> TransactionDescriptor:
    """Look up (asset class, action, environment[, exchange]) in the static table.

    Never falls back from paper to live: a missing paper code is an error.
    """
    try:
        asset_class = AssetClass(key.asset_class)
    except ValueError:
        raise UnknownInstrumentClass(f"Unknown asset class: {key.asset_class!r}")
    try:
        action = Action(key.action)
        env = Environment.parse(key.environment)
    except ValueError as e:
        raise ConfigError(str(e)) from e

    exchange: Optional[Exchange] = None
    if asset_class == AssetClass.OVERSEAS_EQUITY and action in _EXCHANGE_KEYED:
        if key.exchange is None:
            raise ConfigError(f"{asset_class.value} {action.value} requires an exchange")
        try:
            exchange = Exchange(key.exchange)
        except ValueError as e:
            raise ConfigError(str(e)) from e

    route = table.get((asset_class, action, exchange))
    if route is None:
        where = f" @ {exchange.value}" if exchange else ""
        raise UnsupportedInEnvironment(f"operation not offered: {asset_class.value} {action.value}{where}")

    tr_id = route.live if env == Environment.LIVE else route.paper
    if not tr_id:
        raise UnsupportedInEnvironment(f"{asset_class.value} {action.value} is not available in {env.value}")

    return TransactionDescriptor(method=route.method, path=route.path, tr_id=tr_id, mutating=action.is_mutating)


class TransactionRouter:
    """Stateless dispatcher over a route table (the built-in one by default)."""

    def __init__(self, table: Optional[Mapping[RouteKey, Route]] = None):
        self.table = ROUTES if table is None else table

    def resolve(self, key: TransactionKey) -> TransactionDescriptor:
        return resolve(key, self.table)

    def offers(self, key: TransactionKey) -> bool:
        try:
            self.resolve(key)
        except ConfigError:
            return False
        return True
