from __future__ import annotations

import math
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

from kis_gateway.core.errors import ValidationError
from kis_gateway.core.types import (
    Action,
    AssetClass,
    BalanceResult,
    Confirmation,
    Exchange,
    OrderRequest,
    PriceKind,
    Quote,
)
from .client import KISClient
from .envelope import Success

# 매도매수구분코드
SIDE_CODES = {"01": "SELL", "02": "BUY"}


# -------------------- tolerant field helpers --------------------
def pick(row: Optional[Mapping[str, Any]], *keys: str, default: Any = None) -> Any:
    """First non-empty value among `keys`, matched case-insensitively.

    KIS is inconsistent about key casing across endpoints (pdno vs PDNO).
    """
    if not row:
        return default
    lowered = {str(k).lower(): v for k, v in row.items()}
    for k in keys:
        v = lowered.get(k.lower())
        if v is not None and v != "":
            return v
    return default


def to_float(v: Any, default: float = 0.0) -> float:
    if v is None or v == "":
        return default
    try:
        return float(str(v).replace(",", ""))
    except ValueError:
        return default


def opt_float(v: Any) -> Optional[float]:
    if v is None or v == "":
        return None
    try:
        return float(str(v).replace(",", ""))
    except ValueError:
        return None


def rows(v: Any) -> List[Dict[str, Any]]:
    if isinstance(v, list):
        return [r for r in v if isinstance(r, dict)]
    if isinstance(v, dict):
        return [v]
    return []


def first_row(v: Any) -> Dict[str, Any]:
    rs = rows(v)
    return rs[0] if rs else {}


def fmt_num(v: float) -> str:
    """Render a price/quantity the way KIS expects it in a body (no trailing .0)."""
    f = float(v)
    return str(int(f)) if f.is_integer() else repr(f)


class AssetEndpoint:
    """One asset class's typed operations over a shared KISClient.

    Subclasses set `asset_class` / `price_kinds` and build the bodies; the
    validation rules and confirmation projection live here.
    """

    asset_class: AssetClass
    price_kinds: FrozenSet[PriceKind] = frozenset({PriceKind.LIMIT})
    order_actions: FrozenSet[Action] = frozenset({Action.BUY, Action.SELL})

    def __init__(self, client: KISClient):
        self.client = client
        self.settings = client.settings

    # -------------------- operations --------------------
    def place_order(self, request: OrderRequest) -> Confirmation:
        raise NotImplementedError

    def revise(self, order_id: str, quantity: int, price: float, **kwargs: Any) -> Confirmation:
        raise NotImplementedError

    def cancel(self, order_id: str, quantity: Optional[int] = None, **kwargs: Any) -> Confirmation:
        raise NotImplementedError

    def get_balance(self) -> BalanceResult:
        raise NotImplementedError

    def get_quote(self, instrument: str, **kwargs: Any) -> Quote:
        raise NotImplementedError

    # -------------------- shared plumbing --------------------
    def _account(self) -> Dict[str, str]:
        return {"CANO": self.settings.cano, "ACNT_PRDT_CD": self.settings.acnt_prdt_cd}

    def _call(
        self,
        action: Action,
        *,
        params: Optional[Mapping[str, Any]] = None,
        body: Optional[Mapping[str, Any]] = None,
        exchange: Optional[Exchange] = None,
    ) -> Success:
        return self.client.call(self.asset_class, action, params=params, body=body, exchange=exchange)

    def _validate_order(self, request: OrderRequest) -> None:
        self._require_id(request.symbol, "symbol")
        if request.action not in self.order_actions:
            raise ValidationError(f"{self.asset_class.value} does not accept order action {request.action.value}")
        self._validate_quantity(request.quantity)
        self._validate_price(request.price, request.price_kind)

    def _validate_revise(self, order_id: str, quantity: int, price: float, price_kind: PriceKind = PriceKind.LIMIT) -> None:
        self._require_id(order_id, "order_id")
        self._validate_quantity(quantity)
        self._validate_price(price, price_kind)

    def _validate_cancel(self, order_id: str, quantity: Optional[int]) -> None:
        self._require_id(order_id, "order_id")
        if quantity is not None:
            self._validate_quantity(quantity)

    def _validate_price(self, price: float, price_kind: PriceKind) -> None:
        if price_kind not in self.price_kinds:
            raise ValidationError(f"{self.asset_class.value} does not support price kind {price_kind.value}")
        if price is None or isinstance(price, bool) or not math.isfinite(price) or price < 0:
            raise ValidationError(f"price must be a finite number >= 0, got {price!r}")
        if price_kind.needs_price and price <= 0:
            raise ValidationError(f"{price_kind.value} order requires a positive price")

    @staticmethod
    def _validate_quantity(quantity: Any) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"quantity must be a positive integer, got {quantity!r}")

    @staticmethod
    def _require_id(value: Any, what: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{what} must be a non-empty string")

    @staticmethod
    def _confirmation(res: Success) -> Confirmation:
        out = first_row(res.output) or first_row(res.output1)
        return Confirmation(
            order_id=str(pick(out, "ODNO", "ORD_NO", default="")),
            order_time=str(pick(out, "ORD_TMD", default="")),
            org_no=str(pick(out, "KRX_FWDG_ORD_ORGNO", default="")),
            message=res.message,
            raw=res.body,
        )
