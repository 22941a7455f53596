from __future__ import annotations

from typing import Optional

from kis_gateway.core.errors import ValidationError
from kis_gateway.core.types import (
    Action,
    AssetClass,
    BalanceResult,
    BalanceSummary,
    Confirmation,
    Exchange,
    Holding,
    OrderRequest,
    OverseasOrderRequest,
    PriceKind,
    Quote,
)
from .endpoint import AssetEndpoint, first_row, opt_float, pick, rows, to_float

# 미국 주문구분. 그 외 거래소는 지정가(00)만 가능
US_ORD_DVSN = {
    PriceKind.LIMIT: "00",
    PriceKind.MOO: "31",
    PriceKind.LOO: "32",
    PriceKind.MOC: "34",
}


def _unit_price(price: float) -> str:
    return "0" if price == 0 else f"{price:.2f}"


class OverseasStock(AssetEndpoint):
    """해외주식 (미국/홍콩/중국/일본/베트남)."""

    asset_class = AssetClass.OVERSEAS_EQUITY
    price_kinds = frozenset(US_ORD_DVSN)

    def place_order(self, request: OrderRequest) -> Confirmation:
        exchange = getattr(request, "exchange", None)
        if exchange is None:
            raise ValidationError("overseas order requires an exchange (use OverseasOrderRequest)")
        self._validate_order(request)
        body = self._account() | {
            "OVRS_EXCG_CD": exchange.value,
            "PDNO": request.symbol,
            "ORD_QTY": str(request.quantity),
            "OVRS_ORD_UNPR": _unit_price(request.price),
            "ORD_SVR_DVSN_CD": "0",
            "ORD_DVSN": self._ord_dvsn(exchange, request.price_kind),
        }
        return self._confirmation(self._call(request.action, body=body, exchange=exchange))

    def buy(self, exchange: Exchange, symbol: str, quantity: int, price: float,
            price_kind: PriceKind = PriceKind.LIMIT) -> Confirmation:
        return self.place_order(OverseasOrderRequest(symbol, quantity, price, price_kind, Action.BUY, exchange))

    def sell(self, exchange: Exchange, symbol: str, quantity: int, price: float,
             price_kind: PriceKind = PriceKind.LIMIT) -> Confirmation:
        return self.place_order(OverseasOrderRequest(symbol, quantity, price, price_kind, Action.SELL, exchange))

    def revise(self, order_id: str, quantity: int, price: float, *, exchange: Exchange, symbol: str) -> Confirmation:
        self._validate_revise(order_id, quantity, price)
        self._require_id(symbol, "symbol")
        body = self._amend_body(exchange, symbol, order_id, "01", str(quantity), _unit_price(price))
        return self._confirmation(self._call(Action.REVISE, body=body, exchange=exchange))

    def cancel(self, order_id: str, quantity: Optional[int] = None, *, exchange: Exchange, symbol: str) -> Confirmation:
        self._validate_cancel(order_id, quantity)
        self._require_id(symbol, "symbol")
        if quantity is None:
            # the overseas cancel body has no "all remaining" flag
            raise ValidationError("overseas cancel requires an explicit quantity")
        body = self._amend_body(exchange, symbol, order_id, "02", str(quantity), "0")
        return self._confirmation(self._call(Action.CANCEL, body=body, exchange=exchange))

    def get_balance(self) -> BalanceResult:
        params = self._account() | {
            "OVRS_EXCG_CD": "",
            "TR_CRCY_CD": "",
            "CTX_AREA_FK200": "",
            "CTX_AREA_NK200": "",
        }
        res = self._call(Action.BALANCE, params=params)

        positions = []
        for r in rows(res.output1):
            positions.append(
                Holding(
                    symbol=str(pick(r, "ovrs_pdno", default="")),
                    name=str(pick(r, "ovrs_item_name", default="")),
                    quantity=to_float(pick(r, "ovrs_cblc_qty")),
                    average_price=to_float(pick(r, "pchs_avg_pric", "frcr_pchs_amt1")),
                    current_price=to_float(pick(r, "now_pric2", "ovrs_now_pric1")),
                    pnl=to_float(pick(r, "frcr_evlu_pfls_amt")),
                    pnl_rate=to_float(pick(r, "evlu_pfls_rt")),
                    market_value=to_float(pick(r, "ovrs_stck_evlu_amt", "frcr_evlu_amt2")),
                    currency=str(pick(r, "tr_crcy_cd", default="USD")),
                )
            )

        s = first_row(res.output2)
        currency = positions[0].currency if positions else "USD"
        summary = BalanceSummary(
            total_equity=sum(p.market_value for p in positions),
            pnl=to_float(pick(s, "tot_evlu_pfls_amt", "ovrs_tot_pfls")),
            pnl_rate=to_float(pick(s, "tot_pftrt")),
            currency=currency,
        )
        return BalanceResult(positions=positions, summary=summary)

    def get_quote(self, instrument: str, *, exchange: Exchange = Exchange.NASD) -> Quote:
        self._require_id(instrument, "symbol")
        params = {"AUTH": "", "EXCD": exchange.quote_code, "SYMB": instrument}
        res = self._call(Action.QUOTE, params=params)
        o = first_row(res.output)
        return Quote(
            symbol=instrument,
            last=opt_float(pick(o, "last")),
            change=opt_float(pick(o, "diff")),
            change_rate=opt_float(pick(o, "rate")),
            open=opt_float(pick(o, "open")),
            high=opt_float(pick(o, "high")),
            low=opt_float(pick(o, "low")),
            volume=opt_float(pick(o, "tvol")),
            turnover=opt_float(pick(o, "tamt")),
            raw=o,
        )

    # -------------------- helpers --------------------
    def _ord_dvsn(self, exchange: Exchange, price_kind: PriceKind) -> str:
        if exchange.is_us:
            return US_ORD_DVSN[price_kind]
        if price_kind != PriceKind.LIMIT:
            raise ValidationError(f"{exchange.value} accepts LIMIT orders only, got {price_kind.value}")
        return "00"

    def _amend_body(self, exchange: Exchange, symbol: str, order_id: str, dvsn: str, qty: str, price: str) -> dict:
        return self._account() | {
            "OVRS_EXCG_CD": exchange.value,
            "PDNO": symbol,
            "ORGN_ODNO": order_id,
            "RVSE_CNCL_DVSN_CD": dvsn,
            "ORD_QTY": qty,
            "OVRS_ORD_UNPR": price,
            "ORD_SVR_DVSN_CD": "0",
        }
