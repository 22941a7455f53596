from __future__ import annotations

from typing import Optional

from kis_gateway.core.types import (
    Action,
    AssetClass,
    BalanceResult,
    BalanceSummary,
    Confirmation,
    Holding,
    OrderRequest,
    PriceKind,
    Quote,
)
from .endpoint import AssetEndpoint, first_row, fmt_num, opt_float, pick, rows, to_float

# 주문구분 (ORD_DVSN)
ORD_DVSN = {
    PriceKind.LIMIT: "00",
    PriceKind.MARKET: "01",
    PriceKind.CONDITIONAL_LIMIT: "02",
    PriceKind.BEST_LIMIT: "03",
    PriceKind.PRIORITY_LIMIT: "04",
    PriceKind.PRE_MARKET: "05",
    PriceKind.AFTER_MARKET: "06",
}


class DomesticStock(AssetEndpoint):
    """국내주식: cash orders, revise/cancel, balance, current price."""

    asset_class = AssetClass.DOMESTIC_EQUITY
    price_kinds = frozenset(ORD_DVSN)

    def place_order(self, request: OrderRequest) -> Confirmation:
        self._validate_order(request)
        body = self._account() | {
            "PDNO": request.symbol,
            "ORD_DVSN": ORD_DVSN[request.price_kind],
            "ORD_QTY": str(request.quantity),
            "ORD_UNPR": fmt_num(request.price),
        }
        return self._confirmation(self._call(request.action, body=body))

    def buy(self, symbol: str, quantity: int, price: float = 0.0, price_kind: PriceKind = PriceKind.LIMIT) -> Confirmation:
        return self.place_order(OrderRequest(symbol, quantity, price, price_kind, Action.BUY))

    def sell(self, symbol: str, quantity: int, price: float = 0.0, price_kind: PriceKind = PriceKind.LIMIT) -> Confirmation:
        return self.place_order(OrderRequest(symbol, quantity, price, price_kind, Action.SELL))

    def revise(
        self,
        order_id: str,
        quantity: int,
        price: float,
        *,
        org_no: str = "",
        price_kind: PriceKind = PriceKind.LIMIT,
    ) -> Confirmation:
        self._validate_revise(order_id, quantity, price, price_kind)
        body = self._account() | {
            "KRX_FWDG_ORD_ORGNO": org_no,
            "ORGN_ODNO": order_id,
            "ORD_DVSN": ORD_DVSN[price_kind],
            "RVSE_CNCL_DVSN_CD": "01",  # 정정
            "ORD_QTY": str(quantity),
            "ORD_UNPR": fmt_num(price),
            "QTY_ALL_ORD_YN": "N",
        }
        return self._confirmation(self._call(Action.REVISE, body=body))

    def cancel(self, order_id: str, quantity: Optional[int] = None, *, org_no: str = "") -> Confirmation:
        """Cancel `quantity` shares of an open order, or all remaining when None."""
        self._validate_cancel(order_id, quantity)
        body = self._account() | {
            "KRX_FWDG_ORD_ORGNO": org_no,
            "ORGN_ODNO": order_id,
            "ORD_DVSN": ORD_DVSN[PriceKind.LIMIT],
            "RVSE_CNCL_DVSN_CD": "02",  # 취소
            "ORD_QTY": "0" if quantity is None else str(quantity),
            "ORD_UNPR": "0",
            "QTY_ALL_ORD_YN": "Y" if quantity is None else "N",
        }
        return self._confirmation(self._call(Action.CANCEL, body=body))

    def get_balance(self) -> BalanceResult:
        params = self._account() | {
            "AFHR_FLPR_YN": "N",
            "INQR_DVSN": "02",
            "UNPR_DVSN": "01",
            "FUND_STTL_ICLD_YN": "N",
            "FNCG_AMT_AUTO_RDPT_YN": "N",
            "PRCS_DVSN": "00",
            "CTX_AREA_FK100": "",
            "CTX_AREA_NK100": "",
        }
        res = self._call(Action.BALANCE, params=params)

        positions = []
        for r in rows(res.output1):
            positions.append(
                Holding(
                    symbol=str(pick(r, "pdno", default="")),
                    name=str(pick(r, "prdt_name", default="")),
                    quantity=to_float(pick(r, "hldg_qty")),
                    average_price=to_float(pick(r, "pchs_avg_pric")),
                    current_price=to_float(pick(r, "prpr")),
                    pnl=to_float(pick(r, "evlu_pfls_amt")),
                    pnl_rate=to_float(pick(r, "evlu_pfls_rt")),
                    market_value=to_float(pick(r, "evlu_amt")),
                )
            )

        s = first_row(res.output2)
        buying_power = to_float(pick(s, "dnca_tot_amt"))
        summary = BalanceSummary(
            total_equity=to_float(pick(s, "tot_evlu_amt")),
            buying_power=buying_power,
            available_cash=to_float(pick(s, "ord_psbl_cash"), default=buying_power),
            pnl=to_float(pick(s, "evlu_pfls_smtl_amt")),
            pnl_rate=to_float(pick(s, "evlu_pfls_rt", "asst_icdc_erng_rt")),
            currency="KRW",
        )
        return BalanceResult(positions=positions, summary=summary)

    def get_quote(self, instrument: str) -> Quote:
        self._require_id(instrument, "symbol")
        params = {"FID_COND_MRKT_DIV_CODE": "J", "FID_INPUT_ISCD": instrument}
        res = self._call(Action.QUOTE, params=params)
        o = first_row(res.output)
        return Quote(
            symbol=str(pick(o, "stck_shrn_iscd", default=instrument)),
            last=opt_float(pick(o, "stck_prpr")),
            change=opt_float(pick(o, "prdy_vrss")),
            change_rate=opt_float(pick(o, "prdy_ctrt")),
            open=opt_float(pick(o, "stck_oprc")),
            high=opt_float(pick(o, "stck_hgpr")),
            low=opt_float(pick(o, "stck_lwpr")),
            volume=opt_float(pick(o, "acml_vol")),
            turnover=opt_float(pick(o, "acml_tr_pbmn")),
            name=str(pick(o, "hts_kor_isnm", default="")),
            raw=o,
        )
