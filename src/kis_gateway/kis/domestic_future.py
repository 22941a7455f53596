from __future__ import annotations

from typing import List, Optional

from kis_gateway.core.types import (
    Action,
    AssetClass,
    BalanceResult,
    BalanceSummary,
    Confirmation,
    Deposit,
    Execution,
    Holding,
    OrderRequest,
    PriceKind,
    Quote,
)
from .endpoint import SIDE_CODES, AssetEndpoint, first_row, fmt_num, opt_float, pick, rows, to_float

# 호가유형코드
NMPR_TYPE_CD = {PriceKind.LIMIT: "1", PriceKind.MARKET: "2"}

DERIVATIVE_ORDER_ACTIONS = frozenset({Action.BUY, Action.SELL, Action.LIQUIDATE_BUY, Action.LIQUIDATE_SELL})


def side_code(action: Action) -> str:
    """매도매수구분코드: 01 매도, 02 매수."""
    return "02" if action.is_buy else "01"


class DomesticFuture(AssetEndpoint):
    """국내선물옵션.

    신규/청산 is carried by the order action: BUY/SELL open a position,
    LIQUIDATE_BUY/LIQUIDATE_SELL close one.
    """

    asset_class = AssetClass.DOMESTIC_DERIVATIVE
    price_kinds = frozenset(NMPR_TYPE_CD)
    order_actions = DERIVATIVE_ORDER_ACTIONS

    def place_order(self, request: OrderRequest) -> Confirmation:
        self._validate_order(request)
        body = self._account() | {
            "PDNO": request.symbol,
            "SLL_BUY_DVSN_CD": side_code(request.action),
            "ORD_QTY": str(request.quantity),
            "UNIT_PRICE": fmt_num(request.price),
            "NMPR_TYPE_CD": NMPR_TYPE_CD[request.price_kind],
        }
        return self._confirmation(self._call(request.action, body=body))

    def revise(self, order_id: str, quantity: int, price: float) -> Confirmation:
        self._validate_revise(order_id, quantity, price)
        body = self._account() | {
            "ORGN_ORD_NO": order_id,
            "RVSE_CNCL_DVSN_CD": "01",
            "ORD_QTY": str(quantity),
            "UNIT_PRICE": fmt_num(price),
        }
        return self._confirmation(self._call(Action.REVISE, body=body))

    def cancel(self, order_id: str, quantity: Optional[int] = None) -> Confirmation:
        self._validate_cancel(order_id, quantity)
        body = self._account() | {"ORGN_ORD_NO": order_id, "RVSE_CNCL_DVSN_CD": "02"}
        if quantity is not None:
            body["ORD_QTY"] = str(quantity)
        return self._confirmation(self._call(Action.CANCEL, body=body))

    def get_balance(self) -> BalanceResult:
        params = self._account() | {
            "AFHR_FLPR_YN": "N",
            "INQR_DVSN": "00",
            "UNPR_DVSN": "01",
            "FUND_STTL_ICLD_YN": "N",
            "FNCG_AMT_AUTO_RDPT_YN": "N",
            "OFL_YN": "N",
            "CTX_AREA_FK100": "",
            "CTX_AREA_NK100": "",
        }
        res = self._call(Action.BALANCE, params=params)

        positions = []
        for r in rows(res.output1):
            qty = to_float(pick(r, "cblc_qty"))
            cur = to_float(pick(r, "prpr"))
            positions.append(
                Holding(
                    symbol=str(pick(r, "pdno", default="")),
                    name=str(pick(r, "prdt_name", default="")),
                    quantity=qty,
                    average_price=to_float(pick(r, "avg_unpr")),
                    current_price=cur,
                    pnl=to_float(pick(r, "evlu_pfls_amt")),
                    pnl_rate=to_float(pick(r, "pfls_rt")),
                    market_value=qty * cur,
                    side=SIDE_CODES.get(str(pick(r, "sll_buy_dvsn_cd", default="")), ""),
                )
            )

        s = first_row(res.output2)
        summary = BalanceSummary(
            total_equity=to_float(pick(s, "prsm_dpast_amt", "tot_dncl_amt", "dnca_tot_amt")),
            buying_power=to_float(pick(s, "ord_psbl_tota", "ord_psbl_amt")),
            available_cash=to_float(pick(s, "ord_psbl_cash", "ord_psbl_amt")),
            pnl=sum(p.pnl for p in positions),
            currency="KRW",
        )
        return BalanceResult(positions=positions, summary=summary)

    def get_deposit(self) -> Deposit:
        params = self._account() | {"INQR_DVSN_1": "00", "INQR_DVSN_2": "00"}
        res = self._call(Action.DEPOSIT, params=params)
        o = first_row(res.output)
        return Deposit(
            total_deposit=to_float(pick(o, "dnca_tot_amt")),
            available=to_float(pick(o, "ord_psbl_amt")),
            margin=to_float(pick(o, "mgna_amt")),
            margin_rate=to_float(pick(o, "mgna_rt")),
            withdrawable=to_float(pick(o, "wdrw_psbl_amt")),
            currency="KRW",
        )

    def get_executions(self, date: Optional[str] = None) -> List[Execution]:
        """체결내역 for `date` (YYYYMMDD); the venue defaults to today when empty."""
        d = date or ""
        params = self._account() | {
            "INQR_STRT_DT": d,
            "INQR_END_DT": d,
            "SLL_BUY_DVSN_CD": "00",
            "INQR_DVSN": "00",
            "PDNO": "",
            "CCLD_DVSN": "00",
            "ORD_GNO_BRNO": "",
            "ODNO": "",
            "INQR_DVSN_3": "00",
            "INQR_DVSN_1": "",
            "CTX_AREA_FK100": "",
            "CTX_AREA_NK100": "",
        }
        res = self._call(Action.EXECUTIONS, params=params)
        return [
            Execution(
                order_id=str(pick(r, "ord_no", "odno", default="")),
                symbol=str(pick(r, "pdno", default="")),
                name=str(pick(r, "prdt_name", default="")),
                side=SIDE_CODES.get(str(pick(r, "sll_buy_dvsn_cd", default="")), ""),
                quantity=to_float(pick(r, "ccld_qty")),
                price=to_float(pick(r, "ccld_unpr")),
                amount=to_float(pick(r, "ccld_amt")),
                time=str(pick(r, "ccld_tmd", default="")),
            )
            for r in rows(res.output1)
        ]

    def get_quote(self, instrument: str, *, market: str = "F") -> Quote:
        """현재가. `market`: F 지수선물, O 지수옵션, JF 주식선물, JO 주식옵션."""
        self._require_id(instrument, "symbol")
        params = {"FID_COND_MRKT_DIV_CODE": market, "FID_INPUT_ISCD": instrument}
        res = self._call(Action.QUOTE, params=params)
        o = first_row(res.output1) or first_row(res.output)
        return Quote(
            symbol=instrument,
            last=opt_float(pick(o, "futs_prpr", "optn_prpr")),
            change=opt_float(pick(o, "futs_prdy_vrss", "optn_prdy_vrss")),
            change_rate=opt_float(pick(o, "futs_prdy_ctrt", "optn_prdy_ctrt")),
            open=opt_float(pick(o, "futs_oprc", "optn_oprc")),
            high=opt_float(pick(o, "futs_hgpr", "optn_hgpr")),
            low=opt_float(pick(o, "futs_lwpr", "optn_lwpr")),
            volume=opt_float(pick(o, "acml_vol")),
            turnover=opt_float(pick(o, "acml_tr_pbmn")),
            name=str(pick(o, "hts_kor_isnm", default="")),
            raw=o,
        )
