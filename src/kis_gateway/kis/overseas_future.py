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
from .domestic_future import DERIVATIVE_ORDER_ACTIONS, side_code
from .endpoint import SIDE_CODES, AssetEndpoint, first_row, fmt_num, opt_float, pick, rows, to_float

# 가격구분코드
PRIC_DVSN_CD = {PriceKind.LIMIT: "1", PriceKind.MARKET: "2"}


class OverseasFuture(AssetEndpoint):
    """해외선물옵션. Offered in the live environment only."""

    asset_class = AssetClass.OVERSEAS_DERIVATIVE
    price_kinds = frozenset(PRIC_DVSN_CD)
    order_actions = DERIVATIVE_ORDER_ACTIONS

    def place_order(self, request: OrderRequest) -> Confirmation:
        self._validate_order(request)
        body = self._account() | {
            "OVRS_FUTR_FX_PDNO": request.symbol,
            "SLL_BUY_DVSN_CD": side_code(request.action),
            "PRIC_DVSN_CD": PRIC_DVSN_CD[request.price_kind],
            "ORD_QTY": str(request.quantity),
            "FUOP_LIMT_PRIC": fmt_num(request.price),
        }
        return self._confirmation(self._call(request.action, body=body))

    def revise(self, order_id: str, quantity: int, price: float) -> Confirmation:
        self._validate_revise(order_id, quantity, price)
        body = self._account() | {
            "ORGN_ODNO": order_id,
            "RVSE_CNCL_DVSN_CD": "01",
            "ORD_QTY": str(quantity),
            "FUOP_LIMT_PRIC": fmt_num(price),
        }
        return self._confirmation(self._call(Action.REVISE, body=body))

    def cancel(self, order_id: str, quantity: Optional[int] = None) -> Confirmation:
        self._validate_cancel(order_id, quantity)
        body = self._account() | {"ORGN_ODNO": order_id, "RVSE_CNCL_DVSN_CD": "02"}
        if quantity is not None:
            body["ORD_QTY"] = str(quantity)
        return self._confirmation(self._call(Action.CANCEL, body=body))

    def get_balance(self) -> BalanceResult:
        """미결제내역 (open positions)."""
        params = self._account() | {
            "OVRS_FUTR_FX_PDNO": "",
            "CTX_AREA_FK200": "",
            "CTX_AREA_NK200": "",
        }
        res = self._call(Action.BALANCE, params=params)

        positions = []
        for r in rows(res.output1 if res.output1 is not None else res.output):
            qty = to_float(pick(r, "unpd_qty"))
            cur = to_float(pick(r, "prpr"))
            positions.append(
                Holding(
                    symbol=str(pick(r, "ovrs_futr_fx_pdno", default="")),
                    name=str(pick(r, "ovrs_futr_fx_item_nm", default="")),
                    quantity=qty,
                    average_price=to_float(pick(r, "avg_pric")),
                    current_price=cur,
                    pnl=to_float(pick(r, "evlu_pfls_amt")),
                    pnl_rate=to_float(pick(r, "evlu_pfls_rt")),
                    market_value=qty * cur,
                    currency=str(pick(r, "crcy_cd", default="USD")),
                    side=SIDE_CODES.get(str(pick(r, "sll_buy_dvsn_cd", default="")), ""),
                )
            )

        summary = BalanceSummary(
            pnl=sum(p.pnl for p in positions),
            currency=positions[0].currency if positions else "USD",
        )
        return BalanceResult(positions=positions, summary=summary)

    def get_deposit(self) -> Deposit:
        params = self._account() | {"OVRS_FUTR_FX_PDNO": "", "WCRC_FRCR_DVSN_CD": "01", "NATN_CD": ""}
        res = self._call(Action.DEPOSIT, params=params)
        o = first_row(res.output)
        return Deposit(
            total_deposit=to_float(pick(o, "tot_dpsit_amt", "frcr_dpsit_tot_amt")),
            available=to_float(pick(o, "ord_psbl_amt")),
            margin=to_float(pick(o, "mgna_amt")),
            pnl=to_float(pick(o, "evlu_pfls_amt")),
            currency=str(pick(o, "crcy_cd", default="USD")),
        )

    def get_executions(self, start: str, end: str) -> List[Execution]:
        """체결내역 between `start` and `end` (YYYYMMDD, inclusive)."""
        self._require_id(start, "start")
        self._require_id(end, "end")
        params = self._account() | {
            "OVRS_FUTR_FX_PDNO": "",
            "STRT_DT": start,
            "END_DT": end,
            "SLL_BUY_DVSN_CD": "",
            "CCLD_NCCS_DVSN_CD": "",
            "SORT_SQN": "DS",
            "CTX_AREA_FK200": "",
            "CTX_AREA_NK200": "",
        }
        res = self._call(Action.EXECUTIONS, params=params)
        return [
            Execution(
                order_id=str(pick(r, "odno", default="")),
                symbol=str(pick(r, "ovrs_futr_fx_pdno", default="")),
                name=str(pick(r, "ovrs_futr_fx_item_nm", default="")),
                side=SIDE_CODES.get(str(pick(r, "sll_buy_dvsn_cd", default="")), ""),
                quantity=to_float(pick(r, "ccld_qty")),
                price=to_float(pick(r, "ccld_unpr")),
                amount=to_float(pick(r, "ccld_amt")),
                time=str(pick(r, "ccld_tmd", default="")),
            )
            for r in rows(res.output1 if res.output1 is not None else res.output)
        ]

    def get_quote(self, instrument: str) -> Quote:
        self._require_id(instrument, "symbol")
        res = self._call(Action.QUOTE, params={"SRS_CD": instrument})
        o = first_row(res.output1) or first_row(res.output)
        return Quote(
            symbol=instrument,
            last=opt_float(pick(o, "last_price")),
            change=opt_float(pick(o, "prev_diff_price")),
            change_rate=opt_float(pick(o, "prev_diff_rate")),
            open=opt_float(pick(o, "open_price")),
            high=opt_float(pick(o, "high_price")),
            low=opt_float(pick(o, "low_price")),
            volume=opt_float(pick(o, "vol", "trade_volume")),
            raw=o,
        )
