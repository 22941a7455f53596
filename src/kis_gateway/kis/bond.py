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

ASKING_LEVELS = 5


class Bond(AssetEndpoint):
    """장내채권. `symbol` is the bond serial number (BOND_SRNO); limit orders only."""

    asset_class = AssetClass.BOND
    price_kinds = frozenset({PriceKind.LIMIT})

    def place_order(self, request: OrderRequest) -> Confirmation:
        self._validate_order(request)
        body = self._account() | {
            "BOND_SRNO": request.symbol,
            "ORD_QTY": str(request.quantity),
            "ORD_PRIC": fmt_num(request.price),
        }
        return self._confirmation(self._call(request.action, body=body))

    def revise(self, order_id: str, quantity: int, price: float, *, org_no: str = "") -> Confirmation:
        self._validate_revise(order_id, quantity, price)
        body = self._account() | {
            "KRX_FWDG_ORD_ORGNO": org_no,
            "ORGN_ODNO": order_id,
            "ORD_DVSN": "01",  # 정정
            "RVSE_QTY": str(quantity),
            "RVSE_PRIC": fmt_num(price),
        }
        return self._confirmation(self._call(Action.REVISE, body=body))

    def cancel(self, order_id: str, quantity: Optional[int] = None, *, org_no: str = "") -> Confirmation:
        self._validate_cancel(order_id, quantity)
        body = self._account() | {
            "KRX_FWDG_ORD_ORGNO": org_no,
            "ORGN_ODNO": order_id,
            "ORD_DVSN": "02",  # 취소
            "RVSE_QTY": "0" if quantity is None else str(quantity),  # 0: 전량
        }
        return self._confirmation(self._call(Action.CANCEL, body=body))

    def get_balance(self) -> BalanceResult:
        params = self._account() | {
            "AFHR_FLPR_YN": "N",
            "OFL_YN": "N",
            "INQR_DVSN": "01",
            "UNPR_DVSN": "01",
            "FUND_STTL_ICLD_YN": "N",
            "FNCG_AMT_AUTO_RDPT_YN": "N",
            "PRCS_DVSN": "00",
            "CTX_AREA_FK100": "",
            "CTX_AREA_NK100": "",
        }
        res = self._call(Action.BALANCE, params=params)

        positions = [
            Holding(
                symbol=str(pick(r, "pdno", default="")),
                name=str(pick(r, "prdt_name", default="")),
                quantity=to_float(pick(r, "hldg_qty")),
                average_price=to_float(pick(r, "pchs_avg_pric")),
                current_price=to_float(pick(r, "prpr")),
                pnl=to_float(pick(r, "evlu_pfls_amt")),
                pnl_rate=to_float(pick(r, "evlu_pfls_rt")),
                market_value=to_float(pick(r, "evlu_amt")),
                expiry=str(pick(r, "expr_dt", default="")),
            )
            for r in rows(res.output1 if res.output1 is not None else res.output)
        ]
        summary = BalanceSummary(
            total_equity=sum(p.market_value for p in positions),
            pnl=sum(p.pnl for p in positions),
            currency="KRW",
        )
        return BalanceResult(positions=positions, summary=summary)

    def get_quote(self, instrument: str) -> Quote:
        """호가 (asking price ladder, best first)."""
        self._require_id(instrument, "bond_srno")
        res = self._call(Action.QUOTE, params={"BOND_SRNO": instrument})
        o = first_row(res.output)
        asks, bids = [], []
        for i in range(1, ASKING_LEVELS + 1):
            ask = opt_float(pick(o, f"askp{i}"))
            if ask is not None:
                asks.append((ask, to_float(pick(o, f"askp_rsqn{i}"))))
            bid = opt_float(pick(o, f"bidp{i}"))
            if bid is not None:
                bids.append((bid, to_float(pick(o, f"bidp_rsqn{i}"))))
        return Quote(
            symbol=str(pick(o, "bond_srno", default=instrument)),
            name=str(pick(o, "bond_nm", default="")),
            asks=asks,
            bids=bids,
            raw=o,
        )

    def get_price(self, bond_srno: str) -> Quote:
        """현재가."""
        self._require_id(bond_srno, "bond_srno")
        res = self._call(Action.PRICE, params={"BOND_SRNO": bond_srno})
        o = first_row(res.output)
        return Quote(
            symbol=str(pick(o, "bond_srno", default=bond_srno)),
            last=opt_float(pick(o, "stck_prpr")),
            change=opt_float(pick(o, "prdy_vrss")),
            change_rate=opt_float(pick(o, "prdy_ctrt")),
            open=opt_float(pick(o, "stck_oprc")),
            high=opt_float(pick(o, "stck_hgpr")),
            low=opt_float(pick(o, "stck_lwpr")),
            volume=opt_float(pick(o, "acml_vol")),
            turnover=opt_float(pick(o, "acml_tr_pbmn")),
            name=str(pick(o, "bond_nm", default="")),
            raw=o,
        )
