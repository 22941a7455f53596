"""Plugin-host adapter.

The host calls four entry points with a JSON request and gets a JSON reply,
both as bytes:

    initialize(config)       {app_key, app_secret, account_no, is_paper}
    get_accounts({})         {"accounts": [AccountSummary]}
    get_positions({account_id})
    submit_order({"order": {symbol_id, side, order_type, quantity, limit_price, persona_id}})

Only domestic equity is exposed here. Failures never escape as exceptions: they
are logged and reported in explicit `error` fields of the reply.
"""
from __future__ import annotations

import json
import math
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from loguru import logger

from kis_gateway.core.errors import KISError, ValidationError
from kis_gateway.core.types import Action, BalanceResult, Holding, OrderRequest, PriceKind
from kis_gateway.kis.client import KISClient
from kis_gateway.kis.domestic_stock import DomesticStock
from kis_gateway.kis.settings import KISSettings
from kis_gateway.kis.transport import Transport

BROKER_ID = "broker-korea"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump(obj: Any) -> bytes:
    return json.dumps(obj, ensure_ascii=False).encode("utf-8")


def _load(raw: bytes) -> Dict[str, Any]:
    if not raw:
        return {}
    obj = json.loads(raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw)
    if not isinstance(obj, dict):
        raise ValueError("request must be a JSON object")
    return obj


def _position(h: Holding) -> Dict[str, Any]:
    return {
        "symbol_id": h.symbol,
        "quantity": h.quantity,
        "average_price": h.average_price,
        "current_price": h.current_price,
        "unrealized_pnl": h.pnl,
        "unrealized_pnl_percent": h.pnl_rate,
    }


def _empty_balance() -> Dict[str, Any]:
    return {"currency": "KRW", "total_equity": 0.0, "available_cash": 0.0, "buying_power": 0.0, "locked_cash": 0.0}


class BrokerPlugin:
    """Process-wide broker state behind the host entry points.

    Every entry point runs under one lock; orders accepted by the venue are kept
    in memory for the life of the process.
    """

    def __init__(self, transport: Optional[Transport] = None):
        self.transport = transport
        self.settings: Optional[KISSettings] = None
        self.stocks: Optional[DomesticStock] = None
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.next_order_id = 1
        self._lock = threading.Lock()

    # -------------------- entry points --------------------
    def initialize(self, raw: bytes) -> bytes:
        with self._lock:
            try:
                settings = KISSettings.from_mapping(_load(raw))
            except (KISError, ValueError) as e:
                logger.error(f"[{BROKER_ID}] initialize failed: {e}")
                return _dump({"success": False, "error": str(e)})

            self.settings = settings
            self.stocks = DomesticStock(KISClient(settings, transport=self.transport))
            mode = "paper" if settings.is_paper else "production"
            logger.info(f"[{BROKER_ID}] initialized ({mode})")
            return _dump({"success": True, "message": f"Initialized KIS broker ({mode})"})

    def get_accounts(self, raw: bytes = b"{}") -> bytes:
        with self._lock:
            if self.stocks is None or self.settings is None:
                return _dump({"accounts": [self._error_account("Plugin not initialized")]})

            balance, positions, error = _empty_balance(), [], None
            try:
                bal = self.stocks.get_balance()
                balance = self._balance(bal)
                positions = [_position(h) for h in bal.positions]
            except KISError as e:
                logger.error(f"[{BROKER_ID}] failed to fetch balance: {e}")
                error = str(e)

            account = {
                "id": self.settings.account_no,
                "name": f"KIS {'Paper' if self.settings.is_paper else 'Live'} Account",
                "broker_id": BROKER_ID,
                "is_paper": self.settings.is_paper,
                "balance": balance,
                "positions": positions,
                "updated_at": _now(),
                "extensions": {"error": error} if error else None,
            }
            return _dump({"accounts": [account]})

    def get_positions(self, raw: bytes) -> bytes:
        with self._lock:
            try:
                account_id = str(_load(raw).get("account_id") or "")
            except ValueError as e:
                return _dump({"positions": [], "error": f"invalid request: {e}"})

            if self.stocks is None or self.settings is None:
                return _dump({"positions": [], "error": "Plugin not initialized"})
            if account_id != self.settings.account_no:
                return _dump({"positions": [], "error": f"Unknown account: {account_id}"})

            try:
                bal = self.stocks.get_balance()
            except KISError as e:
                logger.error(f"[{BROKER_ID}] failed to fetch positions: {e}")
                return _dump({"positions": [], "error": str(e)})
            return _dump({"positions": [_position(h) for h in bal.positions]})

    def submit_order(self, raw: bytes) -> bytes:
        with self._lock:
            try:
                order_req = _load(raw).get("order") or {}
            except ValueError as e:
                return _dump({"order": self._rejected({}, f"invalid request: {e}")})
            if not isinstance(order_req, dict):
                return _dump({"order": self._rejected({}, "order must be a JSON object")})

            if self.stocks is None:
                return _dump({"order": self._rejected(order_req, "Plugin not initialized")})

            try:
                conf = self.stocks.place_order(self._order_request(order_req))
            except (KISError, TypeError, ValueError, OverflowError) as e:
                logger.error(f"[{BROKER_ID}] order failed: {e}")
                return _dump({"order": self._rejected(order_req, f"Order failed: {e}")})

            order_id = conf.order_id or f"kr_{self.next_order_id}"
            self.next_order_id += 1
            now = _now()
            order = {
                "id": order_id,
                "request": order_req,
                "status": "submitted",
                "created_at": now,
                "updated_at": now,
                "average_filled_price": None,
                "filled_quantity": 0.0,
                "extensions": {"kis_order_time": conf.order_time} if conf.order_time else {},
                "persona_id": order_req.get("persona_id"),
            }
            self.orders[order_id] = order
            logger.info(f"[{BROKER_ID}] order {order_id} submitted: {order_req.get('side')} {order_req.get('symbol_id')}")
            return _dump({"order": order})

    # -------------------- helpers --------------------
    @staticmethod
    def _order_request(o: Dict[str, Any]) -> OrderRequest:
        side = str(o.get("side") or "").lower()
        if side not in {"buy", "sell"}:
            raise ValidationError(f"Unknown order side: {o.get('side')!r}")

        qty = o.get("quantity")
        if not isinstance(qty, (int, float)) or isinstance(qty, bool) or not math.isfinite(qty) or float(qty) != int(qty):
            raise ValidationError(f"quantity must be a whole number, got {qty!r}")

        kind = PriceKind.MARKET if str(o.get("order_type") or "").lower() == "market" else PriceKind.LIMIT
        price = float(o.get("limit_price") or 0.0) if kind == PriceKind.LIMIT else 0.0
        return OrderRequest(
            symbol=str(o.get("symbol_id") or ""),
            quantity=int(qty),
            price=price,
            price_kind=kind,
            action=Action.BUY if side == "buy" else Action.SELL,
        )

    @staticmethod
    def _balance(bal: BalanceResult) -> Dict[str, Any]:
        s = bal.summary
        return {
            "currency": s.currency,
            "total_equity": s.total_equity,
            "available_cash": s.available_cash,
            "buying_power": s.available_cash,
            # 예수금 중 주문에 묶인 금액
            "locked_cash": s.buying_power - s.available_cash,
        }

    @staticmethod
    def _error_account(error: str) -> Dict[str, Any]:
        return {
            "id": "error",
            "name": f"Error: {error}",
            "broker_id": BROKER_ID,
            "is_paper": True,
            "balance": _empty_balance(),
            "positions": [],
            "updated_at": _now(),
            "extensions": {"error": error},
        }

    @staticmethod
    def _rejected(order_req: Dict[str, Any], error: str) -> Dict[str, Any]:
        now = _now()
        return {
            "id": f"error_{int(time.time() * 1000)}",
            "request": order_req,
            "status": "rejected",
            "created_at": now,
            "updated_at": now,
            "average_filled_price": None,
            "filled_quantity": 0.0,
            "extensions": {"error": error},
            "persona_id": order_req.get("persona_id"),
        }


_PLUGIN = BrokerPlugin()


def initialize(raw: bytes) -> bytes:
    return _PLUGIN.initialize(raw)


def get_accounts(raw: bytes = b"{}") -> bytes:
    return _PLUGIN.get_accounts(raw)


def get_positions(raw: bytes) -> bytes:
    return _PLUGIN.get_positions(raw)


def submit_order(raw: bytes) -> bytes:
    return _PLUGIN.submit_order(raw)
