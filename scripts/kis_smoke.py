#!/usr/bin/env python3
"""Minimal KIS smoke test (paper account by default).

Usage:
  export KIS_APP_KEY=...
  export KIS_APP_SECRET=...
  export KIS_ACCOUNT_NO=XXXXXXXX01     # or KIS_CANO + KIS_ACNT_PRDT_CD
  export KIS_ENV=paper                 # paper | live

  python scripts/kis_smoke.py --snapshot --quote
  python scripts/kis_smoke.py --buy 1 --price 70000
"""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict

from loguru import logger

from kis_gateway.core.errors import KISError
from kis_gateway.kis.broker import KISBroker
from kis_gateway.kis.settings import KISSettings
from kis_gateway.utils.logger import setup_logging


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser()
    p.add_argument("--symbol", type=str, default="005930")
    p.add_argument("--buy", type=int, default=0)
    p.add_argument("--sell", type=int, default=0)
    p.add_argument("--price", type=float, default=0.0, help="limit price; market order when 0")
    p.add_argument("--snapshot", action="store_true")
    p.add_argument("--quote", action="store_true")
    p.add_argument("--log-level", type=str, default="INFO")
    p.add_argument("--log-file", type=str, default=None)
    return p.parse_args()


def _order(broker: KISBroker, symbol: str, side: str, qty: int, price: float) -> str:
    if price > 0:
        return broker.place_limit_order(symbol, side, qty, price)
    return broker.place_market_order(symbol, side, qty)


def main() -> int:
    args = parse_args()
    setup_logging(args.log_level, args.log_file)

    settings = KISSettings.from_env()
    if not settings.is_paper:
        logger.warning("KIS_ENV=live: orders will hit a real account")
    broker = KISBroker(settings)

    try:
        if args.snapshot:
            snap = broker.get_account_snapshot()
            print(json.dumps(asdict(snap), ensure_ascii=False, indent=2))

        if args.quote:
            q = broker.stocks.get_quote(args.symbol)
            print(f"{q.symbol} {q.name} last={q.last} change={q.change} ({q.change_rate}%)")

        if args.buy:
            oid = _order(broker, args.symbol, "buy", int(args.buy), args.price)
            print(f"BUY order_id={oid}")
        if args.sell:
            oid = _order(broker, args.symbol, "sell", int(args.sell), args.price)
            print(f"SELL order_id={oid}")
    except KISError as e:
        logger.error(f"smoke test failed: {type(e).__name__}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
