# tests/test_plugin.py
import json

import pytest

from conftest import envelope
from kis_gateway.plugin import BROKER_ID, BrokerPlugin

ORDER = "/uapi/domestic-stock/v1/trading/order-cash"
BALANCE = "/uapi/domestic-stock/v1/trading/inquire-balance"

CONFIG = {"app_key": "PSabcdefghijklmn", "app_secret": "secret-0123456789abcdef", "account_no": "12345678-01"}


def _b(obj) -> bytes:
    return json.dumps(obj).encode("utf-8")


@pytest.fixture
def plugin(transport):
    p = BrokerPlugin(transport=transport)
    assert json.loads(p.initialize(_b(CONFIG)))["success"] is True
    return p


@pytest.mark.parametrize(
    "cfg",
    [
        {"app_key": "k", "app_secret": "s", "account_no": "123456789"},
        {"app_secret": "s", "account_no": "1234567801"},
        {"app_key": "k", "app_secret": "s", "account_no": "1234567801", "is_paper": "yes"},
    ],
)
def test_initialize_rejects_bad_config(transport, cfg):
    res = json.loads(BrokerPlugin(transport=transport).initialize(_b(cfg)))
    assert res["success"] is False
    assert res["error"]
    assert transport.calls == []


def test_initialize_rejects_invalid_json(transport):
    res = json.loads(BrokerPlugin(transport=transport).initialize(b"{not json"))
    assert res["success"] is False


def test_accounts_before_initialize(transport):
    (acct,) = json.loads(BrokerPlugin(transport=transport).get_accounts())["accounts"]
    assert acct["id"] == "error"
    assert acct["extensions"]["error"] == "Plugin not initialized"


def test_accounts_balance_mapping(plugin, transport):
    transport.add(BALANCE, envelope(
        output1=[{"pdno": "005930", "hldg_qty": "10", "pchs_avg_pric": "70000", "prpr": "72000",
                  "evlu_pfls_amt": "20000", "evlu_pfls_rt": "2.86", "evlu_amt": "720000"}],
        output2=[{"dnca_tot_amt": "5000000", "ord_psbl_cash": "4200000", "tot_evlu_amt": "5720000"}],
    ))
    (acct,) = json.loads(plugin.get_accounts())["accounts"]

    assert acct["id"] == "1234567801"
    assert acct["broker_id"] == BROKER_ID
    assert acct["is_paper"] is True
    assert acct["extensions"] is None
    assert acct["balance"] == {
        "currency": "KRW",
        "total_equity": 5720000.0,
        "available_cash": 4200000.0,
        "buying_power": 4200000.0,
        "locked_cash": 800000.0,
    }
    (pos,) = acct["positions"]
    assert pos["symbol_id"] == "005930"
    assert pos["unrealized_pnl"] == 20000.0


def test_accounts_report_business_failure(plugin, transport):
    transport.add(BALANCE, envelope(rt_cd="1", msg_cd="EGW00201", msg1="초당 거래건수를 초과하였습니다."))
    (acct,) = json.loads(plugin.get_accounts())["accounts"]
    assert "EGW00201" in acct["extensions"]["error"]
    assert acct["balance"]["total_equity"] == 0.0
    assert acct["positions"] == []


def test_positions_for_unknown_account(plugin, transport):
    res = json.loads(plugin.get_positions(_b({"account_id": "9999999999"})))
    assert res["positions"] == []
    assert "Unknown account" in res["error"]
    assert transport.calls == []


def test_positions(plugin, transport):
    transport.add(BALANCE, envelope(output1=[{"pdno": "000660", "hldg_qty": "3"}], output2=[]))
    res = json.loads(plugin.get_positions(_b({"account_id": "1234567801"})))
    assert [p["symbol_id"] for p in res["positions"]] == ["000660"]
    assert "error" not in res


def test_submit_limit_order(plugin, transport):
    transport.add(ORDER, envelope({"ODNO": "0000117057", "ORD_TMD": "121052"}))
    req = {"symbol_id": "005930", "side": "buy", "order_type": "limit", "quantity": 10, "limit_price": 70000,
           "persona_id": "p1"}
    order = json.loads(plugin.submit_order(_b({"order": req})))["order"]

    assert order["id"] == "0000117057"
    assert order["status"] == "submitted"
    assert order["extensions"]["kis_order_time"] == "121052"
    assert order["persona_id"] == "p1"
    assert transport.last(ORDER).json()["ORD_UNPR"] == "70000"
    assert plugin.orders["0000117057"]["request"] == req


def test_submit_market_order_without_venue_id(plugin, transport):
    transport.add(ORDER, envelope({}))
    req = {"symbol_id": "005930", "side": "SELL", "order_type": "market", "quantity": 2.0}
    order = json.loads(plugin.submit_order(_b({"order": req})))["order"]

    assert order["id"] == "kr_1"
    body = transport.last(ORDER).json()
    assert (body["ORD_DVSN"], body["ORD_UNPR"]) == ("01", "0")
    assert transport.last(ORDER).headers["tr_id"] == "VTTC0801U"


@pytest.mark.parametrize(
    "req",
    [
        {"symbol_id": "005930", "side": "hold", "order_type": "limit", "quantity": 1, "limit_price": 70000},
        {"symbol_id": "005930", "side": "buy", "order_type": "limit", "quantity": 1.5, "limit_price": 70000},
        {"symbol_id": "005930", "side": "buy", "order_type": "limit", "quantity": 1},
        {"symbol_id": "005930", "side": "buy", "order_type": "limit", "quantity": float("inf"), "limit_price": 70000},
    ],
)
def test_submit_rejected_before_network(plugin, transport, req):
    order = json.loads(plugin.submit_order(_b({"order": req})))["order"]
    assert order["status"] == "rejected"
    assert order["extensions"]["error"].startswith("Order failed")
    assert transport.calls == []
    assert plugin.orders == {}


def test_submit_venue_rejection(plugin, transport):
    transport.add(ORDER, envelope(rt_cd="1", msg_cd="APBK0919", msg1="주문가능금액을 초과 했습니다"))
    req = {"symbol_id": "005930", "side": "buy", "order_type": "limit", "quantity": 1000, "limit_price": 70000}
    order = json.loads(plugin.submit_order(_b({"order": req})))["order"]
    assert order["status"] == "rejected"
    assert "주문가능금액을 초과 했습니다" in order["extensions"]["error"]


def test_submit_overflowing_quantity_is_rejected(plugin, transport):
    raw = b'{"order": {"symbol_id": "005930", "side": "buy", "order_type": "limit", "quantity": 1e400, "limit_price": 70000}}'
    order = json.loads(plugin.submit_order(raw))["order"]
    assert order["status"] == "rejected"
    assert transport.calls == []
    assert plugin.orders == {}


def test_submit_invalid_json(plugin, transport):
    order = json.loads(plugin.submit_order(b"{"))["order"]
    assert order["status"] == "rejected"
    assert transport.calls == []
