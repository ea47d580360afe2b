from unittest.mock import MagicMock

import httpx
import pytest

from stockfighter.client import StockfighterClient
from stockfighter_cli.run import run_demo

ORDER = {
    "ok": True,
    "symbol": "FOOBAR",
    "venue": "TESTEX",
    "direction": "buy",
    "originalQty": 100,
    "qty": 100,
    "price": 5125,
    "orderType": "limit",
    "id": 42,
    "account": "EXB123456",
    "fills": [],
    "totalFilled": 0,
    "open": True,
}

ROUTES = {
    ("GET", "/ob/api/heartbeat"): {"ok": True, "error": ""},
    ("GET", "/ob/api/venues/TESTEX/heartbeat"): {"ok": True, "venue": "TESTEX"},
    ("GET", "/ob/api/venues/TESTEX/stocks"): {"ok": True, "symbols": [{"name": "Foobar Inc", "symbol": "FOOBAR"}]},
    ("GET", "/ob/api/venues/TESTEX/stocks/FOOBAR"): {"ok": True, "venue": "TESTEX", "symbol": "FOOBAR", "bids": [], "asks": []},
    ("GET", "/ob/api/venues/TESTEX/stocks/FOOBAR/quote"): {"ok": True, "symbol": "FOOBAR", "venue": "TESTEX", "last": 5125},
    ("POST", "/ob/api/venues/TESTEX/stocks/FOOBAR/orders"): ORDER,
    ("GET", "/ob/api/venues/TESTEX/stocks/FOOBAR/orders/42"): ORDER,
    ("DELETE", "/ob/api/venues/TESTEX/stocks/FOOBAR/orders/42"): dict(ORDER, open=False, qty=0),
}


class Venue:
    def __init__(self, overrides=None):
        self.routes = dict(ROUTES)
        self.routes.update(overrides or {})
        self.seen = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        key = (request.method, request.url.path)
        self.seen.append(key)
        status, body = self.routes[key] if isinstance(self.routes[key], tuple) else (200, self.routes[key])
        return httpx.Response(status, json=body)


def make_client(venue, api_key=""):
    return StockfighterClient.for_testing(api_key=api_key, transport=httpx.MockTransport(venue), tracer=MagicMock())


@pytest.mark.asyncio
async def test_demo_without_key_skips_orders(capsys):
    venue = Venue()
    code = await run_demo(make_client(venue))

    assert code == 0
    assert [m for m, _ in venue.seen] == ["GET"] * 5
    out = capsys.readouterr().out
    assert "API is up: True" in out
    assert "venue is up: True" in out


@pytest.mark.asyncio
async def test_demo_order_round_trip(capsys):
    venue = Venue()
    code = await run_demo(make_client(venue, api_key="secret"), wait_seconds=0)

    assert code == 0
    assert venue.seen[-3:] == [
        ("POST", "/ob/api/venues/TESTEX/stocks/FOOBAR/orders"),
        ("GET", "/ob/api/venues/TESTEX/stocks/FOOBAR/orders/42"),
        ("DELETE", "/ob/api/venues/TESTEX/stocks/FOOBAR/orders/42"),
    ]
    out = capsys.readouterr().out
    assert "created order:" in out
    assert "canceled order:" in out


@pytest.mark.asyncio
async def test_demo_reports_rejected_order(capsys):
    venue = Venue({("POST", "/ob/api/venues/TESTEX/stocks/FOOBAR/orders"): (401, {"ok": False, "error": "invalid API key"})})
    client = make_client(venue, api_key="bad")
    code = await run_demo(client, wait_seconds=0)

    assert code == 1
    assert "we got an error:" in capsys.readouterr().out
    assert client.err.message == "invalid API key"
    assert ("GET", "/ob/api/venues/TESTEX/stocks/FOOBAR/orders/42") not in venue.seen


@pytest.mark.asyncio
async def test_demo_keeps_going_after_market_data_error(capsys):
    venue = Venue({("GET", "/ob/api/venues/TESTEX/heartbeat"): (404, {"ok": False, "error": "No venue exists with the symbol TESTEX"})})
    client = make_client(venue)
    code = await run_demo(client, place_orders=False)

    assert code == 1
    assert len(venue.seen) == 5
    assert "venue is up failed:" in capsys.readouterr().out
