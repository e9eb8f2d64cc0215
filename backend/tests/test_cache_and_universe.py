"""
Tests for the in-process TTL cache and the stock universe built on it.
"""

import pytest

from finhub.core.cache import TTLCache, make_key
from finhub.services.universe import StockUniverse, exchange_stats, filter_stocks

LISTING = [
    {"symbol": "IBM", "name": "IBM", "exchangeShortName": "NYSE", "type": "stock"},
    {"symbol": "SPY", "name": "SPDR S&P 500 ETF Trust", "exchangeShortName": "AMEX", "type": "etf"},
    {"symbol": "XYZ", "name": "Some Income Fund", "exchangeShortName": "NYSE", "type": "stock"},
    {"symbol": "MSFT", "name": "Microsoft", "exchangeShortName": "NASDAQ"},
    {"symbol": "", "name": "Blank", "type": "stock"},
    {"symbol": "AAPL", "name": "Apple Inc.", "exchangeShortName": "NASDAQ", "type": "stock"},
]


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


# -----------------------------------------------------------------------------
# TTLCache
# -----------------------------------------------------------------------------

def test_ttl_cache_expires_entries(clock):
    cache = TTLCache(60, clock=clock)
    assert cache.set("k", "v") == 1000.0

    clock.now += 59
    assert cache.get("k") == "v"
    assert cache.timestamp("k") == 1000.0

    clock.now += 1
    assert cache.get("k") is None
    assert cache.timestamp("k") is None


def test_ttl_cache_clear_by_namespace(clock):
    cache = TTLCache(60, clock=clock)
    cache.set(make_key("universe", "stocks"), [1])
    cache.set(make_key("other", "x"), [2])

    cache.clear("universe")

    assert cache.get("universe:stocks") is None
    assert cache.get("other:x") == [2]

    cache.clear()
    assert cache.get("other:x") is None


# -----------------------------------------------------------------------------
# Stock universe
# -----------------------------------------------------------------------------

def test_filter_stocks_keeps_operating_companies_sorted():
    stocks = filter_stocks(LISTING)

    assert [s["symbol"] for s in stocks] == ["AAPL", "MSFT", "IBM"]
    assert exchange_stats(stocks) == {"NASDAQ": 2, "NYSE": 1}


def test_universe_is_served_from_cache_until_expiry(fake_fmp, clock):
    fake_fmp.listing = LISTING
    universe = StockUniverse(lambda: fake_fmp, TTLCache(100, clock=clock))

    first = universe.get()
    clock.now += 10
    second = universe.get()

    assert first.cached is False
    assert second.cached is True
    assert second.timestamp == first.timestamp == 1_000_000
    assert second.total_count == 3
    assert fake_fmp.calls.count(("stock_list",)) == 1

    clock.now += 100
    third = universe.get()
    assert third.cached is False
    assert third.timestamp == 1_110_000
    assert fake_fmp.calls.count(("stock_list",)) == 2


def test_universe_force_refresh_bypasses_cache(fake_fmp, clock):
    fake_fmp.listing = LISTING
    universe = StockUniverse(lambda: fake_fmp, TTLCache(100, clock=clock))
    universe.get()

    refreshed = universe.get(force_refresh=True)

    assert refreshed.cached is False
    assert fake_fmp.calls.count(("stock_list",)) == 2
    assert refreshed.to_dict()["exchangeStats"] == {"NASDAQ": 2, "NYSE": 1}
