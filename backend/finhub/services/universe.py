"""
universe.py — Listed-stock universe for the screening page.

The full FMP stock list is filtered to operating companies (no ETFs, funds,
trusts or ETNs), sorted by exchange then name, and held in a TTLCache built
at application startup.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from finhub.core.cache import TTLCache, make_key
from finhub.core.logging import get_logger
from finhub.data.fmp_client import FMPClient

logger = get_logger(__name__)

UNIVERSE_KEY = make_key("universe", "stocks")

_STOCK_TYPES = {"stock", "common stock"}
_EXCLUDED_NAME_FRAGMENTS = (" etf", " fund", " trust", " etn")


@dataclass
class UniverseSnapshot:
    stocks: List[Dict[str, Any]]
    total_count: int
    exchange_stats: Dict[str, int]
    cached: bool
    timestamp: int  # epoch milliseconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stocks": self.stocks,
            "totalCount": self.total_count,
            "exchangeStats": self.exchange_stats,
            "cached": self.cached,
            "timestamp": self.timestamp,
        }


def is_fund_name(name: str) -> bool:
    """True for ETF, fund, trust and ETN names."""
    lowered = name.lower()
    return any(fragment in lowered for fragment in _EXCLUDED_NAME_FRAGMENTS)


def is_common_stock(item: Dict[str, Any]) -> bool:
    kind = (item.get("type") or "").lower()
    name = item.get("name") or ""
    if kind and kind not in _STOCK_TYPES:
        return False
    if not item.get("symbol") or not name:
        return False
    return not is_fund_name(name)


def filter_stocks(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    stocks = [item for item in items if isinstance(item, dict) and is_common_stock(item)]
    stocks.sort(key=lambda s: (s.get("exchangeShortName") or "", s.get("name") or ""))
    return stocks


def exchange_stats(stocks: List[Dict[str, Any]]) -> Dict[str, int]:
    stats: Dict[str, int] = {}
    for stock in stocks:
        exchange = stock.get("exchangeShortName") or "Unknown"
        stats[exchange] = stats.get(exchange, 0) + 1
    return stats


class StockUniverse:
    def __init__(self, client_factory: Callable[[], FMPClient], cache: TTLCache) -> None:
        self._client_factory = client_factory
        self._cache = cache

    def get(self, force_refresh: bool = False) -> UniverseSnapshot:
        if not force_refresh:
            stocks = self._cache.get(UNIVERSE_KEY)
            stored_at = self._cache.timestamp(UNIVERSE_KEY)
            if stocks is not None and stored_at is not None:
                logger.debug("Returning cached stock universe")
                return UniverseSnapshot(
                    stocks=stocks,
                    total_count=len(stocks),
                    exchange_stats=exchange_stats(stocks),
                    cached=True,
                    timestamp=int(stored_at * 1000),
                )

        stocks = filter_stocks(self._client_factory().stock_list())
        stored_at = self._cache.set(UNIVERSE_KEY, stocks)
        stats = exchange_stats(stocks)
        logger.info(f"Fetched {len(stocks)} stocks across {len(stats)} exchanges")

        return UniverseSnapshot(
            stocks=stocks,
            total_count=len(stocks),
            exchange_stats=stats,
            cached=False,
            timestamp=int(stored_at * 1000),
        )
