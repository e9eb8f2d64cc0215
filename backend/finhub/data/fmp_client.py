"""
fmp_client.py — Financial Modeling Prep (FMP) API client.

This module provides a clean interface to the FMP REST API (v3 / v4
endpoints) used by the dashboard: quotes, profiles, ratios, key metrics,
price history, income statements, revenue segmentation, SEC filing lists,
the stock screener, symbol search, news, the stock list and earnings-call
transcripts.

Behaviour:
- One GET per call. No retry or backoff: a non-2xx status, a transport
  failure or an unparseable body raises `FMPClientError` and the route
  decides what the user sees.
- The API key is appended as the `apikey` query parameter and is never logged.
- Safe to share across threads: without an injected session each thread
  gets its own `requests.Session`, since a Session's connection pool and
  cookie jar are not thread-safe. An injected session is used as given.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

import requests

from finhub.core.config import settings
from finhub.core.errors import ApiError
from finhub.core.logging import get_logger

logger = get_logger(__name__)

# Screener floor used for peer discovery and batch candidate lists
LARGE_CAP_FLOOR = 1_000_000_000


class FMPClientError(RuntimeError):
    """Raised when an FMP request fails or returns an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class FMPClient:
    """
    Thin wrapper over `requests.Session` for the FMP API.

    Args:
        api_key: FMP API key (required, non-blank)
        base_url: API root without version segment
        session: Optional pre-built session shared by all threads (tests inject a mock)
        timeout: Default per-request timeout in seconds
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://financialmodelingprep.com/api",
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ) -> None:
        if not api_key:
            raise ValueError("FMP API key is required")
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._shared_session = session
        self._local = threading.local()
        self._timeout = timeout

    @property
    def session(self) -> requests.Session:
        """The injected session, or this thread's own `requests.Session`."""
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            self._local.session = session
        return session

    # ------------------------------------------------------------------ #
    # Transport
    def _get_json(
        self,
        path: str,
        params: Dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """
        Call {base_url}/{path} with params + apikey and return parsed JSON.

        Raises:
            FMPClientError: On transport failure, non-2xx status or invalid JSON
        """
        url = f"{self._base_url}/{path.lstrip('/')}"
        request_params = {k: v for k, v in (params or {}).items() if v is not None}
        request_params["apikey"] = self._api_key

        logger.debug(f"Making FMP API request: {url}")

        try:
            response = self.session.get(url, params=request_params, timeout=timeout or self._timeout)
        except requests.exceptions.Timeout as e:
            raise FMPClientError(f"FMP request timed out: {url}", url=url) from e
        except requests.exceptions.RequestException as e:
            raise FMPClientError(f"FMP request failed: {e}", url=url) from e

        if not response.ok:
            raise FMPClientError(
                f"FMP API error: {response.status_code}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise FMPClientError(f"FMP API returned invalid JSON for {url}", response.status_code, url) from e

    def _get_first(self, paths: List[tuple], label: str) -> Any:
        """
        Try (path, params) candidates in order, returning the first successful
        non-empty body. The last error is raised if all fail.
        """
        last_error: Optional[FMPClientError] = None
        for path, params in paths:
            try:
                data = self._get_json(path, params)
            except FMPClientError as e:
                logger.debug(f"{label}: {path} failed ({e}), trying next endpoint")
                last_error = e
                continue
            if data:
                return data
        if last_error:
            raise last_error
        raise FMPClientError(f"No data from FMP for {label}")

    # ------------------------------------------------------------------ #
    # Company data
    def quote(self, symbol: str) -> Any:
        symbol = symbol.upper()
        logger.info(f"Fetching quote for {symbol}")
        return self._get_json(f"v3/quote/{symbol}")

    def profile(self, symbol: str) -> Any:
        symbol = symbol.upper()
        logger.info(f"Fetching company profile for {symbol}")
        return self._get_json(f"v3/profile/{symbol}")

    def company_profile(self, symbol: str) -> Optional[Dict[str, Any]]:
        """First profile record for `symbol`, or None when FMP has none."""
        data = self.profile(symbol)
        if isinstance(data, list):
            return data[0] if data else None
        if isinstance(data, dict) and data:
            return data
        return None

    def batch_profiles(self, symbols: List[str]) -> List[Dict[str, Any]]:
        """Profiles for several symbols in one request (FMP accepts a comma list)."""
        symbols = [s.upper() for s in symbols if s]
        if not symbols:
            return []
        logger.info(f"Fetching {len(symbols)} company profiles")
        data = self._get_json(f"v3/profile/{','.join(symbols)}")
        return data if isinstance(data, list) else []

    def ratios(self, symbol: str, period: str = "annual", limit: int = 10) -> Any:
        symbol = symbol.upper()
        logger.info(f"Fetching ratios for {symbol} (period={period}, limit={limit})")
        return self._get_json(f"v3/ratios/{symbol}", {"period": period, "limit": limit})

    def key_metrics(self, symbol: str, period: str = "annual", limit: int = 10) -> Any:
        symbol = symbol.upper()
        logger.info(f"Fetching key metrics for {symbol} (period={period}, limit={limit})")
        return self._get_json(f"v3/key-metrics/{symbol}", {"period": period, "limit": limit})

    def income_statement(self, symbol: str, period: str = "ttm") -> Any:
        symbol = symbol.upper()
        logger.info(f"Fetching income statement for {symbol} (period={period})")
        return self._get_json(f"v3/income-statement/{symbol}", {"period": period})

    def historical_prices(self, symbol: str, timeseries: int = 365) -> Any:
        """Daily OHLC history as {"symbol": ..., "historical": [...]}."""
        symbol = symbol.upper()
        logger.info(f"Fetching {timeseries} days of prices for {symbol}")
        return self._get_json(
            f"v3/historical-price-full/{symbol}",
            {"serietype": "line", "timeseries": timeseries},
        )

    def revenue_product_segmentation(self, symbol: str) -> Any:
        """Product segmentation, v4 first then the v3 endpoint."""
        symbol = symbol.upper()
        logger.info(f"Fetching revenue product segmentation for {symbol}")
        return self._get_first(
            [
                ("v4/revenue-product-segmentation", {"symbol": symbol}),
                (f"v3/revenue-product-segmentation/{symbol}", None),
            ],
            f"product segments {symbol}",
        )

    def revenue_geographic_segmentation(self, symbol: str) -> Any:
        """Geographic segmentation: v4 flat, v4 default, then v3."""
        symbol = symbol.upper()
        logger.info(f"Fetching revenue geographic segmentation for {symbol}")
        return self._get_first(
            [
                ("v4/revenue-geographic-segmentation", {"symbol": symbol, "structure": "flat"}),
                ("v4/revenue-geographic-segmentation", {"symbol": symbol}),
                (f"v3/revenue-geographic-segmentation/{symbol}", None),
            ],
            f"geographic segments {symbol}",
        )

    def earnings_transcript(self, symbol: str, quarter: int, year: int) -> Any:
        """
        Earnings-call transcript for one quarter, with a short abort timeout.

        Returns None when FMP answers with a non-2xx status (no transcript for
        that quarter); a timeout or transport failure raises.
        """
        symbol = symbol.upper()
        logger.info(f"Fetching earnings transcript for {symbol} Q{quarter} {year}")
        try:
            return self._get_json(
                f"v3/earning_call_transcript/{symbol}",
                {"quarter": quarter, "year": year},
                timeout=settings.FMP_TRANSCRIPT_TIMEOUT_SECONDS,
            )
        except FMPClientError as e:
            if e.status_code is not None:
                logger.warning(f"No transcript for {symbol} Q{quarter} {year}: status {e.status_code}")
                return None
            raise

    def _get_list_or_empty(self, path: str, params: Dict[str, Any], label: str) -> List[Any]:
        """
        GET that treats a non-2xx status or a non-list body as "nothing
        available". Transport failures still raise.
        """
        try:
            data = self._get_json(path, params)
        except FMPClientError as e:
            if e.status_code is not None:
                logger.warning(f"No {label}: status {e.status_code}")
                return []
            raise
        if not isinstance(data, list):
            logger.warning(f"No {label}: unexpected {type(data).__name__} body")
            return []
        return data

    def earnings_transcript_dates(self, symbol: str, limit: int = 10) -> List[Any]:
        """[quarter, year, date] rows for the available transcripts, newest first."""
        symbol = symbol.upper()
        logger.info(f"Fetching earnings transcript dates for {symbol}")
        return self._get_list_or_empty(
            "v4/earning_call_transcript",
            {"symbol": symbol, "limit": limit},
            f"transcript dates for {symbol}",
        )

    def sec_filings(self, symbol: str, limit: int = 150) -> List[Dict[str, Any]]:
        symbol = symbol.upper()
        logger.info(f"Fetching SEC filings for {symbol} (limit={limit})")
        return self._get_list_or_empty(
            f"v3/sec_filings/{symbol}",
            {"limit": limit},
            f"SEC filings for {symbol}",
        )

    # ------------------------------------------------------------------ #
    # Market-wide data
    def stock_screener(
        self,
        sector: Optional[str] = None,
        industry: Optional[str] = None,
        market_cap_more_than: Optional[int] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = {
            "sector": sector,
            "industry": industry,
            "marketCapMoreThan": market_cap_more_than,
            "limit": limit,
            "offset": offset,
        }
        logger.info(
            f"Fetching screener results: sector={sector}, industry={industry}, "
            f"marketCapMoreThan={market_cap_more_than}, limit={limit}, offset={offset}"
        )
        data = self._get_json("v3/stock-screener", params)
        if not isinstance(data, list):
            raise FMPClientError(
                f"FMP API returned unexpected data type for screener: {type(data).__name__}. Expected a list."
            )
        return data

    def search(self, query: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Name/ticker search across all listings."""
        logger.info(f"Searching symbols for '{query}' (limit={limit})")
        data = self._get_json("v3/search", {"query": query, "limit": limit})
        if not isinstance(data, list):
            raise FMPClientError("Invalid search data format")
        return data

    def stock_news(self, symbol: str, limit: int = 20) -> List[Dict[str, Any]]:
        symbol = symbol.upper()
        data = self._get_json("v3/stock_news", {"tickers": symbol, "limit": limit})
        if not isinstance(data, list):
            raise FMPClientError("Invalid news data format")
        logger.info(f"Fetched {len(data)} news articles for {symbol}")
        return data

    def market_news(self, limit: int = 20) -> List[Dict[str, Any]]:
        data = self._get_json("v3/stock_market_news", {"limit": limit})
        if not isinstance(data, list):
            raise FMPClientError("Invalid market news data format")
        return data

    def stock_list(self) -> List[Dict[str, Any]]:
        logger.info("Fetching full stock list")
        data = self._get_json("v3/stock/list")
        if not isinstance(data, list):
            raise FMPClientError("Invalid stock list data format")
        return data


# -----------------------------------------------------------------------------
# FastAPI Dependency
# -----------------------------------------------------------------------------

def build_fmp_client() -> Optional[FMPClient]:
    """Client for the configured FMP key, or None when no key is set."""
    api_key = settings.fmp_api_key
    if not api_key:
        return None
    return FMPClient(
        api_key=api_key,
        base_url=settings.FMP_BASE_URL,
        timeout=settings.FMP_TIMEOUT_SECONDS,
    )


def get_fmp_client() -> FMPClient:
    """
    Build a client from settings.

    Raises:
        ApiError(500): If no FMP API key is configured.
    """
    client = build_fmp_client()
    if client is None:
        raise ApiError(500, "API key not configured")
    return client


def get_optional_fmp_client() -> Optional[FMPClient]:
    """FastAPI dependency for routes that report a missing key themselves."""
    return build_fmp_client()
