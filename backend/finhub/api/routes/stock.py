"""
stock.py — Per-symbol chart data, filings, peers, search and the stock universe.

Endpoints:
- GET /stock/search?query=                              → ranked symbol search (funds excluded)
- GET /stock/universe                                   → filtered stock list (in-memory TTL cache)
- GET /stock/peers?symbol=                              → stored peer list
- GET /stock/{symbol}/price?timeframe=1Y                → reshaped price history
- GET /stock/{symbol}/revenue-segments                  → product segment shares
- GET /stock/{symbol}/geographic-revenue                → region shares
- GET /stock/{symbol}/earnings-transcript-dates         → available transcript quarters
- GET /stock/{symbol}/earnings-transcript/{quarter}/{year}
- GET /stock/{symbol}/sec-filings                       → filings from the last 3 years, newest first
- GET /stock/{symbol}/employee-count                    → {employeeCount} from the company profile
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from finhub.api.deps import (
    cached_provider_call,
    get_peer_repository,
    get_response_cache,
    get_ttl_cache,
    require_symbol,
)
from finhub.core.cache import TTLCache
from finhub.core.config import settings
from finhub.core.errors import ApiError
from finhub.core.logging import get_logger
from finhub.data.fmp_client import FMPClient, FMPClientError, get_fmp_client
from finhub.repositories.peers import PeerRepository
from finhub.services.filings import employee_count, recent_filings, transcript_dates
from finhub.services.prices import reshape_history, timeframe_days
from finhub.services.response_cache import ResponseCache
from finhub.services.search import search_symbols
from finhub.services.segments import aggregate, latest_period, normalize_region_name
from finhub.services.universe import StockUniverse

logger = get_logger(__name__)

router = APIRouter(
    prefix="/stock",
    tags=["stock"]
)


# -----------------------------------------------------------------------------
# Symbol-independent routes
# -----------------------------------------------------------------------------

def require_query(query: Optional[str] = Query(None, description="Company name or ticker fragment")) -> str:
    if not query or not query.strip():
        raise ApiError(400, "Query is required")
    return query.strip()


@router.get("/search")
def search_stocks(
    query: str = Depends(require_query),
    client: FMPClient = Depends(get_fmp_client),
) -> List[Dict[str, Any]]:
    """
    GET /stock/search?query=apple

    Returns:
        Up to 10 [{symbol, name, exchange, type, currency, stockExchange}]
    """
    try:
        return search_symbols(client, query)
    except FMPClientError as e:
        logger.error(f"Error searching stocks for '{query}': {e}")
        raise ApiError(500, "Failed to search stocks", details=str(e)) from e


@router.get("/universe")
def get_universe(
    refresh: bool = Query(False, description="Bypass the in-memory cache"),
    client: FMPClient = Depends(get_fmp_client),
    cache: TTLCache = Depends(get_ttl_cache),
):
    """
    GET /stock/universe

    Returns:
        {stocks, totalCount, exchangeStats, cached, timestamp}
    """
    universe = StockUniverse(lambda: client, cache)
    try:
        return universe.get(force_refresh=refresh).to_dict()
    except FMPClientError as e:
        logger.error(f"Error fetching stock universe: {e}")
        raise ApiError(500, "Failed to fetch stock universe", details=str(e)) from e


@router.get("/peers")
def get_peers(
    symbol: str = Depends(require_symbol),
    repo: PeerRepository = Depends(get_peer_repository),
):
    row = repo.get(symbol)
    if row is None:
        raise ApiError(404, "No peer data found for symbol")
    return {"peers": list(row.peers or [])}


# -----------------------------------------------------------------------------
# Per-symbol routes
# -----------------------------------------------------------------------------

@router.get("/{symbol}/price")
def get_price_history(
    symbol: str,
    timeframe: str = Query("1Y", description="YTD, 1M, 3M, 6M, 1Y or 5Y"),
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
) -> List[Dict[str, Any]]:
    symbol = symbol.upper()
    days = timeframe_days(timeframe)
    payload = cached_provider_call(
        cache,
        symbol,
        f"historical-price-full/{days}",
        lambda: client.historical_prices(symbol, timeseries=days),
        settings.CACHE_INTRADAY_TTL_SECONDS,
        "Failed to fetch stock price data",
    )
    return reshape_history(payload)


@router.get("/{symbol}/revenue-segments")
def get_revenue_segments(
    symbol: str,
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
) -> List[Dict[str, Any]]:
    symbol = symbol.upper()
    payload = cached_provider_call(
        cache,
        symbol,
        "revenue-product-segmentation",
        lambda: client.revenue_product_segmentation(symbol),
        settings.CACHE_DEFAULT_TTL_SECONDS,
        "Failed to fetch revenue segments data",
    )
    return [entry.to_dict() for entry in aggregate(latest_period(payload))]


@router.get("/{symbol}/geographic-revenue")
def get_geographic_revenue(
    symbol: str,
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
) -> List[Dict[str, Any]]:
    symbol = symbol.upper()
    payload = cached_provider_call(
        cache,
        symbol,
        "revenue-geographic-segmentation",
        lambda: client.revenue_geographic_segmentation(symbol),
        settings.CACHE_DEFAULT_TTL_SECONDS,
        "Failed to fetch geographic revenue data",
    )
    entries = aggregate(latest_period(payload), normalizer=normalize_region_name)
    return [entry.to_dict() for entry in entries]


@router.get("/{symbol}/earnings-transcript/{quarter}/{year}")
def get_earnings_transcript(
    symbol: str,
    quarter: int,
    year: int,
    client: FMPClient = Depends(get_fmp_client),
):
    """
    Transcript for one quarter, or null when FMP has none.

    Raises:
        500: Timeout or transport failure
    """
    symbol = symbol.upper()
    try:
        return client.earnings_transcript(symbol, quarter, year)
    except FMPClientError as e:
        logger.error(f"Error fetching earnings transcript {symbol} Q{quarter} {year}: {e}")
        raise ApiError(500, "Failed to fetch earnings transcript", details=str(e)) from e


@router.get("/{symbol}/earnings-transcript-dates")
def get_earnings_transcript_dates(
    symbol: str,
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
) -> List[Dict[str, Any]]:
    """[{quarter, year, date, symbol}], or [] when FMP lists none."""
    symbol = symbol.upper()
    rows = cached_provider_call(
        cache,
        symbol,
        "earning-call-transcript-dates",
        lambda: client.earnings_transcript_dates(symbol),
        settings.CACHE_DEFAULT_TTL_SECONDS,
        "Failed to fetch earnings transcript dates",
    )
    return transcript_dates(rows, symbol)


@router.get("/{symbol}/sec-filings")
def get_sec_filings(
    symbol: str,
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
) -> List[Dict[str, Any]]:
    symbol = symbol.upper()
    filings = cached_provider_call(
        cache,
        symbol,
        "sec-filings",
        lambda: client.sec_filings(symbol),
        settings.CACHE_DEFAULT_TTL_SECONDS,
        "Failed to fetch SEC filings",
    )
    return recent_filings(filings)


@router.get("/{symbol}/employee-count")
def get_employee_count(
    symbol: str,
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
):
    """{"employeeCount": int | null} from the cached company profile."""
    symbol = symbol.upper()
    profile = cached_provider_call(
        cache,
        symbol,
        "profile",
        lambda: client.profile(symbol),
        settings.CACHE_PROFILE_TTL_SECONDS,
        "Failed to fetch employee count data",
    )
    if isinstance(profile, list):
        profile = profile[0] if profile else None
    return {"employeeCount": employee_count(profile if isinstance(profile, dict) else None)}
