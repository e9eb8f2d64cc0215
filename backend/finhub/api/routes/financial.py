"""
financial.py — Company financial data endpoints.

Endpoints (all cached in `api_cache`):
- GET /financial/quote        → FMP quote (5 min)
- GET /financial/ratios       → FMP ratios (24 h)
- GET /financial/key-metrics  → FMP key metrics (24 h)
- GET /financial/profile      → FMP company profile (7 days)
- GET /financial/income-statement-ttm → FMP trailing-twelve-month income statement (24 h)

Payloads are returned exactly as FMP sent them.
"""

from fastapi import APIRouter, Depends, Query

from finhub.api.deps import cached_provider_call, get_response_cache, require_symbol
from finhub.core.config import settings
from finhub.data.fmp_client import FMPClient, get_fmp_client
from finhub.services.response_cache import ResponseCache

router = APIRouter(
    prefix="/financial",
    tags=["financial"]
)


@router.get("/quote")
def get_quote(
    symbol: str = Depends(require_symbol),
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
):
    """
    GET /financial/quote?symbol=AAPL

    Raises:
        400: Missing symbol
        500: API key not configured, or FMP request failed
    """
    return cached_provider_call(
        cache,
        symbol,
        "quote",
        lambda: client.quote(symbol),
        settings.CACHE_INTRADAY_TTL_SECONDS,
        "Failed to fetch stock quote",
    )


@router.get("/ratios")
def get_ratios(
    symbol: str = Depends(require_symbol),
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
    period: str = Query("annual", description="annual or quarter"),
    limit: int = Query(10, ge=1, le=120),
):
    return cached_provider_call(
        cache,
        symbol,
        f"ratios/{period}/{limit}",
        lambda: client.ratios(symbol, period=period, limit=limit),
        settings.CACHE_DEFAULT_TTL_SECONDS,
        "Failed to fetch financial ratios",
    )


@router.get("/key-metrics")
def get_key_metrics(
    symbol: str = Depends(require_symbol),
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
    period: str = Query("annual", description="annual or quarter"),
    limit: int = Query(10, ge=1, le=120),
):
    return cached_provider_call(
        cache,
        symbol,
        f"key-metrics/{period}/{limit}",
        lambda: client.key_metrics(symbol, period=period, limit=limit),
        settings.CACHE_DEFAULT_TTL_SECONDS,
        "Failed to fetch key metrics",
    )


@router.get("/profile")
def get_profile(
    symbol: str = Depends(require_symbol),
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
):
    return cached_provider_call(
        cache,
        symbol,
        "profile",
        lambda: client.profile(symbol),
        settings.CACHE_PROFILE_TTL_SECONDS,
        "Failed to fetch company profile",
    )


@router.get("/income-statement-ttm")
def get_income_statement_ttm(
    symbol: str = Depends(require_symbol),
    client: FMPClient = Depends(get_fmp_client),
    cache: ResponseCache = Depends(get_response_cache),
):
    return cached_provider_call(
        cache,
        symbol,
        "income-statement/ttm",
        lambda: client.income_statement(symbol, period="ttm"),
        settings.CACHE_DEFAULT_TTL_SECONDS,
        "Failed to fetch TTM income statement",
    )
