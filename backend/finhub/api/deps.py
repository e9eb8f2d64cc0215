"""
deps.py — Shared FastAPI dependencies and route helpers.

Dependency order matters: routes declare `require_symbol` before the provider
client so a missing symbol is reported (400) before a missing API key (500).
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from finhub.core.cache import TTLCache
from finhub.core.database import get_db, get_optional_db
from finhub.core.errors import ApiError
from finhub.core.logging import get_logger
from finhub.data.fmp_client import FMPClientError
from finhub.repositories.peers import PeerRepository
from finhub.services.response_cache import ResponseCache

logger = get_logger(__name__)


def require_symbol(symbol: Optional[str] = Query(None, description="Ticker symbol, e.g. AAPL")) -> str:
    """Upper-cased `symbol` query parameter; 400 when missing or blank."""
    if not symbol or not symbol.strip():
        raise ApiError(400, "Symbol is required")
    return symbol.strip().upper()


def get_response_cache(db: Optional[Session] = Depends(get_optional_db)) -> ResponseCache:
    return ResponseCache(db)


def get_peer_repository(db: Session = Depends(get_db)) -> PeerRepository:
    return PeerRepository(db)


def get_ttl_cache(request: Request) -> TTLCache:
    """The process-wide TTLCache built in the application lifespan."""
    return request.app.state.ttl_cache


def cached_provider_call(
    cache: ResponseCache,
    symbol: str,
    endpoint: str,
    loader: Callable[[], Any],
    ttl_seconds: float,
    failure_message: str,
) -> Any:
    """
    Read-through cache around one FMP call.

    Raises:
        ApiError(500): With `failure_message` and the provider error as details
    """
    try:
        return cache.fetch(symbol, endpoint, loader, ttl_seconds)
    except FMPClientError as e:
        logger.error(f"{failure_message} for {symbol}: {e}")
        raise ApiError(500, failure_message, details=str(e)) from e
