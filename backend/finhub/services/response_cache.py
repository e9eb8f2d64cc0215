"""
response_cache.py — Read-through / write-through cache for provider responses.

Purpose:
- Serve repeated FMP requests from the `api_cache` table while the row is
  live, and write fresh provider payloads back on a miss.

Contract:
    get(ticker, endpoint) -> data | MISS
    put(ticker, endpoint, data, ttl_seconds)
    fetch(ticker, endpoint, loader, ttl_seconds) -> data

Behaviour:
- A row is live while `expires_at > now`; expired rows are ignored, not
  deleted. `purge_expired()` removes them on demand.
- No locking: two concurrent misses for the same key both call the loader
  and both write with INSERT ... ON CONFLICT DO UPDATE; the last write wins
  and neither fails on the primary key.
- A database error is logged and treated as a miss (reads) or dropped
  (writes). Without a database every read is a miss and writes are no-ops.

This module does NOT:
- Reshape payloads (routes do that after the cache).
- Decide TTLs (routes pass `CACHE_*_TTL_SECONDS` from settings).
"""

from __future__ import annotations

import datetime
from typing import Any, Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finhub.core.database import upsert_statement
from finhub.core.logging import get_logger
from finhub.models.api_cache import ApiCache

logger = get_logger(__name__)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class _Miss:
    """Sentinel type for a cache miss."""

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False


MISS = _Miss()


class ResponseCache:
    def __init__(
        self,
        db: Optional[Session],
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self._db = db
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._db is not None

    def get(self, ticker: str, endpoint: str) -> Any:
        """Return the live payload for (ticker, endpoint), or MISS."""
        if self._db is None:
            return MISS

        ticker = ticker.upper()
        try:
            row = self._db.execute(
                select(ApiCache)
                .where(ApiCache.ticker == ticker)
                .where(ApiCache.endpoint == endpoint)
                .where(ApiCache.expires_at > self._clock())
            ).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(f"Cache read failed for {ticker} {endpoint}, treating as miss: {e}")
            self._rollback()
            return MISS

        if row is None:
            logger.debug(f"Cache miss: {ticker} {endpoint}")
            return MISS

        logger.debug(f"Cache hit: {ticker} {endpoint}")
        return row.data

    def put(self, ticker: str, endpoint: str, data: Any, ttl_seconds: float) -> None:
        """Upsert the payload with expires_at = now + ttl."""
        if self._db is None:
            return

        ticker = ticker.upper()
        now = self._clock()
        try:
            self._db.execute(
                upsert_statement(
                    self._db,
                    ApiCache,
                    {
                        "ticker": ticker,
                        "endpoint": endpoint,
                        "data": data,
                        "fetched_at": now,
                        "expires_at": now + datetime.timedelta(seconds=ttl_seconds),
                    },
                    key_columns=("ticker", "endpoint"),
                )
            )
            self._db.commit()
        except SQLAlchemyError as e:
            logger.warning(f"Cache write failed for {ticker} {endpoint}: {e}")
            self._rollback()

    def fetch(
        self,
        ticker: str,
        endpoint: str,
        loader: Callable[[], Any],
        ttl_seconds: float,
    ) -> Any:
        """
        Return the cached payload, or call `loader()` and cache its result.

        Loader exceptions propagate. Empty payloads (None, [], {}) are
        returned without being cached.
        """
        cached = self.get(ticker, endpoint)
        if cached is not MISS:
            return cached

        data = loader()
        if data is None or data == [] or data == {}:
            logger.debug(f"Not caching empty payload for {ticker} {endpoint}")
            return data

        self.put(ticker, endpoint, data, ttl_seconds)
        return data

    def purge_expired(self) -> int:
        """Delete rows past expiry. Returns the number of rows removed."""
        if self._db is None:
            return 0
        result = self._db.execute(delete(ApiCache).where(ApiCache.expires_at <= self._clock()))
        self._db.commit()
        removed = result.rowcount or 0
        logger.info(f"Purged {removed} expired cache row(s)")
        return removed

    def _rollback(self) -> None:
        try:
            self._db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Cache rollback failed: {e}")
