"""
api_cache.py — ORM Model for Cached Provider Responses

Purpose:
- Store raw FMP responses keyed by (ticker, endpoint) so repeated dashboard
  loads do not hit the provider.

Important Constraints:
- (ticker, endpoint) is the primary key: at most one row per key; writes
  upsert over the previous row.
- Rows past `expires_at` are ignored on read. They are removed only by an
  explicit purge (scripts/purge_api_cache.py).
- `data` is the provider payload as-is (JSON), never reshaped.
"""

from sqlalchemy import Column, DateTime, Index, JSON, String

from finhub.models.base import Base


class ApiCache(Base):
    __tablename__ = "api_cache"

    ticker = Column(String, primary_key=True)
    endpoint = Column(String, primary_key=True)  # e.g. "v3/quote", "v3/ratios/annual/10"

    data = Column(JSON, nullable=False)

    fetched_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_api_cache_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<ApiCache {self.ticker} {self.endpoint} expires={self.expires_at}>"
