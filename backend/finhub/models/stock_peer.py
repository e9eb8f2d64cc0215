"""
stock_peer.py — ORM Model for Peer/Competitor Lists

Purpose:
- Map a ticker to the list of tickers it is compared against on the
  dashboard's competitor tab.
- Rows are written wholesale by batch screening, AI regeneration, or the
  manual management endpoint, and removed by explicit delete.

Invariant:
- `symbol` never appears in `peers`. Enforced on the write path
  (finhub/repositories/peers.py), not by a DB constraint.
"""

from sqlalchemy import Column, DateTime, Index, JSON, String

from finhub.models.base import Base


class StockPeer(Base):
    __tablename__ = "stock_peers"

    symbol = Column(String, primary_key=True)  # upper-cased ticker
    name = Column(String, nullable=False)

    # Ordered list of peer tickers
    peers = Column(JSON, nullable=False, default=list)

    sector = Column(String, nullable=True)
    industry = Column(String, nullable=True)

    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_stock_peers_updated_at", "updated_at"),
    )

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "peers": list(self.peers or []),
            "sector": self.sector,
            "industry": self.industry,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<StockPeer {self.symbol} peers={len(self.peers or [])}>"
