"""
Persistence for peer/competitor lists (`stock_peers`).

Every write replaces the row wholesale with a single INSERT ... ON CONFLICT
DO UPDATE, so concurrent writers for one symbol do not collide on the
primary key. A failed write rolls the session back before re-raising; the
same session stays usable for the next symbol. Symbols are stored
upper-cased and a symbol is never stored as its own peer.
"""

from __future__ import annotations

import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finhub.core.database import upsert_statement
from finhub.core.logging import get_logger
from finhub.models.stock_peer import StockPeer

logger = get_logger(__name__)


def clean_peer_list(symbol: str, peers: Iterable[str]) -> List[str]:
    """Upper-case, strip, de-duplicate in order and drop `symbol` itself. Non-strings are skipped."""
    symbol = symbol.strip().upper()
    cleaned: List[str] = []
    for peer in peers:
        if not isinstance(peer, str):
            continue
        ticker = peer.strip().upper()
        if not ticker or ticker == symbol or ticker in cleaned:
            continue
        cleaned.append(ticker)
    return cleaned


class PeerRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    # ------------------------------------------------------------------ #
    def upsert(
        self,
        symbol: str,
        name: str,
        peers: Iterable[str],
        sector: Optional[str] = None,
        industry: Optional[str] = None,
    ) -> StockPeer:
        symbol = symbol.strip().upper()
        values = {
            "symbol": symbol,
            "name": name,
            "peers": clean_peer_list(symbol, peers),
            "sector": sector,
            "industry": industry,
            "updated_at": datetime.datetime.now(datetime.timezone.utc),
        }
        try:
            self._db.execute(upsert_statement(self._db, StockPeer, values, key_columns=("symbol",)))
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise

        logger.debug(f"Stored {len(values['peers'])} peers for {symbol}")
        return self._db.get(StockPeer, symbol, populate_existing=True)

    def get(self, symbol: str) -> Optional[StockPeer]:
        return self._db.get(StockPeer, symbol.strip().upper())

    def search(
        self,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Tuple[List[StockPeer], int]:
        """Case-insensitive substring match over symbol, name, sector and industry, newest first."""
        query = select(StockPeer)
        if search:
            pattern = f"%{search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(StockPeer.symbol).like(pattern),
                    func.lower(StockPeer.name).like(pattern),
                    func.lower(StockPeer.sector).like(pattern),
                    func.lower(StockPeer.industry).like(pattern),
                )
            )

        total = self._db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        rows = (
            self._db.execute(
                query.order_by(StockPeer.updated_at.desc(), StockPeer.symbol).limit(limit).offset(offset)
            )
            .scalars()
            .all()
        )
        return list(rows), total

    def delete(self, symbol: str) -> bool:
        row = self.get(symbol)
        if row is None:
            return False
        symbol = row.symbol
        try:
            self._db.delete(row)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            raise
        logger.info(f"Deleted peer list for {symbol}")
        return True
