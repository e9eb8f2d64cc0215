"""
screen_peers.py — Run market-cap peer screening from the command line.

Uses the same batch logic as POST /api/competitors/batch. Without --symbols
the large-cap candidate list from the FMP screener is used.

Example:
    python scripts/screen_peers.py --symbols AAPL MSFT NVDA
    python scripts/screen_peers.py --limit 200 --batch-size 25
"""

from __future__ import annotations

import argparse
import json
import sys

from finhub.core.config import settings
from finhub.core.database import SessionLocal, init_db
from finhub.core.logging import configure_logging, get_logger
from finhub.data.fmp_client import build_fmp_client
from finhub.repositories.peers import PeerRepository
from finhub.services.peers import batch_candidates, batch_screen

logger = get_logger(__name__)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Screen market-cap-similar peers and store them in stock_peers"
    )
    parser.add_argument(
        "--symbols",
        nargs="*",
        default=None,
        help="Ticker symbols to screen (default: large-cap screener candidates)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=1000,
        help="Number of screener candidates when --symbols is omitted (default: 1000)",
    )
    parser.add_argument(
        "--offset",
        type=int,
        default=0,
        help="Screener offset when --symbols is omitted (default: 0)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=50,
        help="Symbols per batch (default: 50)",
    )
    args = parser.parse_args()
    configure_logging(settings.LOG_LEVEL)

    client = build_fmp_client()
    if client is None:
        logger.error("FMP_API_KEY is not set")
        return 1
    if SessionLocal is None:
        logger.error("DATABASE_URL is not set")
        return 1

    init_db()
    symbols = args.symbols or batch_candidates(client, limit=args.limit, offset=args.offset)
    logger.info(f"Screening {len(symbols)} symbols")

    db = SessionLocal()
    try:
        results = batch_screen(client, PeerRepository(db), symbols, batch_size=args.batch_size)
    finally:
        db.close()

    print(json.dumps(results.to_dict(), indent=2))
    return 0 if results.failed == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
