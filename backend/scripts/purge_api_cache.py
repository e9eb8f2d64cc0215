"""
purge_api_cache.py — Delete expired rows from the `api_cache` table.

Expired rows are ignored on read but never deleted by the API itself; run
this from cron (or by hand) to keep the table small.

Example:
    python scripts/purge_api_cache.py
"""

from __future__ import annotations

import argparse
import sys

from finhub.core.config import settings
from finhub.core.database import SessionLocal
from finhub.core.logging import configure_logging, get_logger
from finhub.services.response_cache import ResponseCache

logger = get_logger(__name__)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Delete expired rows from the api_cache table"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=settings.LOG_LEVEL,
        help="Log level (default: LOG_LEVEL setting)",
    )
    args = parser.parse_args()
    configure_logging(args.log_level)

    if SessionLocal is None:
        logger.error("DATABASE_URL is not set; nothing to purge")
        return 1

    db = SessionLocal()
    try:
        removed = ResponseCache(db).purge_expired()
    finally:
        db.close()

    print(f"Removed {removed} expired cache row(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
