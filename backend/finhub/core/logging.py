"""
logging.py — Application-Wide Logging Configuration

Purpose:
- Configure a standardized logging format for the entire backend.
- Keep provider calls, cache decisions and batch runs readable in one stream.

Conventions:
- INFO: request intent and result counts (e.g. "Fetched 20 news articles for AAPL").
- DEBUG: cache hits/misses and provider URLs (never including the API key).
- WARNING: degraded paths (cache unavailable, screener pass skipped).
- ERROR: per-symbol batch failures and route-boundary failures.
"""

import logging

# -----------------------------------------------------------------------------
# Log Format
# -----------------------------------------------------------------------------

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)

# urllib3 logs full request URLs at DEBUG, and FMP takes its key as a query
# parameter. These stay at WARNING whatever the root level is.
QUIET_LOGGERS = ("urllib3", "httpx", "httpcore", "openai")

# -----------------------------------------------------------------------------
# Root Logger Initialization
# -----------------------------------------------------------------------------

def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging settings.

    Parameters:
        level (str): "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"

    Should be called ONCE, typically in `main.py` at app startup.
    """

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging initialized with level %s", level)

# -----------------------------------------------------------------------------
# Logger Access Helper
# -----------------------------------------------------------------------------

def get_logger(name: str) -> logging.Logger:
    """
    Return a logger instance to be used in any module.

    In any module:
        from finhub.core.logging import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
