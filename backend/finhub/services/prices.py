"""
Price-series helpers for the stock price chart.
"""

from __future__ import annotations

from typing import Any, Dict, List

TIMEFRAME_DAYS: Dict[str, int] = {
    "YTD": 365,
    "1M": 30,
    "3M": 90,
    "6M": 180,
    "1Y": 365,
    "5Y": 1825,
}

DEFAULT_TIMEFRAME_DAYS = 365


def timeframe_days(timeframe: str) -> int:
    return TIMEFRAME_DAYS.get(timeframe, DEFAULT_TIMEFRAME_DAYS)


def reshape_history(payload: Any) -> List[Dict[str, Any]]:
    """Map FMP's `historical` rows onto the chart shape; `price` is the close."""
    if not isinstance(payload, dict) or not isinstance(payload.get("historical"), list):
        return []
    return [
        {
            "date": row.get("date"),
            "price": row.get("close"),
            "volume": row.get("volume"),
            "open": row.get("open"),
            "high": row.get("high"),
            "low": row.get("low"),
            "close": row.get("close"),
            "change": row.get("change"),
            "changePercent": row.get("changePercent"),
        }
        for row in payload["historical"]
        if isinstance(row, dict)
    ]
