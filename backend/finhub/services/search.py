"""
search.py — Ranked symbol search.

FMP's search returns every listing that matches, in no useful order: ADRs,
OTC lines and foreign duplicates of the same company mixed with funds. This
module drops funds and ranks what is left so the listing a user most likely
means comes first:

1. exact ticker match
2. for two listings of the same company (same base name or base ticker):
   home-market exchange, then market cap, actively trading, average volume,
   non-OTC / numeric Asian tickers when the origin is unknown, shorter ticker
3. ticker starts with the query
4. major exchange
5. OTC / Pink / Grey last
6. market cap, ticker length, then alphabetical

Market cap, country and volume come from one batched profile call for the
first PROFILE_LOOKUP_LIMIT hits; if that call fails the ranking runs without
them.
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from finhub.core.logging import get_logger
from finhub.data.fmp_client import FMPClient, FMPClientError
from finhub.services.universe import is_fund_name

logger = get_logger(__name__)

SEARCH_LIMIT = 20
PROFILE_LOOKUP_LIMIT = 15
MAX_RESULTS = 10

PRIMARY_EXCHANGES_BY_REGION: Dict[str, List[str]] = {
    "US": ["NYSE", "NASDAQ", "AMEX"],
    "CA": ["TSX", "TSX-V"],
    "CN": ["SSE", "SZSE", "HKEX"],
    "HK": ["HKEX"],
    "JP": ["TSE", "JPX"],
    "KR": ["KRX", "KOSDAQ"],
    "TW": ["TWSE"],
    "IN": ["NSE", "BSE"],
    "SG": ["SGX"],
    "GB": ["LSE", "AIM"],
    "DE": ["XETRA", "FRA", "ETR"],
    "FR": ["PAR", "EPA"],
    "CH": ["SIX", "SWX"],
    "NL": ["AMS"],
    "IT": ["MIL"],
    "ES": ["BME", "MC"],
    "SE": ["STO"],
    "NO": ["OSE"],
    "AU": ["ASX"],
    "NZ": ["NZX"],
}
MAJOR_EXCHANGES = {ex for exchanges in PRIMARY_EXCHANGES_BY_REGION.values() for ex in exchanges}
OTC_EXCHANGES = {"OTC", "PINK", "GREY"}

# Exchange aliases seen in FMP data
_EXCHANGE_ALIASES = {
    "HKSE": "HKEX",
    "HKG": "HKEX",
    "FRA": "XETRA",
    "ETR": "XETRA",
    "TYO": "TSE",
    "T": "TSE",
    "EPA": "PAR",
    "MCE": "BME",
    "MC": "BME",
    "KSC": "KRX",
    "KS": "KRX",
    "KQ": "KOSDAQ",
}

_SUFFIX_COUNTRY = {
    "HK": "HK",
    "T": "JP",
    "F": "DE",
    "DE": "DE",
    "ETR": "DE",
    "L": "GB",
    "PA": "FR",
    "TO": "CA",
    "V": "CA",
    "AX": "AU",
    "MX": "MX",
    "SI": "SG",
    "KS": "KR",
    "KQ": "KR",
}

_ORIGIN_PATTERNS = {
    "HK": [r"\bchina\b", r"\bhong\s*kong\b", r"\b(holdings?|group)\s+ltd\.?$"],
    "CN": [r"\bchina\b", r"\bchinese\b"],
    "JP": [r"\bjapan\b", r"\b(kabushiki|kaisha|k\.k\.|co\.?\s*ltd\.?)\s*$"],
    "KR": [r"\bkorea\b", r"\bkorean\b", r"\bsamsung\b", r"\bhyundai\b", r"\blg\b"],
    "CH": [r"\bswiss\b", r"\bswitzerland\b", r"\bnestle\b", r"\bnovartis\b", r"\broche\b"],
    "DE": [r"\b(gmbh|ag|se)\s*$", r"\bgermany\b", r"\bgerman\b"],
    "GB": [r"\bplc\s*$", r"\b(uk|britain|british)\b"],
    "FR": [r"\b(sa|sas)\s*$", r"\bfrance\b", r"\bfrench\b"],
    "NL": [r"\b(nv|bv)\s*$", r"\bnetherlands\b", r"\bdutch\b"],
    "US": [r"\b(inc\.?|corp\.?|corporation|company)\s*$", r"\bamerican?\b", r"\bu\.?s\.?\b"],
}
_ORIGIN_REGEXES = {
    country: [re.compile(p, re.IGNORECASE) for p in patterns] for country, patterns in _ORIGIN_PATTERNS.items()
}

_LEGAL_SUFFIX = re.compile(
    r"\s*(corp|corporation|inc|ltd|limited|plc|group|holdings|company|co\.|sa|ag|nv|bv|gmbh|ab|asa|as|oyj)\.?\s*$",
    re.IGNORECASE,
)
_NUMERIC_TICKER = re.compile(r"^\d+\.")


@dataclass
class SearchHit:
    symbol: str
    name: str
    exchange: str
    type: str
    currency: Optional[str]
    stock_exchange: Optional[str]
    profile: Dict[str, Any] = field(default_factory=dict)
    origin: Optional[str] = None

    @property
    def market_cap(self) -> float:
        return self.profile.get("mktCap") or 0

    @property
    def base_name(self) -> str:
        return _LEGAL_SUFFIX.sub("", self.name).strip().lower()

    @property
    def base_symbol(self) -> str:
        return self.symbol.split(".")[0]

    @property
    def is_otc(self) -> bool:
        return self.exchange in OTC_EXCHANGES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "exchange": self.exchange,
            "type": self.type,
            "currency": self.currency,
            "stockExchange": self.stock_exchange,
        }


def detect_origin(name: str, symbol: str, country: Optional[str] = None) -> Optional[str]:
    """Home country of a listing: profile country, ticker suffix, then name patterns."""
    if country:
        return country
    if "." in symbol:
        suffix_country = _SUFFIX_COUNTRY.get(symbol.rsplit(".", 1)[1])
        if suffix_country:
            return suffix_country
    for code, regexes in _ORIGIN_REGEXES.items():
        if any(regex.search(name) for regex in regexes):
            return code
    return None


def is_home_exchange(exchange: str, origin: Optional[str]) -> bool:
    if not origin:
        return False
    normalized = exchange.upper()
    normalized = _EXCHANGE_ALIASES.get(normalized, normalized)
    return normalized in PRIMARY_EXCHANGES_BY_REGION.get(origin, [])


def to_hits(items: Any) -> List[SearchHit]:
    """FMP search rows without funds or rows missing a symbol or name."""
    if not isinstance(items, list):
        return []
    hits = []
    for item in items:
        if not isinstance(item, dict):
            continue
        symbol, name = item.get("symbol"), item.get("name")
        if not symbol or not name or is_fund_name(name):
            continue
        hits.append(
            SearchHit(
                symbol=symbol,
                name=name,
                exchange=item.get("exchangeShortName") or "Unknown",
                type=item.get("type") or "stock",
                currency=item.get("currency") or None,
                stock_exchange=item.get("stockExchange") or None,
            )
        )
    return hits


def _prefer(a: bool, b: bool) -> int:
    """-1 when only `a` holds, 1 when only `b` holds, else 0."""
    if a and not b:
        return -1
    if b and not a:
        return 1
    return 0


def _compare_same_company(a: SearchHit, b: SearchHit) -> int:
    order = _prefer(is_home_exchange(a.exchange, a.origin), is_home_exchange(b.exchange, b.origin))
    if order:
        return order

    if a.market_cap or b.market_cap:
        order = _prefer(bool(a.market_cap), bool(b.market_cap))
        if order:
            return order
        if a.market_cap != b.market_cap:
            return -1 if a.market_cap > b.market_cap else 1

    a_active, b_active = a.profile.get("isActivelyTrading"), b.profile.get("isActivelyTrading")
    if a_active != b_active:
        return -1 if a_active else 1

    a_volume, b_volume = a.profile.get("volAvg") or 0, b.profile.get("volAvg") or 0
    if a_volume != b_volume:
        return -1 if a_volume > b_volume else 1

    if not a.origin and not b.origin:
        order = _prefer(not a.is_otc, not b.is_otc) or _prefer(
            bool(_NUMERIC_TICKER.match(a.symbol)), bool(_NUMERIC_TICKER.match(b.symbol))
        )
        if order:
            return order

    return len(a.symbol) - len(b.symbol)


def compare_hits(a: SearchHit, b: SearchHit, query: str) -> int:
    query = query.upper()
    order = _prefer(a.symbol.upper() == query, b.symbol.upper() == query)
    if order:
        return order

    if a.base_name == b.base_name or a.base_symbol == b.base_symbol:
        order = _compare_same_company(a, b)
        if order:
            return order

    order = (
        _prefer(a.symbol.upper().startswith(query), b.symbol.upper().startswith(query))
        or _prefer(a.exchange in MAJOR_EXCHANGES, b.exchange in MAJOR_EXCHANGES)
        or _prefer(not a.is_otc, not b.is_otc)
    )
    if order:
        return order

    if a.market_cap != b.market_cap:
        return -1 if a.market_cap > b.market_cap else 1
    if len(a.symbol) != len(b.symbol):
        return len(a.symbol) - len(b.symbol)
    return (a.symbol > b.symbol) - (a.symbol < b.symbol)


def rank_hits(hits: List[SearchHit], query: str) -> List[SearchHit]:
    for hit in hits:
        hit.origin = detect_origin(hit.name, hit.symbol, hit.profile.get("country") or None)
    return sorted(hits, key=functools.cmp_to_key(lambda a, b: compare_hits(a, b, query)))


def search_symbols(client: FMPClient, query: str) -> List[Dict[str, Any]]:
    """
    Top MAX_RESULTS listings for `query` as {symbol, name, exchange, type,
    currency, stockExchange}.

    Raises:
        FMPClientError: If the search call itself fails
    """
    hits = to_hits(client.search(query, limit=SEARCH_LIMIT))

    try:
        profiles = client.batch_profiles([hit.symbol for hit in hits[:PROFILE_LOOKUP_LIMIT]])
    except FMPClientError as e:
        logger.info(f"Profiles unavailable for search '{query}', ranking without them: {e}")
        profiles = []
    by_symbol = {p.get("symbol"): p for p in profiles if isinstance(p, dict)}
    for hit in hits:
        hit.profile = by_symbol.get(hit.symbol, {})

    return [hit.to_dict() for hit in rank_hits(hits, query)[:MAX_RESULTS]]
