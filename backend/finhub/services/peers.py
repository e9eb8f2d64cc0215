"""
peers.py — Peer/competitor discovery.

Two ways to fill the peer store:

1. Market-cap similarity screening (`screen_peers`, `batch_screen`)
   - industry pass: screener filtered by industry, closest 8 by |Δ market cap|
   - sector pass: only when the industry pass found fewer than 5, tops the
     list up to 5 from the same sector
2. AI regeneration (`regenerate_peers`)
   - asks the LLM for 8-10 peers as JSON, falls back to ticker-shaped tokens
     when the reply is not JSON

Batch runs are chunked with a fixed delay between chunks; symbols inside a
chunk are screened concurrently on a bounded thread pool. A failing symbol is
recorded in `errors` and the batch continues. There is no retry.
"""

from __future__ import annotations

import json
import re
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from finhub.core.config import settings
from finhub.core.logging import get_logger
from finhub.data.fmp_client import LARGE_CAP_FLOOR, FMPClient, FMPClientError
from finhub.data.llm_client import LLMClient
from finhub.repositories.peers import PeerRepository

logger = get_logger(__name__)

INDUSTRY_LIMIT = 20
SECTOR_LIMIT = 15
MAX_INDUSTRY_PEERS = 8
MIN_PEERS = 5
MAX_AI_PEERS = 10

_TICKER_TOKEN = re.compile(r"[A-Z]{2,5}(?:\.[A-Z]{2})?")

PEER_SYSTEM_PROMPT = "You are a financial analyst. Provide peer analysis in the specified JSON format only."


class PeerScreeningError(RuntimeError):
    """Peer discovery failed for one symbol. `status_code` is the HTTP status routes should use."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class PeerScreenResult:
    symbol: str
    name: str
    sector: Optional[str]
    industry: Optional[str]
    peers: List[str]


@dataclass
class BatchResult:
    processed: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "successful": self.successful,
            "failed": self.failed,
            "errors": list(self.errors),
        }


@dataclass
class RegenerationResult:
    symbol: str
    old_peers: List[str]
    new_peers: List[str]
    analysis: Optional[str]


# -----------------------------------------------------------------------------
# Market-cap screening
# -----------------------------------------------------------------------------

def _market_cap(company: Dict[str, Any]) -> float:
    try:
        return float(company.get("marketCap") or 0)
    except (TypeError, ValueError):
        return 0.0


def closest_by_market_cap(
    candidates: Sequence[Dict[str, Any]],
    subject_cap: float,
    exclude: Sequence[str],
    count: int,
) -> List[str]:
    """Symbols of the `count` candidates closest to `subject_cap`, skipping `exclude` and non-positive caps."""
    excluded = {s.upper() for s in exclude}
    eligible = [
        c for c in candidates
        if c.get("symbol")
        and str(c["symbol"]).upper() not in excluded
        and _market_cap(c) > 0
    ]
    eligible.sort(key=lambda c: abs(_market_cap(c) - subject_cap))

    chosen: List[str] = []
    for company in eligible:
        ticker = str(company["symbol"]).upper()
        if ticker in chosen:
            continue
        chosen.append(ticker)
        if len(chosen) >= count:
            break
    return chosen


def screen_peers(client: FMPClient, symbol: str) -> PeerScreenResult:
    """
    Find market-cap-similar peers for one symbol.

    Raises:
        PeerScreeningError: If FMP has no profile for the symbol
        FMPClientError: If the profile request itself fails
    """
    symbol = symbol.strip().upper()
    profile = client.company_profile(symbol)
    if not profile:
        raise PeerScreeningError(f"No profile data for {symbol}", status_code=404)

    sector = profile.get("sector") or None
    industry = profile.get("industry") or None
    subject_cap = _market_cap(profile)
    peers: List[str] = []

    if industry:
        try:
            candidates = client.stock_screener(
                industry=industry,
                market_cap_more_than=LARGE_CAP_FLOOR,
                limit=INDUSTRY_LIMIT,
            )
            peers.extend(closest_by_market_cap(candidates, subject_cap, [symbol], MAX_INDUSTRY_PEERS))
        except FMPClientError as e:
            logger.warning(f"Industry search failed for {symbol}: {e}")

    if len(peers) < MIN_PEERS and sector:
        try:
            candidates = client.stock_screener(
                sector=sector,
                market_cap_more_than=LARGE_CAP_FLOOR,
                limit=SECTOR_LIMIT,
            )
            peers.extend(
                closest_by_market_cap(candidates, subject_cap, [symbol, *peers], MIN_PEERS - len(peers))
            )
        except FMPClientError as e:
            logger.warning(f"Sector search failed for {symbol}: {e}")

    return PeerScreenResult(
        symbol=symbol,
        name=profile.get("companyName") or symbol,
        sector=sector,
        industry=industry,
        peers=peers,
    )


def batch_screen(
    client: FMPClient,
    repo: PeerRepository,
    symbols: Sequence[str],
    batch_size: int = 50,
    delay: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
    max_workers: Optional[int] = None,
) -> BatchResult:
    """
    Screen and persist peers for many symbols.

    Symbols are processed in chunks of `batch_size`; screening inside a chunk
    runs on a thread pool (the client gives each worker thread its own HTTP
    session), persistence happens on the calling thread. `delay`
    seconds are slept between chunks, not after the last one.
    """
    if delay is None:
        delay = settings.PEER_BATCH_DELAY_SECONDS
    if max_workers is None:
        max_workers = settings.PEER_BATCH_MAX_WORKERS
    batch_size = max(1, int(batch_size))

    result = BatchResult()
    symbols = [str(s) for s in symbols]

    for start in range(0, len(symbols), batch_size):
        chunk = symbols[start:start + batch_size]
        logger.info(f"Screening peers for batch {start // batch_size + 1} ({len(chunk)} symbols)")

        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(chunk)))) as executor:
            futures = [(symbol, executor.submit(screen_peers, client, symbol)) for symbol in chunk]

            for symbol, future in futures:
                result.processed += 1
                try:
                    screened = future.result()
                    repo.upsert(
                        screened.symbol,
                        screened.name,
                        screened.peers,
                        sector=screened.sector,
                        industry=screened.industry,
                    )
                except Exception as e:
                    result.failed += 1
                    result.errors.append(f"{symbol}: {e}")
                    logger.error(f"Failed to process {symbol}: {e}")
                    continue

                result.successful += 1
                logger.info(f"Processed {screened.symbol}: found {len(screened.peers)} peers")

        if start + batch_size < len(symbols):
            sleep(delay)

    return result


def batch_candidates(client: FMPClient, limit: int = 1000, offset: int = 0) -> List[str]:
    """Large-cap symbols from the screener, used to seed batch runs."""
    companies = client.stock_screener(
        market_cap_more_than=LARGE_CAP_FLOOR,
        limit=limit,
        offset=offset,
    )
    return [c["symbol"] for c in companies if c.get("symbol")]


# -----------------------------------------------------------------------------
# AI regeneration
# -----------------------------------------------------------------------------

def build_peer_prompt(profile: Dict[str, Any], symbol: str, current_peers: Sequence[str]) -> str:
    company = profile.get("companyName") or symbol
    segment = profile.get("industry") or profile.get("sector") or "industry"
    return f"""For {company} ({symbol}), which operates in the {segment}, please identify the most relevant public company peers.

Current suggested peers: {', '.join(current_peers) or 'None'}

Please provide 8-10 highly relevant peer companies that:
- Operate in the same or very similar business segments
- Have comparable business models
- Compete for the same customers
- Are publicly traded with stock symbols

For luxury goods companies like LVMH, focus on other luxury conglomerates (e.g., Richemont, Kering, Hermès) rather than unrelated companies.

Format your response as JSON:
{{
  "recommendedPeers": [
    {{
      "symbol": "TICKER",
      "name": "Company Name",
      "reason": "Brief reason why this is a good peer"
    }}
  ],
  "analysis": "Brief explanation of peer selection rationale"
}}"""


def parse_peer_response(content: str) -> Dict[str, Any]:
    """
    Parse the LLM peer reply into {"recommendedPeers": [...], "analysis": ...}.

    Non-JSON replies fall back to the first 10 ticker-shaped tokens, with the
    raw reply kept as the analysis.
    """
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        tokens = _TICKER_TOKEN.findall(content)[:MAX_AI_PEERS]
        return {
            "recommendedPeers": [
                {"symbol": t, "name": t, "reason": "Extracted from analysis"} for t in tokens
            ],
            "analysis": content,
        }

    if not isinstance(parsed, dict):
        return {"recommendedPeers": [], "analysis": None}
    return parsed


def _peer_symbols(recommended: Any) -> List[str]:
    if not isinstance(recommended, list):
        return []
    symbols: List[str] = []
    for item in recommended:
        value = item.get("symbol") if isinstance(item, dict) else item
        if isinstance(value, str) and value.strip():
            symbols.append(value.strip().upper())
    return symbols


def regenerate_peers(
    client: FMPClient,
    llm: LLMClient,
    repo: PeerRepository,
    symbol: str,
) -> RegenerationResult:
    """
    Replace the stored peers for `symbol` with an LLM recommendation.

    Raises:
        PeerScreeningError: 404 when FMP has no profile, 400 when the LLM
            recommends no usable peers
        FMPClientError / LLMClientError: On provider failures
    """
    symbol = symbol.strip().upper()
    profile = client.company_profile(symbol)
    if not profile:
        raise PeerScreeningError("Company profile not found", status_code=404)

    existing = repo.get(symbol)
    old_peers = list(existing.peers or []) if existing else []

    content = llm.complete(
        PEER_SYSTEM_PROMPT,
        build_peer_prompt(profile, symbol, old_peers),
        model=settings.PERPLEXITY_PEER_MODEL,
        temperature=0.3,
        max_tokens=1000,
    )
    analysis = parse_peer_response(content)

    candidates = [s for s in _peer_symbols(analysis.get("recommendedPeers")) if s != symbol]
    if not candidates:
        raise PeerScreeningError("No peers recommended by AI analysis", status_code=400)

    row = repo.upsert(
        symbol,
        profile.get("companyName") or symbol,
        candidates[:MAX_AI_PEERS],
        sector=profile.get("sector"),
        industry=profile.get("industry"),
    )
    logger.info(f"Regenerated {len(row.peers)} peers for {symbol}")

    analysis_text = analysis.get("analysis")
    return RegenerationResult(
        symbol=symbol,
        old_peers=old_peers,
        new_peers=list(row.peers),
        analysis=analysis_text if isinstance(analysis_text, str) else None,
    )
