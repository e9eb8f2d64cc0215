"""
filings.py — SEC filing lists, transcript dates, employee counts and
filing section extraction.

Reshapes FMP payloads for the research panels and pulls the narrative
sections (business, risk factors, MD&A, ...) out of a filing document so a
client can hand them to an LLM.

Section extraction:
- Tags are replaced by spaces and whitespace is collapsed; the cleaned text
  is cut to `FILING_MAX_TEXT_CHARS` before any pattern runs.
- Each section has a list of header strings tried in order. The first
  header found (case-insensitive) starts the section, which runs up to the
  next "Item" or the end of the text, and is cut to
  `FILING_SECTION_MAX_CHARS`. A section with no header match is "".
- Unknown filing types yield no sections.
"""

from __future__ import annotations

import datetime
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from finhub.core.config import settings
from finhub.core.logging import get_logger
from finhub.data.filing_client import FilingClient, FilingFetchError

logger = get_logger(__name__)

FILING_LOOKBACK_YEARS = 3

_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_NON_DIGIT = re.compile(r"\D")

FILING_SECTIONS: Dict[str, Dict[str, Sequence[str]]] = {
    "10-K": {
        "businessOverview": ("ITEM 1. BUSINESS", "BUSINESS OVERVIEW"),
        "riskFactors": ("ITEM 1A. RISK FACTORS", "RISK FACTORS"),
        "managementDiscussion": ("ITEM 7. MANAGEMENT", "MANAGEMENT'S DISCUSSION AND ANALYSIS"),
        "financialStatements": ("ITEM 8. FINANCIAL STATEMENTS", "CONSOLIDATED FINANCIAL STATEMENTS"),
    },
    "10-Q": {
        "managementDiscussion": ("ITEM 2. MANAGEMENT", "MANAGEMENT'S DISCUSSION AND ANALYSIS"),
        "financialStatements": ("ITEM 1. FINANCIAL STATEMENTS", "CONDENSED CONSOLIDATED FINANCIAL STATEMENTS"),
        "controls": ("ITEM 4. CONTROLS", "CONTROLS AND PROCEDURES"),
    },
    "8-K": {
        "eventDescription": ("ITEM 2.02", "Results of Operations and Financial Condition"),
        "materialAgreements": ("ITEM 1.01", "Entry into a Material Definitive Agreement"),
        "corporateChanges": ("ITEM 5.02", "Departure of Directors or Certain Officers"),
    },
}


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# -----------------------------------------------------------------------------
# FMP payload reshaping
# -----------------------------------------------------------------------------

def _filing_date(filing: Dict[str, Any]) -> Optional[datetime.date]:
    raw = filing.get("fillingDate") or filing.get("filingDate")
    if not isinstance(raw, str) or len(raw) < 10:
        return None
    try:
        return datetime.date.fromisoformat(raw[:10])
    except ValueError:
        return None


def recent_filings(
    filings: Any,
    today: Optional[datetime.date] = None,
    years: int = FILING_LOOKBACK_YEARS,
) -> List[Dict[str, Any]]:
    """Filings dated within the last `years` years, newest first. Undated rows are dropped."""
    if not isinstance(filings, list):
        return []
    today = today or _utcnow().date()
    try:
        cutoff = today.replace(year=today.year - years)
    except ValueError:  # Feb 29
        cutoff = today.replace(year=today.year - years, day=28)

    dated = []
    for filing in filings:
        if not isinstance(filing, dict):
            continue
        filed = _filing_date(filing)
        if filed is not None and filed >= cutoff:
            dated.append((filed, filing))

    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [filing for _, filing in dated]


def transcript_dates(rows: Any, symbol: str) -> List[Dict[str, Any]]:
    """[quarter, year, date] rows as {quarter, year, date, symbol}; short rows are skipped."""
    if not isinstance(rows, list):
        return []
    dates = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 3:
            continue
        quarter, year, date = row[0], row[1], row[2]
        dates.append({"quarter": quarter, "year": year, "date": date, "symbol": symbol})
    return dates


def employee_count(profile: Optional[Dict[str, Any]]) -> Optional[int]:
    """`fullTimeEmployees` as an int ("164,000" -> 164000), or None."""
    if not profile:
        return None
    raw = profile.get("fullTimeEmployees")
    if raw is None or isinstance(raw, bool):
        return None
    digits = _NON_DIGIT.sub("", str(raw))
    return int(digits) if digits else None


# -----------------------------------------------------------------------------
# Section extraction
# -----------------------------------------------------------------------------

def clean_filing_text(content: str, max_chars: Optional[int] = None) -> str:
    if max_chars is None:
        max_chars = settings.FILING_MAX_TEXT_CHARS
    text = _WHITESPACE.sub(" ", _TAG.sub(" ", content or "")).strip()
    return text[:max_chars]


def extract_section(text: str, headers: Sequence[str], max_chars: Optional[int] = None) -> str:
    if max_chars is None:
        max_chars = settings.FILING_SECTION_MAX_CHARS
    for header in headers:
        pattern = re.compile(re.escape(header) + r"[\s\S]*?(?=ITEM|$)", re.IGNORECASE)
        match = pattern.search(text)
        if match:
            return match.group(0)[:max_chars].strip()
    return ""


def extract_sections(content: str, filing_type: str) -> Dict[str, str]:
    """Named sections for `filing_type` from raw filing HTML/text."""
    layout = FILING_SECTIONS.get(filing_type.strip().upper())
    if layout is None:
        logger.info(f"No section layout for filing type {filing_type}")
        return {}
    text = clean_filing_text(content)
    return {name: extract_section(text, headers) for name, headers in layout.items()}


def extract_filing_content(
    client: FilingClient,
    url: str,
    filing_type: str,
    clock: Callable[[], datetime.datetime] = _utcnow,
) -> Dict[str, Any]:
    """
    Download a filing and extract its sections.

    A failed download is reported in the result (success=False) instead of
    raised, so the caller can show it next to the other filings.
    """
    logger.info(f"Extracting {filing_type} sections from {url}")
    try:
        content = client.fetch_text(url)
    except FilingFetchError as e:
        logger.error(f"Filing extraction failed for {url}: {e}")
        return {"success": False, "error": str(e), "filingType": filing_type, "url": url}

    return {
        "success": True,
        "filingType": filing_type,
        "url": url,
        "extractedSections": extract_sections(content, filing_type),
        "extractedAt": clock().isoformat(),
    }
