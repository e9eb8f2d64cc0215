"""
patterns.py — Pattern-based KPI extraction.

Scans document text with an ordered list of KPI templates. Each template owns
one or more regular expressions whose first group captures the number and
whose optional second group captures a scale suffix (million / thousand /
billion). Every match becomes an ExtractedKPI; near-duplicates of the same KPI
type are then collapsed.

Ordering:
- Templates, and the regexes inside each template, are tried in declaration
  order. Later regexes of the same template are not suppressed by earlier
  matches; the dedup pass keeps the earliest value.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence

from finhub.core.config import settings
from finhub.core.logging import get_logger
from finhub.services.kpi.models import ExtractedKPI, ExtractionMethod, KpiCategory, KpiUnit

logger = get_logger(__name__)

PATTERN_CONFIDENCE = 0.85
DEDUP_TOLERANCE = 0.01

_SCALE = r"(million|thousand|billion|mil|bil|M|K)\b"


@dataclass(frozen=True)
class KpiTemplate:
    type: str
    patterns: Sequence[Pattern[str]]
    display_name: str
    category: KpiCategory
    unit: KpiUnit


def _compile(*sources: str) -> List[Pattern[str]]:
    return [re.compile(source, re.IGNORECASE) for source in sources]


KPI_TEMPLATES: List[KpiTemplate] = [
    KpiTemplate(
        type="subscribers",
        patterns=_compile(
            r"(?:total\s+)?subscribers?:?\s*([\d,]+\.?\d*)\s*" + _SCALE,
            r"ended\s+(?:the\s+)?(?:quarter|period|year|Q[1-4](?:\s+\d{4})?)\s+with\s+([\d,]+\.?\d*)\s*"
            + _SCALE + r"\s+(?:paid\s+)?subscribers",
            r"subscriber\s+count:?\s*([\d,]+\.?\d*)\s*" + _SCALE,
        ),
        display_name="Total Subscribers",
        category=KpiCategory.CUSTOMER,
        unit=KpiUnit.COUNT,
    ),
    KpiTemplate(
        type="stores",
        patterns=_compile(
            r"(?:total\s+)?stores?:?\s*([\d,]+)",
            r"operated?\s+([\d,]+)\s+stores",
            r"store\s+count:?\s*([\d,]+)",
            r"we\s+operated\s+([\d,]+)\s+stores",
            r"([\d,]+)\s+company-operated\s+stores",
            r"([\d,]+)\s+licensed\s+stores",
        ),
        display_name="Store Count",
        category=KpiCategory.OPERATIONAL,
        unit=KpiUnit.COUNT,
    ),
    KpiTemplate(
        type="arpu",
        patterns=_compile(
            r"ARPU:?\s*\$?([\d,]+\.?\d*)",
            r"average\s+revenue\s+per\s+user:?\s*\$?([\d,]+\.?\d*)",
            r"revenue\s+per\s+subscriber:?\s*\$?([\d,]+\.?\d*)",
        ),
        display_name="Average Revenue Per User",
        category=KpiCategory.FINANCIAL,
        unit=KpiUnit.USD,
    ),
    KpiTemplate(
        type="mau",
        patterns=_compile(
            r"MAU:?\s*([\d,]+\.?\d*)\s*" + _SCALE,
            r"monthly\s+active\s+users?:?\s*([\d,]+\.?\d*)\s*" + _SCALE,
        ),
        display_name="Monthly Active Users",
        category=KpiCategory.CUSTOMER,
        unit=KpiUnit.COUNT,
    ),
    KpiTemplate(
        type="employees",
        patterns=_compile(
            r"(?:total\s+)?employees?:?\s*([\d,]+)",
            r"headcount:?\s*([\d,]+)",
            r"employ\s+([\d,]+)\s+people",
            r"employed\s+approximately\s+([\d,]+)\s+partners",
            r"we\s+employ(?:ed)?\s+approximately\s+([\d,]+)",
            r"([\d,]+)\s+partners\s+worldwide",
        ),
        display_name="Employee Count",
        category=KpiCategory.OPERATIONAL,
        unit=KpiUnit.COUNT,
    ),
]


def scale_factor(suffix: Optional[str]) -> float:
    """Multiplier for a captured scale suffix; 1 when absent or unknown."""
    if not suffix:
        return 1.0
    suffix = suffix.lower()
    if suffix.startswith("bil"):
        return 1e9
    if suffix.startswith("m"):
        return 1e6
    if suffix.startswith("k") or suffix.startswith("thousand"):
        return 1e3
    return 1.0


def parse_number(raw: str) -> float:
    """Parse a captured number, stripping thousands separators. NaN if unparseable."""
    try:
        return float(raw.replace(",", ""))
    except ValueError:
        return math.nan


def is_near_duplicate(a: float, b: float, tolerance: float = DEDUP_TOLERANCE) -> bool:
    """True when a and b are equal or differ by less than `tolerance` relative to b."""
    if a == b:
        return True
    return abs(a - b) < abs(b) * tolerance


def deduplicate(kpis: List[ExtractedKPI]) -> List[ExtractedKPI]:
    """Keep each KPI unless an earlier kept KPI of the same type is within 1%."""
    kept: List[ExtractedKPI] = []
    for kpi in kpis:
        if any(k.kpi_type == kpi.kpi_type and is_near_duplicate(k.value, kpi.value) for k in kept):
            continue
        kept.append(kpi)
    return kept


def extract_kpis(
    text: str,
    symbol: str,
    source_document: Optional[str] = None,
    report_date: Optional[str] = None,
    period: Optional[str] = None,
    templates: Sequence[KpiTemplate] = KPI_TEMPLATES,
) -> List[ExtractedKPI]:
    """
    Run every template over `text` and return deduplicated KPIs.

    Args:
        text: Document text (truncated to KPI_MAX_TEXT_CHARS)
        symbol: Ticker the document belongs to (upper-cased on output)
        source_document: File name recorded on each KPI
        report_date: Report date recorded on each KPI
        period: Fiscal period recorded on each KPI

    Returns:
        KPIs in template/regex/match order, near-duplicates removed.
    """
    budget = settings.KPI_MAX_TEXT_CHARS
    if len(text) > budget:
        logger.info(f"Truncating document text from {len(text)} to {budget} characters")
        text = text[:budget]

    symbol = symbol.upper()
    extracted: List[ExtractedKPI] = []

    for template in templates:
        for regex in template.patterns:
            for match in regex.finditer(text):
                raw_number = match.group(1) if regex.groups >= 1 else None
                if not raw_number:
                    continue

                value = parse_number(raw_number)
                if not math.isfinite(value):
                    logger.debug(f"Dropping unparseable {template.type} match: {match.group(0)!r}")
                    continue

                suffix = match.group(2) if regex.groups >= 2 else None
                value *= scale_factor(suffix)

                extracted.append(
                    ExtractedKPI(
                        symbol=symbol,
                        kpi_type=template.type,
                        display_name=template.display_name,
                        category=template.category.value,
                        value=value,
                        unit=template.unit.value,
                        period=period,
                        date=report_date,
                        source_text=match.group(0),
                        source_document=source_document,
                        extraction_method=ExtractionMethod.PATTERN,
                        confidence=PATTERN_CONFIDENCE,
                        validated=False,
                        quality_score=PATTERN_CONFIDENCE,
                        anomaly_flags=[],
                    )
                )

    deduped = deduplicate(extracted)
    logger.info(f"Extracted {len(extracted)} KPI match(es) for {symbol}, {len(deduped)} after dedup")
    return deduped
