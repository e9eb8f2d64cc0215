"""
llm.py — LLM-based KPI extraction.

Sends document text to the chat-completion endpoint with an industry- and
document-aware prompt and a fixed JSON schema, then normalises the returned
KPIs.

The reply is parsed in two stages (strict JSON, then the first {...} block in
the text). `parse_kpi_response` returns either ParsedKpis or KpiParseError so
callers can tell "no KPIs found" from "reply was not usable".
"""

from __future__ import annotations

import datetime
import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from finhub.core.config import settings
from finhub.core.logging import get_logger
from finhub.data.llm_client import LLMClient
from finhub.services.kpi.models import (
    ExtractedKPI,
    ExtractionMethod,
    KpiCategory,
    KpiPeriod,
    KpiUnit,
    overall_confidence,
)

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are an expert financial analyst who extracts key performance indicators "
    "from company documents. Always respond with valid JSON only."
)

INDUSTRY_CONTEXTS: Dict[str, str] = {
    "technology": """
COMMON TECH KPIs TO LOOK FOR:
- Monthly Active Users (MAU)
- Daily Active Users (DAU)
- Average Revenue Per User (ARPU)
- Customer Acquisition Cost (CAC)
- Churn Rate
- Conversion Rate
- User Engagement Metrics""",
    "retail": """
COMMON RETAIL KPIs TO LOOK FOR:
- Number of stores/locations
- Same-store sales growth
- Sales per square foot
- Customer traffic/footfall
- Average transaction value
- Inventory turnover""",
    "gaming": """
COMMON GAMING KPIs TO LOOK FOR:
- Monthly Active Users (MAU)
- Daily Active Users (DAU)
- Average Revenue Per User (ARPU)
- Gross Gaming Revenue (GGR)
- Player retention rates
- In-game purchase metrics""",
    "telecom": """
COMMON TELECOM KPIs TO LOOK FOR:
- Subscriber count
- Average Revenue Per User (ARPU)
- Churn rate
- Network coverage
- Data usage per subscriber
- Customer satisfaction scores""",
    "streaming": """
COMMON STREAMING KPIs TO LOOK FOR:
- Total subscribers
- Paid subscribers vs free users
- Average Revenue Per User (ARPU)
- Content hours watched
- Churn rate
- Regional subscriber breakdown""",
}

GENERIC_INDUSTRY_CONTEXT = """
COMMON KPIs TO LOOK FOR:
- Customer/user counts
- Revenue per customer/user
- Operational metrics (locations, employees, etc.)
- Growth metrics
- Efficiency metrics"""

DOCUMENT_TYPE_CONTEXTS: Dict[str, str] = {
    "10-K": "This is an annual report. Look for annual KPIs and year-over-year comparisons.",
    "10-Q": "This is a quarterly report. Look for quarterly KPIs and quarter-over-quarter comparisons.",
    "earnings-release": "This is an earnings release. Focus on performance highlights and key metrics sections.",
    "investor-presentation": "This is an investor presentation. Look for slides with operational metrics and performance indicators.",
}

GENERIC_DOCUMENT_CONTEXT = "Extract operational performance metrics from this document."

_VALID_CATEGORIES = {c.value for c in KpiCategory}
_VALID_UNITS = {u.value for u in KpiUnit}
_VALID_PERIODS = {p.value for p in KpiPeriod}

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class KpiExtractionError(RuntimeError):
    """Raised when the LLM reply cannot be turned into KPIs."""


@dataclass
class ParsedKpis:
    kpis: List[Dict[str, Any]]


@dataclass
class KpiParseError:
    message: str
    raw: str = ""


@dataclass
class KpiExtractionResult:
    kpis: List[ExtractedKPI] = field(default_factory=list)
    confidence: float = 0.0


def industry_context(industry: Optional[str]) -> str:
    if industry and industry.lower() in INDUSTRY_CONTEXTS:
        return INDUSTRY_CONTEXTS[industry.lower()]
    return GENERIC_INDUSTRY_CONTEXT


def document_context(document_type: Optional[str]) -> str:
    if document_type and document_type in DOCUMENT_TYPE_CONTEXTS:
        return DOCUMENT_TYPE_CONTEXTS[document_type]
    return GENERIC_DOCUMENT_CONTEXT


def build_prompt(
    text: str,
    symbol: str,
    industry: Optional[str] = None,
    document_type: Optional[str] = None,
) -> str:
    return f"""
Extract key performance indicators (KPIs) from the following {document_type or 'document'} for {symbol}.

{industry_context(industry)}

{document_context(document_type)}

IMPORTANT EXTRACTION RULES:
1. Focus on operational metrics, NOT standard financial statement items (revenue, net income, etc.)
2. Convert all values to actual numbers (e.g., "52.6 million" becomes 52600000)
3. Extract the exact text where you found each KPI
4. Only extract KPIs with specific numeric values
5. Assign confidence based on how clear and unambiguous the extraction is
6. Include the reporting period if mentioned
7. RESPOND WITH VALID JSON ONLY - NO OTHER TEXT

DOCUMENT TEXT:
{text}

Respond with JSON in this exact format:
{{
  "kpis": [
    {{
      "type": "subscribers",
      "displayName": "Total Subscribers",
      "value": 52600000,
      "unit": "count",
      "period": "quarterly",
      "sourceText": "We ended Q3 with 52.6 million subscribers",
      "confidence": 0.95,
      "category": "customer"
    }}
  ]
}}

Valid categories: {', '.join(c.value for c in KpiCategory)}
Valid units: {', '.join(u.value for u in KpiUnit)}
Valid periods: {', '.join(p.value for p in KpiPeriod)}
"""


def _kpis_from_payload(payload: Any) -> Union[ParsedKpis, KpiParseError]:
    if not isinstance(payload, dict) or not isinstance(payload.get("kpis"), list):
        return KpiParseError("Response JSON has no 'kpis' list")
    return ParsedKpis(kpis=[k for k in payload["kpis"] if isinstance(k, dict)])


def parse_kpi_response(content: str) -> Union[ParsedKpis, KpiParseError]:
    """
    Parse an LLM reply into raw KPI dicts.

    Stage 1: the whole reply as JSON.
    Stage 2: the first {...} block inside the reply (bounded input length).
    """
    try:
        return _kpis_from_payload(json.loads(content))
    except json.JSONDecodeError:
        pass

    match = _JSON_BLOCK.search(content[: settings.KPI_MAX_TEXT_CHARS])
    if match is None:
        return KpiParseError("Invalid JSON response", raw=content)
    try:
        return _kpis_from_payload(json.loads(match.group(0)))
    except json.JSONDecodeError:
        return KpiParseError("Invalid JSON response", raw=content)


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def normalize_kpi(raw: Dict[str, Any], symbol: str, now: datetime.datetime) -> Optional[ExtractedKPI]:
    """Stamp provenance on one LLM KPI. Returns None when it has no usable value."""
    value = _to_float(raw.get("value"))
    if value is None:
        logger.debug(f"Skipping LLM KPI without numeric value: {raw}")
        return None

    confidence = _to_float(raw.get("confidence"))
    flags: List[str] = []
    if confidence is None:
        confidence = 0.0
        flags.append("missing_confidence")
    confidence = min(max(confidence, 0.0), 1.0)

    category = str(raw.get("category") or "")
    unit = str(raw.get("unit") or "")
    period = raw.get("period")
    if category not in _VALID_CATEGORIES:
        flags.append(f"invalid_category:{category}")
    if unit not in _VALID_UNITS:
        flags.append(f"invalid_unit:{unit}")
    if period is not None and period not in _VALID_PERIODS:
        flags.append(f"invalid_period:{period}")

    kpi_type = str(raw.get("type") or raw.get("kpiType") or "unknown")
    try:
        return ExtractedKPI(
            symbol=symbol,
            kpi_type=kpi_type,
            display_name=str(raw.get("displayName") or kpi_type),
            category=category,
            value=value,
            unit=unit,
            period=str(period) if period is not None else None,
            source_text=str(raw.get("sourceText") or ""),
            extraction_method=ExtractionMethod.LLM,
            confidence=confidence,
            validated=False,
            quality_score=confidence,
            anomaly_flags=flags,
            created_at=now,
            updated_at=now,
        )
    except ValidationError as e:
        logger.warning(f"Skipping malformed LLM KPI {raw}: {e}")
        return None


def extract_kpis_with_llm(
    llm: LLMClient,
    text: str,
    symbol: str,
    industry: Optional[str] = None,
    document_type: Optional[str] = None,
) -> KpiExtractionResult:
    """
    Extract KPIs from `text` with the LLM.

    Raises:
        LLMClientError: If the provider call fails
        KpiExtractionError: If the reply is not usable JSON
    """
    budget = settings.KPI_MAX_TEXT_CHARS
    if len(text) > budget:
        logger.info(f"Truncating document text from {len(text)} to {budget} characters")
        text = text[:budget]

    symbol = symbol.upper()
    prompt = build_prompt(text, symbol, industry, document_type)
    content = llm.complete(
        SYSTEM_PROMPT,
        prompt,
        model=settings.PERPLEXITY_KPI_MODEL,
        temperature=0.1,
        max_tokens=4000,
    )

    parsed = parse_kpi_response(content)
    if isinstance(parsed, KpiParseError):
        logger.error(f"Failed to parse LLM KPI response for {symbol}: {parsed.message}")
        raise KpiExtractionError(parsed.message)

    now = datetime.datetime.now(datetime.timezone.utc)
    kpis = [kpi for kpi in (normalize_kpi(raw, symbol, now) for raw in parsed.kpis) if kpi is not None]
    logger.info(f"LLM extracted {len(kpis)} KPI(s) for {symbol}")
    return KpiExtractionResult(kpis=kpis, confidence=overall_confidence(kpis))
