"""
KPI extraction from company documents: regex templates and LLM prompting.
"""

from finhub.services.kpi.llm import (
    KpiExtractionError,
    KpiExtractionResult,
    KpiParseError,
    ParsedKpis,
    extract_kpis_with_llm,
    parse_kpi_response,
)
from finhub.services.kpi.models import ExtractedKPI, overall_confidence
from finhub.services.kpi.patterns import KPI_TEMPLATES, extract_kpis

__all__ = [
    "ExtractedKPI",
    "KPI_TEMPLATES",
    "KpiExtractionError",
    "KpiExtractionResult",
    "KpiParseError",
    "ParsedKpis",
    "extract_kpis",
    "extract_kpis_with_llm",
    "overall_confidence",
    "parse_kpi_response",
]
