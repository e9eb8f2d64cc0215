"""
models.py — Extracted KPI schema shared by the pattern and LLM extractors.

Fields serialise with camelCase aliases (kpiType, displayName, sourceText, ...)
because the dashboard consumes that shape.
"""

from __future__ import annotations

import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class KpiCategory(str, Enum):
    OPERATIONAL = "operational"
    CUSTOMER = "customer"
    FINANCIAL = "financial"
    EFFICIENCY = "efficiency"
    GROWTH = "growth"


class KpiUnit(str, Enum):
    COUNT = "count"
    USD = "USD"
    PERCENTAGE = "percentage"


class KpiPeriod(str, Enum):
    QUARTERLY = "quarterly"
    ANNUAL = "annual"
    MONTHLY = "monthly"


class ExtractionMethod(str, Enum):
    PATTERN = "pattern"
    LLM = "llm"
    TABLE = "table"
    MANUAL = "manual"


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ExtractedKPI(BaseModel):
    """
    One metric pulled from a document.

    category / unit / period are plain strings: pattern templates always use
    the enum values, while LLM output that strays outside them is kept and
    flagged in `anomaly_flags` instead of being rejected.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    symbol: str
    kpi_type: str
    display_name: str
    category: str
    value: float
    unit: str
    period: Optional[str] = None
    date: Optional[str] = None
    source_text: str = ""
    source_document: Optional[str] = None
    extraction_method: ExtractionMethod
    confidence: float = Field(ge=0, le=1)
    validated: bool = False
    quality_score: float = 0.0
    anomaly_flags: List[str] = Field(default_factory=list)
    created_at: datetime.datetime = Field(default_factory=_utcnow)
    updated_at: datetime.datetime = Field(default_factory=_utcnow)


def overall_confidence(kpis: List[ExtractedKPI]) -> float:
    """Arithmetic mean of per-KPI confidences; 0 for an empty list."""
    if not kpis:
        return 0.0
    return sum(kpi.confidence for kpi in kpis) / len(kpis)
