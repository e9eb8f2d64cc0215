"""
kpi.py — KPI extraction endpoints.

Endpoints:
- POST /kpi/extract-simple  (multipart) → regex templates over an uploaded document
- POST /kpi/extract-llm     (JSON)      → LLM extraction over supplied text

Extracted KPIs are returned, not stored.
"""

import datetime
import time
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from finhub.core.errors import ApiError
from finhub.core.logging import get_logger
from finhub.data.llm_client import LLMClient, LLMClientError, get_optional_llm_client
from finhub.services.kpi import (
    ExtractedKPI,
    KpiExtractionError,
    extract_kpis,
    extract_kpis_with_llm,
)
from finhub.services.kpi.patterns import PATTERN_CONFIDENCE

logger = get_logger(__name__)

router = APIRouter(
    prefix="/kpi",
    tags=["kpi"]
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class LlmExtractRequest(BaseModel):
    """Body for /kpi/extract-llm. Presence of text/symbol is checked in the route."""
    text: Optional[str] = None
    symbol: Optional[str] = None
    industry: Optional[str] = None
    documentType: Optional[str] = None


def _serialize(kpis: List[ExtractedKPI]) -> List[Dict[str, Any]]:
    return [kpi.model_dump(by_alias=True, mode="json") for kpi in kpis]


def _fiscal_year(report_date: Optional[str]) -> Optional[int]:
    if not report_date:
        return None
    try:
        return datetime.date.fromisoformat(report_date[:10]).year
    except ValueError:
        return None


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("/extract-simple")
def extract_simple(
    file: Optional[UploadFile] = File(None),
    symbol: Optional[str] = Form(None),
    documentType: Optional[str] = Form(None),
    reportDate: Optional[str] = Form(None),
    fiscalPeriod: Optional[str] = Form(None),
):
    """
    POST /kpi/extract-simple

    Returns:
        {success, document, extractedKPIs, processingTime, confidence}

    Raises:
        400: File or symbol missing
    """
    if file is None or not symbol:
        raise ApiError(400, "File and symbol are required")

    started = time.perf_counter()
    text = file.file.read().decode("utf-8", errors="replace")
    logger.info(f"Extracting KPIs for {symbol.upper()} from {file.filename} ({len(text)} chars)")

    kpis = extract_kpis(
        text,
        symbol,
        source_document=file.filename,
        report_date=reportDate,
        period=fiscalPeriod,
    )
    extracted = _serialize(kpis)
    processing_ms = int((time.perf_counter() - started) * 1000)
    now = datetime.datetime.now(datetime.timezone.utc).isoformat()

    return {
        "success": True,
        "document": {
            "id": uuid.uuid4().hex[:9],
            "symbol": symbol.upper(),
            "documentType": documentType,
            "fileName": file.filename,
            "reportDate": reportDate,
            "fiscalPeriod": fiscalPeriod,
            "fiscalYear": _fiscal_year(reportDate),
            "processingStatus": "completed",
            "sections": [],
            "tables": [],
            "extractedKPIs": extracted,
            "processingTime": processing_ms,
            "createdAt": now,
            "updatedAt": now,
        },
        "extractedKPIs": extracted,
        "processingTime": processing_ms,
        "confidence": PATTERN_CONFIDENCE if kpis else 0,
    }


@router.post("/extract-llm")
def extract_llm(
    body: LlmExtractRequest,
    llm: Optional[LLMClient] = Depends(get_optional_llm_client),
):
    """
    POST /kpi/extract-llm

    Returns:
        {success, extractedKPIs, confidence}

    Raises:
        400: Text or symbol missing
        500: Key not configured, provider failure or unusable reply
    """
    if not body.text or not body.symbol:
        raise ApiError(400, "Text and symbol are required")
    if llm is None:
        raise ApiError(500, "Perplexity API key not configured")

    try:
        result = extract_kpis_with_llm(
            llm,
            body.text,
            body.symbol,
            industry=body.industry,
            document_type=body.documentType,
        )
    except (LLMClientError, KpiExtractionError) as e:
        logger.error(f"LLM KPI extraction failed for {body.symbol}: {e}")
        raise ApiError(500, "Failed to extract KPIs with Perplexity", details=str(e)) from e

    return {
        "success": True,
        "extractedKPIs": _serialize(result.kpis),
        "confidence": result.confidence,
    }
