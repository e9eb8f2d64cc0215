"""
filings.py — SEC filing section extraction.

POST /extract-filing-content  {"symbol", "filingUrl", "filingType"}
    → {success, filingType, url, extractedSections, extractedAt}

A download failure is answered with 200 and {success: false, error, ...};
only a malformed body or a URL outside the SEC hosts is a 400.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends

from finhub.core.errors import ApiError
from finhub.core.logging import get_logger
from finhub.data.filing_client import FilingClient, get_filing_client
from finhub.services.filings import extract_filing_content

logger = get_logger(__name__)

router = APIRouter(tags=["filings"])

REQUIRED_FIELDS = ("symbol", "filingUrl", "filingType")


@router.post("/extract-filing-content")
def extract_content(
    payload: Any = Body(None),
    client: FilingClient = Depends(get_filing_client),
):
    if not isinstance(payload, dict) or not all(
        isinstance(payload.get(f), str) and payload[f].strip() for f in REQUIRED_FIELDS
    ):
        raise ApiError(400, "Missing required parameters: symbol, filingUrl, filingType")

    url = payload["filingUrl"].strip()
    if not client.is_allowed(url):
        raise ApiError(400, "filingUrl must point to an SEC document")

    logger.info(f"Extracting content for {payload['symbol'].upper()} {payload['filingType']}")
    return extract_filing_content(client, url, payload["filingType"].strip())
