"""
competitors.py — Peer store management and peer discovery.

Endpoints:
- POST   /competitors/batch             → screen + store peers for many symbols
- GET    /competitors/batch             → large-cap candidate symbols for a batch run
- GET    /competitors/manage            → list/search stored peer lists
- POST   /competitors/manage            → create/overwrite one peer list
- DELETE /competitors/manage?symbol=    → remove one peer list
- POST   /competitors/regenerate-peers  → replace peers with an LLM recommendation
"""

from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel

from finhub.api.deps import get_peer_repository
from finhub.core.errors import ApiError
from finhub.core.logging import get_logger
from finhub.data.fmp_client import (
    FMPClient,
    FMPClientError,
    get_fmp_client,
    get_optional_fmp_client,
)
from finhub.data.llm_client import LLMClient, LLMClientError, get_optional_llm_client
from finhub.repositories.peers import PeerRepository
from finhub.services.peers import (
    PeerScreeningError,
    batch_candidates,
    batch_screen,
    regenerate_peers,
)

logger = get_logger(__name__)

router = APIRouter(
    prefix="/competitors",
    tags=["competitors"]
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class BatchRequest(BaseModel):
    symbols: List[str]
    batchSize: int = 50


class RegenerateRequest(BaseModel):
    symbol: Optional[str] = None


def parse_batch_request(payload: Any = Body(None)) -> BatchRequest:
    """Validate the batch body before the provider key is checked."""
    if not isinstance(payload, dict) or not isinstance(payload.get("symbols"), list):
        raise ApiError(400, "symbols array is required")
    batch_size = payload.get("batchSize", 50)
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise ApiError(400, "batchSize must be a positive integer")
    return BatchRequest(symbols=[str(s) for s in payload["symbols"]], batchSize=batch_size)


# -----------------------------------------------------------------------------
# Batch screening
# -----------------------------------------------------------------------------

@router.post("/batch")
def run_batch(
    request: BatchRequest = Depends(parse_batch_request),
    client: FMPClient = Depends(get_fmp_client),
    repo: PeerRepository = Depends(get_peer_repository),
):
    """
    POST /competitors/batch  {"symbols": [...], "batchSize": 50}

    Per-symbol failures are reported in results.errors; the batch continues.
    """
    logger.info(f"Starting peer batch for {len(request.symbols)} symbols (batchSize={request.batchSize})")
    results = batch_screen(client, repo, request.symbols, batch_size=request.batchSize)
    return {
        "message": "Batch processing completed",
        "results": results.to_dict(),
    }


@router.get("/batch")
def list_batch_candidates(
    limit: int = Query(1000, ge=1),
    offset: int = Query(0, ge=0),
    client: FMPClient = Depends(get_fmp_client),
):
    try:
        symbols = batch_candidates(client, limit=limit, offset=offset)
    except FMPClientError as e:
        logger.error(f"Error fetching company list: {e}")
        raise ApiError(500, "Failed to fetch company list", details=str(e)) from e
    return {
        "symbols": symbols,
        "count": len(symbols),
        "limit": limit,
        "offset": offset,
    }


# -----------------------------------------------------------------------------
# Manual management
# -----------------------------------------------------------------------------

@router.get("/manage")
def list_competitors(
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1),
    offset: int = Query(0, ge=0),
    repo: PeerRepository = Depends(get_peer_repository),
):
    rows, total = repo.search(search, limit=limit, offset=offset)
    return {
        "competitors": [row.to_dict() for row in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("/manage")
def save_competitor(
    payload: Any = Body(None),
    repo: PeerRepository = Depends(get_peer_repository),
):
    """
    POST /competitors/manage  {"symbol", "name", "peers": [...], "sector"?, "industry"?}

    Overwrites any existing peer list for the symbol.
    """
    if (
        not isinstance(payload, dict)
        or not payload.get("symbol")
        or not payload.get("name")
        or not isinstance(payload.get("peers"), list)
    ):
        raise ApiError(400, "Missing required fields")
    if not all(isinstance(peer, str) and peer.strip() for peer in payload["peers"]):
        raise ApiError(400, "peers must be a list of ticker symbols")

    row = repo.upsert(
        str(payload["symbol"]),
        str(payload["name"]),
        payload["peers"],
        sector=payload.get("sector"),
        industry=payload.get("industry"),
    )
    return {"competitor": row.to_dict()}


@router.delete("/manage")
def delete_competitor(
    symbol: Optional[str] = Query(None),
    repo: PeerRepository = Depends(get_peer_repository),
):
    if not symbol or not symbol.strip():
        raise ApiError(400, "Symbol is required")
    if not repo.delete(symbol):
        logger.info(f"No peer list stored for {symbol.upper()}; nothing deleted")
    return {"message": "Competitor deleted successfully"}


# -----------------------------------------------------------------------------
# AI regeneration
# -----------------------------------------------------------------------------

@router.post("/regenerate-peers")
def regenerate(
    body: RegenerateRequest,
    client: Optional[FMPClient] = Depends(get_optional_fmp_client),
    llm: Optional[LLMClient] = Depends(get_optional_llm_client),
    repo: PeerRepository = Depends(get_peer_repository),
):
    """
    POST /competitors/regenerate-peers  {"symbol": "LVMUY"}

    Raises:
        400: Missing symbol, or the LLM recommended no usable peers
        404: No FMP profile for the symbol
        503: FMP or Perplexity key not configured
        500: Provider failure
    """
    if not body.symbol or not body.symbol.strip():
        raise ApiError(400, "Symbol is required")
    if client is None:
        raise ApiError(503, "FMP API key not configured")
    if llm is None:
        raise ApiError(503, "Perplexity API key not configured")

    symbol = body.symbol.strip().upper()
    try:
        result = regenerate_peers(client, llm, repo, symbol)
    except PeerScreeningError as e:
        raise ApiError(e.status_code, str(e)) from e
    except FMPClientError as e:
        logger.error(f"Failed to fetch company profile for {symbol}: {e}")
        raise ApiError(500, "Failed to fetch company profile", details=str(e)) from e
    except LLMClientError as e:
        logger.error(f"Peer analysis failed for {symbol}: {e}")
        raise ApiError(500, "Failed to analyze peers", details=str(e)) from e

    return {
        "success": True,
        "symbol": result.symbol,
        "oldPeers": result.old_peers,
        "newPeers": result.new_peers,
        "analysis": result.analysis,
    }
