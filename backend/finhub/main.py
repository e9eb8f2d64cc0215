"""
main.py — FastAPI Application Entrypoint

Purpose:
- Initialize application services (logging, DB tables, in-process cache).
- Register API routers and the JSON error envelope.
- Define root-level health/status endpoints.
- Provide `app` object used by ASGI server (uvicorn / hypercorn).

This file should stay clean: no business logic here.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from finhub.api.routes import competitors, filings, financial, kpi, sentiment, stock, waitlist
from finhub.core.cache import TTLCache
from finhub.core.config import settings
from finhub.core.database import init_db
from finhub.core.errors import register_exception_handlers
from finhub.core.logging import configure_logging

# -----------------------------------------------------------------------------
# Lifespan
# -----------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    if settings.DB_AUTO_CREATE:
        init_db()
    app.state.ttl_cache = TTLCache(settings.UNIVERSE_CACHE_TTL_SECONDS)
    yield
    app.state.ttl_cache.clear()


# -----------------------------------------------------------------------------
# App Initialization
# -----------------------------------------------------------------------------

app = FastAPI(
    title="FinHub Backend",
    description="Financial data proxy, KPI extraction and peer screening for the FinHub dashboard",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# -----------------------------------------------------------------------------
# CORS (optional, useful for local frontend development)
# -----------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# Router Registration
# -----------------------------------------------------------------------------

# Mount all API routers under /api prefix
app.include_router(financial.router, prefix="/api")
app.include_router(stock.router, prefix="/api")
app.include_router(kpi.router, prefix="/api")
app.include_router(competitors.router, prefix="/api")
app.include_router(sentiment.router, prefix="/api")
app.include_router(filings.router, prefix="/api")
app.include_router(waitlist.router, prefix="/api")

# -----------------------------------------------------------------------------
# Health Check
# -----------------------------------------------------------------------------

@app.get("/")
def root():
    return {"status": "ok", "message": "FinHub backend running"}
