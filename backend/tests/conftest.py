"""
Shared fixtures: in-memory SQLite store, fake FMP / LLM clients and an API
client with those fakes wired in through dependency overrides.
"""

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from finhub.core.database import get_db, get_optional_db
from finhub.data.fmp_client import FMPClientError, get_fmp_client, get_optional_fmp_client
from finhub.data.llm_client import get_optional_llm_client
from finhub.main import app
from finhub.models import Base


class FakeFMPClient:
    """Stands in for FMPClient; canned payloads per method, calls recorded."""

    def __init__(self) -> None:
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.industry_results: Dict[str, List[Dict[str, Any]]] = {}
        self.sector_results: Dict[str, List[Dict[str, Any]]] = {}
        self.candidates: List[Dict[str, Any]] = []
        self.failing_industries: set = set()
        self.quotes: Dict[str, Any] = {}
        self.quote_error: Optional[FMPClientError] = None
        self.history: Dict[str, Any] = {"symbol": "AAPL", "historical": []}
        self.product_segments: Any = []
        self.geographic_segments: Any = []
        self.transcript: Any = None
        self.news: List[Dict[str, Any]] = []
        self.market: List[Dict[str, Any]] = []
        self.listing: List[Dict[str, Any]] = []
        self.search_results: List[Dict[str, Any]] = []
        self.profile_error: Optional[FMPClientError] = None
        self.income: Any = []
        self.filings: List[Dict[str, Any]] = []
        self.transcript_dates: List[Any] = []
        self.calls: List[tuple] = []

    def quote(self, symbol):
        self.calls.append(("quote", symbol))
        if self.quote_error:
            raise self.quote_error
        return self.quotes.get(symbol, [])

    def profile(self, symbol):
        self.calls.append(("profile", symbol))
        profile = self.profiles.get(symbol)
        return [profile] if profile else []

    def company_profile(self, symbol):
        self.calls.append(("company_profile", symbol))
        return self.profiles.get(symbol)

    def batch_profiles(self, symbols):
        self.calls.append(("batch_profiles", tuple(symbols)))
        if self.profile_error:
            raise self.profile_error
        return [self.profiles[s] for s in symbols if s in self.profiles]

    def ratios(self, symbol, period="annual", limit=10):
        self.calls.append(("ratios", symbol, period, limit))
        return [{"symbol": symbol, "period": period, "currentRatio": 1.1}]

    def key_metrics(self, symbol, period="annual", limit=10):
        self.calls.append(("key_metrics", symbol, period, limit))
        return [{"symbol": symbol, "period": period, "peRatio": 30.2}]

    def income_statement(self, symbol, period="ttm"):
        self.calls.append(("income_statement", symbol, period))
        return self.income

    def historical_prices(self, symbol, timeseries=365):
        self.calls.append(("historical_prices", symbol, timeseries))
        return self.history

    def revenue_product_segmentation(self, symbol):
        self.calls.append(("revenue_product_segmentation", symbol))
        return self.product_segments

    def revenue_geographic_segmentation(self, symbol):
        self.calls.append(("revenue_geographic_segmentation", symbol))
        return self.geographic_segments

    def earnings_transcript(self, symbol, quarter, year):
        self.calls.append(("earnings_transcript", symbol, quarter, year))
        return self.transcript

    def earnings_transcript_dates(self, symbol, limit=10):
        self.calls.append(("earnings_transcript_dates", symbol, limit))
        return self.transcript_dates

    def sec_filings(self, symbol, limit=150):
        self.calls.append(("sec_filings", symbol, limit))
        return self.filings

    def search(self, query, limit=20):
        self.calls.append(("search", query, limit))
        return list(self.search_results)

    def stock_screener(self, sector=None, industry=None, market_cap_more_than=None, limit=None, offset=None):
        self.calls.append(("stock_screener", sector, industry, market_cap_more_than, limit, offset))
        if industry is not None:
            if industry in self.failing_industries:
                raise FMPClientError("FMP API error: 500", status_code=500)
            return list(self.industry_results.get(industry, []))
        if sector is not None:
            return list(self.sector_results.get(sector, []))
        return list(self.candidates)

    def stock_news(self, symbol, limit=20):
        self.calls.append(("stock_news", symbol, limit))
        return self.news

    def market_news(self, limit=20):
        self.calls.append(("market_news", limit))
        return self.market

    def stock_list(self):
        self.calls.append(("stock_list",))
        return self.listing


class FakeLLM:
    """Stands in for LLMClient; returns `content` and records prompts."""

    def __init__(self, content: str = '{"kpis": []}') -> None:
        self.content = content
        self.prompts: List[Dict[str, Any]] = []

    def complete(self, system_prompt, user_prompt, model, temperature=0.1, max_tokens=4000):
        self.prompts.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        return self.content


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def executed_sql(db_session):
    """Every SQL statement sent through the test engine, in order."""
    engine = db_session.get_bind()
    statements: List[str] = []

    def record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    yield statements
    event.remove(engine, "before_cursor_execute", record)


@pytest.fixture
def fail_inserts(db_session):
    """
    Arm with fail_inserts("stock_peers", times=1): the next `times` INSERTs
    into that table raise OperationalError, as a locked or dropped
    connection would.
    """
    engine = db_session.get_bind()
    remaining: Dict[str, int] = {}

    def maybe_fail(conn, cursor, statement, parameters, context, executemany):
        for table, count in remaining.items():
            if count and statement.lstrip().upper().startswith(f"INSERT INTO {table.upper()}"):
                remaining[table] = count - 1
                raise OperationalError(statement, parameters, Exception("database is locked"))

    event.listen(engine, "before_cursor_execute", maybe_fail)
    yield lambda table, times=1: remaining.__setitem__(table, times)
    event.remove(engine, "before_cursor_execute", maybe_fail)


@pytest.fixture
def fake_fmp() -> FakeFMPClient:
    return FakeFMPClient()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def llm_holder(fake_llm):
    """Mutable slot for the LLM client the API sees; set "client" to None to simulate a missing key."""
    return {"client": fake_llm}


@pytest.fixture
def api(db_session, fake_fmp, llm_holder):
    """TestClient with provider clients and the database replaced by fakes."""

    def _db():
        yield db_session

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_optional_db] = _db
    app.dependency_overrides[get_fmp_client] = lambda: fake_fmp
    app.dependency_overrides[get_optional_fmp_client] = lambda: fake_fmp
    app.dependency_overrides[get_optional_llm_client] = lambda: llm_holder["client"]

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
