"""
Tests for the api_cache read-through / write-through layer.
"""

import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from finhub.models import ApiCache, Base
from finhub.services.response_cache import MISS, ResponseCache

START = datetime.datetime(2025, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)


class Clock:
    def __init__(self, now: datetime.datetime) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += datetime.timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return Clock(START)


@pytest.fixture
def cache(db_session, clock):
    return ResponseCache(db_session, clock=clock)


def test_get_after_put_returns_identical_payload(cache):
    payload = [{"symbol": "AAPL", "price": 227.52, "nested": {"a": [1, 2, None]}}]
    cache.put("AAPL", "quote", payload, ttl_seconds=300)

    assert cache.get("AAPL", "quote") == payload


def test_get_unknown_key_is_miss(cache):
    assert cache.get("AAPL", "quote") is MISS
    assert not MISS


def test_expired_row_is_miss(cache, clock):
    cache.put("AAPL", "quote", [{"price": 1}], ttl_seconds=300)
    clock.advance(301)

    assert cache.get("AAPL", "quote") is MISS


def test_ticker_is_case_insensitive(cache):
    cache.put("aapl", "profile", {"companyName": "Apple Inc."}, ttl_seconds=60)

    assert cache.get("AAPL", "profile") == {"companyName": "Apple Inc."}


def test_put_overwrites_existing_row(cache, db_session, clock):
    cache.put("AAPL", "quote", [{"price": 1}], ttl_seconds=300)
    clock.advance(400)
    cache.put("AAPL", "quote", [{"price": 2}], ttl_seconds=300)

    assert cache.get("AAPL", "quote") == [{"price": 2}]
    assert db_session.query(ApiCache).count() == 1


def test_put_is_a_single_on_conflict_insert(cache, executed_sql):
    cache.put("AAPL", "quote", [{"price": 1}], ttl_seconds=300)

    writes = [s for s in executed_sql if s.lstrip().upper().startswith(("INSERT", "UPDATE"))]
    assert len(writes) == 1
    assert "ON CONFLICT" in writes[0].upper()


def test_two_sessions_missing_the_same_key_both_write(tmp_path, clock):
    engine = create_engine(f"sqlite:///{tmp_path / 'cache.db'}")
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(bind=engine)
    first, second = Session(), Session()
    try:
        first_cache = ResponseCache(first, clock=clock)
        second_cache = ResponseCache(second, clock=clock)
        assert first_cache.get("AAPL", "quote") is MISS
        assert second_cache.get("AAPL", "quote") is MISS

        first_cache.put("AAPL", "quote", [{"price": 1}], ttl_seconds=300)
        second_cache.put("AAPL", "quote", [{"price": 2}], ttl_seconds=300)

        assert first_cache.get("AAPL", "quote") == [{"price": 2}]
        assert first.query(ApiCache).count() == 1
    finally:
        first.close()
        second.close()
        engine.dispose()


def test_fetch_calls_loader_once_while_live(cache):
    calls = []

    def loader():
        calls.append(1)
        return {"value": 42}

    assert cache.fetch("MSFT", "ratios", loader, ttl_seconds=60) == {"value": 42}
    assert cache.fetch("MSFT", "ratios", loader, ttl_seconds=60) == {"value": 42}
    assert len(calls) == 1


def test_fetch_does_not_cache_empty_payload(cache):
    calls = []

    def loader():
        calls.append(1)
        return []

    cache.fetch("MSFT", "ratios", loader, ttl_seconds=60)
    cache.fetch("MSFT", "ratios", loader, ttl_seconds=60)

    assert len(calls) == 2


def test_fetch_propagates_loader_error(cache):
    def loader():
        raise RuntimeError("provider down")

    with pytest.raises(RuntimeError):
        cache.fetch("MSFT", "ratios", loader, ttl_seconds=60)


def test_database_error_on_read_is_treated_as_miss():
    session = MagicMock()
    session.execute.side_effect = SQLAlchemyError("connection refused")
    cache = ResponseCache(session)

    assert cache.get("AAPL", "quote") is MISS
    session.rollback.assert_called_once()


def test_database_error_on_write_is_swallowed():
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "postgresql"
    session.execute.side_effect = SQLAlchemyError("connection refused")
    cache = ResponseCache(session)

    cache.put("AAPL", "quote", [{"price": 1}], ttl_seconds=60)

    session.rollback.assert_called_once()


def test_without_database_every_read_misses():
    cache = ResponseCache(None)
    cache.put("AAPL", "quote", [{"price": 1}], ttl_seconds=60)

    assert not cache.enabled
    assert cache.get("AAPL", "quote") is MISS
    assert cache.fetch("AAPL", "quote", lambda: [{"price": 2}], ttl_seconds=60) == [{"price": 2}]


def test_purge_removes_only_expired_rows(cache, clock, db_session):
    cache.put("AAPL", "quote", [{"price": 1}], ttl_seconds=300)
    cache.put("AAPL", "profile", {"companyName": "Apple Inc."}, ttl_seconds=86400)
    clock.advance(600)

    assert cache.purge_expired() == 1
    assert cache.get("AAPL", "profile") == {"companyName": "Apple Inc."}
    assert db_session.query(ApiCache).count() == 1
