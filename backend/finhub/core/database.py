"""
database.py — Database Session & Connection Management

Purpose:
- Create and provide access to the relational store (Supabase Postgres in
  production, SQLite for local runs and tests).
- Manage SQLAlchemy Engine + Session lifecycle.
- Expose FastAPI dependencies that yield a session per request.

Key Characteristics:
- Synchronous SQLAlchemy engine.
- No migrations; `init_db()` creates missing tables from the ORM metadata.
- If DATABASE_URL is blank the store is disabled: `get_db()` fails with 503
  and `get_optional_db()` yields None so the response cache degrades to
  pass-through.

This module does NOT:
- Define ORM models (see finhub/models/*).
- Perform any queries or business logic.
- Own transactions: callers commit or roll back around `upsert_statement`.
"""

from typing import Any, Dict, Iterable, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import sessionmaker, Session

from finhub.core.config import settings
from finhub.core.errors import ApiError
from finhub.core.logging import get_logger
from finhub.models.base import Base

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# SQLAlchemy Engine
# -----------------------------------------------------------------------------


def normalize_db_url(db_url: str) -> str:
    """Use the psycopg (v3) driver for bare postgresql:// URLs."""
    if db_url.startswith("postgresql://") and "+" not in db_url.split("://")[0]:
        return db_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return db_url


db_url = settings.DATABASE_URL

if not db_url or not db_url.strip():
    engine = None
    SessionLocal = None
else:
    engine = create_engine(
        normalize_db_url(db_url.strip()),
        pool_pre_ping=True  # Ensures connections are valid before use
    )

    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine
    )


def init_db() -> None:
    """Create any missing tables. No-op without a configured database."""
    if engine is None:
        logger.warning("DATABASE_URL not set; peer store, waitlist and response cache are disabled")
        return
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")

# -----------------------------------------------------------------------------
# FastAPI Dependencies
# -----------------------------------------------------------------------------

def get_db() -> Iterator[Session]:
    """
    FastAPI dependency: yields a database session for the duration of the request.

    Raises:
        ApiError(503): If the database is not configured.
    """
    if SessionLocal is None:
        raise ApiError(503, "Database not configured")

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_optional_db() -> Iterator[Optional[Session]]:
    """Like get_db(), but yields None when no database is configured."""
    if SessionLocal is None:
        yield None
        return

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# -----------------------------------------------------------------------------
# Upserts
# -----------------------------------------------------------------------------

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def upsert_statement(db: Session, model: Any, values: Dict[str, Any], key_columns: Iterable[str]):
    """
    INSERT ... ON CONFLICT (key_columns) DO UPDATE for `model`.

    The row is written in one statement, so two sessions racing on the same
    key both succeed and the last write wins instead of one failing on the
    primary key.

    Raises:
        ValueError: If the session is bound to a dialect without ON CONFLICT
    """
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise ValueError(f"Upsert not supported for database dialect: {dialect}")

    keys = list(key_columns)
    stmt = insert(model).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=keys,
        set_={column: stmt.excluded[column] for column in values if column not in keys},
    )
