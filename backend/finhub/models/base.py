"""
base.py — Shared declarative Base for all ORM models.

All tables register on this metadata so `init_db()` can create them in one pass.
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
