"""
Declarative base and shared column helpers for all ORM models.

Models are schema-only. Queries, upserts and counters live in
`capture_stats.modules.stats.sql_store`.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Integer, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Stable constraint names across SQLite, PostgreSQL and MySQL.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class IdMixin:
    """Autoincrementing integer surrogate key."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
