"""Shared database helpers."""

from __future__ import annotations

from functools import lru_cache

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from .dependencies import get_settings
from .repos.tables import metadata


@lru_cache
def get_engine() -> Engine:
    """Return a cached SQLAlchemy engine."""

    settings = get_settings()
    return sa.create_engine(settings.database_url, pool_pre_ping=True)


def create_schema(engine: Engine | None = None) -> None:
    """Create any missing job tables; migrations remain the source of truth in production."""

    metadata.create_all(engine or get_engine())


__all__ = ["create_schema", "get_engine"]
