"""Async SQLAlchemy session factory helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Refresh-token rotation relies on conditional updates seeing committed rows.
_POSTGRES_ISOLATION_LEVEL = "READ COMMITTED"


def create_session_factory(database_url: str) -> async_sessionmaker[AsyncSession]:
    """Create a reusable async session factory for the provided database URL."""

    url = make_url(database_url)
    engine_options: dict[str, Any] = {}
    if url.get_backend_name() == "postgresql":
        engine_options["isolation_level"] = _POSTGRES_ISOLATION_LEVEL

    engine = create_async_engine(url, **engine_options)
    return async_sessionmaker(engine, expire_on_commit=False)
