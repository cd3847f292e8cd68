"""Engine, session factory and schema helpers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .models import Base

if TYPE_CHECKING:
    from sqlalchemy import MetaData
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def create_engine(db_connection_uri: str, **kwargs: Any) -> AsyncEngine:
    return create_async_engine(db_connection_uri, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine, metadata: MetaData | None = None) -> None:
    """Create the checkpoint table and every coprocessor table that is missing."""
    target = metadata if metadata is not None else Base.metadata
    async with engine.begin() as conn:
        await conn.run_sync(target.create_all)
    logger.info("schema ready: %s", ", ".join(sorted(target.tables)))
