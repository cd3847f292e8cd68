"""SQLAlchemy (asyncio) adapters for checkpoints and the unit of work."""

from __future__ import annotations

from .checkpoint_store import SQLAlchemyCheckpointStore
from .engine import create_engine, create_schema, create_session_factory
from .models import CHECKPOINT_TABLE, Base, NextVersionToProcess
from .uow import (
    INSERT_CHUNK_SIZE,
    SQLAlchemyUnitOfWork,
    sqlalchemy_unit_of_work_factory,
)

__all__ = [
    "CHECKPOINT_TABLE",
    "INSERT_CHUNK_SIZE",
    "Base",
    "NextVersionToProcess",
    "SQLAlchemyCheckpointStore",
    "SQLAlchemyUnitOfWork",
    "create_engine",
    "create_schema",
    "create_session_factory",
    "sqlalchemy_unit_of_work_factory",
]
