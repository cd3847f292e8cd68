from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from coprocessor_indexer.adapters.memory import (
    InMemoryCheckpointStore,
    InMemoryDatabase,
    in_memory_unit_of_work_factory,
)
from coprocessor_indexer.coprocessors.coin_flip import CoinFlipEventModel  # noqa: F401
from coprocessor_indexer.instrumentation import HookRegistry, set_hook_registry
from coprocessor_indexer.persistence.sqlalchemy import create_schema


@pytest.fixture(autouse=True)
def hook_registry():
    registry = HookRegistry()
    set_hook_registry(registry)
    yield registry
    registry.clear()


@pytest.fixture
def database():
    return InMemoryDatabase()


@pytest.fixture
def checkpoints():
    return InMemoryCheckpointStore()


@pytest.fixture
def uow_factory(database):
    return in_memory_unit_of_work_factory(database)


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:")
    await create_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)
