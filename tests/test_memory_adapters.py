"""Tests for the in-memory unit of work, checkpoint store and stream."""

from __future__ import annotations

import pytest
from factories import RecordedEvent, event_per_version

from coprocessor_indexer.adapters.memory import (
    InMemoryCheckpointStore,
    InMemoryDatabase,
    InMemoryTransactionStream,
    InMemoryUnitOfWork,
    build_batches,
)
from coprocessor_indexer.exceptions import CheckpointError
from coprocessor_indexer.ports import ICheckpointStore, ITransactionStream


class Stat:
    __tablename__ = "stats"


async def test_commit_publishes_writes() -> None:
    database = InMemoryDatabase()
    async with InMemoryUnitOfWork(database) as uow:
        await uow.insert_many(RecordedEvent, [{"version": 1}, {"version": 2}])
        assert database.rows(RecordedEvent) == []
    assert database.rows(RecordedEvent) == [{"version": 1}, {"version": 2}]
    assert uow.commit_count == 1


async def test_exception_discards_writes() -> None:
    database = InMemoryDatabase()
    with pytest.raises(RuntimeError):
        async with InMemoryUnitOfWork(database) as uow:
            await uow.insert_many(RecordedEvent, [{"version": 1}])
            raise RuntimeError("boom")
    assert database.rows(RecordedEvent) == []
    assert uow.rollback_count == 1


async def test_upsert_and_get_see_own_writes() -> None:
    database = InMemoryDatabase()
    async with InMemoryUnitOfWork(database) as uow:
        assert await uow.get(Stat, {"chain_id": 0}) is None
        await uow.upsert(Stat, {"chain_id": 0, "total": 1}, ["chain_id"])
        await uow.upsert(Stat, {"chain_id": 0, "total": 2}, ["chain_id"])
        assert await uow.get(Stat, {"chain_id": 0}) == {"chain_id": 0, "total": 2}
    assert database.rows(Stat) == [{"chain_id": 0, "total": 2}]


async def test_on_commit_hooks_run_only_after_commit() -> None:
    ran: list[str] = []

    async def hook() -> None:
        ran.append("hook")

    with pytest.raises(RuntimeError):
        async with InMemoryUnitOfWork() as uow:
            uow.on_commit(hook)
            raise RuntimeError("boom")
    assert ran == []

    async with InMemoryUnitOfWork() as uow:
        uow.on_commit(hook)
    assert ran == ["hook"]


def test_adapters_satisfy_their_ports() -> None:
    assert isinstance(InMemoryCheckpointStore(), ICheckpointStore)
    assert isinstance(InMemoryTransactionStream([]), ITransactionStream)


async def test_checkpoint_store_defers_write_until_commit() -> None:
    store = InMemoryCheckpointStore()
    async with InMemoryUnitOfWork() as uow:
        await store.save_next_version("c", 10, uow=uow)
        assert await store.get_next_version("c") is None
    assert await store.get_next_version("c") == 10


async def test_checkpoint_store_rejects_regression() -> None:
    store = InMemoryCheckpointStore({"c": 10})
    await store.save_next_version("c", 10)
    with pytest.raises(CheckpointError, match="from 10 to 9"):
        await store.save_next_version("c", 9)


async def test_checkpoint_store_reset() -> None:
    store = InMemoryCheckpointStore({"c": 10})
    await store.reset("c")
    assert await store.get_next_version("c") is None
    await store.save_next_version("c", 3)
    assert await store.get_next_version("c") == 3


def test_build_batches_covers_range_contiguously() -> None:
    batches = build_batches(event_per_version(3, 7), 0, 9, batch_size=4)
    assert [(b.start_version, b.end_version) for b in batches] == [(0, 3), (4, 7), (8, 9)]
    assert [tx.version for tx in batches[1].transactions] == [4, 5, 6, 7]
    with pytest.raises(ValueError):
        build_batches([], 0, 9, batch_size=0)


async def test_stream_trims_the_first_batch_to_the_start_version() -> None:
    stream = InMemoryTransactionStream(build_batches(event_per_version(0, 19), 0, 19, 10))

    batches = [b async for b in stream.stream(5)]

    assert [(b.start_version, b.end_version) for b in batches] == [(5, 9), (10, 19)]
    assert batches[0].transactions[0].version == 5
    assert stream.opened_at == [5]
