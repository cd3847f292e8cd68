"""Tests for the SQLAlchemy checkpoint store and unit of work (aiosqlite)."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from coprocessor_indexer.coprocessors.coin_flip import CoinFlipEventModel, CoinFlipStatModel
from coprocessor_indexer.exceptions import (
    CheckpointError,
    SessionManagementError,
    UnitOfWorkError,
)
from coprocessor_indexer.persistence.sqlalchemy import (
    SQLAlchemyCheckpointStore,
    SQLAlchemyUnitOfWork,
    sqlalchemy_unit_of_work_factory,
)

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def event_row(sequence_number: int) -> dict:
    return {
        "chain_id": 0,
        "account_address": "0x" + "0" * 63 + "1",
        "sequence_number": sequence_number,
        "creation_number": 0,
        "prediction": True,
        "result": True,
        "wins": sequence_number,
        "losses": 0,
        "win_percentage": 1.0,
        "transaction_version": sequence_number,
        "transaction_timestamp": NOW,
        "event_index": 0,
    }


async def count_events(session_factory) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(CoinFlipEventModel))
        return int(result.scalar_one())


# ── Checkpoint store ─────────────────────────────────────────────────


async def test_checkpoint_save_and_get(session_factory) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    await store.save_next_version("2_coin_flip_processor", 100)
    assert await store.get_next_version("2_coin_flip_processor") == 100


async def test_checkpoint_get_none_when_never_saved(session_factory) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    assert await store.get_next_version("unknown") is None


async def test_checkpoint_advances_and_accepts_same_value(session_factory) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    await store.save_next_version("c", 10)
    await store.save_next_version("c", 10)
    await store.save_next_version("c", 25)
    assert await store.get_next_version("c") == 25


async def test_checkpoint_regression_raises(session_factory) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    await store.save_next_version("c", 10)
    with pytest.raises(CheckpointError, match="would regress to 9"):
        await store.save_next_version("c", 9)
    assert await store.get_next_version("c") == 10


async def test_checkpoint_reset(session_factory) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    await store.save_next_version("c", 50)
    await store.reset("c")
    assert await store.get_next_version("c") is None


async def test_checkpoint_commits_with_the_unit_of_work(session_factory) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        await uow.insert_many(CoinFlipEventModel, [event_row(1)])
        await store.save_next_version("c", 2, uow=uow)
        assert await store.get_next_version("c", uow=uow) == 2
    assert await store.get_next_version("c") == 2
    assert await count_events(session_factory) == 1


async def test_checkpoint_rolls_back_with_the_unit_of_work(session_factory) -> None:
    store = SQLAlchemyCheckpointStore(session_factory)
    with pytest.raises(RuntimeError):
        async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
            await uow.insert_many(CoinFlipEventModel, [event_row(1)])
            await store.save_next_version("c", 2, uow=uow)
            raise RuntimeError("handler failed")
    assert await store.get_next_version("c") is None
    assert await count_events(session_factory) == 0


# ── Unit of work ─────────────────────────────────────────────────────


async def test_insert_many_handles_more_rows_than_one_chunk(session_factory) -> None:
    factory = sqlalchemy_unit_of_work_factory(session_factory)
    async with factory() as uow:
        await uow.insert_many(CoinFlipEventModel, [event_row(i) for i in range(250)])
    assert await count_events(session_factory) == 250


async def test_insert_many_with_no_rows_is_a_no_op(session_factory) -> None:
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        await uow.insert_many(CoinFlipEventModel, [])
    assert await count_events(session_factory) == 0


async def test_upsert_inserts_then_updates(session_factory) -> None:
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        values = {
            "chain_id": 0,
            "total_wins": 1,
            "total_losses": 0,
            "win_percentage": 1.0,
            "last_updated": NOW,
        }
        await uow.upsert(CoinFlipStatModel, values, ["chain_id"])
        await uow.upsert(
            CoinFlipStatModel,
            {**values, "total_losses": 1, "win_percentage": 0.5},
            ["chain_id"],
        )
        row = await uow.get(CoinFlipStatModel, {"chain_id": 0})

    assert row is not None
    assert row["total_wins"] == 1
    assert row["total_losses"] == 1
    assert row["win_percentage"] == pytest.approx(0.5)


async def test_get_returns_none_for_missing_row(session_factory) -> None:
    async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
        assert await uow.get(CoinFlipStatModel, {"chain_id": 99}) is None


async def test_caller_managed_session(session_factory) -> None:
    async with session_factory() as session:
        async with SQLAlchemyUnitOfWork(session=session) as uow:
            await uow.insert_many(CoinFlipEventModel, [event_row(1)])
    assert await count_events(session_factory) == 1


async def test_requires_exactly_one_session_source(session_factory) -> None:
    async with session_factory() as session:
        with pytest.raises(SessionManagementError, match="Cannot provide both"):
            SQLAlchemyUnitOfWork(session=session, session_factory=session_factory)
    with pytest.raises(SessionManagementError, match="Must provide either"):
        SQLAlchemyUnitOfWork()


async def test_session_unavailable_before_enter(session_factory) -> None:
    uow = SQLAlchemyUnitOfWork(session_factory=session_factory)
    with pytest.raises(UnitOfWorkError, match="Session not yet created"):
        _ = uow.session


async def test_unmapped_model_is_rejected(session_factory) -> None:
    class NotMapped:
        pass

    with pytest.raises(UnitOfWorkError, match="not a mapped SQLAlchemy model"):
        async with SQLAlchemyUnitOfWork(session_factory=session_factory) as uow:
            await uow.insert_many(NotMapped, [{"a": 1}])
