"""Tests for SuperProcessor fan-out and shared stream consumption."""

from __future__ import annotations

import pytest
from factories import (
    RecordedEvent,
    RecordingCoprocessor,
    batch,
    event_per_version,
    raw_event,
    system_tx,
    user_tx,
)

from coprocessor_indexer.adapters.memory import InMemoryTransactionStream, build_batches
from coprocessor_indexer.exceptions import VersionGapError
from coprocessor_indexer.processing import Progressed
from coprocessor_indexer.super_processor import SuperProcessor


def make_super(checkpoints, uow_factory, *coprocessors, genesis=0):
    return SuperProcessor(
        0,
        genesis,
        checkpoint_store=checkpoints,
        uow_factory=uow_factory,
        coprocessors=coprocessors,
    )


def test_filter_user_transactions_keeps_the_version_range() -> None:
    b = batch(0, 3, user_tx(0), system_tx(1), user_tx(2))
    filtered = SuperProcessor.filter_user_transactions(b)
    assert [tx.version for tx in filtered.transactions] == [0, 2]
    assert (filtered.start_version, filtered.end_version) == (0, 3)


async def test_resolve_next_version_falls_back_to_genesis(checkpoints, uow_factory) -> None:
    sp = make_super(checkpoints, uow_factory, genesis=42)
    assert await sp.resolve_next_version() == 42
    await checkpoints.save_next_version("0_super_processor", 77)
    assert await sp.resolve_next_version() == 77


async def test_batch_commits_all_coprocessors_and_super_checkpoint(
    database, checkpoints, uow_factory
) -> None:
    first = RecordingCoprocessor(base_name="first")
    second = RecordingCoprocessor(base_name="second")
    sp = make_super(checkpoints, uow_factory, first, second)

    outcome = await sp.process_batch(batch(0, 9, *event_per_version(0, 9)))

    assert outcome == Progressed(10)
    for name in ("0_first", "0_second", "0_super_processor"):
        assert await checkpoints.get_next_version(name) == 10
    assert len(database.rows(RecordedEvent)) == 20


async def test_one_failing_coprocessor_rolls_back_the_whole_batch(
    database, checkpoints, uow_factory
) -> None:
    first = RecordingCoprocessor(base_name="first")
    second = RecordingCoprocessor(base_name="second", fail_on_version=3)
    sp = make_super(checkpoints, uow_factory, first, second)

    with pytest.raises(RuntimeError):
        await sp.process_batch(batch(0, 9, *event_per_version(0, 9)))

    assert database.rows(RecordedEvent) == []
    assert checkpoints.history == []


async def test_coprocessors_run_in_fixed_order(database, checkpoints, uow_factory) -> None:
    first = RecordingCoprocessor(base_name="first")
    second = RecordingCoprocessor(base_name="second")
    sp = make_super(checkpoints, uow_factory, first, second)

    await sp.process_batch(batch(0, 0, user_tx(0, raw_event())))

    assert [row["consumer"] for row in database.rows(RecordedEvent)] == [
        "0_first",
        "0_second",
    ]


async def test_run_skips_versions_already_committed(
    database, checkpoints, uow_factory
) -> None:
    coprocessor = RecordingCoprocessor()
    sp = make_super(checkpoints, uow_factory, coprocessor)
    overlapping = InMemoryTransactionStream(
        [
            batch(0, 9, *event_per_version(0, 9)),
            batch(5, 14, *event_per_version(5, 14)),
        ]
    )

    outcome = await sp.run(overlapping, 0)

    assert outcome == Progressed(15)
    assert coprocessor.seen == list(range(15))


async def test_run_refuses_version_gaps(checkpoints, uow_factory) -> None:
    sp = make_super(checkpoints, uow_factory, RecordingCoprocessor())
    gappy = InMemoryTransactionStream([batch(0, 9), batch(20, 29)])

    with pytest.raises(VersionGapError, match="expected version 10"):
        await sp.run(gappy, 0)
    assert await checkpoints.get_next_version("0_super_processor") == 10


async def test_run_resumes_from_the_requested_version(checkpoints, uow_factory) -> None:
    coprocessor = RecordingCoprocessor()
    sp = make_super(checkpoints, uow_factory, coprocessor)
    stream = InMemoryTransactionStream(build_batches(event_per_version(0, 99), 0, 99, 25))

    assert await sp.run(stream, 60) == Progressed(100)
    assert stream.opened_at == [60]
    assert coprocessor.seen == list(range(60, 100))
