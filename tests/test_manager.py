"""End-to-end pipeline runs through ProcessorManager on in-memory adapters."""

from __future__ import annotations

import asyncio

import pytest
from factories import RecordedEvent, RecordingCoprocessor, event_per_version

from coprocessor_indexer.adapters.memory import InMemoryTransactionStream, build_batches
from coprocessor_indexer.exceptions import AlreadyRunningError
from coprocessor_indexer.manager import ProcessorManager
from coprocessor_indexer.processing import Progressed
from coprocessor_indexer.retry import RetryPolicy
from coprocessor_indexer.supervisor import Supervisor


def make_manager(coprocessors, checkpoints, uow_factory, stream, starting_version=0):
    return ProcessorManager(
        0,
        starting_version,
        coprocessors,
        checkpoint_store=checkpoints,
        uow_factory=uow_factory,
        stream_factory=lambda: stream,
    )


def ledger(end: int) -> InMemoryTransactionStream:
    return InMemoryTransactionStream(
        build_batches(event_per_version(0, end), 0, end, batch_size=50)
    )


async def test_first_run_starts_at_configured_starting_version(
    checkpoints, uow_factory
) -> None:
    coprocessor = RecordingCoprocessor(genesis_version=100)
    stream = ledger(299)
    manager = make_manager([coprocessor], checkpoints, uow_factory, stream, 100)

    assert await manager.run() == Progressed(300)

    assert stream.opened_at == [100]
    assert coprocessor.seen == list(range(100, 300))
    assert await checkpoints.get_next_version("0_super_processor") == 300
    assert await checkpoints.get_next_version("0_recording") == 300


async def test_lagging_coprocessor_catches_up_then_joins(
    database, checkpoints, uow_factory
) -> None:
    joined = RecordingCoprocessor(base_name="joined")
    lagging = RecordingCoprocessor(base_name="lagging", genesis_version=100)
    await checkpoints.save_next_version("0_super_processor", 500)
    await checkpoints.save_next_version("0_joined", 500)
    await checkpoints.save_next_version("0_lagging", 300)
    stream = ledger(999)
    manager = make_manager([joined, lagging], checkpoints, uow_factory, stream)

    await manager.run()

    assert stream.opened_at == [300, 500]
    assert manager.last_report is not None
    assert manager.last_report.caught_up == ["0_lagging"]
    lagging_versions = [
        row["version"]
        for row in database.rows(RecordedEvent)
        if row["consumer"] == "0_lagging"
    ]
    assert lagging_versions == list(range(300, 1000))
    for name in ("0_super_processor", "0_joined", "0_lagging"):
        assert await checkpoints.get_next_version(name) == 1000


async def test_rejected_coprocessor_is_left_out_of_the_shared_stream(
    checkpoints, uow_factory
) -> None:
    early = RecordingCoprocessor(base_name="early", genesis_version=10)
    manager = make_manager([early], checkpoints, uow_factory, ledger(199), 100)

    await manager.run()

    assert early.seen == []
    assert manager.super_processor.coprocessors == []
    assert await checkpoints.get_next_version("0_super_processor") == 200


async def test_restart_does_not_process_versions_twice(
    database, checkpoints, uow_factory
) -> None:
    coprocessor = RecordingCoprocessor()
    await make_manager([coprocessor], checkpoints, uow_factory, ledger(249)).run()
    await make_manager([coprocessor], checkpoints, uow_factory, ledger(499)).run()

    versions = [row["version"] for row in database.rows(RecordedEvent)]
    assert versions == list(range(500))


async def test_concurrent_run_is_refused(checkpoints, uow_factory) -> None:
    manager = make_manager([RecordingCoprocessor()], checkpoints, uow_factory, ledger(99))

    results = await asyncio.gather(manager.run(), manager.run(), return_exceptions=True)

    assert results[0] == Progressed(100)
    assert isinstance(results[1], AlreadyRunningError)


async def test_failed_run_keeps_guard_until_reset(checkpoints, uow_factory) -> None:
    manager = make_manager(
        [RecordingCoprocessor(fail_on_version=20)], checkpoints, uow_factory, ledger(99)
    )

    with pytest.raises(RuntimeError):
        await manager.run()
    assert manager.running

    with pytest.raises(AlreadyRunningError):
        await manager.run()

    manager.reset()
    assert not manager.running


async def test_supervised_retry_resumes_from_committed_checkpoints(
    database, checkpoints, uow_factory
) -> None:
    coprocessor = RecordingCoprocessor(fail_on_version=160, fail_times=1)
    stream = ledger(299)
    manager = make_manager([coprocessor], checkpoints, uow_factory, stream)
    supervisor = Supervisor(
        manager, retry_policy=RetryPolicy(base_delay=0.0, max_delay=0.0)
    )

    assert await supervisor.run() == Progressed(300)

    assert supervisor.failed_attempts == 1
    assert not manager.running
    # The second attempt reopens the stream at the last committed batch.
    assert stream.opened_at == [0, 150]
    versions = [row["version"] for row in database.rows(RecordedEvent)]
    assert versions == list(range(300))
    assert await checkpoints.get_next_version("0_recording") == 300
    assert await checkpoints.get_next_version("0_super_processor") == 300
