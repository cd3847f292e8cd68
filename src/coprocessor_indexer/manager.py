"""ProcessorManager: assembles one pipeline run.

A run resolves the super stream checkpoint, reconciles every coprocessor
through the :class:`~coprocessor_indexer.sync.SyncCoordinator`, hands the
admitted ones to the :class:`~coprocessor_indexer.super_processor.SuperProcessor`
and consumes the shared stream until it ends.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import AlreadyRunningError
from .super_processor import SuperProcessor
from .sync import SyncCoordinator

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from .coprocessor import Coprocessor
    from .ports.checkpoint import ICheckpointStore
    from .ports.stream import ITransactionStream
    from .ports.unit_of_work import UnitOfWork
    from .processing.outcome import Progressed
    from .sync import SyncReport

logger = logging.getLogger(__name__)


class ProcessorManager:
    """Runs one attempt of the pipeline.

    ``prepare`` is awaited at the start of every run, before any checkpoint is
    read. Its errors fail the attempt like any other pipeline error.
    """

    def __init__(
        self,
        chain_id: int,
        starting_version: int,
        coprocessors: Sequence[Coprocessor],
        *,
        checkpoint_store: ICheckpointStore,
        uow_factory: Callable[[], UnitOfWork],
        stream_factory: Callable[[], ITransactionStream],
        prepare: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self.chain_id = chain_id
        self.starting_version = starting_version
        self.coprocessors = list(coprocessors)
        self._stream_factory = stream_factory
        self._prepare = prepare
        self.super_processor = SuperProcessor(
            chain_id,
            starting_version,
            checkpoint_store=checkpoint_store,
            uow_factory=uow_factory,
        )
        self.coordinator = SyncCoordinator(
            checkpoint_store=checkpoint_store,
            uow_factory=uow_factory,
            stream_factory=stream_factory,
        )
        self.last_report: SyncReport | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def reset(self) -> None:
        """Clear the already-running guard after a failed attempt."""
        self._running = False
        self.super_processor.coprocessors = []

    async def run(self) -> Progressed:
        if self._running:
            raise AlreadyRunningError(
                f"processor manager for chain {self.chain_id} is already running"
            )
        self._running = True
        # A failed or cancelled run keeps the guard set until reset().
        outcome = await self._run()
        self._running = False
        return outcome

    async def _run(self) -> Progressed:
        if self._prepare is not None:
            await self._prepare()

        super_next_version = await self.super_processor.resolve_next_version()
        logger.info(
            "super stream checkpoint for chain %d is %d",
            self.chain_id,
            super_next_version,
        )

        report = await self.coordinator.reconcile(
            self.coprocessors,
            super_next_version=super_next_version,
            super_genesis_version=self.starting_version,
        )
        self.last_report = report
        if report.rejected:
            logger.warning(
                "%d coprocessor(s) excluded from the shared stream: %s",
                len(report.rejected),
                ", ".join(sorted(report.rejected)),
            )
        self.super_processor.coprocessors = list(report.admitted)

        return await self.super_processor.run(
            self._stream_factory(), super_next_version
        )
