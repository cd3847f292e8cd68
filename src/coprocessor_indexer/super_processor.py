"""SuperProcessor: reads the shared stream and fans each batch out to coprocessors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .correlation import get_correlation_id
from .instrumentation import get_hook_registry
from .processing.batch import align_to_checkpoint
from .processing.context import ProcessingContext
from .processing.outcome import Progressed

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .coprocessor import Coprocessor
    from .domain.transactions import TransactionBatch
    from .ports.checkpoint import ICheckpointStore
    from .ports.stream import ITransactionStream
    from .ports.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class SuperProcessor:
    """Owns the shared stream cursor.

    For every batch it drops non-user transactions once, then runs every
    admitted coprocessor in a fixed order inside a single unit of work,
    followed by its own checkpoint. A failing coprocessor rolls back the
    whole batch for everyone.
    """

    base_name = "super_processor"

    def __init__(
        self,
        chain_id: int,
        genesis_version: int,
        *,
        checkpoint_store: ICheckpointStore,
        uow_factory: Callable[[], UnitOfWork],
        coprocessors: Sequence[Coprocessor] = (),
    ) -> None:
        self.chain_id = chain_id
        self.genesis_version = genesis_version
        self._checkpoint_store = checkpoint_store
        self._uow_factory = uow_factory
        self.coprocessors: list[Coprocessor] = list(coprocessors)

    @property
    def name(self) -> str:
        return f"{self.chain_id}_{self.base_name}"

    async def resolve_next_version(self) -> int:
        """Stored checkpoint, or the configured genesis when never run."""
        stored = await self._checkpoint_store.get_next_version(self.name)
        return stored if stored is not None else self.genesis_version

    @staticmethod
    def filter_user_transactions(batch: TransactionBatch) -> TransactionBatch:
        return batch.with_transactions(
            tuple(tx for tx in batch.transactions if tx.is_user)
        )

    async def process_batch(self, batch: TransactionBatch) -> Progressed:
        registry = get_hook_registry()
        result: Progressed = await registry.execute_all(
            "super.process",
            {
                "super.name": self.name,
                "batch.start_version": batch.start_version,
                "batch.end_version": batch.end_version,
                "coprocessor.count": len(self.coprocessors),
                "correlation_id": get_correlation_id(),
            },
            lambda: self._process_batch_internal(batch),
        )
        return result

    async def _process_batch_internal(self, batch: TransactionBatch) -> Progressed:
        filtered = self.filter_user_transactions(batch)
        next_version = batch.end_version + 1
        async with self._uow_factory() as uow:
            for coprocessor in self.coprocessors:
                context = ProcessingContext.joined(
                    genesis_version=coprocessor.genesis_version
                )
                await coprocessor.process_batch(
                    filtered, context, uow, self._checkpoint_store
                )
            await self._checkpoint_store.save_next_version(
                self.name, next_version, uow=uow
            )
        logger.debug(
            "super processor committed [%d, %d] for %d coprocessors",
            batch.start_version,
            batch.end_version,
            len(self.coprocessors),
        )
        return Progressed(next_version)

    async def run(self, stream: ITransactionStream, starting_version: int) -> Progressed:
        """Consume the shared stream from ``starting_version`` until it ends."""
        next_version = starting_version
        logger.info(
            "super processor %s streaming from %d with coprocessors %s",
            self.name,
            next_version,
            [c.name for c in self.coprocessors],
        )
        async for incoming in stream.stream(starting_version):
            batch = align_to_checkpoint(incoming, next_version, name=self.name)
            if batch is None:
                logger.debug(
                    "skipping already committed batch [%d, %d]",
                    incoming.start_version,
                    incoming.end_version,
                )
                continue
            outcome = await self.process_batch(batch)
            next_version = outcome.next_version
        logger.info("super stream for %s ended at %d", self.name, next_version)
        return Progressed(next_version)

