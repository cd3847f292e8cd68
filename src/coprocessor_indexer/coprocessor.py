"""Coprocessor: an independently checkpointed sub-indexer.

A coprocessor owns its genesis version, its relational models and its event
handlers. It never decides which stream it reads from: the sync coordinator
and the super processor hand it batches together with a
:class:`~coprocessor_indexer.processing.ProcessingContext`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, ClassVar

from .correlation import get_correlation_id
from .dispatch.registry import EventHandlerRegistry
from .domain.events import TransactionContext
from .exceptions import ConfigurationError, TransactionDataError
from .instrumentation import get_hook_registry
from .processing.batch import next_version_after, post_process, pre_process
from .processing.outcome import Progressed, Synced

if TYPE_CHECKING:
    from .domain.events import LedgerEvent
    from .domain.identifiers import EventTypeID
    from .domain.transactions import Transaction, TransactionBatch
    from .ports.checkpoint import ICheckpointStore
    from .ports.unit_of_work import UnitOfWork
    from .processing.batch import PreProcessResult
    from .processing.context import ProcessingContext

logger = logging.getLogger(__name__)


class Coprocessor(ABC):
    """Base class for coprocessors.

    Subclasses set ``base_name`` (fixed forever once data is written), list
    their SQLAlchemy models in ``models`` and register handlers in
    :meth:`register_event_handlers`.
    """

    base_name: ClassVar[str]

    def __init__(
        self,
        chain_id: int,
        genesis_version: int,
        *,
        strict_registry: bool = True,
    ) -> None:
        if genesis_version < 0:
            raise ConfigurationError(
                f"{self.construct_name(chain_id, self.base_name)} "
                f"genesis_version must be >= 0, got {genesis_version}"
            )
        self.chain_id = chain_id
        self.genesis_version = genesis_version
        self.models: list[type[Any]] = []
        self.registry = EventHandlerRegistry(strict=strict_registry)
        self.register_event_handlers()

    @staticmethod
    def construct_name(chain_id: int, base_name: str) -> str:
        return f"{chain_id}_{base_name}"

    @property
    def name(self) -> str:
        """Checkpoint key; stable across restarts."""
        return self.construct_name(self.chain_id, self.base_name)

    @abstractmethod
    def register_event_handlers(self) -> None:
        """Bind every event type this coprocessor cares about."""
        ...

    def get_registered_event_id(self, index: int) -> EventTypeID:
        return self.registry.get_registered_id(index)

    async def call_event_handler(
        self,
        event_type_id: EventTypeID,
        transaction: TransactionContext,
        event: LedgerEvent,
        uow: UnitOfWork,
    ) -> None:
        await self.registry.call_handler(event_type_id, transaction, event, uow)

    async def process_batch(
        self,
        batch: TransactionBatch,
        context: ProcessingContext,
        uow: UnitOfWork,
        checkpoint_store: ICheckpointStore,
    ) -> Synced | Progressed:
        """Dispatch the batch's events and stage the new checkpoint in ``uow``.

        Returns ``Synced`` without writing anything when a catch-up batch
        starts exactly at the ceiling.
        """
        selected = pre_process(batch, context, name=self.name)
        if isinstance(selected, Synced):
            logger.info(
                "coprocessor %s caught up to super stream at %d",
                self.name,
                selected.next_version,
            )
            return selected

        preprocessed: PreProcessResult = selected
        registry = get_hook_registry()
        result: Progressed = await registry.execute_all(
            f"coprocessor.process.{self.name}",
            {
                "coprocessor.name": self.name,
                "coprocessor.phase": context.phase.value,
                "batch.start_version": batch.start_version,
                "batch.end_version": batch.end_version,
                "correlation_id": get_correlation_id(),
            },
            lambda: self._process_selected(
                batch, preprocessed, context, uow, checkpoint_store
            ),
        )
        return result

    async def _process_selected(
        self,
        batch: TransactionBatch,
        selected: PreProcessResult,
        context: ProcessingContext,
        uow: UnitOfWork,
        checkpoint_store: ICheckpointStore,
    ) -> Progressed:
        dispatched = 0
        for tx in selected.transactions:
            if tx.version < self.genesis_version:
                continue
            dispatched += await self._dispatch_transaction(tx, uow)

        committed_end = post_process(
            batch.start_version,
            batch.end_version,
            selected.ran_past_ceiling,
            context.ceiling_version,
        )
        next_version = next_version_after(committed_end)
        await checkpoint_store.save_next_version(self.name, next_version, uow=uow)

        logger.debug(
            "coprocessor %s processed [%d, %d] (%d handled events), next %d",
            self.name,
            batch.start_version,
            committed_end,
            dispatched,
            next_version,
        )
        return Progressed(next_version)

    async def _dispatch_transaction(self, tx: Transaction, uow: UnitOfWork) -> int:
        if tx.user is None:
            if tx.is_user:
                raise TransactionDataError(tx.version)
            return 0

        tx_context = TransactionContext.from_transaction(tx)
        handled = 0
        for event_index, raw_event in enumerate(tx.user.events):
            if await self.registry.dispatch(tx_context, raw_event, event_index, uow):
                handled += 1
        return handled

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} genesis={self.genesis_version}>"
