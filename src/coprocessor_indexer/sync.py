"""Aligning coprocessor checkpoints with the super stream before it starts.

For every coprocessor the :class:`SyncCoordinator` compares its stored
checkpoint ``C`` with the super stream checkpoint ``S`` and either admits it
to the shared stream, rejects it, or first replays ``[C, S)`` in an
independent :class:`CatchUpRun` bounded by ``S``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .correlation import correlation_scope, get_correlation_id
from .exceptions import CatchUpIncompleteError, ConfigurationError
from .processing.batch import align_to_checkpoint
from .processing.context import ProcessingContext
from .processing.outcome import Failed, Outcome, Progressed, Synced

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from .coprocessor import Coprocessor
    from .ports.checkpoint import ICheckpointStore
    from .ports.stream import ITransactionStream
    from .ports.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class CatchUpRun:
    """Replays history for one coprocessor until it reaches ``ceiling_version``.

    Each batch is processed in its own unit of work, with the checkpoint
    clipped so it never passes the ceiling. The run ends with ``Synced`` as
    soon as the stored checkpoint equals the ceiling or a batch starts
    exactly at it.
    """

    def __init__(
        self,
        coprocessor: Coprocessor,
        *,
        stream: ITransactionStream,
        checkpoint_store: ICheckpointStore,
        uow_factory: Callable[[], UnitOfWork],
        ceiling_version: int,
    ) -> None:
        self._coprocessor = coprocessor
        self._stream = stream
        self._checkpoint_store = checkpoint_store
        self._uow_factory = uow_factory
        self._ceiling = ceiling_version
        self._context = ProcessingContext.catch_up(
            genesis_version=coprocessor.genesis_version,
            ceiling_version=ceiling_version,
        )

    async def run(self, starting_version: int) -> Outcome:
        """Return ``Synced`` on success, ``Failed`` on error, ``Progressed``
        if the stream ended before the ceiling was reached."""
        try:
            return await self._run(starting_version)
        except Exception as e:  # noqa: BLE001
            logger.error(
                "catch-up run for %s failed: %s", self._coprocessor.name, e
            )
            return Failed(e)

    async def _run(self, starting_version: int) -> Outcome:
        name = self._coprocessor.name
        next_version = starting_version
        if next_version >= self._ceiling:
            return Synced(next_version)

        async for incoming in self._stream.stream(starting_version):
            batch = align_to_checkpoint(incoming, next_version, name=name)
            if batch is None:
                continue

            async with self._uow_factory() as uow:
                outcome = await self._coprocessor.process_batch(
                    batch, self._context, uow, self._checkpoint_store
                )
            if isinstance(outcome, Synced):
                return outcome

            next_version = outcome.next_version
            if next_version >= self._ceiling:
                logger.info("coprocessor %s caught up at %d", name, next_version)
                return Synced(next_version)

        return Progressed(next_version)


@dataclass
class SyncReport:
    admitted: list[Coprocessor] = field(default_factory=list)
    rejected: dict[str, str] = field(default_factory=dict)
    caught_up: list[str] = field(default_factory=list)

    @property
    def admitted_names(self) -> list[str]:
        return [c.name for c in self.admitted]


class SyncCoordinator:
    """Decides, per coprocessor, whether it can join the shared stream."""

    def __init__(
        self,
        *,
        checkpoint_store: ICheckpointStore,
        uow_factory: Callable[[], UnitOfWork],
        stream_factory: Callable[[], ITransactionStream],
    ) -> None:
        self._checkpoint_store = checkpoint_store
        self._uow_factory = uow_factory
        self._stream_factory = stream_factory

    async def reconcile(
        self,
        coprocessors: Sequence[Coprocessor],
        *,
        super_next_version: int,
        super_genesis_version: int,
    ) -> SyncReport:
        """Bring every valid coprocessor to ``super_next_version``.

        Rejected coprocessors are logged and left out of the report's
        ``admitted`` list. Errors from catch-up runs propagate.
        """
        report = SyncReport()
        for coprocessor in coprocessors:
            await self._reconcile_one(
                coprocessor,
                report,
                super_next_version=super_next_version,
                super_genesis_version=super_genesis_version,
            )
        return report

    async def _reconcile_one(
        self,
        coprocessor: Coprocessor,
        report: SyncReport,
        *,
        super_next_version: int,
        super_genesis_version: int,
    ) -> None:
        name = coprocessor.name
        if not coprocessor.models:
            raise ConfigurationError(f"coprocessor {name} declares no models")

        stored = await self._checkpoint_store.get_next_version(name)
        next_version = stored if stored is not None else coprocessor.genesis_version

        if next_version == super_next_version:
            logger.info("coprocessor %s already synced with super stream", name)
            report.admitted.append(coprocessor)
            return

        if coprocessor.genesis_version < super_genesis_version:
            reason = (
                f"genesis {coprocessor.genesis_version} is earlier than super "
                f"stream genesis {super_genesis_version}"
            )
            logger.error("coprocessor %s rejected: %s", name, reason)
            report.rejected[name] = reason
            return

        if stored is None and coprocessor.genesis_version > super_next_version:
            # The super stream has not reached this coprocessor's genesis yet.
            logger.info(
                "coprocessor %s genesis %d is ahead of super stream at %d; "
                "joining directly",
                name,
                coprocessor.genesis_version,
                super_next_version,
            )
            report.admitted.append(coprocessor)
            return

        if next_version > super_next_version:
            reason = (
                f"checkpoint {next_version} is ahead of super stream "
                f"checkpoint {super_next_version}"
            )
            logger.error("INVARIANT: coprocessor %s rejected: %s", name, reason)
            report.rejected[name] = reason
            return

        await self._catch_up(coprocessor, next_version, super_next_version)
        report.admitted.append(coprocessor)
        report.caught_up.append(name)

    async def _catch_up(
        self, coprocessor: Coprocessor, next_version: int, ceiling_version: int
    ) -> None:
        logger.info(
            "coprocessor %s catching up from %d to %d",
            coprocessor.name,
            next_version,
            ceiling_version,
        )
        run = CatchUpRun(
            coprocessor,
            stream=self._stream_factory(),
            checkpoint_store=self._checkpoint_store,
            uow_factory=self._uow_factory,
            ceiling_version=ceiling_version,
        )
        with correlation_scope(get_correlation_id()):
            outcome = await run.run(next_version)

        if isinstance(outcome, Synced):
            return
        if isinstance(outcome, Failed):
            raise outcome.error
        raise CatchUpIncompleteError(
            coprocessor.name, outcome.next_version, ceiling_version
        )
