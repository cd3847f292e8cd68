"""Protocol for persisting a consumer's next version to process."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .unit_of_work import UnitOfWork


@runtime_checkable
class ICheckpointStore(Protocol):
    """
    Tracks the next unprocessed ledger version for each named consumer.

    Essential for:
    - Crash recovery (resume from the next uncommitted version)
    - Exactly-once processing (never re-run a committed version)
    - Sync decisions between coprocessors and the super stream

    Saves MUST share the batch's unit of work so checkpoint and data commit
    together.
    """

    async def get_next_version(
        self,
        consumer_name: str,
        *,
        uow: UnitOfWork | None = None,
    ) -> int | None:
        """Return the stored next version; None if never processed."""
        ...

    async def save_next_version(
        self,
        consumer_name: str,
        next_version: int,
        *,
        uow: UnitOfWork | None = None,
    ) -> None:
        """Upsert the checkpoint. Raises ``CheckpointError`` on regression."""
        ...

    async def reset(
        self,
        consumer_name: str,
        *,
        uow: UnitOfWork | None = None,
    ) -> None:
        """Delete the checkpoint (operator replay tooling)."""
        ...
