"""Upstream transaction stream protocol."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from ..domain.transactions import TransactionBatch


@runtime_checkable
class ITransactionStream(Protocol):
    """Delivers ordered, contiguous batches starting at a requested version.

    The sequence is conceptually unbounded; retry and backoff against the
    upstream service live inside the provider, not in the engine.
    """

    def stream(self, starting_version: int) -> AsyncIterator[TransactionBatch]:
        """Yield batches whose first ``start_version`` is ``starting_version``."""
        ...

