"""In-memory transaction stream for tests and replays."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from ...domain.transactions import Transaction, TransactionBatch

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Sequence


def build_batches(
    transactions: Iterable[Transaction],
    start_version: int,
    end_version: int,
    batch_size: int = 100,
) -> list[TransactionBatch]:
    """Split ``[start_version, end_version]`` into contiguous batches.

    Each batch covers ``batch_size`` versions and carries the given
    transactions that fall inside it.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    ordered = sorted(transactions, key=lambda tx: tx.version)
    batches: list[TransactionBatch] = []
    lo = start_version
    while lo <= end_version:
        hi = min(lo + batch_size - 1, end_version)
        batches.append(
            TransactionBatch(
                transactions=tuple(tx for tx in ordered if lo <= tx.version <= hi),
                start_version=lo,
                end_version=hi,
            )
        )
        lo = hi + 1
    return batches


class InMemoryTransactionStream:
    """Replays a fixed list of contiguous batches.

    Opening the stream at a version inside a batch trims that batch so the
    first yielded ``start_version`` equals the requested version. Every
    opening is recorded in ``opened_at``.
    """

    def __init__(self, batches: Sequence[TransactionBatch]) -> None:
        self._batches = sorted(batches, key=lambda b: b.start_version)
        self.opened_at: list[int] = []

    async def stream(self, starting_version: int) -> AsyncIterator[TransactionBatch]:
        self.opened_at.append(starting_version)
        for batch in self._batches:
            if batch.end_version < starting_version:
                continue
            if batch.start_version < starting_version:
                batch = TransactionBatch(
                    transactions=tuple(
                        tx for tx in batch.transactions if tx.version >= starting_version
                    ),
                    start_version=starting_version,
                    end_version=batch.end_version,
                )
            yield batch
            await asyncio.sleep(0)
