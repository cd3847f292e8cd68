"""Pre/post processing of a transaction batch for one coprocessor.

Pure functions: they decide which transactions a coprocessor sees and which
checkpoint it may store, without touching persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..domain.transactions import TransactionBatch
from ..exceptions import CatchUpInvariantError, ConfigurationError, VersionGapError
from .outcome import Synced

if TYPE_CHECKING:
    from ..domain.transactions import Transaction
    from .context import ProcessingContext


@dataclass(frozen=True)
class PreProcessResult:
    transactions: tuple[Transaction, ...]
    ran_past_ceiling: bool = False


def pre_process(
    batch: TransactionBatch,
    context: ProcessingContext,
    *,
    name: str = "coprocessor",
) -> PreProcessResult | Synced:
    """Select the transactions of ``batch`` this coprocessor may process.

    On the shared stream the batch passes through unchanged (the super
    processor already dropped non-user transactions). During catch-up:

    * a batch starting exactly at the ceiling means the run has caught up and
      ``Synced`` is returned;
    * a batch starting past the ceiling raises ``CatchUpInvariantError``;
    * otherwise scanning stops at the first version >= ceiling and non-user
      transactions are dropped.
    """
    if context.joined_shared_stream:
        return PreProcessResult(batch.transactions)

    ceiling = context.ceiling_version
    if ceiling is None:
        raise ConfigurationError(
            f"catch-up processing for {name} has no ceiling version"
        )

    if batch.start_version == ceiling:
        return Synced(ceiling)
    if batch.start_version > ceiling:
        raise CatchUpInvariantError(name, batch.start_version, ceiling)

    filtered: list[Transaction] = []
    ran_past_ceiling = batch.end_version >= ceiling
    for tx in batch.transactions:
        if tx.version >= ceiling:
            ran_past_ceiling = True
            break
        if not tx.is_user:
            continue
        filtered.append(tx)
    return PreProcessResult(tuple(filtered), ran_past_ceiling)


def post_process(
    start_version: int,
    end_version: int,
    ran_past_ceiling: bool,
    ceiling_version: int | None = None,
) -> int:
    """Return the last version this batch may be committed up to.

    A clipped batch commits up to ``ceiling_version - 1``, never touching the
    ceiling itself. The checkpoint to store is the returned value plus one.
    """
    if not ran_past_ceiling:
        return end_version
    if ceiling_version is None:
        raise ValueError("ceiling_version is required when the batch ran past it")
    if ceiling_version <= start_version:
        raise CatchUpInvariantError("coprocessor", start_version, ceiling_version)
    return ceiling_version - 1


def next_version_after(committed_end_version: int) -> int:
    return committed_end_version + 1


def align_to_checkpoint(
    batch: TransactionBatch,
    next_version: int,
    *,
    name: str = "consumer",
) -> TransactionBatch | None:
    """Drop what a consumer has already committed from an incoming batch.

    Returns None when the whole batch lies before ``next_version``, a trimmed
    batch starting at ``next_version`` when it overlaps, and raises
    ``VersionGapError`` when the batch starts after ``next_version``.
    """
    if batch.end_version < next_version:
        return None
    if batch.start_version > next_version:
        raise VersionGapError(name, next_version, batch.start_version)
    if batch.start_version == next_version:
        return batch
    return TransactionBatch(
        transactions=tuple(tx for tx in batch.transactions if tx.version >= next_version),
        start_version=next_version,
        end_version=batch.end_version,
    )
