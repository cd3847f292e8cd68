"""Ledger transactions and the batches the upstream stream delivers."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TransactionKind(str, enum.Enum):
    USER = "user"
    GENESIS = "genesis"
    BLOCK_METADATA = "block_metadata"
    STATE_CHECKPOINT = "state_checkpoint"
    VALIDATOR = "validator"
    BLOCK_EPILOGUE = "block_epilogue"


class RawEvent(BaseModel):
    """An event as emitted on chain; ``data`` is the undecoded JSON payload."""

    model_config = ConfigDict(frozen=True)

    type_str: str
    sequence_number: int = Field(ge=0)
    creation_number: int = Field(ge=0)
    account_address: str
    data: str


class UserTransactionPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    sender: str | None = None
    events: tuple[RawEvent, ...] = ()


class Transaction(BaseModel):
    """One committed ledger transaction.

    Only ``USER`` transactions carry a ``user`` payload (and therefore events).
    """

    model_config = ConfigDict(frozen=True)

    version: int = Field(ge=0)
    block_height: int = Field(default=0, ge=0)
    timestamp: datetime
    kind: TransactionKind
    user: UserTransactionPayload | None = None

    @property
    def is_user(self) -> bool:
        return self.kind is TransactionKind.USER


class TransactionBatch(BaseModel):
    """A contiguous, version-ordered slice ``[start_version, end_version]``.

    ``transactions`` may be a filtered subset of the range, but every version
    in it lies inside the range and versions strictly increase.
    """

    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    start_version: int = Field(ge=0)
    end_version: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_ordering(self) -> TransactionBatch:
        if self.end_version < self.start_version:
            raise ValueError(
                f"end_version {self.end_version} < start_version {self.start_version}"
            )
        previous: int | None = None
        for tx in self.transactions:
            if not self.start_version <= tx.version <= self.end_version:
                raise ValueError(
                    f"transaction {tx.version} outside batch range "
                    f"[{self.start_version}, {self.end_version}]"
                )
            if previous is not None and tx.version <= previous:
                raise ValueError(
                    f"transaction versions not strictly increasing at {tx.version}"
                )
            previous = tx.version
        return self

    def with_transactions(self, transactions: tuple[Transaction, ...]) -> TransactionBatch:
        """Same version range, different (filtered) transaction list."""
        return TransactionBatch(
            transactions=transactions,
            start_version=self.start_version,
            end_version=self.end_version,
        )
